"""Huddle - a team of AI agents sharing one conversation with you."""

__version__ = "0.1.0"
