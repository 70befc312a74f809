"""Entry point for running Huddle as a module."""

from huddle.cli import app


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
