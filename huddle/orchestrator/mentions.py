"""@mention parsing for the orchestrator.

An agent is mentioned by writing ``@`` directly followed by its id, e.g.
``@cortex`` or ``@qa-lead``. Ids are matched exactly and case-sensitively
against the roster; anything else that looks like a mention is ignored.
"""

import re
from typing import Iterable, Optional

from huddle.agents import AgentRegistry

# Any "@" starts a candidate, including one glued to a word ("me@qa")
MENTION_PATTERN = re.compile(r"@([\w-]+)")


def unique_mentions(agent_ids: Iterable[str]) -> list[str]:
    """Remove duplicates while preserving first-occurrence order.

    Examples:
        >>> unique_mentions(["qa", "cortex", "qa"])
        ['qa', 'cortex']
    """
    seen: set[str] = set()
    result = []
    for agent_id in agent_ids:
        if agent_id not in seen:
            seen.add(agent_id)
            result.append(agent_id)
    return result


class MentionParser:
    """Extracts known agent ids from message text."""

    def __init__(self, registry: AgentRegistry):
        self.registry = registry

    def resolve(self, token: str) -> Optional[str]:
        """Map a raw token to the longest known id it starts with.

        The token is cut back one hyphen-separated part at a time, so
        ``qa-lead`` resolves to ``qa-lead`` when that id exists and to
        ``qa`` otherwise.
        """
        parts = token.split("-")
        for end in range(len(parts), 0, -1):
            candidate = "-".join(parts[:end])
            if candidate in self.registry:
                return candidate
        return None

    def extract_mentions(self, text: str) -> list[str]:
        """Extract mentioned agent ids in the order they appear.

        Duplicates are kept exactly as found; unknown ids are dropped.

        Args:
            text: Message text possibly containing @mentions

        Returns:
            List of known agent ids

        Examples:
            >>> parser.extract_mentions("@patchy and @sniffy, then @patchy again")
            ['patchy', 'sniffy', 'patchy']

            >>> parser.extract_mentions("ping @nobody, cc me@sniffy")
            ['sniffy']
        """
        mentions = []
        for token in MENTION_PATTERN.findall(text):
            agent_id = self.resolve(token)
            if agent_id is not None:
                mentions.append(agent_id)
        return mentions
