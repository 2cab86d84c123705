"""Decides which event names are forwarded as builds."""

from __future__ import annotations

WILDCARD = "*"


class EmissionFilter:
    """Matches ``event`` / ``event:action`` names against configured patterns.

    A bare ``event`` pattern accepts the event and every action of it;
    ``event:action`` accepts only that pair.
    """

    def __init__(self, patterns: list[str]) -> None:
        self._patterns = frozenset(p.strip().lower() for p in patterns if p.strip())

    def should_emit(self, event_type: str) -> bool:
        event, _, action = event_type.lower().partition(":")
        for pattern in self._patterns:
            if pattern == WILDCARD or pattern == event or pattern == f"{event}:{action}":
                return True
        return False
