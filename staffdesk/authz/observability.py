"""
Decision events.

Every engine decision is reported as an ``AuthzEvent`` to an ``AuthzObserver``.
Observers see decisions; they cannot change them, and an observer that raises
is ignored by the engine.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
import logging
from typing import Any, Protocol


@dataclass(frozen=True)
class AuthzEvent:
    decision: str
    """Query family, e.g. ``"permission"``, ``"page"``, ``"modify"``, ``"filter"``."""

    actor_id: str | None
    role: str | None
    subject: str
    """What was asked about: a permission token, route, data type or level."""

    allowed: bool
    details: Mapping[str, Any] = field(default_factory=dict)


class AuthzObserver(Protocol):
    def record(self, event: AuthzEvent) -> None: ...


class LoggingObserver:
    """Writes decision events to the standard logging hierarchy."""

    def __init__(self, logger: logging.Logger | None = None, level: int = logging.DEBUG) -> None:
        self._logger = logger or logging.getLogger(__name__)
        self._level = level

    def record(self, event: AuthzEvent) -> None:
        if not self._logger.isEnabledFor(self._level):
            return
        self._logger.log(
            self._level,
            "authz %s %s: actor=%s role=%s subject=%s details=%s",
            event.decision,
            "allowed" if event.allowed else "denied",
            event.actor_id,
            event.role,
            event.subject,
            dict(event.details),
        )
