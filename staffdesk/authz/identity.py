"""Authenticated actor handed to every authorization query."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum

from .constants import Role


@dataclass(frozen=True)
class Identity:
    """
    Immutable per session. A changed role, position or grant set means a new
    ``Identity`` (re-authentication happens outside this package).
    """

    id: str
    """Staff user id; compared against record ``created_by`` / ``assigned_to``."""

    role: Role

    department: str | None = None

    position: str | None = None
    """Seniority label, e.g. ``"팀장"``. Only used for elevated-access checks."""

    granted_permissions: frozenset[str] = field(default_factory=frozenset)
    """Individually granted tokens. Additive to the role's grants."""

    @classmethod
    def build(
        cls,
        id: str,
        role: Role | str,
        department: str | None = None,
        position: str | None = None,
        granted_permissions: Iterable[str] = (),
    ) -> Identity:
        """Coerce loosely typed session data. Raises ValueError on an unknown role."""
        return cls(
            id=str(id),
            role=Role(role),
            department=department or None,
            position=position or None,
            granted_permissions=frozenset(_token(p) for p in granted_permissions),
        )

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-serializable dict."""
        return {
            "id": self.id,
            "role": self.role.value,
            "department": self.department,
            "position": self.position,
            "granted_permissions": sorted(self.granted_permissions),
        }


def _token(permission: object) -> str:
    # Enum members (e.g. from ``Registry.permission_enum``) carry the token as their value.
    if isinstance(permission, Enum):
        return str(permission.value)
    return str(permission)
