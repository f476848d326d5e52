"""Closed vocabularies shared by the registry and the engine."""

from __future__ import annotations

from enum import Enum
from typing import NewType

# Opaque ``resource.action`` token. The engine never splits it.
Permission = NewType("Permission", str)


class Role(str, Enum):
    """Department/function of a staff member. Exactly one per identity."""

    ADMIN = "admin"
    RECEPTION = "reception"
    FITNESS = "fitness"
    TENNIS = "tennis"
    GOLF = "golf"


class ElevatedLevel(str, Enum):
    TEAM_LEAD = "team_lead"
    MANAGER = "manager"
    ADMIN = "admin"


class DataAccessLevel(str, Enum):
    """
    Visibility scope for a (role, data type) pair.

    Ordered ``none < own < department < all``. Comparison operators use that
    order rather than string order.
    """

    NONE = "none"
    OWN = "own"
    DEPARTMENT = "department"
    ALL = "all"

    @property
    def rank(self) -> int:
        return _LEVEL_ORDER.index(self)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, DataAccessLevel):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, DataAccessLevel):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, DataAccessLevel):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, DataAccessLevel):
            return NotImplemented
        return self.rank >= other.rank


_LEVEL_ORDER = (
    DataAccessLevel.NONE,
    DataAccessLevel.OWN,
    DataAccessLevel.DEPARTMENT,
    DataAccessLevel.ALL,
)
