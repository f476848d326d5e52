"""Read the four ownership fields from arbitrary record shapes."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

OWNER_FIELD = "created_by"
ASSIGNEE_FIELD = "assigned_to"
DEPARTMENT_FIELD = "department"


def record_field(record: Any, name: str) -> Any:
    """
    Mappings are read by key, anything else by attribute (ORM rows, dataclasses,
    pydantic models). A missing field reads as None.
    """
    if isinstance(record, Mapping):
        return record.get(name)
    return getattr(record, name, None)


def user_id(value: Any) -> str | None:
    """Ids are compared as strings: ``7`` and ``"7"`` name the same staff member."""
    if value is None:
        return None
    return str(value)


def assignees(value: Any) -> frozenset[str]:
    """``assigned_to`` may be a single id or a collection of ids."""
    if value is None:
        return frozenset()
    if isinstance(value, str) or not isinstance(value, Iterable):
        return frozenset({str(value)})
    return frozenset(str(v) for v in value if v is not None)
