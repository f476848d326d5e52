from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from staffdesk.authz import DataAccessLevel, ReasonCode


class PermissionCheckIn(BaseModel):
    permission: str


class PermissionCheckOut(BaseModel):
    permission: str
    allowed: bool
    reason: str
    code: ReasonCode


class PermissionListIn(BaseModel):
    permissions: list[str] = Field(default_factory=list)


class DecisionOut(BaseModel):
    allowed: bool


class EffectivePermissionsOut(BaseModel):
    permissions: list[str]


class PageCheckIn(BaseModel):
    path: str


class PageCheckOut(BaseModel):
    path: str
    allowed: bool


class DataLevelOut(BaseModel):
    data_type: str
    level: DataAccessLevel


class ModifyCheckIn(BaseModel):
    owner_id: int | str | None = None
    department: str | None = None
    assigned_to: int | str | list[int | str] | None = None


class FilterIn(BaseModel):
    records: list[dict[str, Any]] = Field(default_factory=list)


class FilterOut(BaseModel):
    data_type: str
    level: DataAccessLevel
    records: list[dict[str, Any]]


class ElevatedOut(BaseModel):
    level: str
    allowed: bool
