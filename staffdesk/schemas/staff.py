from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from staffdesk.authz import Role


class IdentityOut(BaseModel):
    id: str
    role: Role
    department: str | None
    position: str | None
    granted_permissions: list[str]
    is_manager: bool
    is_team_lead: bool


class StaffOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: str
    role: str
    position: str | None
    department: str | None
    is_active: bool
