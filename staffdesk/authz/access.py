"""Engine queries bound to one identity, plus the composite checks views use."""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from .constants import DataAccessLevel, ElevatedLevel, Role
from .identity import Identity

if TYPE_CHECKING:
    from .engine import AuthorizationEngine, EvaluationResult


# Permission sets accepted for each viewing scope, widest first.
_REPORT_SCOPES: dict[str, tuple[str, ...]] = {
    "all": ("reports.view_all",),
    "department": ("reports.view_all", "reports.view_department"),
    "own": ("reports.view_all", "reports.view_department", "reports.view_own"),
}

_SALES_SCOPES: dict[str, tuple[str, ...]] = {
    "all": ("sales.view_all",),
    "department": ("sales.view_all", "sales.view_department"),
    "own": ("sales.view_all", "sales.view_department", "sales.view_own"),
}


class IdentityAccess:
    """
    Thin wrapper; every call goes through the engine, so decisions and
    observability events are identical to calling the engine directly.
    """

    __slots__ = ("_engine", "identity")

    def __init__(self, engine: AuthorizationEngine, identity: Identity | None) -> None:
        self._engine = engine
        self.identity = identity

    # ---- Identity facts -------------------------------------------------------------

    @property
    def is_authenticated(self) -> bool:
        return self.identity is not None

    @property
    def is_admin(self) -> bool:
        return self.identity is not None and self.identity.role is Role.ADMIN

    @property
    def is_manager(self) -> bool:
        return self.has_elevated_access(ElevatedLevel.MANAGER)

    @property
    def is_team_lead(self) -> bool:
        return self.has_elevated_access(ElevatedLevel.TEAM_LEAD)

    def is_role(self, role: Role | str) -> bool:
        return self.identity is not None and self.identity.role == role

    def is_position(self, position: str) -> bool:
        return self.identity is not None and self.identity.position == position

    def is_in_department(self, department: str) -> bool:
        return self.identity is not None and self.identity.department == department

    # ---- Engine queries -------------------------------------------------------------

    def has_permission(self, permission: object) -> bool:
        return self._engine.has_permission(self.identity, permission)

    def has_any_permission(self, permissions: Iterable[object]) -> bool:
        return self._engine.has_any_permission(self.identity, permissions)

    def has_all_permissions(self, permissions: Iterable[object]) -> bool:
        return self._engine.has_all_permissions(self.identity, permissions)

    def check_permission_with_reason(self, permission: object) -> EvaluationResult:
        return self._engine.check_permission_with_reason(self.identity, permission)

    def effective_permissions(self) -> frozenset[str]:
        return self._engine.effective_permissions(self.identity)

    def has_page_access(self, route_path: str) -> bool:
        return self._engine.has_page_access(self.identity, route_path)

    def data_access_level(self, data_type: str) -> DataAccessLevel:
        return self._engine.get_data_access_level(self.identity, data_type)

    def can_modify_data(
        self,
        data_type: str,
        data_owner_id: Any = None,
        item_department: Any = None,
        assigned_users: Any = None,
    ) -> bool:
        return self._engine.can_modify_data(self.identity, data_type, data_owner_id, item_department, assigned_users)

    def filter_data(self, records: Iterable[Any], data_type: str) -> list[Any]:
        return self._engine.filter_data_by_permission(self.identity, records, data_type)

    def has_elevated_access(self, required_level: object) -> bool:
        return self._engine.has_elevated_access(self.identity, required_level)

    def has_position_level(self, required_level: int) -> bool:
        position = self.identity.position if self.identity is not None else None
        return self._engine.registry.has_position_level(position, required_level)

    def can_manage_team(self) -> bool:
        position = self.identity.position if self.identity is not None else None
        return self._engine.registry.can_manage_team(position)

    # ---- Composite checks -----------------------------------------------------------

    def _is_admin_or_manager(self) -> bool:
        # The admin role is not a position; composites accept either.
        return self.is_admin or self.has_elevated_access(ElevatedLevel.MANAGER)

    def can_create_task(self) -> bool:
        return self.has_permission("tasks.create")

    def can_assign_task(self) -> bool:
        return self.has_permission("tasks.assign") and self._is_admin_or_manager()

    def can_view_all_tasks(self) -> bool:
        return self.has_any_permission(["tasks.view_all", "tasks.view_department"])

    def can_manage_users(self) -> bool:
        return self.has_any_permission(
            ["users.create", "users.update", "users.delete"]
        ) and self._is_admin_or_manager()

    def can_view_reports(self, scope: str = "own") -> bool:
        permissions = _REPORT_SCOPES.get(scope)
        return permissions is not None and self.has_any_permission(permissions)

    def can_manage_members(self) -> bool:
        return self.has_any_permission(["members.view_all", "members.create", "members.update"])

    def can_manage_schedules(self) -> bool:
        return self.has_any_permission(["schedules.create", "schedules.update", "schedules.view_all"])

    def can_view_sales(self, scope: str = "own") -> bool:
        permissions = _SALES_SCOPES.get(scope)
        return permissions is not None and self.has_any_permission(permissions)
