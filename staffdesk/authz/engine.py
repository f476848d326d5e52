"""
Authorization engine.

Answers, for an explicit ``Identity`` (or ``None`` when nobody is logged in):

    has_permission / has_any_permission / has_all_permissions
    check_permission_with_reason
    has_page_access
    get_data_access_level / can_modify_data / filter_data_by_permission
    has_elevated_permission / has_elevated_access

Every query is a pure function of (identity, arguments, registry). The only
side effect is one ``AuthzEvent`` per call, handed to the observer. A missing
identity always gets the most restrictive answer; nothing here raises for an
unknown token, data type or level.

This module has no FastAPI or SQLAlchemy dependency.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
import logging
from pathlib import Path
from typing import Any

from .access import IdentityAccess
from .constants import DataAccessLevel, ElevatedLevel, Role
from .identity import Identity
from .observability import AuthzEvent, AuthzObserver, LoggingObserver
from .records import ASSIGNEE_FIELD, DEPARTMENT_FIELD, OWNER_FIELD, assignees, record_field, user_id
from .registry import GuardMode, Registry, RouteGuard, load_registry, token_of

logger = logging.getLogger(__name__)

DEFAULT_CACHE_SIZE = 256


class ReasonCode(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    GRANTED_BY_ROLE = "granted_by_role"
    GRANTED_INDIVIDUALLY = "granted_individually"
    DENIED = "denied"


@dataclass(frozen=True)
class EvaluationResult:
    allowed: bool
    reason: str
    code: ReasonCode


class AuthorizationEngine:
    """
    Stateless evaluator over a read-only ``Registry``.

    Usage:
        engine = AuthorizationEngine.from_yaml(Path("registry.yaml"))
        engine.has_permission(identity, "tasks.create")
        engine.filter_data_by_permission(identity, rows, "tasks")
    """

    def __init__(
        self,
        registry: Registry,
        observer: AuthzObserver | None = None,
        cache_size: int = DEFAULT_CACHE_SIZE,
    ) -> None:
        self._registry = registry
        self._observer: AuthzObserver = observer if observer is not None else LoggingObserver()
        # Keyed on the full (role, grants) pair; a changed grant set is a new key.
        self._effective = lru_cache(maxsize=cache_size)(self._union)

    @classmethod
    def from_yaml(
        cls,
        path: Path,
        observer: AuthzObserver | None = None,
        cache_size: int = DEFAULT_CACHE_SIZE,
    ) -> AuthorizationEngine:
        """Convenience: load the registry YAML and build an engine in one step."""
        return cls(load_registry(path), observer=observer, cache_size=cache_size)

    @property
    def registry(self) -> Registry:
        return self._registry

    def for_identity(self, identity: Identity | None) -> IdentityAccess:
        """Bind the queries to one identity (for request handlers and views)."""
        return IdentityAccess(self, identity)

    # ---- Observability --------------------------------------------------------------

    def _emit(
        self,
        decision: str,
        identity: Identity | None,
        subject: object,
        allowed: bool,
        **details: Any,
    ) -> None:
        event = AuthzEvent(
            decision=decision,
            actor_id=identity.id if identity is not None else None,
            role=identity.role.value if identity is not None else None,
            subject=str(subject),
            allowed=allowed,
            details=details,
        )
        try:
            self._observer.record(event)
        except Exception:  # noqa: BLE001
            logger.debug("Observer failed to record %s event", decision, exc_info=True)

    # ---- Permission evaluation ------------------------------------------------------

    def _evaluate(self, identity: Identity | None, permission: object) -> EvaluationResult:
        """Single decision path shared by the boolean and the reasoned queries."""

        if identity is None:
            return EvaluationResult(False, "Login is required.", ReasonCode.UNAUTHENTICATED)

        token = token_of(permission)
        department = self._registry.department_name(identity.role)

        if token is not None and token in self._registry.permissions_for(identity.role):
            return EvaluationResult(
                True,
                f"'{token}' is granted to the {department} department.",
                ReasonCode.GRANTED_BY_ROLE,
            )

        if token is not None and token in identity.granted_permissions:
            return EvaluationResult(
                True,
                f"'{token}' was granted individually.",
                ReasonCode.GRANTED_INDIVIDUALLY,
            )

        return EvaluationResult(
            False,
            f"The {department} department does not have the '{token if token is not None else permission}' permission.",
            ReasonCode.DENIED,
        )

    def _grant_counts(self, identity: Identity | None) -> dict[str, int]:
        if identity is None:
            return {"role_grants": 0, "individual_grants": 0}
        return {
            "role_grants": len(self._registry.permissions_for(identity.role)),
            "individual_grants": len(identity.granted_permissions),
        }

    def has_permission(self, identity: Identity | None, permission: object) -> bool:
        result = self._evaluate(identity, permission)
        self._emit(
            "permission",
            identity,
            token_of(permission) or permission,
            result.allowed,
            code=result.code.value,
            **self._grant_counts(identity),
        )
        return result.allowed

    def check_permission_with_reason(self, identity: Identity | None, permission: object) -> EvaluationResult:
        """Same decision as ``has_permission``, plus why."""
        result = self._evaluate(identity, permission)
        self._emit(
            "permission_reason",
            identity,
            token_of(permission) or permission,
            result.allowed,
            code=result.code.value,
            **self._grant_counts(identity),
        )
        return result

    def _any(self, identity: Identity | None, permissions: Iterable[object]) -> tuple[bool, str | None]:
        for permission in permissions:
            if self._evaluate(identity, permission).allowed:
                return True, token_of(permission)
        return False, None

    def _all(self, identity: Identity | None, permissions: Iterable[object]) -> bool:
        return all(self._evaluate(identity, permission).allowed for permission in permissions)

    def has_any_permission(self, identity: Identity | None, permissions: Iterable[object]) -> bool:
        """True iff at least one token is held. An empty list is False."""
        permissions = list(permissions)
        allowed, matched = self._any(identity, permissions)
        self._emit("permission_any", identity, _describe(permissions), allowed, matched=matched)
        return allowed

    def has_all_permissions(self, identity: Identity | None, permissions: Iterable[object]) -> bool:
        """True iff every token is held. Unauthenticated is always False."""
        permissions = list(permissions)
        allowed = identity is not None and self._all(identity, permissions)
        self._emit("permission_all", identity, _describe(permissions), allowed)
        return allowed

    def _union(self, role: Role, granted: frozenset[str]) -> frozenset[str]:
        return self._registry.permissions_for(role) | granted

    def effective_permissions(self, identity: Identity | None) -> frozenset[str]:
        """Role grants plus individual grants. Empty when unauthenticated."""
        if identity is None:
            return frozenset()
        return self._effective(identity.role, identity.granted_permissions)

    # ---- Pages ----------------------------------------------------------------------

    def _guard_allows(self, identity: Identity, guard: RouteGuard) -> bool:
        if guard.is_open:
            return True
        if guard.mode is GuardMode.ALL:
            return self._all(identity, guard.permissions)
        allowed, _ = self._any(identity, guard.permissions)
        return allowed

    def has_page_access(self, identity: Identity | None, route_path: str) -> bool:
        guard = self._registry.resolve_route(route_path)
        allowed = identity is not None and self._guard_allows(identity, guard)
        self._emit(
            "page",
            identity,
            route_path,
            allowed,
            rule=guard.source,
            mode=guard.mode.value,
            required=list(guard.permissions),
        )
        return allowed

    # ---- Data access ----------------------------------------------------------------

    def _level(self, identity: Identity | None, data_type: str) -> DataAccessLevel:
        if identity is None:
            return DataAccessLevel.NONE
        return self._registry.data_access_level(identity.role, data_type)

    def get_data_access_level(self, identity: Identity | None, data_type: str) -> DataAccessLevel:
        level = self._level(identity, data_type)
        self._emit("data_level", identity, data_type, level is not DataAccessLevel.NONE, level=level.value)
        return level

    @staticmethod
    def _owns(identity: Identity, owner_id: Any, assigned: Any) -> bool:
        actor = str(identity.id)
        if user_id(owner_id) == actor:
            return True
        return actor in assignees(assigned)

    @staticmethod
    def _same_department(identity: Identity, department: Any) -> bool:
        return identity.department is not None and department == identity.department

    def _within_scope(
        self,
        identity: Identity,
        level: DataAccessLevel,
        owner_id: Any,
        department: Any,
        assigned: Any,
    ) -> bool:
        """
        Scope rule shared by the collection filter and the modification guard.

        ``own``: created by, or assigned to, the actor.
        ``department``: ``own`` plus anything filed under the actor's department.
        """

        if level is DataAccessLevel.ALL:
            return True
        if level is DataAccessLevel.NONE:
            return False
        if self._owns(identity, owner_id, assigned):
            return True
        return level is DataAccessLevel.DEPARTMENT and self._same_department(identity, department)

    def can_modify_data(
        self,
        identity: Identity | None,
        data_type: str,
        data_owner_id: Any = None,
        item_department: Any = None,
        assigned_users: Any = None,
    ) -> bool:
        level = self._level(identity, data_type)
        allowed = identity is not None and self._within_scope(
            identity, level, data_owner_id, item_department, assigned_users
        )
        self._emit(
            "modify",
            identity,
            data_type,
            allowed,
            level=level.value,
            owner_id=data_owner_id,
            department=item_department,
        )
        return allowed

    def filter_data_by_permission(self, identity: Identity | None, records: Iterable[Any], data_type: str) -> list[Any]:
        """
        Visible subset of ``records``, in input order. Returns a new list and
        never touches the input.
        """

        records = list(records)
        level = self._level(identity, data_type)

        if identity is None or level is DataAccessLevel.NONE:
            visible: list[Any] = []
        elif level is DataAccessLevel.ALL:
            visible = records
        else:
            visible = [
                record
                for record in records
                if self._within_scope(
                    identity,
                    level,
                    record_field(record, OWNER_FIELD),
                    record_field(record, DEPARTMENT_FIELD),
                    record_field(record, ASSIGNEE_FIELD),
                )
            ]

        self._emit(
            "filter",
            identity,
            data_type,
            bool(visible),
            level=level.value,
            total=len(records),
            visible=len(visible),
        )
        return visible

    # ---- Elevated access ------------------------------------------------------------

    def _elevated(self, role: Role | str | None, position: str | None, required_level: object) -> bool:
        try:
            level = ElevatedLevel(required_level)
        except ValueError:
            return False

        if level is ElevatedLevel.ADMIN:
            return role == Role.ADMIN
        return position is not None and position in self._registry.elevated_positions(level)

    def has_elevated_permission(self, role: Role | str | None, position: str | None, required_level: object) -> bool:
        """
        Seniority gate.

        ``admin`` is satisfied by the admin role only. ``team_lead`` and
        ``manager`` are satisfied by position alone (the admin role does not
        count); no position means False. Unknown levels are False.
        """

        allowed = self._elevated(role, position, required_level)
        self._emit(
            "elevated",
            None,
            getattr(required_level, "value", required_level),
            allowed,
            role=getattr(role, "value", role),
            position=position,
        )
        return allowed

    def has_elevated_access(self, identity: Identity | None, required_level: object) -> bool:
        allowed = identity is not None and self._elevated(identity.role, identity.position, required_level)
        self._emit(
            "elevated",
            identity,
            getattr(required_level, "value", required_level),
            allowed,
            position=identity.position if identity is not None else None,
        )
        return allowed


def _describe(permissions: Iterable[object]) -> str:
    return ",".join(str(token_of(p) or p) for p in permissions)
