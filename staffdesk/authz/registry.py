"""
Permission registry and YAML loader.

The registry is the read-only configuration every decision is made against:

- the declared permission vocabulary,
- role -> permissions (with optional ``extends`` inheritance),
- role -> data type -> ``DataAccessLevel``,
- route -> guard (explicit ``any_of`` / ``all_of`` combinator),
- the position ladder and the position sets behind elevated-access checks.

Load it once at startup; nothing in this package writes to it afterwards.
Misconfiguration is reported as ``RegistryError`` while loading, so a bad file
stops the service instead of producing silently wrong decisions.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from functools import cached_property
import logging
from pathlib import Path
import re
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
import yaml

from .constants import DataAccessLevel, ElevatedLevel, Permission, Role

logger = logging.getLogger(__name__)


class RegistryError(ValueError):
    """Raised when the registry configuration is invalid."""


class UnknownPermissionError(RegistryError):
    """Raised by strict lookups for a token the registry does not declare."""


# ---- Raw (validated) file shape -------------------------------------------------------


class GuardModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    any_of: list[str] | None = None
    all_of: list[str] | None = None

    @model_validator(mode="after")
    def _one_combinator(self) -> GuardModel:
        if self.any_of is not None and self.all_of is not None:
            raise ValueError("a guard declares either any_of or all_of, not both")
        return self


class RouteModel(GuardModel):
    path: str
    prefix: bool = False


class RoleModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    permissions: list[str] = Field(default_factory=list)
    extends: str | None = None
    display_name: str | None = None


class PositionModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    level: int
    can_manage_team: bool = False


class RegistryModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    permissions: list[str]
    roles: dict[str, RoleModel] = Field(default_factory=dict)
    data_access: dict[str, dict[str, str]] = Field(default_factory=dict)
    routes: list[RouteModel] = Field(default_factory=list)
    default_route: GuardModel = Field(default_factory=GuardModel)
    positions: dict[str, PositionModel] = Field(default_factory=dict)
    elevated: dict[str, list[str]] = Field(default_factory=dict)


# ---- Runtime structures ---------------------------------------------------------------


class GuardMode(str, Enum):
    ANY = "any"
    ALL = "all"


@dataclass(frozen=True)
class RouteGuard:
    """Permissions guarding a route. Empty means any authenticated identity."""

    permissions: tuple[str, ...] = ()
    mode: GuardMode = GuardMode.ANY
    source: str | None = None
    """Route pattern that produced this guard (None for the default guard)."""

    @property
    def is_open(self) -> bool:
        return not self.permissions


@dataclass(frozen=True)
class PositionInfo:
    name: str
    level: int
    can_manage_team: bool


# Legacy spelling kept readable in config files; "own" already covers assignment.
_LEVEL_ALIASES = {"assigned": DataAccessLevel.OWN}

_PATH_PARAM_RE = re.compile(r"\{[^/]+\}")


def _path_template_to_regex(path_template: str) -> re.Pattern[str]:
    # "/dashboard/members/{id}" -> r"^/dashboard/members/[^/]+$"
    parts = _PATH_PARAM_RE.split(path_template)
    regex = "[^/]+".join(re.escape(part) for part in parts)
    return re.compile(rf"^{regex}$")


def _member_name(token: str) -> str:
    # "tasks.create" -> "TASKS_CREATE"
    return token.upper().replace(".", "_")


def _check_member_names(tokens: frozenset[str]) -> None:
    seen: dict[str, str] = {}
    for token in sorted(tokens):
        name = _member_name(token)
        if not name or name.startswith("_"):
            raise RegistryError(f"permission {token!r} cannot be used as an enum member name")
        if name in seen:
            raise RegistryError(f"permissions {seen[name]!r} and {token!r} both map to enum member {name!r}")
        seen[name] = token


def normalize_route(path: str) -> str:
    """Drop query/fragment and trailing slashes; ``""`` becomes ``"/"``."""
    path = path.split("?", 1)[0].split("#", 1)[0].strip()
    if len(path) > 1:
        path = path.rstrip("/")
    return path or "/"


def _guard_from_model(model: GuardModel, source: str | None) -> RouteGuard:
    if model.all_of is not None:
        return RouteGuard(permissions=tuple(model.all_of), mode=GuardMode.ALL, source=source)
    return RouteGuard(permissions=tuple(model.any_of or ()), mode=GuardMode.ANY, source=source)


def _parse_level(raw: str, where: str) -> DataAccessLevel:
    value = str(raw).strip().lower()
    if value in _LEVEL_ALIASES:
        return _LEVEL_ALIASES[value]
    try:
        return DataAccessLevel(value)
    except ValueError as exc:
        raise RegistryError(f"{where}: invalid data access level {raw!r}") from exc


def _parse_role(raw: str, where: str) -> Role:
    try:
        return Role(raw)
    except ValueError as exc:
        raise RegistryError(f"{where}: unknown role {raw!r}") from exc


def _compute_effective_permissions(roles: Mapping[str, RoleModel]) -> dict[str, frozenset[str]]:
    """
    Resolve ``extends`` chains into flat permission sets.

    Raises RegistryError on a cycle.
    """

    effective: dict[str, frozenset[str]] = {}
    visiting: set[str] = set()

    def dfs(role_name: str) -> frozenset[str]:
        if role_name in effective:
            return effective[role_name]
        if role_name in visiting:
            raise RegistryError(f"cycle detected in role inheritance at {role_name!r}")
        visiting.add(role_name)
        role = roles[role_name]
        perms = set(role.permissions)
        if role.extends:
            perms.update(dfs(role.extends))
        result = frozenset(perms)
        effective[role_name] = result
        visiting.remove(role_name)
        return result

    for name in roles:
        dfs(name)

    return effective


# ---- Registry -------------------------------------------------------------------------


class Registry:
    """
    Compiled, read-only registry.

    Build it with ``load_registry(path)`` or ``parse_registry(raw_mapping)``.
    """

    def __init__(self, model: RegistryModel):
        declared = frozenset(model.permissions)
        self._declared = declared
        _check_member_names(declared)

        # Roles
        for role_name, role in model.roles.items():
            _parse_role(role_name, "roles")
            if role.extends is not None and role.extends not in model.roles:
                raise RegistryError(f"role {role_name!r} extends unknown role {role.extends!r}")
            unknown = set(role.permissions) - declared
            if unknown:
                raise RegistryError(f"role {role_name!r} references unknown permissions: {sorted(unknown)}")

        effective = _compute_effective_permissions(model.roles)
        self._role_permissions: Mapping[Role, frozenset[str]] = MappingProxyType(
            {Role(name): perms for name, perms in effective.items()}
        )
        self._display_names: Mapping[Role, str] = MappingProxyType(
            {Role(name): role.display_name for name, role in model.roles.items() if role.display_name}
        )

        # Data access
        data_access: dict[Role, Mapping[str, DataAccessLevel]] = {}
        for role_name, table in model.data_access.items():
            role = _parse_role(role_name, "data_access")
            data_access[role] = MappingProxyType(
                {data_type: _parse_level(level, f"data_access.{role_name}.{data_type}") for data_type, level in table.items()}
            )
        self._data_access: Mapping[Role, Mapping[str, DataAccessLevel]] = MappingProxyType(data_access)

        # Routes: exact, then templates (declaration order), then longest prefix.
        exact: dict[str, RouteGuard] = {}
        templates: list[tuple[re.Pattern[str], RouteGuard]] = []
        prefixes: list[tuple[str, RouteGuard]] = []
        seen: set[tuple[str, bool]] = set()
        for route in model.routes:
            path = normalize_route(route.path)
            if (path, route.prefix) in seen:
                raise RegistryError(f"route {path!r} is declared more than once")
            seen.add((path, route.prefix))
            self._check_guard(route, f"route {path!r}")
            guard = _guard_from_model(route, path)
            if route.prefix:
                prefixes.append((path, guard))
            elif _PATH_PARAM_RE.search(path):
                templates.append((_path_template_to_regex(path), guard))
            else:
                exact[path] = guard
        prefixes.sort(key=lambda item: len(item[0]), reverse=True)
        self._exact_routes = MappingProxyType(exact)
        self._template_routes = tuple(templates)
        self._prefix_routes = tuple(prefixes)

        self._check_guard(model.default_route, "default_route")
        self._default_guard = _guard_from_model(model.default_route, None)

        # Positions
        self._positions: Mapping[str, PositionInfo] = MappingProxyType(
            {
                name: PositionInfo(name=name, level=pos.level, can_manage_team=pos.can_manage_team)
                for name, pos in model.positions.items()
            }
        )
        elevated: dict[ElevatedLevel, frozenset[str]] = {}
        for level_name, positions in model.elevated.items():
            try:
                level = ElevatedLevel(level_name)
            except ValueError as exc:
                raise RegistryError(f"elevated: unknown level {level_name!r}") from exc
            if level is ElevatedLevel.ADMIN:
                raise RegistryError("elevated: 'admin' is decided by role and takes no position list")
            unknown = set(positions) - set(self._positions)
            if unknown:
                raise RegistryError(f"elevated.{level_name} references unknown positions: {sorted(unknown)}")
            elevated[level] = frozenset(positions)
        self._elevated: Mapping[ElevatedLevel, frozenset[str]] = MappingProxyType(elevated)

    def _check_guard(self, guard: GuardModel, where: str) -> None:
        unknown = set(guard.any_of or ()) | set(guard.all_of or ())
        unknown -= self._declared
        if unknown:
            raise RegistryError(f"{where} references unknown permissions: {sorted(unknown)}")

    # ---- Permissions ----------------------------------------------------------------

    @property
    def declared_permissions(self) -> frozenset[str]:
        return self._declared

    @property
    def roles(self) -> frozenset[Role]:
        return frozenset(self._role_permissions)

    def permissions_for(self, role: Role | str) -> frozenset[str]:
        """Effective permissions of a role (after inheritance). Unknown role -> empty."""
        member = _coerce_role(role)
        if member is None:
            return frozenset()
        return self._role_permissions.get(member, frozenset())

    def permission(self, token: str) -> Permission:
        """Strict lookup for callers that want typos to fail loudly."""
        if token not in self._declared:
            raise UnknownPermissionError(f"permission {token!r} is not declared in the registry")
        return Permission(token)

    @cached_property
    def permission_enum(self) -> type[Enum]:
        """
        Closed enumeration of the declared tokens.

        ``tasks.create`` becomes member ``TASKS_CREATE``; members are ``str``
        so they can be passed anywhere a token is accepted.
        """
        members = [(_member_name(token), token) for token in sorted(self._declared)]
        return Enum("PermissionToken", members, type=str)  # type: ignore[return-value]

    def department_name(self, role: Role | str) -> str:
        member = _coerce_role(role)
        if member is None:
            return str(role)
        return self._display_names.get(member, member.value)

    # ---- Data access ----------------------------------------------------------------

    def data_access_level(self, role: Role | str, data_type: str) -> DataAccessLevel:
        """Fail-closed lookup: anything missing resolves to ``none``."""
        member = _coerce_role(role)
        table = self._data_access.get(member) if member is not None else None
        if table is None:
            return DataAccessLevel.NONE
        return table.get(data_type, DataAccessLevel.NONE)

    # ---- Routes ---------------------------------------------------------------------

    def resolve_route(self, path: str) -> RouteGuard:
        """
        Find the guard for a route path. Total: falls back to ``default_route``.
        """

        path = normalize_route(path)

        # 1) exact path
        guard = self._exact_routes.get(path)
        if guard is not None:
            return guard

        # 2) template match
        for regex, candidate in self._template_routes:
            if regex.match(path):
                return candidate

        # 3) longest prefix
        for prefix, candidate in self._prefix_routes:
            if path == prefix or path.startswith(prefix.rstrip("/") + "/"):
                return candidate

        # 4) no match -> default
        logger.debug("Registry: no route rule for path=%s, using default guard", path)
        return self._default_guard

    # ---- Positions ------------------------------------------------------------------

    def elevated_positions(self, level: ElevatedLevel) -> frozenset[str]:
        return self._elevated.get(level, frozenset())

    def position_info(self, position: str | None) -> PositionInfo | None:
        if position is None:
            return None
        return self._positions.get(position)

    def has_position_level(self, position: str | None, required_level: int) -> bool:
        info = self.position_info(position)
        return info is not None and info.level >= required_level

    def can_manage_team(self, position: str | None) -> bool:
        info = self.position_info(position)
        return info is not None and info.can_manage_team


# ---- Loading --------------------------------------------------------------------------


def parse_registry(raw: Mapping[str, Any]) -> Registry:
    """Validate an already-parsed mapping (the content under ``registry:``)."""
    try:
        model = RegistryModel.model_validate(raw)
    except ValidationError as exc:
        raise RegistryError(f"invalid registry configuration: {exc}") from exc
    return Registry(model)


def load_registry(path: Path) -> Registry:
    """
    Load and validate the registry YAML from disk.

    Expected shape (simplified):

        registry:
          permissions: [tasks.create, tasks.view_department, ...]
          roles:
            reception:
              display_name: 리셉션
              permissions: [tasks.create, ...]
          data_access:
            reception: {tasks: department, members: all}
          routes:
            - path: /dashboard/members
              any_of: [members.view_all, members.view_department]
          default_route: {}
          positions:
            팀장: {level: 5, can_manage_team: true}
          elevated:
            team_lead: [팀장, 부팀장]
    """

    raw_text = path.read_text(encoding="utf-8")
    raw: dict[str, Any] = yaml.safe_load(raw_text) or {}

    if "registry" not in raw:
        raise RegistryError(f"Missing top-level 'registry' key in config: {path}")

    registry = parse_registry(raw["registry"] or {})
    logger.info(
        "Loaded permission registry: %s (%d permissions, %d roles)",
        path,
        len(registry.declared_permissions),
        len(registry.roles),
    )
    return registry


def token_of(permission: object) -> str | None:
    """Plain token for a string or a ``permission_enum`` member; None otherwise."""
    if isinstance(permission, Enum):
        permission = permission.value
    return permission if isinstance(permission, str) else None


def _coerce_role(role: object) -> Role | None:
    try:
        return Role(role)
    except ValueError:
        return None
