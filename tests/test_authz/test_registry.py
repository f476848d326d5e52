"""Tests for registry loading, validation and route resolution."""

from __future__ import annotations

import pytest

from staffdesk.authz import (
    DataAccessLevel,
    ElevatedLevel,
    GuardMode,
    RegistryError,
    Role,
    UnknownPermissionError,
    load_registry,
    parse_registry,
)
from staffdesk.authz.registry import normalize_route, token_of


def test_load_registry_requires_top_level_key(tmp_path):
    path = tmp_path / "registry.yaml"
    path.write_text("permissions: [tasks.create]\n", encoding="utf-8")

    with pytest.raises(RegistryError, match="Missing top-level 'registry' key"):
        load_registry(path)


def test_load_registry_from_yaml(tmp_path):
    path = tmp_path / "registry.yaml"
    path.write_text(
        """
registry:
  permissions: [tasks.create, tasks.read]
  roles:
    reception:
      permissions: [tasks.create]
  data_access:
    reception: {tasks: department}
""",
        encoding="utf-8",
    )

    registry = load_registry(path)

    assert registry.declared_permissions == {"tasks.create", "tasks.read"}
    assert registry.permissions_for(Role.RECEPTION) == {"tasks.create"}
    assert registry.data_access_level("reception", "tasks") is DataAccessLevel.DEPARTMENT


def test_shipped_registry_loads(shipped_registry):
    assert shipped_registry.roles == set(Role)
    assert "admin.dashboard" in shipped_registry.permissions_for(Role.ADMIN)
    assert shipped_registry.department_name(Role.FITNESS) == "피트니스"
    # Trainer teams share one grant set.
    assert shipped_registry.permissions_for(Role.TENNIS) == shipped_registry.permissions_for(Role.FITNESS)


def test_role_with_undeclared_permission_is_rejected(registry_data):
    registry_data["roles"]["reception"]["permissions"].append("tasks.teleport")

    with pytest.raises(RegistryError, match="tasks.teleport"):
        parse_registry(registry_data)


def test_unknown_role_is_rejected(registry_data):
    registry_data["roles"]["sauna"] = {"permissions": []}

    with pytest.raises(RegistryError, match="unknown role 'sauna'"):
        parse_registry(registry_data)


def test_invalid_data_access_level_is_rejected(registry_data):
    registry_data["data_access"]["fitness"]["members"] = "everyone"

    with pytest.raises(RegistryError, match="invalid data access level"):
        parse_registry(registry_data)


def test_route_with_both_combinators_is_rejected(registry_data):
    registry_data["routes"].append({"path": "/x", "any_of": ["tasks.create"], "all_of": ["tasks.assign"]})

    with pytest.raises(RegistryError):
        parse_registry(registry_data)


def test_route_with_undeclared_permission_is_rejected(registry_data):
    registry_data["routes"].append({"path": "/x", "any_of": ["nope.nope"]})

    with pytest.raises(RegistryError, match="nope.nope"):
        parse_registry(registry_data)


def test_duplicate_route_is_rejected(registry_data):
    registry_data["routes"].append({"path": "/admin/staff/", "any_of": ["tasks.create"]})

    with pytest.raises(RegistryError, match="more than once"):
        parse_registry(registry_data)


def test_unknown_top_level_field_is_rejected(registry_data):
    registry_data["page_permissions"] = {}

    with pytest.raises(RegistryError, match="invalid registry configuration"):
        parse_registry(registry_data)


def test_elevated_admin_list_is_rejected(registry_data):
    registry_data["elevated"]["admin"] = ["팀장"]

    with pytest.raises(RegistryError, match="decided by role"):
        parse_registry(registry_data)


def test_elevated_unknown_position_is_rejected(registry_data):
    registry_data["elevated"]["manager"].append("사장님")

    with pytest.raises(RegistryError, match="unknown positions"):
        parse_registry(registry_data)


def test_extends_merges_parent_permissions(registry_data):
    registry_data["roles"]["golf"] = {"extends": "fitness", "permissions": ["users.delete"]}

    registry = parse_registry(registry_data)

    assert registry.permissions_for(Role.GOLF) == {
        "users.delete",
        "tasks.create",
        "tasks.view_department",
        "members.view_department",
    }


def test_extends_cycle_is_rejected(registry_data):
    registry_data["roles"]["golf"] = {"extends": "tennis"}
    registry_data["roles"]["tennis"] = {"extends": "golf"}

    with pytest.raises(RegistryError, match="cycle"):
        parse_registry(registry_data)


def test_extends_unknown_role_is_rejected(registry_data):
    registry_data["roles"]["golf"] = {"extends": "tennis"}

    with pytest.raises(RegistryError, match="extends unknown role"):
        parse_registry(registry_data)


def test_assigned_level_reads_as_own(registry):
    assert registry.data_access_level(Role.FITNESS, "ot") is DataAccessLevel.OWN


def test_data_access_level_fails_closed(registry):
    assert registry.data_access_level(Role.FITNESS, "vending") is DataAccessLevel.NONE
    assert registry.data_access_level(Role.GOLF, "members") is DataAccessLevel.NONE
    assert registry.data_access_level("sauna", "members") is DataAccessLevel.NONE


def test_permissions_for_unknown_role_is_empty(registry):
    assert registry.permissions_for("sauna") == frozenset()
    assert registry.permissions_for(Role.TENNIS) == frozenset()


def test_data_access_level_ordering():
    assert DataAccessLevel.NONE < DataAccessLevel.OWN < DataAccessLevel.DEPARTMENT < DataAccessLevel.ALL
    assert max(DataAccessLevel) is DataAccessLevel.ALL
    assert sorted([DataAccessLevel.ALL, DataAccessLevel.NONE, DataAccessLevel.OWN]) == [
        DataAccessLevel.NONE,
        DataAccessLevel.OWN,
        DataAccessLevel.ALL,
    ]


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("/admin/staff/", "/admin/staff"),
        ("/admin/staff?tab=2", "/admin/staff"),
        ("/admin/staff#top", "/admin/staff"),
        ("", "/"),
        ("/", "/"),
    ],
)
def test_normalize_route(raw, expected):
    assert normalize_route(raw) == expected


def test_resolve_route_exact(registry):
    guard = registry.resolve_route("/admin/staff")

    assert guard.permissions == ("admin.dashboard",)
    assert guard.mode is GuardMode.ANY
    assert guard.source == "/admin/staff"


def test_resolve_route_exact_wins_over_template(registry):
    guard = registry.resolve_route("/dashboard/members")

    assert guard.permissions == ("members.view_all", "members.view_department")


def test_resolve_route_template(registry):
    guard = registry.resolve_route("/dashboard/members/42")

    assert guard.permissions == ("members.view_all",)
    assert guard.source == "/dashboard/members/{id}"


def test_resolve_route_prefix(registry):
    guard = registry.resolve_route("/admin/settings/backup")

    assert guard.source == "/admin"
    assert guard.permissions == ("admin.dashboard",)


def test_prefix_does_not_match_partial_segment(registry):
    guard = registry.resolve_route("/administrator")

    assert guard.source is None
    assert guard.is_open


def test_resolve_route_all_of(registry):
    guard = registry.resolve_route("/dashboard/tasks/assign")

    assert guard.mode is GuardMode.ALL
    assert guard.permissions == ("tasks.create", "tasks.assign")


def test_unmatched_route_uses_default_guard(registry):
    guard = registry.resolve_route("/nowhere")

    assert guard.source is None
    assert guard.is_open


def test_default_route_can_be_restricted(registry_data):
    registry_data["default_route"] = {"any_of": ["admin.dashboard"]}

    registry = parse_registry(registry_data)

    assert registry.resolve_route("/nowhere").permissions == ("admin.dashboard",)


def test_strict_permission_lookup(registry):
    assert registry.permission("tasks.create") == "tasks.create"

    with pytest.raises(UnknownPermissionError):
        registry.permission("tasks.teleport")


def test_permission_enum_members(registry):
    PermissionToken = registry.permission_enum

    assert PermissionToken.TASKS_CREATE.value == "tasks.create"
    assert PermissionToken.SCHEDULES_VIEW_DEPARTMENT == "schedules.view_department"
    assert {member.value for member in PermissionToken} == registry.declared_permissions
    assert registry.permission_enum is PermissionToken


def test_token_of():
    assert token_of("tasks.create") == "tasks.create"
    assert token_of(ElevatedLevel.MANAGER) == "manager"
    assert token_of(None) is None
    assert token_of(42) is None


def test_position_ladder(registry):
    assert registry.has_position_level("팀장", 5)
    assert registry.has_position_level("매니저", 3)
    assert not registry.has_position_level("트레이너", 3)
    assert not registry.has_position_level(None, 1)
    assert not registry.has_position_level("사장님", 1)

    assert registry.can_manage_team("부팀장")
    assert not registry.can_manage_team("트레이너")
    assert not registry.can_manage_team(None)


def test_elevated_positions(registry):
    assert registry.elevated_positions(ElevatedLevel.TEAM_LEAD) == {"팀장", "부팀장"}
    assert registry.elevated_positions(ElevatedLevel.ADMIN) == frozenset()


def test_data_access_level_uses_rank_not_string_order():
    # String order would put "all" below "own".
    assert DataAccessLevel.ALL > DataAccessLevel.OWN
    assert DataAccessLevel.ALL >= DataAccessLevel.DEPARTMENT
    assert DataAccessLevel.OWN <= DataAccessLevel.DEPARTMENT
    assert not DataAccessLevel.NONE > DataAccessLevel.OWN


def test_permission_enum_name_collision_is_rejected(registry_data):
    registry_data["permissions"] += ["a_b.c", "a.b_c"]

    with pytest.raises(RegistryError, match="both map to enum member 'A_B_C'"):
        parse_registry(registry_data)


def test_permission_enum_reserved_name_is_rejected(registry_data):
    registry_data["permissions"].append("_hidden.read")

    with pytest.raises(RegistryError, match="cannot be used as an enum member name"):
        parse_registry(registry_data)
