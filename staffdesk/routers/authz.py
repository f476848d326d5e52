"""
Authorization RPCs.

One endpoint per engine query, same inputs and outputs. Anonymous callers are
answered (HTTP 200) with the fail-closed result rather than rejected, so UI
gates can ask before login completes.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from staffdesk.authz import IdentityAccess
from staffdesk.schemas.authz import (
    DataLevelOut,
    DecisionOut,
    EffectivePermissionsOut,
    ElevatedOut,
    FilterIn,
    FilterOut,
    ModifyCheckIn,
    PageCheckIn,
    PageCheckOut,
    PermissionCheckIn,
    PermissionCheckOut,
    PermissionListIn,
)
from staffdesk.security.dependencies import get_access

router = APIRouter(prefix="/authz", tags=["authz"])


@router.post("/permissions/check", response_model=PermissionCheckOut)
def check_permission(body: PermissionCheckIn, access: IdentityAccess = Depends(get_access)) -> PermissionCheckOut:
    result = access.check_permission_with_reason(body.permission)
    return PermissionCheckOut(
        permission=body.permission,
        allowed=result.allowed,
        reason=result.reason,
        code=result.code,
    )


@router.post("/permissions/any", response_model=DecisionOut)
def check_any_permission(body: PermissionListIn, access: IdentityAccess = Depends(get_access)) -> DecisionOut:
    return DecisionOut(allowed=access.has_any_permission(body.permissions))


@router.post("/permissions/all", response_model=DecisionOut)
def check_all_permissions(body: PermissionListIn, access: IdentityAccess = Depends(get_access)) -> DecisionOut:
    return DecisionOut(allowed=access.has_all_permissions(body.permissions))


@router.get("/permissions/effective", response_model=EffectivePermissionsOut)
def effective_permissions(access: IdentityAccess = Depends(get_access)) -> EffectivePermissionsOut:
    return EffectivePermissionsOut(permissions=sorted(access.effective_permissions()))


@router.post("/pages/check", response_model=PageCheckOut)
def check_page(body: PageCheckIn, access: IdentityAccess = Depends(get_access)) -> PageCheckOut:
    return PageCheckOut(path=body.path, allowed=access.has_page_access(body.path))


@router.get("/data/{data_type}/level", response_model=DataLevelOut)
def data_level(data_type: str, access: IdentityAccess = Depends(get_access)) -> DataLevelOut:
    return DataLevelOut(data_type=data_type, level=access.data_access_level(data_type))


@router.post("/data/{data_type}/can-modify", response_model=DecisionOut)
def can_modify(data_type: str, body: ModifyCheckIn, access: IdentityAccess = Depends(get_access)) -> DecisionOut:
    allowed = access.can_modify_data(data_type, body.owner_id, body.department, body.assigned_to)
    return DecisionOut(allowed=allowed)


@router.post("/data/{data_type}/filter", response_model=FilterOut)
def filter_records(data_type: str, body: FilterIn, access: IdentityAccess = Depends(get_access)) -> FilterOut:
    return FilterOut(
        data_type=data_type,
        level=access.data_access_level(data_type),
        records=access.filter_data(body.records, data_type),
    )


@router.get("/elevated/{level}", response_model=ElevatedOut)
def elevated(level: str, access: IdentityAccess = Depends(get_access)) -> ElevatedOut:
    return ElevatedOut(level=level, allowed=access.has_elevated_access(level))
