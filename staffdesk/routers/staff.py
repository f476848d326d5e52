from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from staffdesk.authz import AuthorizationEngine, Identity
from staffdesk.db.session import get_db
from staffdesk.models.staff import StaffUser
from staffdesk.schemas.staff import IdentityOut, StaffOut
from staffdesk.security.dependencies import get_engine, require_identity

router = APIRouter(tags=["staff"])


@router.get("/me", response_model=IdentityOut)
def me(
    identity: Identity = Depends(require_identity),
    engine: AuthorizationEngine = Depends(get_engine),
) -> IdentityOut:
    access = engine.for_identity(identity)
    return IdentityOut(
        id=identity.id,
        role=identity.role,
        department=identity.department,
        position=identity.position,
        granted_permissions=sorted(identity.granted_permissions),
        is_manager=access.is_manager,
        is_team_lead=access.is_team_lead,
    )


@router.get("/staff", response_model=list[StaffOut])
def list_staff(
    identity: Identity = Depends(require_identity),
    engine: AuthorizationEngine = Depends(get_engine),
    db: Session = Depends(get_db),
) -> list[StaffOut]:
    users = db.scalars(select(StaffUser).options(selectinload(StaffUser.department)).order_by(StaffUser.id)).all()
    # A staff profile is owned by the staff member it describes.
    records = [_staff_record(user) for user in users]
    visible = engine.filter_data_by_permission(identity, records, "users")
    return [StaffOut.model_validate(record) for record in visible]


def _staff_record(user: StaffUser) -> dict[str, Any]:
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "role": user.role,
        "position": user.position,
        "department": user.department.code if user.department is not None else None,
        "is_active": user.is_active,
        "created_by": str(user.id),
    }
