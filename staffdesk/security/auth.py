from __future__ import annotations

import logging

from fastapi import HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from staffdesk.authz import Identity
from staffdesk.models.staff import StaffUser
from staffdesk.settings import Settings

logger = logging.getLogger(__name__)


def extract_user_id(request: Request, settings: Settings) -> int | None:
    """
    Demo auth: extract bearer token and treat it as a staff user id.

    - Input: `Authorization: Bearer <token>`
    - No header: anonymous caller (None); every authorization query then
      answers with its most restrictive result.
    - Login, sessions and real token validation live outside this service.
    """

    header_name = settings.authorization_header
    bearer_prefix = settings.bearer_prefix

    raw = request.headers.get(header_name)
    if not raw:
        logger.debug("No %s header, anonymous caller path=%s", header_name, request.url.path)
        return None

    prefix = f"{bearer_prefix} "
    if not raw.startswith(prefix):
        logger.warning("Invalid Authorization header format path=%s method=%s", request.url.path, request.method)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {header_name}. Expected '{bearer_prefix} <token>'.",
        )

    token = raw[len(prefix) :].strip()
    if not token:
        logger.warning("Empty bearer token path=%s method=%s", request.url.path, request.method)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {header_name}. Missing token after '{bearer_prefix}'.",
        )

    try:
        return int(token)
    except ValueError as exc:
        logger.warning("Bearer token not an int (demo expects staff id) path=%s method=%s", request.url.path, request.method)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid bearer token for demo (expected integer staff id).",
        ) from exc


def load_identity(db: Session, user_id: int) -> Identity | None:
    """
    Build the Identity for a staff user.

    Unknown, inactive, or misconfigured users (role not in the Role enum) get
    None, which the engine treats as "not logged in".
    """

    user = db.execute(
        select(StaffUser).where(StaffUser.id == user_id).options(selectinload(StaffUser.department))
    ).scalar_one_or_none()

    if user is None or not user.is_active:
        logger.info("No active staff user for id=%s", user_id)
        return None

    try:
        return Identity.build(
            id=str(user.id),
            role=user.role,
            department=user.department.code if user.department is not None else None,
            position=user.position,
            granted_permissions=user.individual_permissions or (),
        )
    except ValueError:
        logger.warning("Staff user id=%s has unknown role %r; treating as anonymous", user_id, user.role)
        return None
