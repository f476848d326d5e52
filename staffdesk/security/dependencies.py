from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from staffdesk.authz import AuthorizationEngine, Identity, IdentityAccess
from staffdesk.db.session import get_db
from staffdesk.security.auth import extract_user_id, load_identity
from staffdesk.settings import Settings, get_settings


def get_engine(request: Request) -> AuthorizationEngine:
    engine = getattr(request.app.state, "authz_engine", None)
    if engine is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Authorization engine not loaded. Did app startup run?",
        )
    return engine


def get_identity(
    request: Request,
    settings: Settings = Depends(get_settings),
    db: Session = Depends(get_db),
) -> Identity | None:
    """
    Resolve the caller once per request.

    Returns None for anonymous callers; the RPC handlers pass that straight
    to the engine, which fails closed.
    """

    if hasattr(request.state, "identity"):
        return request.state.identity

    user_id = extract_user_id(request, settings)
    identity = load_identity(db, user_id) if user_id is not None else None
    request.state.identity = identity
    return identity


def get_access(
    engine: AuthorizationEngine = Depends(get_engine),
    identity: Identity | None = Depends(get_identity),
) -> IdentityAccess:
    return engine.for_identity(identity)


def require_identity(identity: Identity | None = Depends(get_identity)) -> Identity:
    if identity is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    return identity
