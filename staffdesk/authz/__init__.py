"""
Authorization engine for staffdesk.

Pure Python (pydantic + PyYAML for loading the registry); no dependency on the
web or database layers of this repo. Build an ``AuthorizationEngine`` from the
registry file once, then pass the caller's ``Identity`` (or None) to each query.
"""

from .access import IdentityAccess
from .constants import DataAccessLevel, ElevatedLevel, Permission, Role
from .engine import AuthorizationEngine, EvaluationResult, ReasonCode
from .identity import Identity
from .observability import AuthzEvent, AuthzObserver, LoggingObserver
from .registry import (
    GuardMode,
    PositionInfo,
    Registry,
    RegistryError,
    RouteGuard,
    UnknownPermissionError,
    load_registry,
    parse_registry,
)

__all__ = [
    "AuthorizationEngine",
    "AuthzEvent",
    "AuthzObserver",
    "DataAccessLevel",
    "ElevatedLevel",
    "EvaluationResult",
    "GuardMode",
    "Identity",
    "IdentityAccess",
    "LoggingObserver",
    "Permission",
    "PositionInfo",
    "ReasonCode",
    "Registry",
    "RegistryError",
    "Role",
    "RouteGuard",
    "UnknownPermissionError",
    "load_registry",
    "parse_registry",
]
