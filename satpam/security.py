from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from satpam.errors import ApiError
from satpam.settings import get_admin_roles, get_guard_roles, get_settings, get_supervisor_roles

bearer_scheme = HTTPBearer(auto_error=False)


class PatrolRole(str, enum.Enum):
    GUARD = "GUARD"
    SUPERVISOR = "SUPERVISOR"
    ADMIN = "ADMIN"


@dataclass(frozen=True, slots=True)
class PatrolIdentity:
    subject: str
    role_literal: str
    roles: frozenset[PatrolRole]
    display_name: str | None = None

    def has_role(self, role: PatrolRole) -> bool:
        return role in self.roles


def resolve_patrol_roles(role_literal: str | None) -> frozenset[PatrolRole]:
    # Which literal means "guard" differs between deployments; the mapping is configuration.
    normalized = (role_literal or "").strip().lower()
    if not normalized:
        return frozenset()
    roles: set[PatrolRole] = set()
    if normalized in get_guard_roles():
        roles.add(PatrolRole.GUARD)
    if normalized in get_supervisor_roles():
        roles.add(PatrolRole.SUPERVISOR)
    if normalized in get_admin_roles():
        roles.add(PatrolRole.ADMIN)
    return frozenset(roles)


def decode_identity_token(token: str) -> PatrolIdentity:
    settings = get_settings()
    if not settings.jwt_secret:
        raise ApiError(status_code=503, code="AUTH_NOT_CONFIGURED", message="Token verification is not configured.")
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=["HS256"],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
            options={"require_sub": True, "require_exp": True},
        )
    except JWTError as exc:
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Token is invalid.") from exc

    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject:
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Token subject is invalid.")

    role_literal = str(payload.get("role") or "")
    display_name = payload.get("name")
    return PatrolIdentity(
        subject=subject,
        role_literal=role_literal,
        roles=resolve_patrol_roles(role_literal),
        display_name=display_name if isinstance(display_name, str) else None,
    )


def get_current_identity(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> PatrolIdentity:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Missing bearer token.")

    identity = decode_identity_token(credentials.credentials)
    request.state.actor = identity.role_literal or "unknown"
    request.state.actor_id = identity.subject
    return identity


def _require_role(role: PatrolRole, message: str):
    def _dependency(identity: PatrolIdentity = Depends(get_current_identity)) -> PatrolIdentity:
        if not identity.has_role(role):
            raise ApiError(status_code=403, code="FORBIDDEN", message=message)
        return identity

    return _dependency


require_guard = _require_role(PatrolRole.GUARD, "Guard role required.")
require_supervisor = _require_role(PatrolRole.SUPERVISOR, "Supervisor or admin role required.")
require_admin = _require_role(PatrolRole.ADMIN, "Admin role required.")
