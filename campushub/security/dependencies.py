from __future__ import annotations

import logging

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from campushub.db.session import get_security_db
from campushub.errors import NotFound, Unlinked
from campushub.models.school import Role
from campushub.security.auth import extract_user_id
from campushub.security.config import SecurityConfig
from campushub.security.context import AuthzContext
from campushub.security.decorators import ROLES_ATTR, SCOPE_ATTR
from campushub.security.identity import Identity, resolve_identity
from campushub.security.visibility import Collection, evaluate_visibility

logger = logging.getLogger(__name__)


def get_security_config(request: Request) -> SecurityConfig:
    config = getattr(request.app.state, "security_config", None)
    if config is None:
        raise RuntimeError("Security config not loaded. Did app startup run?")
    return config


def get_current_identity(request: Request) -> Identity:
    identity = getattr(request.state, "identity", None)
    if identity is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    return identity


def get_authz(request: Request) -> AuthzContext:
    authz = getattr(request.state, "authz", None)
    if authz is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    return authz


def enforce_security(
    request: Request,
    config: SecurityConfig = Depends(get_security_config),
    db: Session = Depends(get_security_db),
) -> None:
    """
    Global security dependency (configuration-driven, decorators optional).

    Runs after routing, so endpoint decorator metadata is visible, and needs no
    changes to route handlers. On success, `request.state.identity` and
    `request.state.authz` are set; the handler's `get_db` session copies the latter.
    """

    path = request.url.path
    method = request.method.upper()

    rule = config.match(path, method)

    endpoint = request.scope.get("endpoint")
    decorator_roles = set(getattr(endpoint, ROLES_ATTR, set())) if endpoint else set()
    decorator_scope = set(getattr(endpoint, SCOPE_ATTR, set())) if endpoint else set()

    auth_required = rule.auth_required or bool(decorator_roles) or bool(decorator_scope)
    if not auth_required:
        return

    user_id = extract_user_id(request, config)
    if user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing user id")

    try:
        identity = resolve_identity(db, user_id)
    except NotFound as exc:
        logger.info("Rejected unknown or inactive user user_id=%s path=%s", user_id, path)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or inactive user") from exc
    except Unlinked as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=exc.message) from exc

    request.state.identity = identity

    required_roles = set(rule.required_roles) | decorator_roles
    if required_roles and identity.role not in required_roles:
        logger.warning(
            "Insufficient role user_id=%s role=%s path=%s method=%s", identity.user_id, identity.role.value, path, method
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Insufficient role. Required one of: {sorted(r.value for r in required_roles)}",
        )

    scope = {Collection(c) for c in rule.scope | decorator_scope}
    filters = {collection: evaluate_visibility(db, identity, collection) for collection in scope}

    request.state.authz = AuthzContext(identity=identity, filters=filters)


def require_school(identity: Identity) -> int:
    """School id of a school-bound caller; superadmins must name a school explicitly."""

    if identity.school_id is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="school_id is required for this caller")
    return identity.school_id


def school_for(identity: Identity, school_id: int | None) -> int:
    """
    Target school for an admin-style action.

    Admins always act on their own school; superadmins may name any school.
    """

    if identity.role is Role.SUPERADMIN and school_id is not None:
        return school_id
    return require_school(identity)
