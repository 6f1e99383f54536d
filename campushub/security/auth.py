from __future__ import annotations

import logging

import bcrypt
from fastapi import HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from campushub.errors import InvalidRequest, NotFound, Unauthorized
from campushub.models.school import Role, User
from campushub.security.config import SecurityConfig

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str | None) -> bool:
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash.
        return False


def extract_user_id(request: Request, config: SecurityConfig) -> int | None:
    """
    Demo auth: extract bearer token and treat it as a user_id.

    - Input: `Authorization: Bearer <token>`
    - `<token>` must be the integer user id returned by `/auth/login`
    """

    header_name = config.auth.authorization_header
    bearer_prefix = config.auth.bearer_prefix

    raw = request.headers.get(header_name)
    if not raw:
        logger.info("Missing Authorization header (auth required) path=%s method=%s", request.url.path, request.method)
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
        logger.warning("Bearer token not an int path=%s method=%s", request.url.path, request.method)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid bearer token (expected integer user id).",
        ) from exc


def authenticate(db: Session, email: str, password: str, role: Role | None = None) -> User:
    """
    Password check for login.

    When `role` is given (the role picked on the login form) it must match the stored role.
    """

    user = db.execute(select(User).where(User.email == email.strip())).scalar_one_or_none()
    if user is None or not user.is_active:
        raise NotFound("User not found.")

    if not verify_password(password, user.password_hash):
        logger.warning("Login rejected: invalid password user_id=%s", user.id)
        raise Unauthorized("Invalid password.")

    if role is not None and user.role is not role:
        raise Unauthorized(f"Incorrect role selected. Expected {user.role.value}.")

    logger.info("Login succeeded user_id=%s role=%s", user.id, user.role.value)
    return user


def change_password(db: Session, user_id: int, new_password: str) -> None:
    if len(new_password) < MIN_PASSWORD_LENGTH:
        raise InvalidRequest(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long.")

    user = db.get(User, user_id)
    if user is None:
        raise NotFound(f"User {user_id} not found")

    user.password_hash = hash_password(new_password)
    db.commit()
    logger.info("Password updated user_id=%s", user_id)
