from __future__ import annotations

from collections.abc import Generator

from fastapi import Request
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from campushub.settings import get_settings


def build_engine(url: str) -> Engine:
    # SQLite connections are shared with the threadpool FastAPI runs sync routes in.
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, connect_args=connect_args)


engine = build_engine(get_settings().resolved_db_url())

SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, class_=Session)


def attach_authz(db: Session, request: Request) -> Session:
    """Copy the request's AuthzContext (if any) onto the session for `campushub.db.filters`."""

    authz = getattr(getattr(request, "state", None), "authz", None)
    if authz is not None:
        db.info["authz"] = authz
    return db


def get_db(request: Request) -> Generator[Session, None, None]:
    """
    Request-scoped session.

    Routers keep writing plain `select(Student)`; the rows returned are still
    limited to the caller's visibility for every collection in the route's
    scope, because the SELECT hook reads `Session.info["authz"]`.
    """

    db = attach_authz(SessionLocal(), request)
    try:
        yield db
    finally:
        db.close()


def get_security_db() -> Generator[Session, None, None]:
    """
    Unscoped session for `enforce_security`.

    Kept apart from `get_db` so the handler's session is opened after the
    request's AuthzContext exists, not shared with the identity lookup.
    """

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
