from __future__ import annotations

from contextlib import asynccontextmanager
import logging

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from campushub.db import filters as _filters  # noqa: F401  (register SQLAlchemy filters)
from campushub.db.init_db import init_db
from campushub.errors import CampusHubError
from campushub.logging_config import configure_app_logging
from campushub.routers import (
    announcements,
    attendance,
    auth,
    classes,
    concessions,
    fee_groups,
    fees,
    health,
    leave,
    schools,
    students,
    teachers,
)
from campushub.security.config import load_security_config
from campushub.security.dependencies import enforce_security
from campushub.settings import get_settings

logger = logging.getLogger(__name__)


async def _campushub_error_handler(request: Request, exc: CampusHubError) -> JSONResponse:
    logger.info("Request failed path=%s status=%s message=%s", request.url.path, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"ok": False, "message": exc.message})


async def _database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception("Database error path=%s", request.url.path)
    return JSONResponse(status_code=503, content={"ok": False, "message": "Database error; please try again."})


def create_app() -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        settings = get_settings()
        configure_app_logging(settings.log_level)
        logger.info("App startup beginning")

        app.state.security_config = load_security_config(settings.resolved_security_config_path())
        logger.info("Loaded security config: %s", settings.resolved_security_config_path())
        init_db()
        logger.info("Database initialized (tables ensured + seed if needed)")

        yield

    # Global dependency: applies security with zero changes to route handlers.
    app = FastAPI(title="CampusHub", dependencies=[Depends(enforce_security)], lifespan=lifespan)

    app.add_exception_handler(CampusHubError, _campushub_error_handler)
    app.add_exception_handler(SQLAlchemyError, _database_error_handler)

    app.include_router(health.router)
    app.include_router(auth.router)
    app.include_router(schools.router)
    app.include_router(teachers.router)
    app.include_router(students.router)
    app.include_router(classes.router)
    app.include_router(leave.router)
    app.include_router(fees.router)
    app.include_router(concessions.router)
    app.include_router(fee_groups.router)
    app.include_router(announcements.router)
    app.include_router(attendance.router)

    return app


app = create_app()
