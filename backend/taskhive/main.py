"""TaskHive FastAPI application.

Entry point for the backend server. Core errors are mapped to HTTP status
codes here and nowhere else; the core itself only knows error kinds.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from taskhive import __version__
from taskhive.api.health import router as health_router
from taskhive.api.v1.invites import router as invites_router
from taskhive.api.v1.projects import router as projects_router
from taskhive.config import settings
from taskhive.core.errors import ConsistencyError, TaskHiveError
from taskhive.db.database import create_db_and_tables
from taskhive.middleware.auth import APIKeyAuthMiddleware

logger = logging.getLogger(__name__)

# Error kind -> HTTP status
STATUS_BY_KIND: dict[str, int] = {
    "validation": 400,
    "invalid_role": 400,
    "forbidden": 403,
    "not_found": 404,
    "conflict": 409,
    "last_administrator": 409,
    "consistency": 500,
}


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    configure_logging()
    create_db_and_tables()
    logger.info("TaskHive %s started", __version__)
    yield


app = FastAPI(
    title="TaskHive",
    description="Collaborative project and task manager",
    version=__version__,
    lifespan=lifespan,
)

# Middleware (order matters: first added = outermost)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.cors_origins.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-User-Id"],
)
app.add_middleware(APIKeyAuthMiddleware)


@app.exception_handler(TaskHiveError)
async def core_error_handler(request: Request, exc: TaskHiveError):
    if isinstance(exc, ConsistencyError):
        logger.warning("Consistency error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=STATUS_BY_KIND.get(exc.kind, 500),
        content=exc.to_dict(),
    )


# Global exception handler: internal details never reach the client
@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    if isinstance(exc, HTTPException):
        raise exc
    logger.error("Unhandled exception on %s %s: %s", request.method, request.url.path, exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error."},
    )


# Routes
app.include_router(health_router)
app.include_router(projects_router)
app.include_router(invites_router)


@app.get("/")
async def root():
    return {"name": "TaskHive", "version": __version__, "status": "running"}
