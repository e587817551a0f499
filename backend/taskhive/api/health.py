"""Health check endpoint — database connectivity and configuration."""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter
from pydantic import BaseModel

from taskhive import __version__
from taskhive.config import settings

router = APIRouter()


class HealthStatus(BaseModel):
    status: str  # "healthy" | "degraded" | "unhealthy"
    version: str
    checks: dict[str, dict]
    timestamp: datetime


@router.get("/health", response_model=HealthStatus)
async def health_check() -> HealthStatus:
    """Check the database and report auth mode."""
    checks: dict[str, dict] = {}
    overall_healthy = True
    has_warning = False

    # 1. Database
    try:
        from sqlalchemy import text

        from taskhive.db.database import engine

        with engine.connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()
            detail = "connected"
            if engine.dialect.name == "sqlite":
                wal = conn.execute(text("PRAGMA journal_mode")).fetchone()
                detail = f"journal_mode={wal[0]}"
            checks["database"] = {"status": "ok", "detail": detail}
    except Exception as e:
        checks["database"] = {"status": "error", "detail": str(e)}
        overall_healthy = False

    # 2. API key auth
    if settings.taskhive_api_key:
        checks["auth"] = {"status": "ok", "detail": "API key required"}
    else:
        checks["auth"] = {"status": "warning", "detail": "TASKHIVE_API_KEY not set (dev mode)"}
        has_warning = True

    if not overall_healthy:
        status = "unhealthy"
    elif has_warning:
        status = "degraded"
    else:
        status = "healthy"

    return HealthStatus(
        status=status,
        version=__version__,
        checks=checks,
        timestamp=datetime.now(timezone.utc),
    )
