"""Shared FastAPI dependencies."""

from __future__ import annotations

from fastapi import Depends, Header, HTTPException
from sqlmodel import Session

from taskhive.db.database import get_session
from taskhive.services.project_service import ProjectService


async def get_actor_id(x_user_id: str | None = Header(default=None)) -> str:
    """Acting user id, set upstream by the session/auth layer."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return x_user_id.strip()


def get_project_service(session: Session = Depends(get_session)) -> ProjectService:
    return ProjectService(session)
