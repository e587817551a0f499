"""Invite link API endpoints.

POST /api/v1/projects/{id}/invites — generate a new invite token
POST /api/v1/projects/{id}/invites/disable — disable all tokens, turn joining by link off
DELETE /api/v1/projects/{id}/invites/{token} — disable one token
GET  /api/v1/invites/{token} — project preview for the token
POST /api/v1/invites/{token}/join — join the project as the default role
"""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from taskhive.api.deps import get_actor_id, get_project_service
from taskhive.core.invites import InviteSummary
from taskhive.services.project_service import ProjectService

router = APIRouter(prefix="/api/v1", tags=["invites"])


class InviteLinkResponse(BaseModel):
    token: str
    project_id: str
    created_by: str
    created_at: datetime


class DisableInvitesResponse(BaseModel):
    disabled: int


class JoinResponse(BaseModel):
    project_id: str
    role: str


@router.post("/projects/{project_id}/invites", response_model=InviteLinkResponse, status_code=201)
async def generate_invite(
    project_id: str,
    actor_id: str = Depends(get_actor_id),
    service: ProjectService = Depends(get_project_service),
) -> InviteLinkResponse:
    link = service.generate_invite(actor_id, project_id)
    return InviteLinkResponse(
        token=link.token,
        project_id=link.project_id,
        created_by=link.created_by,
        created_at=link.created_at,
    )


@router.post("/projects/{project_id}/invites/disable", response_model=DisableInvitesResponse)
async def disable_invites(
    project_id: str,
    actor_id: str = Depends(get_actor_id),
    service: ProjectService = Depends(get_project_service),
) -> DisableInvitesResponse:
    return DisableInvitesResponse(disabled=service.disable_all_invites(actor_id, project_id))


@router.delete("/projects/{project_id}/invites/{token}", status_code=204)
async def disable_invite(
    project_id: str,
    token: str,
    actor_id: str = Depends(get_actor_id),
    service: ProjectService = Depends(get_project_service),
) -> None:
    service.disable_invite(actor_id, project_id, token)


@router.get("/invites/{token}", response_model=InviteSummary)
async def resolve_invite(
    token: str,
    service: ProjectService = Depends(get_project_service),
) -> InviteSummary:
    """Preview only; no membership is created."""
    return service.resolve_invite(token)


@router.post("/invites/{token}/join", response_model=JoinResponse)
async def join_via_invite(
    token: str,
    actor_id: str = Depends(get_actor_id),
    service: ProjectService = Depends(get_project_service),
) -> JoinResponse:
    project = service.join_via_invite(actor_id, token)
    return JoinResponse(project_id=project.id, role=service.invites.join_role.value)
