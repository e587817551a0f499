"""Projects API endpoints — projects, members and tasks.

POST   /api/v1/projects — create project (caller becomes administrator)
GET    /api/v1/projects — projects the caller belongs to
GET    /api/v1/projects/{id} — project with members and tasks
PUT    /api/v1/projects/{id}/details — rename / redescribe
PUT    /api/v1/projects/{id}/settings — join-by-link, PDF generation
DELETE /api/v1/projects/{id} — delete with tasks and invite links
POST   /api/v1/projects/{id}/leave — caller leaves
PUT    /api/v1/projects/{id}/members/{member_id}/role — assign role
DELETE /api/v1/projects/{id}/members/{member_id} — remove member
POST   /api/v1/projects/{id}/tasks — create task
GET    /api/v1/projects/{id}/tasks/{task_id} — single task with history
PUT    /api/v1/projects/{id}/tasks/{task_id} — update task fields
PUT    /api/v1/projects/{id}/tasks/{task_id}/progress — change progress
PUT    /api/v1/projects/{id}/tasks/{task_id}/assign/{member_id} — assign
DELETE /api/v1/projects/{id}/tasks/{task_id}/assign — unassign
DELETE /api/v1/projects/{id}/tasks/{task_id} — delete task
"""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from taskhive.api.deps import get_actor_id, get_project_service
from taskhive.core.tasks import progress_history
from taskhive.models.project import Member, Project
from taskhive.models.task import ProgressEntry, Task, TaskPatch
from taskhive.services.project_service import ProjectService

router = APIRouter(prefix="/api/v1", tags=["projects"])


# === Request / Response Models ===


class CreateProjectRequest(BaseModel):
    name: str = Field(default="", max_length=200)
    description: str = Field(default="", max_length=5000)


class UpdateDetailsRequest(BaseModel):
    name: str | None = Field(default=None, max_length=200)
    description: str | None = Field(default=None, max_length=5000)


class UpdateSettingsRequest(BaseModel):
    join_by_link_enabled: bool | None = None
    pdf_generation_enabled: bool | None = None


class AssignRoleRequest(BaseModel):
    role: str


class CreateTaskRequest(BaseModel):
    """Deadline is kept as a string so the core reports format errors itself."""

    name: str | None = Field(default=None, max_length=500)
    description: str | None = Field(default=None, max_length=5000)
    deadline: str | None = None


class UpdateTaskRequest(BaseModel):
    name: str | None = Field(default=None, max_length=500)
    description: str | None = Field(default=None, max_length=5000)
    deadline: str | None = None
    progress: str | None = None


class UpdateProgressRequest(BaseModel):
    progress: str | None = None


class ProjectSettingsResponse(BaseModel):
    join_by_link_enabled: bool
    pdf_generation_enabled: bool


class ProjectSummaryResponse(BaseModel):
    id: str
    name: str
    description: str
    owner_id: str
    member_count: int
    settings: ProjectSettingsResponse
    created_at: datetime


class TaskResponse(BaseModel):
    id: str
    project_id: str
    name: str
    description: str
    deadline: datetime
    creator_id: str
    assignee_id: str | None = None
    progress: str
    progress_history: list[ProgressEntry] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class ProjectDetailResponse(ProjectSummaryResponse):
    members: list[Member]
    tasks: list[TaskResponse]


def _summary(project: Project) -> ProjectSummaryResponse:
    return ProjectSummaryResponse(
        id=project.id,
        name=project.name,
        description=project.description,
        owner_id=project.owner_id,
        member_count=len(project.members),
        settings=ProjectSettingsResponse(
            join_by_link_enabled=project.join_by_link_enabled,
            pdf_generation_enabled=project.pdf_generation_enabled,
        ),
        created_at=project.created_at,
    )


def _task_response(task: Task) -> TaskResponse:
    return TaskResponse(
        id=task.id,
        project_id=task.project_id,
        name=task.name,
        description=task.description,
        deadline=task.deadline,
        creator_id=task.creator_id,
        assignee_id=task.assignee_id,
        progress=task.progress,
        progress_history=progress_history(task),
        created_at=task.created_at,
        updated_at=task.updated_at,
    )


# === Projects ===


@router.post("/projects", response_model=ProjectSummaryResponse, status_code=201)
async def create_project(
    request: CreateProjectRequest,
    actor_id: str = Depends(get_actor_id),
    service: ProjectService = Depends(get_project_service),
) -> ProjectSummaryResponse:
    """Create a project; the caller becomes its sole administrator."""
    return _summary(service.create_project(actor_id, request.name, request.description))


@router.get("/projects", response_model=list[ProjectSummaryResponse])
async def list_projects(
    actor_id: str = Depends(get_actor_id),
    service: ProjectService = Depends(get_project_service),
) -> list[ProjectSummaryResponse]:
    return [_summary(p) for p in service.list_projects(actor_id)]


@router.get("/projects/{project_id}", response_model=ProjectDetailResponse)
async def get_project(
    project_id: str,
    actor_id: str = Depends(get_actor_id),
    service: ProjectService = Depends(get_project_service),
) -> ProjectDetailResponse:
    """Project with members (display order) and tasks. Members only."""
    project, members, tasks = service.get_project(actor_id, project_id)
    return ProjectDetailResponse(
        **_summary(project).model_dump(),
        members=members,
        tasks=[_task_response(t) for t in tasks],
    )


@router.put("/projects/{project_id}/details", response_model=ProjectSummaryResponse)
async def update_details(
    project_id: str,
    request: UpdateDetailsRequest,
    actor_id: str = Depends(get_actor_id),
    service: ProjectService = Depends(get_project_service),
) -> ProjectSummaryResponse:
    project = service.update_details(
        actor_id, project_id, name=request.name, description=request.description
    )
    return _summary(project)


@router.put("/projects/{project_id}/settings", response_model=ProjectSummaryResponse)
async def update_settings(
    project_id: str,
    request: UpdateSettingsRequest,
    actor_id: str = Depends(get_actor_id),
    service: ProjectService = Depends(get_project_service),
) -> ProjectSummaryResponse:
    project = service.update_settings(
        actor_id,
        project_id,
        join_by_link_enabled=request.join_by_link_enabled,
        pdf_generation_enabled=request.pdf_generation_enabled,
    )
    return _summary(project)


@router.delete("/projects/{project_id}", status_code=204)
async def delete_project(
    project_id: str,
    actor_id: str = Depends(get_actor_id),
    service: ProjectService = Depends(get_project_service),
) -> None:
    service.delete_project(actor_id, project_id)


# === Members ===


@router.post("/projects/{project_id}/leave", status_code=204)
async def leave_project(
    project_id: str,
    actor_id: str = Depends(get_actor_id),
    service: ProjectService = Depends(get_project_service),
) -> None:
    service.leave_project(actor_id, project_id)


@router.put("/projects/{project_id}/members/{member_id}/role", response_model=Member)
async def assign_role(
    project_id: str,
    member_id: str,
    request: AssignRoleRequest,
    actor_id: str = Depends(get_actor_id),
    service: ProjectService = Depends(get_project_service),
) -> Member:
    return service.assign_role(actor_id, project_id, member_id, request.role)


@router.delete("/projects/{project_id}/members/{member_id}", status_code=204)
async def remove_member(
    project_id: str,
    member_id: str,
    actor_id: str = Depends(get_actor_id),
    service: ProjectService = Depends(get_project_service),
) -> None:
    service.remove_member(actor_id, project_id, member_id)


# === Tasks ===


@router.post("/projects/{project_id}/tasks", response_model=TaskResponse, status_code=201)
async def create_task(
    project_id: str,
    request: CreateTaskRequest,
    actor_id: str = Depends(get_actor_id),
    service: ProjectService = Depends(get_project_service),
) -> TaskResponse:
    task = service.create_task(
        actor_id,
        project_id,
        name=request.name,
        description=request.description,
        deadline=request.deadline,
    )
    return _task_response(task)


@router.get("/projects/{project_id}/tasks/{task_id}", response_model=TaskResponse)
async def get_task(
    project_id: str,
    task_id: str,
    actor_id: str = Depends(get_actor_id),
    service: ProjectService = Depends(get_project_service),
) -> TaskResponse:
    return _task_response(service.get_task(actor_id, project_id, task_id))


@router.put("/projects/{project_id}/tasks/{task_id}", response_model=TaskResponse)
async def update_task(
    project_id: str,
    task_id: str,
    request: UpdateTaskRequest,
    actor_id: str = Depends(get_actor_id),
    service: ProjectService = Depends(get_project_service),
) -> TaskResponse:
    patch = TaskPatch(**request.model_dump(exclude_unset=True))
    return _task_response(service.update_task(actor_id, project_id, task_id, patch))


@router.put("/projects/{project_id}/tasks/{task_id}/progress", response_model=TaskResponse)
async def update_progress(
    project_id: str,
    task_id: str,
    request: UpdateProgressRequest,
    actor_id: str = Depends(get_actor_id),
    service: ProjectService = Depends(get_project_service),
) -> TaskResponse:
    return _task_response(
        service.update_progress(actor_id, project_id, task_id, request.progress)
    )


@router.put("/projects/{project_id}/tasks/{task_id}/assign/{member_id}", response_model=TaskResponse)
async def assign_task(
    project_id: str,
    task_id: str,
    member_id: str,
    actor_id: str = Depends(get_actor_id),
    service: ProjectService = Depends(get_project_service),
) -> TaskResponse:
    return _task_response(service.assign_task(actor_id, project_id, task_id, member_id))


@router.delete("/projects/{project_id}/tasks/{task_id}/assign", response_model=TaskResponse)
async def unassign_task(
    project_id: str,
    task_id: str,
    actor_id: str = Depends(get_actor_id),
    service: ProjectService = Depends(get_project_service),
) -> TaskResponse:
    return _task_response(service.unassign_task(actor_id, project_id, task_id))


@router.delete("/projects/{project_id}/tasks/{task_id}", status_code=204)
async def delete_task(
    project_id: str,
    task_id: str,
    actor_id: str = Depends(get_actor_id),
    service: ProjectService = Depends(get_project_service),
) -> None:
    service.delete_task(actor_id, project_id, task_id)
