from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlmodel.ext.asyncio.session import AsyncSession

from src.app.schemas import MemberCreate, MemberRead, ProjectCreate, ProjectQueryParams, ProjectRead, ProjectUpdate
from src.core.database import get_session
from src.core.security import CurrentActor
from src.domain.projects import service

router = APIRouter(prefix="/api/v1/projects", tags=["Projects"])

SessionDep = Annotated[AsyncSession, Depends(get_session)]


@router.get("")
async def list_projects(
    actor: CurrentActor, session: SessionDep, params: Annotated[ProjectQueryParams, Depends()]
) -> list[ProjectRead]:
    """Lists visible projects, optionally filtered by search text, status and sprint."""
    projects = await service.list_projects(session, actor, params)
    return [ProjectRead.model_validate(project) for project in projects]


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_project(data: ProjectCreate, actor: CurrentActor, session: SessionDep) -> ProjectRead:
    project = await service.create_project(session, actor, data)
    return ProjectRead.model_validate(project)


# Declared before /{project_id} so the literal path wins
@router.get("/sprints")
async def list_sprints(actor: CurrentActor, session: SessionDep) -> list[str]:
    return await service.list_sprints(session, actor)


@router.get("/{project_id}")
async def get_project(project_id: UUID, actor: CurrentActor, session: SessionDep) -> ProjectRead:
    return ProjectRead.model_validate(await service.get_project(session, actor, project_id))


@router.patch("/{project_id}")
async def update_project(
    project_id: UUID, data: ProjectUpdate, actor: CurrentActor, session: SessionDep
) -> ProjectRead:
    """Updates only the fields present in the body."""
    project = await service.update_project(session, actor, project_id, data.changes())
    return ProjectRead.model_validate(project)


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_project(project_id: UUID, actor: CurrentActor, session: SessionDep) -> None:
    await service.delete_project(session, actor, project_id)


# --- Members ---


@router.get("/{project_id}/members")
async def list_members(project_id: UUID, actor: CurrentActor, session: SessionDep) -> list[MemberRead]:
    members = await service.list_members(session, actor, project_id)
    return [MemberRead.model_validate(member) for member in members]


@router.post("/{project_id}/members", status_code=status.HTTP_201_CREATED)
async def add_member(project_id: UUID, data: MemberCreate, actor: CurrentActor, session: SessionDep) -> MemberRead:
    return MemberRead.model_validate(await service.add_member(session, actor, project_id, data))


@router.delete("/{project_id}/members/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_member(project_id: UUID, user_id: UUID, actor: CurrentActor, session: SessionDep) -> None:
    await service.remove_member(session, actor, project_id, user_id)
