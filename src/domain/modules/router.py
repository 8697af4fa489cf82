from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlmodel.ext.asyncio.session import AsyncSession

from src.app.schemas import ModuleCreate, ModulePermissions, ModuleRead, ModuleUpdate
from src.core.database import get_session
from src.core.security import CurrentActor
from src.domain.modules import service

router = APIRouter(prefix="/api/v1", tags=["Modules"])

SessionDep = Annotated[AsyncSession, Depends(get_session)]


@router.get("/projects/{project_id}/modules")
async def list_modules(project_id: UUID, actor: CurrentActor, session: SessionDep) -> list[ModuleRead]:
    modules = await service.list_modules(session, actor, project_id)
    return [ModuleRead.model_validate(module) for module in modules]


@router.post("/projects/{project_id}/modules", status_code=status.HTTP_201_CREATED)
async def create_module(project_id: UUID, data: ModuleCreate, actor: CurrentActor, session: SessionDep) -> ModuleRead:
    return ModuleRead.model_validate(await service.create_module(session, actor, project_id, data))


@router.get("/modules/{module_id}")
async def get_module(module_id: UUID, actor: CurrentActor, session: SessionDep) -> ModuleRead:
    return ModuleRead.model_validate(await service.get_module(session, actor, module_id))


@router.patch("/modules/{module_id}")
async def update_module(module_id: UUID, data: ModuleUpdate, actor: CurrentActor, session: SessionDep) -> ModuleRead:
    """Applies a field-scoped update.

    The request is refused as a whole with a 403 toast if any field in the
    body is not editable by the caller's role.
    """
    module = await service.update_module(session, actor, module_id, data.changes())
    return ModuleRead.model_validate(module)


@router.delete("/modules/{module_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_module(module_id: UUID, actor: CurrentActor, session: SessionDep) -> None:
    await service.delete_module(session, actor, module_id)


@router.get("/modules/{module_id}/permissions")
async def module_permissions(module_id: UUID, actor: CurrentActor, session: SessionDep) -> ModulePermissions:
    fields = await service.editable_fields(session, actor, module_id)
    return ModulePermissions(module_id=module_id, editable_fields=fields)
