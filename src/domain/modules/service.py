from typing import Any
from uuid import UUID

from loguru import logger
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from src.app.schemas import ModuleCreate
from src.core.database import store_operation
from src.core.errors import InvalidInputError, NotFoundError
from src.domain.access import policy
from src.domain.access.filters import readable_modules_clause
from src.domain.access.guard import enforce
from src.domain.access.policy import Actor
from src.domain.modules.models import Module, ReviewStatus
from src.domain.projects.models import WorkStatus
from src.domain.projects.service import get_project
from src.domain.users.models import User


async def _require_assignee(session: AsyncSession, user_id: UUID | None) -> None:
    if user_id is not None and await session.get(User, user_id) is None:
        raise InvalidInputError(f"Unknown user id: {user_id}")


async def get_module(session: AsyncSession, actor: Actor, module_id: UUID) -> Module:
    """Loads a module the actor may read.

    Raises:
        NotFoundError: If the module does not exist or is not visible to the actor.
    """
    module = await session.get(Module, module_id)
    if module is None or not policy.can_read_module(actor, module):
        raise NotFoundError("Module not found.")
    return module


async def list_modules(session: AsyncSession, actor: Actor, project_id: UUID) -> list[Module]:
    """Modules of a project visible to the actor.

    An assignee who is not a project member only sees the modules assigned to them.
    A missing project and a project the actor cannot see both list as empty.
    """
    statement = (
        select(Module)
        .where(Module.project_id == project_id)
        .where(readable_modules_clause(actor))
        .order_by(col(Module.created_at))
    )
    return list((await session.exec(statement)).all())


async def create_module(session: AsyncSession, actor: Actor, project_id: UUID, data: ModuleCreate) -> Module:
    """Adds a module to a project.

    New modules always start ``not_started`` with both review gates ``pending``.

    Raises:
        PermissionDenied: If the actor's role may not create modules.
        NotFoundError: If the project is missing or not visible to the actor.
    """
    enforce(policy.can_create_module(actor), actor, "create modules")
    project = await get_project(session, actor, project_id)
    await _require_assignee(session, data.assigned_dev_id)

    module = Module(
        project_id=project.id,
        status=WorkStatus.NOT_STARTED,
        cto_review_status=ReviewStatus.PENDING,
        client_ready_status=ReviewStatus.PENDING,
        **data.model_dump(),
    )

    async with store_operation(session, "create the module"):
        session.add(module)
        await session.commit()
        await session.refresh(module)

    logger.info(f"User {actor.id} created module '{module.module_name}' ({module.id}) in project {project.id}")
    return module


async def update_module(session: AsyncSession, actor: Actor, module_id: UUID, changes: dict[str, Any]) -> Module:
    """Applies a field-scoped update to a module.

    Every field in ``changes`` is checked against the field permission table
    before anything is written. If any field is denied, the whole update is
    refused and the stored module is left untouched.

    Args:
        session: Active database session.
        actor: The acting user.
        module_id: Target module.
        changes: Field name to new value, only for the fields being changed.

    Returns:
        Module: The updated module.

    Raises:
        NotFoundError: If the module is not visible to the actor.
        PermissionDenied: If any requested field is not editable by the actor.
    """
    module = await get_module(session, actor, module_id)

    denied = sorted(name for name in changes if not policy.can_edit_module_field(actor, name, module))
    enforce(not denied, actor, f"change {', '.join(denied)} on this module")

    if not changes:
        return module

    if "assigned_dev_id" in changes:
        await _require_assignee(session, changes["assigned_dev_id"])

    async with store_operation(session, "update the module"):
        for field_name, value in changes.items():
            setattr(module, field_name, value)
        session.add(module)
        await session.commit()
        await session.refresh(module)

    logger.info(f"User {actor.id} ({actor.role.value}) updated module {module.id}: {sorted(changes)}")
    return module


async def delete_module(session: AsyncSession, actor: Actor, module_id: UUID) -> None:
    module = await get_module(session, actor, module_id)
    enforce(policy.can_delete_module(actor), actor, "delete modules")

    async with store_operation(session, "delete the module"):
        await session.delete(module)
        await session.commit()

    logger.info(f"User {actor.id} deleted module '{module.module_name}' ({module_id})")


async def editable_fields(session: AsyncSession, actor: Actor, module_id: UUID) -> list[str]:
    """Fields of a module the actor may edit, for clients rendering editable cells."""
    module = await get_module(session, actor, module_id)
    return sorted(policy.editable_module_fields(actor, module))
