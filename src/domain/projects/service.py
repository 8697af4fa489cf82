from collections.abc import Iterable
from typing import Any
from uuid import UUID

from loguru import logger
from sqlmodel import col, or_, select
from sqlmodel.ext.asyncio.session import AsyncSession

from src.app.schemas import MemberCreate, ProjectCreate, ProjectQueryParams
from src.core.database import store_operation
from src.core.errors import InvalidInputError, NotFoundError
from src.domain.access import policy
from src.domain.access.filters import readable_members_clause, readable_projects_clause
from src.domain.access.guard import enforce
from src.domain.access.policy import Actor
from src.domain.projects.models import Project, ProjectMember
from src.domain.users.models import User


async def _require_users(session: AsyncSession, user_ids: Iterable[UUID]) -> None:
    wanted = set(user_ids)
    if not wanted:
        return
    found = set((await session.exec(select(User.id).where(col(User.id).in_(wanted)))).all())
    missing = wanted - found
    if missing:
        raise InvalidInputError(f"Unknown user id(s): {', '.join(sorted(str(m) for m in missing))}")


async def get_project(session: AsyncSession, actor: Actor, project_id: UUID) -> Project:
    """Loads a project the actor may read.

    Raises:
        NotFoundError: If the project does not exist or is not visible to the actor.
    """
    project = await session.get(Project, project_id)
    if project is None or not policy.can_read_project(actor, project):
        raise NotFoundError("Project not found.")
    return project


async def list_projects(
    session: AsyncSession, actor: Actor, params: ProjectQueryParams | None = None
) -> list[Project]:
    """Lists the projects visible to the actor, newest first.

    Args:
        session: Active database session.
        actor: The acting user.
        params: Optional search text (title or stack, case-insensitive), status and sprint filters.
    """
    statement = select(Project).where(readable_projects_clause(actor))

    if params is not None:
        if params.q:
            pattern = f"%{params.q.strip()}%"
            statement = statement.where(or_(col(Project.title).ilike(pattern), col(Project.stack).ilike(pattern)))
        if params.status:
            statement = statement.where(Project.status == params.status)
        if params.sprint:
            statement = statement.where(Project.sprint == params.sprint)

    result = await session.exec(statement.order_by(col(Project.created_at).desc()))
    return list(result.all())


async def list_sprints(session: AsyncSession, actor: Actor) -> list[str]:
    """Distinct sprint labels across the projects visible to the actor."""
    statement = select(Project.sprint).where(readable_projects_clause(actor)).distinct().order_by(Project.sprint)
    return list((await session.exec(statement)).all())


async def create_project(
    session: AsyncSession, actor: Actor, data: ProjectCreate, member_ids: Iterable[UUID] = ()
) -> Project:
    """Creates a project and its initial memberships in one transaction."""
    enforce(policy.can_create_project(actor), actor, "create projects")

    member_ids = list(dict.fromkeys([*data.member_ids, *member_ids]))
    await _require_users(session, member_ids)

    project = Project(**data.model_dump(exclude={"member_ids"}), created_by=actor.id)

    async with store_operation(session, "create the project"):
        session.add(project)
        await session.flush()
        session.add_all([ProjectMember(project_id=project.id, user_id=user_id) for user_id in member_ids])
        await session.commit()
        await session.refresh(project)

    logger.info(f"User {actor.id} created project '{project.title}' ({project.id}) with {len(member_ids)} member(s)")
    return project


async def update_project(session: AsyncSession, actor: Actor, project_id: UUID, changes: dict[str, Any]) -> Project:
    """Writes only the provided fields. Nothing is written if the actor may not update the project."""
    project = await get_project(session, actor, project_id)
    enforce(policy.can_update_project(actor, project), actor, "edit this project")

    unknown = set(changes) - policy.PROJECT_EDITABLE_FIELDS
    if unknown:
        raise InvalidInputError(f"Fields are not editable: {', '.join(sorted(unknown))}")

    if not changes:
        return project

    async with store_operation(session, "update the project"):
        for field_name, value in changes.items():
            setattr(project, field_name, value)
        session.add(project)
        await session.commit()
        await session.refresh(project)

    logger.info(f"User {actor.id} updated project {project.id}: {sorted(changes)}")
    return project


async def delete_project(session: AsyncSession, actor: Actor, project_id: UUID) -> None:
    """Deletes a project. Its modules and memberships are removed by the store cascade."""
    project = await get_project(session, actor, project_id)
    enforce(policy.can_delete_project(actor, project), actor, "delete this project")

    async with store_operation(session, "delete the project"):
        await session.delete(project)
        await session.commit()

    logger.info(f"User {actor.id} deleted project '{project.title}' ({project_id})")


# --- Members ---


async def list_members(session: AsyncSession, actor: Actor, project_id: UUID) -> list[ProjectMember]:
    await get_project(session, actor, project_id)
    statement = (
        select(ProjectMember)
        .where(ProjectMember.project_id == project_id)
        .where(readable_members_clause(actor))
        .order_by(col(ProjectMember.created_at))
    )
    return list((await session.exec(statement)).all())


async def add_member(session: AsyncSession, actor: Actor, project_id: UUID, data: MemberCreate) -> ProjectMember:
    """Links a user to a project.

    Raises:
        PermissionDenied: If the actor may not manage memberships.
        ConflictError: If the user is already a member.
    """
    enforce(policy.can_manage_project_members(actor), actor, "manage project members")
    await get_project(session, actor, project_id)
    await _require_users(session, [data.user_id])

    member = ProjectMember(project_id=project_id, user_id=data.user_id, role_in_project=data.role_in_project)
    async with store_operation(session, "add the project member"):
        session.add(member)
        await session.commit()
        await session.refresh(member)

    logger.info(f"User {actor.id} added {data.user_id} to project {project_id} as {data.role_in_project}")
    return member


async def remove_member(session: AsyncSession, actor: Actor, project_id: UUID, user_id: UUID) -> None:
    enforce(policy.can_manage_project_members(actor), actor, "manage project members")

    statement = select(ProjectMember).where(ProjectMember.project_id == project_id, ProjectMember.user_id == user_id)
    member = (await session.exec(statement)).first()
    if member is None:
        raise NotFoundError("Membership not found.")

    async with store_operation(session, "remove the project member"):
        await session.delete(member)
        await session.commit()

    logger.info(f"User {actor.id} removed {user_id} from project {project_id}")
