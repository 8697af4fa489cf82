from sqlalchemy import case
from sqlmodel import func, select
from sqlmodel.ext.asyncio.session import AsyncSession

from src.app.schemas import DashboardSummary, SprintProgress
from src.domain.access.filters import readable_modules_clause, readable_projects_clause
from src.domain.access.policy import Actor
from src.domain.modules.models import Module
from src.domain.projects.models import Project, WorkStatus
from src.domain.users.models import Role, User


async def dashboard_summary(session: AsyncSession, actor: Actor) -> DashboardSummary:
    """Aggregates headline counters over the records visible to the actor.

    Returns:
        DashboardSummary: Project and module totals, developer headcount,
        module counts per status and per-sprint completion.
    """
    total_projects = (
        await session.exec(select(func.count()).select_from(Project).where(readable_projects_clause(actor)))
    ).one()

    module_filter = readable_modules_clause(actor)

    status_rows = (
        await session.exec(select(Module.status, func.count()).where(module_filter).group_by(Module.status))
    ).all()
    modules_by_status = {status: 0 for status in WorkStatus}
    for status, count in status_rows:
        modules_by_status[WorkStatus(status)] = count

    completed = func.sum(case((Module.status == WorkStatus.DONE, 1), else_=0))
    sprint_statement = (
        select(Module.sprint, func.count(), completed)
        .where(module_filter)
        .group_by(Module.sprint)
        .order_by(Module.sprint)
    )
    sprint_rows = (await session.exec(sprint_statement)).all()

    active_devs = (
        await session.exec(select(func.count()).select_from(User).where(User.role == Role.DEV.value))
    ).one()

    return DashboardSummary(
        total_projects=total_projects,
        total_modules=sum(modules_by_status.values()),
        active_devs=active_devs,
        modules_by_status=modules_by_status,
        sprints=[SprintProgress(sprint=name, total=total, completed=done or 0) for name, total, done in sprint_rows],
    )
