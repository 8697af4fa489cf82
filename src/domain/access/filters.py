"""Row filters applied to list queries, equivalent to the read predicates in ``policy``."""

from sqlalchemy import false, or_, true
from sqlalchemy.sql.elements import ColumnElement
from sqlmodel import col, select

from src.domain.access.policy import GLOBAL_READ_ROLES, Actor
from src.domain.modules.models import Module
from src.domain.projects.models import Project, ProjectMember


def _member_project_ids(actor: Actor):
    return select(ProjectMember.project_id).where(ProjectMember.user_id == actor.id)


def readable_projects_clause(actor: Actor) -> ColumnElement[bool]:
    """SQL counterpart of ``can_read_project``."""
    if not actor.is_known:
        return false()
    if actor.role in GLOBAL_READ_ROLES:
        return true()
    return col(Project.id).in_(_member_project_ids(actor))


def readable_modules_clause(actor: Actor) -> ColumnElement[bool]:
    """SQL counterpart of ``can_read_module``."""
    if not actor.is_known:
        return false()
    if actor.role in GLOBAL_READ_ROLES:
        return true()
    return or_(
        col(Module.project_id).in_(_member_project_ids(actor)),
        Module.assigned_dev_id == actor.id,
    )


def readable_members_clause(actor: Actor) -> ColumnElement[bool]:
    """SQL counterpart of ``can_read_project_member``."""
    if not actor.is_known:
        return false()
    if actor.role in GLOBAL_READ_ROLES:
        return true()
    return ProjectMember.user_id == actor.id
