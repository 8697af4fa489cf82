from datetime import datetime
from enum import StrEnum
from uuid import UUID, uuid4

from sqlmodel import Field, SQLModel, UniqueConstraint

from src.domain.users.models import enum_values, utc_now


class WorkStatus(StrEnum):
    """Lifecycle state shared by projects and modules. No transition graph is enforced."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    BLOCKED = "blocked"
    DONE = "done"


class Project(SQLModel, table=True):
    __tablename__ = "projects"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    title: str = Field(index=True)
    stack: str
    sprint: str = Field(index=True)
    notes: str | None = None
    status: WorkStatus = Field(default=WorkStatus.NOT_STARTED, sa_type=enum_values(WorkStatus), index=True)
    created_by: UUID | None = Field(default=None, foreign_key="users.id", ondelete="SET NULL")
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now, sa_column_kwargs={"onupdate": utc_now})


class ProjectMember(SQLModel, table=True):
    """Membership of a user in a project. A user appears at most once per project."""

    __tablename__ = "project_members"
    __table_args__ = (UniqueConstraint("project_id", "user_id", name="uq_project_member"),)

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    project_id: UUID = Field(foreign_key="projects.id", index=True, ondelete="CASCADE")
    user_id: UUID = Field(foreign_key="users.id", index=True, ondelete="CASCADE")
    role_in_project: str = Field(default="member")
    created_at: datetime = Field(default_factory=utc_now)
