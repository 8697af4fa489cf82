from datetime import datetime
from enum import StrEnum
from uuid import UUID, uuid4

from sqlmodel import Field, SQLModel

from src.domain.projects.models import WorkStatus
from src.domain.users.models import enum_values, utc_now


class ReviewStatus(StrEnum):
    """State of a review gate (CTO review, client readiness)."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Module(SQLModel, table=True):
    """A deliverable of a project moving through the design-to-approval workflow.

    The two review gates and ``status`` are independent; approving both
    reviews does not move ``status`` and ``done`` does not require approvals.
    """

    __tablename__ = "project_modules"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    project_id: UUID = Field(foreign_key="projects.id", index=True, ondelete="CASCADE")
    module_name: str
    platform_stack: str
    assigned_dev_id: UUID | None = Field(default=None, foreign_key="users.id", index=True, ondelete="SET NULL")

    # Workflow milestones, in stage order
    design_locked_date: datetime | None = None
    dev_start_date: datetime | None = None
    self_qa_date: datetime | None = None
    lead_signoff_date: datetime | None = None
    pm_review_date: datetime | None = None

    # Review gates
    cto_review_status: ReviewStatus = Field(default=ReviewStatus.PENDING, sa_type=enum_values(ReviewStatus))
    client_ready_status: ReviewStatus = Field(default=ReviewStatus.PENDING, sa_type=enum_values(ReviewStatus))

    status: WorkStatus = Field(default=WorkStatus.NOT_STARTED, sa_type=enum_values(WorkStatus), index=True)
    eta: datetime | None = None
    sprint: str = Field(index=True)
    notes: str | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now, sa_column_kwargs={"onupdate": utc_now})
