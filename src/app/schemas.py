from dataclasses import dataclass
from datetime import datetime
from typing import ClassVar, Self
from uuid import UUID

from fastapi import Query
from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator

from src.domain.modules.models import ReviewStatus
from src.domain.projects.models import WorkStatus


class PatchModel(BaseModel):
    """Base for field-scoped updates: unknown keys are rejected, required columns may not be nulled."""

    model_config = ConfigDict(extra="forbid")

    non_nullable: ClassVar[frozenset[str]] = frozenset()

    @model_validator(mode="after")
    def _reject_nulls(self) -> Self:
        nulled = sorted(name for name in self.model_fields_set & self.non_nullable if getattr(self, name) is None)
        if nulled:
            raise ValueError(f"Fields cannot be cleared: {', '.join(nulled)}")
        return self

    def changes(self) -> dict:
        """Only the fields present in the request body."""
        return self.model_dump(exclude_unset=True)


# --- Auth & users ---


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class SignUpRequest(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    password: str = Field(min_length=6)
    role: str


class UserCreate(SignUpRequest):
    """Admin provisioning payload; same shape as a self sign-up."""


class UserUpdate(PatchModel):
    non_nullable: ClassVar[frozenset[str]] = frozenset({"name", "role"})

    name: str | None = Field(default=None, min_length=1)
    role: str | None = None
    avatar_url: str | None = None


class UserRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    email: str
    role: str
    avatar_url: str | None = None
    created_at: datetime
    updated_at: datetime


# --- Projects ---


@dataclass
class ProjectQueryParams:
    """GET query parameters for the project list."""

    q: str | None = Query(default=None, description="Substring matched against title and stack")
    status: WorkStatus | None = Query(default=None, description="Filter by project status")
    sprint: str | None = Query(default=None, description="Exact sprint label")


class ProjectCreate(BaseModel):
    title: str = Field(min_length=1)
    stack: str = Field(min_length=1)
    sprint: str = Field(min_length=1)
    notes: str | None = None
    status: WorkStatus = WorkStatus.NOT_STARTED
    member_ids: list[UUID] = Field(default_factory=list)


class ProjectUpdate(PatchModel):
    non_nullable: ClassVar[frozenset[str]] = frozenset({"title", "stack", "sprint", "status"})

    title: str | None = Field(default=None, min_length=1)
    stack: str | None = Field(default=None, min_length=1)
    sprint: str | None = Field(default=None, min_length=1)
    notes: str | None = None
    status: WorkStatus | None = None


class ProjectRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    stack: str
    sprint: str
    notes: str | None = None
    status: WorkStatus
    created_by: UUID | None = None
    created_at: datetime
    updated_at: datetime


class MemberCreate(BaseModel):
    user_id: UUID
    role_in_project: str = Field(default="member", min_length=1)


class MemberRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    project_id: UUID
    user_id: UUID
    role_in_project: str
    created_at: datetime


# --- Modules ---


class ModuleCreate(BaseModel):
    """New modules always start not_started with both review gates pending."""

    module_name: str = Field(min_length=1)
    platform_stack: str = Field(min_length=1)
    sprint: str = Field(min_length=1)
    assigned_dev_id: UUID | None = None
    eta: datetime | None = None
    notes: str | None = None


class ModuleUpdate(PatchModel):
    non_nullable: ClassVar[frozenset[str]] = frozenset(
        {"module_name", "platform_stack", "sprint", "status", "cto_review_status", "client_ready_status"}
    )

    module_name: str | None = Field(default=None, min_length=1)
    platform_stack: str | None = Field(default=None, min_length=1)
    assigned_dev_id: UUID | None = None
    design_locked_date: datetime | None = None
    dev_start_date: datetime | None = None
    self_qa_date: datetime | None = None
    lead_signoff_date: datetime | None = None
    pm_review_date: datetime | None = None
    cto_review_status: ReviewStatus | None = None
    client_ready_status: ReviewStatus | None = None
    status: WorkStatus | None = None
    eta: datetime | None = None
    sprint: str | None = Field(default=None, min_length=1)
    notes: str | None = None


class ModuleRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    project_id: UUID
    module_name: str
    platform_stack: str
    assigned_dev_id: UUID | None = None
    design_locked_date: datetime | None = None
    dev_start_date: datetime | None = None
    self_qa_date: datetime | None = None
    lead_signoff_date: datetime | None = None
    pm_review_date: datetime | None = None
    cto_review_status: ReviewStatus
    client_ready_status: ReviewStatus
    status: WorkStatus
    eta: datetime | None = None
    sprint: str
    notes: str | None = None
    created_at: datetime
    updated_at: datetime


class ModulePermissions(BaseModel):
    module_id: UUID
    editable_fields: list[str]


# --- Dashboard ---


class SprintProgress(BaseModel):
    sprint: str
    total: int
    completed: int


class DashboardSummary(BaseModel):
    total_projects: int
    total_modules: int
    active_devs: int
    modules_by_status: dict[WorkStatus, int]
    sprints: list[SprintProgress]


# --- Errors ---


class Toast(BaseModel):
    """Transient notification payload returned for every handled failure."""

    level: str
    message: str
    request_id: str = "unknown"
