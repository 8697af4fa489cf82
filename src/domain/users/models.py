from datetime import UTC, datetime
from enum import StrEnum
from uuid import UUID, uuid4

import sqlalchemy as sa
from sqlmodel import Field, SQLModel


def utc_now() -> datetime:
    return datetime.now(UTC)


def enum_values(enum_cls: type[StrEnum]) -> sa.Enum:
    """Column type persisting enum values (``not_started``) rather than member names."""
    return sa.Enum(enum_cls, values_callable=lambda members: [m.value for m in members], native_enum=False)


class Role(StrEnum):
    """Closed set of application roles.

    Roles are persisted as open text so new names can be introduced in the
    ``roles`` table ahead of code support. Any stored value outside the known
    set parses to ``UNKNOWN``, which holds no permissions.
    """

    ADMIN = "admin"
    DEV = "dev"
    PM = "pm"
    CTO = "cto"
    LEAD = "lead"
    DESIGNER = "designer"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, raw: str | None) -> "Role":
        if not raw:
            return cls.UNKNOWN
        try:
            role = cls(raw.strip().lower())
        except ValueError:
            return cls.UNKNOWN
        return role

    @classmethod
    def known(cls) -> tuple["Role", ...]:
        return tuple(role for role in cls if role is not cls.UNKNOWN)


class RoleRecord(SQLModel, table=True):
    """Row of the ``roles`` lookup table, seeded at startup."""

    __tablename__ = "roles"

    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(unique=True, index=True)
    created_at: datetime = Field(default_factory=utc_now)


class User(SQLModel, table=True):
    """Profile of a person, paired 1:1 with an identity in the auth service."""

    __tablename__ = "users"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    auth_id: str = Field(unique=True, index=True)
    name: str
    email: str = Field(unique=True, index=True)
    role: str = Field(index=True)
    avatar_url: str | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now, sa_column_kwargs={"onupdate": utc_now})

    @property
    def parsed_role(self) -> Role:
        return Role.parse(self.role)
