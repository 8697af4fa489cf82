"""
Authorization policy for projects, modules, memberships and users.

Every access decision in the service is made here. Decisions are pure
functions of (actor, target, field): no I/O, no hidden state, and a denial
is returned as ``False`` rather than raised. The SQL row filters in
``filters.py`` and the store policies rendered by ``store_policies.py`` are
built from the role sets and the field table defined in this module, so the
three enforcement points cannot drift apart.
"""

from dataclasses import dataclass, field
from uuid import UUID

from src.domain.modules.models import Module
from src.domain.projects.models import Project, ProjectMember
from src.domain.users.models import Role, User

# Roles that see every project and module regardless of membership
GLOBAL_READ_ROLES: frozenset[Role] = frozenset({Role.ADMIN, Role.PM, Role.CTO})

PROJECT_CREATE_ROLES: frozenset[Role] = frozenset({Role.ADMIN})
PROJECT_UPDATE_ROLES: frozenset[Role] = frozenset({Role.ADMIN, Role.PM})
PROJECT_DELETE_ROLES: frozenset[Role] = frozenset({Role.ADMIN})
MEMBER_MANAGE_ROLES: frozenset[Role] = frozenset({Role.ADMIN})

MODULE_CREATE_ROLES: frozenset[Role] = frozenset({Role.ADMIN, Role.PM})
MODULE_DELETE_ROLES: frozenset[Role] = frozenset({Role.ADMIN})

USER_CREATE_ROLES: frozenset[Role] = frozenset({Role.ADMIN})
USER_DELETE_ROLES: frozenset[Role] = frozenset({Role.ADMIN})
USER_ADMIN_ROLES: frozenset[Role] = frozenset({Role.ADMIN})


@dataclass(frozen=True)
class FieldGrant:
    """Update permission on a single module field.

    Attributes:
        roles: Roles allowed to update the field.
        assignee: Whether the module's assigned developer may update the field
            regardless of their global role. On such fields the grant to the
            ``dev`` role only covers modules assigned to that developer.
    """

    roles: frozenset[Role]
    assignee: bool = False

    @property
    def unconditional_roles(self) -> frozenset[Role]:
        """Roles allowed on every module, independent of assignment."""
        if self.assignee:
            return self.roles - ASSIGNEE_SCOPED_ROLES
        return self.roles


# Roles whose grant on assignee fields is limited to their own modules
ASSIGNEE_SCOPED_ROLES: frozenset[Role] = frozenset({Role.DEV})

_ADMIN = frozenset({Role.ADMIN})
_PM = frozenset({Role.PM, Role.ADMIN})

MODULE_FIELD_GRANTS: dict[str, FieldGrant] = {
    "module_name": FieldGrant(_ADMIN),
    "platform_stack": FieldGrant(_ADMIN),
    "assigned_dev_id": FieldGrant(_ADMIN),
    "design_locked_date": FieldGrant(frozenset({Role.DESIGNER, Role.ADMIN})),
    "dev_start_date": FieldGrant(frozenset({Role.DEV, Role.ADMIN}), assignee=True),
    "self_qa_date": FieldGrant(frozenset({Role.DEV, Role.ADMIN}), assignee=True),
    "lead_signoff_date": FieldGrant(frozenset({Role.LEAD, Role.ADMIN})),
    "pm_review_date": FieldGrant(_PM),
    "client_ready_status": FieldGrant(_PM),
    "eta": FieldGrant(_PM),
    "sprint": FieldGrant(_PM),
    "cto_review_status": FieldGrant(frozenset({Role.CTO, Role.ADMIN})),
    "status": FieldGrant(frozenset({Role.DEV, Role.PM, Role.ADMIN})),
    "notes": FieldGrant(frozenset(Role.known())),
}

PROJECT_EDITABLE_FIELDS: frozenset[str] = frozenset({"title", "stack", "sprint", "notes", "status"})
USER_SELF_EDITABLE_FIELDS: frozenset[str] = frozenset({"name", "avatar_url"})
USER_ROLE_FIELD = "role"


@dataclass(frozen=True)
class Actor:
    """The authenticated user performing an operation.

    Built once per request and passed explicitly into every service call.
    ``project_ids`` holds the projects the user is a member of, resolved when
    the actor is loaded so membership checks stay pure.
    """

    id: UUID
    role: Role
    email: str | None = None
    project_ids: frozenset[UUID] = field(default_factory=frozenset)

    @classmethod
    def from_user(cls, user: User, project_ids: frozenset[UUID] | set[UUID] = frozenset()) -> "Actor":
        return cls(id=user.id, role=user.parsed_role, email=user.email, project_ids=frozenset(project_ids))

    @property
    def is_known(self) -> bool:
        return self.role is not Role.UNKNOWN

    def has_role(self, roles: frozenset[Role]) -> bool:
        return self.is_known and self.role in roles

    def is_member_of(self, project_id: UUID) -> bool:
        return self.is_known and project_id in self.project_ids


# --- Projects ---


def can_read_project(actor: Actor, project: Project) -> bool:
    return actor.has_role(GLOBAL_READ_ROLES) or actor.is_member_of(project.id)


def can_create_project(actor: Actor) -> bool:
    return actor.has_role(PROJECT_CREATE_ROLES)


def can_update_project(actor: Actor, project: Project) -> bool:
    return actor.has_role(PROJECT_UPDATE_ROLES)


def can_delete_project(actor: Actor, project: Project) -> bool:
    return actor.has_role(PROJECT_DELETE_ROLES)


def can_manage_project_members(actor: Actor) -> bool:
    return actor.has_role(MEMBER_MANAGE_ROLES)


def can_read_project_member(actor: Actor, member: ProjectMember) -> bool:
    """Members rows are visible to global readers, and to each user for their own row."""
    return actor.has_role(GLOBAL_READ_ROLES) or (actor.is_known and member.user_id == actor.id)


# --- Modules ---


def is_assignee(actor: Actor, module: Module) -> bool:
    return module.assigned_dev_id is not None and module.assigned_dev_id == actor.id


def can_read_module(actor: Actor, module: Module) -> bool:
    if not actor.is_known:
        return False
    return actor.role in GLOBAL_READ_ROLES or actor.is_member_of(module.project_id) or is_assignee(actor, module)


def can_create_module(actor: Actor) -> bool:
    return actor.has_role(MODULE_CREATE_ROLES)


def can_delete_module(actor: Actor) -> bool:
    return actor.has_role(MODULE_DELETE_ROLES)


def can_edit_module_field(actor: Actor, field_name: str, module: Module) -> bool:
    """Evaluates the per-field update table for a module.

    Args:
        actor: The acting user.
        field_name: Name of the module attribute being updated.
        module: The module as currently stored.

    Returns:
        bool: True when the update is allowed. Fields absent from the table
        and actors with an unknown role are always denied.
    """
    grant = MODULE_FIELD_GRANTS.get(field_name)
    if grant is None or not actor.is_known:
        return False

    if grant.assignee and is_assignee(actor, module):
        return True

    return actor.role in grant.unconditional_roles


def editable_module_fields(actor: Actor, module: Module) -> frozenset[str]:
    return frozenset(name for name in MODULE_FIELD_GRANTS if can_edit_module_field(actor, name, module))


# --- Users ---


def can_read_users(actor: Actor) -> bool:
    return actor.is_known


def can_create_user(actor: Actor) -> bool:
    return actor.has_role(USER_CREATE_ROLES)


def can_delete_user(actor: Actor) -> bool:
    return actor.has_role(USER_DELETE_ROLES)


def can_edit_user_field(actor: Actor, target: User, field_name: str) -> bool:
    """Profile fields are editable by admins and by the user; the role only by another admin."""
    is_self = actor.is_known and target.id == actor.id

    if field_name == USER_ROLE_FIELD:
        return actor.has_role(USER_ADMIN_ROLES) and not is_self

    if field_name in USER_SELF_EDITABLE_FIELDS:
        return actor.has_role(USER_ADMIN_ROLES) or is_self

    return False
