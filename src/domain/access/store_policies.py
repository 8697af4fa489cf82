"""
PostgreSQL row-level security rendered from the application policy tables.

Deployments whose backing store enforces access on its own (defense in
depth) load the SQL produced here instead of hand-written policies. Row
visibility comes from the same role sets as ``policy`` and ``filters``;
per-field update rights on ``project_modules`` are enforced by a BEFORE
UPDATE trigger generated from ``MODULE_FIELD_GRANTS``.
"""

from collections.abc import Iterable

from src.domain.access.policy import (
    GLOBAL_READ_ROLES,
    MEMBER_MANAGE_ROLES,
    MODULE_CREATE_ROLES,
    MODULE_DELETE_ROLES,
    MODULE_FIELD_GRANTS,
    PROJECT_CREATE_ROLES,
    PROJECT_DELETE_ROLES,
    PROJECT_UPDATE_ROLES,
    USER_ADMIN_ROLES,
    USER_CREATE_ROLES,
    USER_DELETE_ROLES,
)
from src.domain.users.models import Role

# Resolves the authenticated identity inside the store (Supabase/GoTrue convention)
DEFAULT_ACTOR_EXPR = "auth.uid()::text"

IMMUTABLE_MODULE_COLUMNS = ("id", "project_id", "created_at")
IMMUTABLE_USER_COLUMNS = ("id", "auth_id", "email", "created_at")
PERMISSION_DENIED_ERRCODE = "42501"

ACTOR_ID = "app_actor_id()"
ACTOR_ROLE = "app_actor_role()"


def _role_list(roles: Iterable[Role]) -> str:
    wanted = set(roles)
    return ", ".join(f"'{role.value}'" for role in Role.known() if role in wanted)


def role_test(column: str, roles: Iterable[Role]) -> str:
    """Renders ``column IN (...)`` for the given roles, or ``false`` for an empty set."""
    listed = _role_list(roles)
    return f"{column} IN ({listed})" if listed else "false"


def _policy(name: str, table: str, command: str, *, using: str | None = None, check: str | None = None) -> str:
    lines = [
        f'DROP POLICY IF EXISTS "{name}" ON {table};',
        f'CREATE POLICY "{name}"',
        f"    ON {table} FOR {command}",
        "    TO authenticated",
    ]
    if using is not None:
        lines.append(f"    USING ({using})")
    if check is not None:
        lines.append(f"    WITH CHECK ({check})")
    return "\n".join(lines) + ";"


def _deny(column: str) -> str:
    return (
        f"        RAISE EXCEPTION 'permission denied for column {column}' "
        f"USING ERRCODE = '{PERMISSION_DENIED_ERRCODE}';"
    )


def render_actor_functions(actor_expr: str = DEFAULT_ACTOR_EXPR) -> str:
    """Helper functions resolving the acting user; SECURITY DEFINER so policies on ``users`` do not recurse."""
    return "\n".join(
        [
            "CREATE OR REPLACE FUNCTION app_actor_id() RETURNS uuid AS $$",
            f"    SELECT id FROM users WHERE auth_id = {actor_expr}",
            "$$ LANGUAGE sql STABLE SECURITY DEFINER;",
            "",
            "CREATE OR REPLACE FUNCTION app_actor_role() RETURNS text AS $$",
            f"    SELECT role FROM users WHERE auth_id = {actor_expr}",
            "$$ LANGUAGE sql STABLE SECURITY DEFINER;",
        ]
    )


def _is_member(project_column: str) -> str:
    return (
        f"({role_test(ACTOR_ROLE, Role.known())} AND EXISTS (SELECT 1 FROM project_members "
        f"WHERE project_members.project_id = {project_column} AND project_members.user_id = {ACTOR_ID}))"
    )


def render_project_policies() -> list[str]:
    return [
        _policy(
            "projects_select", "projects", "SELECT",
            using=f"{role_test(ACTOR_ROLE, GLOBAL_READ_ROLES)} OR {_is_member('projects.id')}",
        ),
        _policy("projects_insert", "projects", "INSERT", check=role_test(ACTOR_ROLE, PROJECT_CREATE_ROLES)),
        _policy("projects_update", "projects", "UPDATE", using=role_test(ACTOR_ROLE, PROJECT_UPDATE_ROLES)),
        _policy("projects_delete", "projects", "DELETE", using=role_test(ACTOR_ROLE, PROJECT_DELETE_ROLES)),
    ]


def render_module_policies() -> list[str]:
    readable = (
        f"{role_test(ACTOR_ROLE, GLOBAL_READ_ROLES)} OR {_is_member('project_modules.project_id')} "
        f"OR ({role_test(ACTOR_ROLE, Role.known())} AND project_modules.assigned_dev_id = {ACTOR_ID})"
    )
    return [
        _policy("project_modules_select", "project_modules", "SELECT", using=readable),
        _policy(
            "project_modules_insert", "project_modules", "INSERT", check=role_test(ACTOR_ROLE, MODULE_CREATE_ROLES)
        ),
        # Row visibility gates updates; column rights are enforced by the guard trigger
        _policy("project_modules_update", "project_modules", "UPDATE", using=readable),
        _policy(
            "project_modules_delete", "project_modules", "DELETE", using=role_test(ACTOR_ROLE, MODULE_DELETE_ROLES)
        ),
    ]


def render_member_policies() -> list[str]:
    manage = role_test(ACTOR_ROLE, MEMBER_MANAGE_ROLES)
    return [
        _policy(
            "project_members_select", "project_members", "SELECT",
            using=f"{role_test(ACTOR_ROLE, GLOBAL_READ_ROLES)} "
            f"OR ({role_test(ACTOR_ROLE, Role.known())} AND project_members.user_id = {ACTOR_ID})",
        ),
        _policy("project_members_manage", "project_members", "ALL", using=manage, check=manage),
    ]


def render_user_policies(actor_expr: str = DEFAULT_ACTOR_EXPR) -> list[str]:
    return [
        _policy("users_select", "users", "SELECT", using=role_test(ACTOR_ROLE, Role.known())),
        # Sign-up inserts the caller's own profile
        _policy(
            "users_insert", "users", "INSERT",
            check=f"auth_id = {actor_expr} OR {role_test(ACTOR_ROLE, USER_CREATE_ROLES)}",
        ),
        _policy(
            "users_update", "users", "UPDATE",
            using=f"users.id = {ACTOR_ID} OR {role_test(ACTOR_ROLE, USER_ADMIN_ROLES)}",
        ),
        _policy("users_delete", "users", "DELETE", using=role_test(ACTOR_ROLE, USER_DELETE_ROLES)),
    ]


def render_module_field_guard() -> str:
    """Renders the trigger enforcing ``MODULE_FIELD_GRANTS`` column by column."""
    body = [
        "CREATE OR REPLACE FUNCTION project_modules_field_guard()",
        "RETURNS TRIGGER AS $$",
        "DECLARE",
        f"    actor_id uuid := {ACTOR_ID};",
        f"    actor_role text := {ACTOR_ROLE};",
        "BEGIN",
        f"    IF actor_role IS NULL OR NOT ({role_test('actor_role', Role.known())}) THEN",
        f"        RAISE EXCEPTION 'permission denied: unknown role' USING ERRCODE = '{PERMISSION_DENIED_ERRCODE}';",
        "    END IF;",
    ]

    for column in IMMUTABLE_MODULE_COLUMNS:
        body += [f"    IF NEW.{column} IS DISTINCT FROM OLD.{column} THEN", _deny(column), "    END IF;"]

    for column, grant in MODULE_FIELD_GRANTS.items():
        allowed = role_test("actor_role", grant.unconditional_roles)
        if grant.assignee:
            allowed = f"{allowed} OR OLD.assigned_dev_id = actor_id"
        body += [
            f"    IF NEW.{column} IS DISTINCT FROM OLD.{column} AND NOT ({allowed}) THEN",
            _deny(column),
            "    END IF;",
        ]

    body += [
        "    RETURN NEW;",
        "END;",
        "$$ LANGUAGE plpgsql SECURITY DEFINER;",
        "",
        "DROP TRIGGER IF EXISTS project_modules_field_guard ON project_modules;",
        "CREATE TRIGGER project_modules_field_guard",
        "    BEFORE UPDATE ON project_modules",
        "    FOR EACH ROW EXECUTE FUNCTION project_modules_field_guard();",
    ]
    return "\n".join(body)


def render_user_field_guard() -> str:
    """Renders the trigger keeping role changes admin-only and never self-applied."""
    body = [
        "CREATE OR REPLACE FUNCTION users_field_guard()",
        "RETURNS TRIGGER AS $$",
        "DECLARE",
        f"    actor_id uuid := {ACTOR_ID};",
        f"    actor_role text := {ACTOR_ROLE};",
        "BEGIN",
    ]
    for column in IMMUTABLE_USER_COLUMNS:
        body += [f"    IF NEW.{column} IS DISTINCT FROM OLD.{column} THEN", _deny(column), "    END IF;"]
    body += [
        "    IF NEW.role IS DISTINCT FROM OLD.role",
        f"       AND NOT ({role_test('actor_role', USER_ADMIN_ROLES)} AND OLD.id <> actor_id) THEN",
        _deny("role"),
        "    END IF;",
        "    RETURN NEW;",
        "END;",
        "$$ LANGUAGE plpgsql SECURITY DEFINER;",
        "",
        "DROP TRIGGER IF EXISTS users_field_guard ON users;",
        "CREATE TRIGGER users_field_guard",
        "    BEFORE UPDATE ON users",
        "    FOR EACH ROW EXECUTE FUNCTION users_field_guard();",
    ]
    return "\n".join(body)


def render_store_policies(actor_expr: str = DEFAULT_ACTOR_EXPR) -> str:
    """Renders the complete policy script for the backing store.

    Args:
        actor_expr: SQL expression yielding the authenticated identity as text,
            compared against ``users.auth_id``.

    Returns:
        str: Idempotent SQL enabling RLS, (re)creating every policy and the
        column guard triggers.
    """
    statements = [render_actor_functions(actor_expr)]
    statements += [
        f"ALTER TABLE {table} ENABLE ROW LEVEL SECURITY;"
        for table in ("users", "projects", "project_modules", "project_members")
    ]
    statements += render_user_policies(actor_expr)
    statements += render_project_policies()
    statements += render_module_policies()
    statements += render_member_policies()
    statements.append(render_module_field_guard())
    statements.append(render_user_field_guard())
    return "\n\n".join(statements) + "\n"
