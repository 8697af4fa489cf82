from typing import Any
from uuid import UUID

from loguru import logger
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from src.app.schemas import SignUpRequest
from src.config.settings import settings
from src.core.clients import AuthServiceClient
from src.core.database import store_operation
from src.core.errors import ConflictError, InvalidInputError, JeuxBoardError, NotFoundError, PermissionDenied
from src.domain.access import policy
from src.domain.access.guard import enforce
from src.domain.access.policy import Actor
from src.domain.users.models import Role, RoleRecord, User


async def ensure_roles(session: AsyncSession) -> None:
    """Seeds the ``roles`` table with every known role name. Existing rows are kept."""
    existing = set((await session.exec(select(RoleRecord.name))).all())
    missing = [role.value for role in Role.known() if role.value not in existing]
    if not missing:
        return

    async with store_operation(session, "seed roles"):
        session.add_all([RoleRecord(name=name) for name in missing])
        await session.commit()
    logger.info(f"Seeded roles: {', '.join(missing)}")


async def list_roles(session: AsyncSession) -> list[str]:
    return list((await session.exec(select(RoleRecord.name).order_by(RoleRecord.name))).all())


async def _validate_role(session: AsyncSession, name: str) -> str:
    """Checks a role name against the ``roles`` table.

    Names present in the table but unknown to the application are accepted
    and stored; such users simply hold no permissions.
    """
    normalized = name.strip().lower()
    if normalized not in await list_roles(session):
        raise InvalidInputError(f"Unknown role '{name}'.")
    return normalized


async def get_user(session: AsyncSession, user_id: UUID) -> User:
    user = await session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found.")
    return user


async def find_by_auth_id(session: AsyncSession, auth_id: str) -> User | None:
    return (await session.exec(select(User).where(User.auth_id == auth_id))).first()


async def list_users(session: AsyncSession, actor: Actor) -> list[User]:
    enforce(policy.can_read_users(actor), actor, "list users")
    return list((await session.exec(select(User).order_by(col(User.created_at).desc()))).all())


async def _create_profile(
    session: AsyncSession, auth_client: AuthServiceClient, data: SignUpRequest, role: str
) -> User:
    email = data.email.lower()
    if (await session.exec(select(User).where(User.email == email))).first():
        raise ConflictError(f"A user with email {email} already exists.")

    auth_id = await auth_client.sign_up(email, data.password)

    user = User(auth_id=auth_id, name=data.name.strip(), email=email, role=role)
    try:
        async with store_operation(session, "create the user profile"):
            session.add(user)
            await session.commit()
            await session.refresh(user)
    except JeuxBoardError:
        # Deleting auth identities needs a service key this app does not hold
        logger.error(f"Auth identity {auth_id} ({email}) was created without a profile and needs cleanup")
        raise
    return user


async def register_user(session: AsyncSession, auth_client: AuthServiceClient, data: SignUpRequest) -> User:
    """Self sign-up: creates the auth identity and its paired profile.

    The bootstrap email from settings is always granted admin. Nobody else
    may pick the admin role for themselves.

    Raises:
        PermissionDenied: If a non-bootstrap user requests the admin role.
        ConflictError: If the email is already registered.
    """
    is_initial_admin = bool(settings.INITIAL_ADMIN_EMAIL) and settings.INITIAL_ADMIN_EMAIL.lower() == data.email.lower()

    if is_initial_admin:
        role = Role.ADMIN.value
    else:
        role = await _validate_role(session, data.role)
        if role == Role.ADMIN.value:
            logger.warning(f"Refused self-assigned admin role at sign-up for {data.email}")
            raise PermissionDenied("Permission denied: the admin role is granted by an administrator.")

    user = await _create_profile(session, auth_client, data, role)
    logger.info(f"Registered user {user.email} (role={user.role}, bootstrap_admin={is_initial_admin})")
    return user


async def provision_user(
    session: AsyncSession, auth_client: AuthServiceClient, actor: Actor, data: SignUpRequest
) -> User:
    """Admin-created account with any role from the ``roles`` table."""
    enforce(policy.can_create_user(actor), actor, "create users")
    role = await _validate_role(session, data.role)
    user = await _create_profile(session, auth_client, data, role)
    logger.info(f"User {actor.id} provisioned {user.email} (role={user.role})")
    return user


async def update_user(session: AsyncSession, actor: Actor, user_id: UUID, changes: dict[str, Any]) -> User:
    """Applies a field-scoped profile update.

    Every field is checked before anything is written; a single denied field
    refuses the whole update.
    """
    user = await get_user(session, user_id)

    for field_name in changes:
        enforce(policy.can_edit_user_field(actor, user, field_name), actor, f"change the {field_name} of this user")

    if "role" in changes:
        changes["role"] = await _validate_role(session, changes["role"])

    async with store_operation(session, "update the user"):
        for field_name, value in changes.items():
            setattr(user, field_name, value)
        session.add(user)
        await session.commit()
        await session.refresh(user)

    logger.info(f"User {actor.id} updated user {user.id}: {sorted(changes)}")
    return user


async def delete_user(session: AsyncSession, actor: Actor, user_id: UUID) -> None:
    """Deletes a profile; memberships cascade and module assignments are cleared."""
    enforce(policy.can_delete_user(actor), actor, "delete users")
    user = await get_user(session, user_id)

    async with store_operation(session, "delete the user"):
        await session.delete(user)
        await session.commit()

    logger.info(f"User {actor.id} deleted user {user_id} ({user.email})")
