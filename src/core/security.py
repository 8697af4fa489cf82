from typing import Annotated
from uuid import UUID

from fastapi import Depends, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from loguru import logger
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from src.core.clients import AuthServiceClient, get_auth_client
from src.core.database import get_session
from src.core.errors import AuthenticationError
from src.domain.access.policy import Actor
from src.domain.projects.models import ProjectMember
from src.domain.users.models import User

bearer_scheme = HTTPBearer(auto_error=False)

SESSION_KEY = "user"


async def load_actor(session: AsyncSession, user: User) -> Actor:
    """Builds the request actor, resolving project memberships up front.

    Args:
        session: Active database session.
        user: The signed-in user's profile.

    Returns:
        Actor: Immutable actor carrying role and member project ids.
    """
    result = await session.exec(select(ProjectMember.project_id).where(ProjectMember.user_id == user.id))
    return Actor.from_user(user, set(result.all()))


async def _user_from_session(request: Request, session: AsyncSession) -> User | None:
    stored = request.session.get(SESSION_KEY)
    if not stored:
        return None

    try:
        user_id = UUID(stored["id"])
    except (KeyError, TypeError, ValueError):
        request.session.pop(SESSION_KEY, None)
        return None

    user = await session.get(User, user_id)
    if user is None:
        # Profile deleted while the session cookie was still alive
        logger.warning(f"Discarding session for deleted user {user_id}")
        request.session.pop(SESSION_KEY, None)
    return user


async def get_current_actor(
    request: Request,
    session: Annotated[AsyncSession, Depends(get_session)],
    auth_client: Annotated[AuthServiceClient, Depends(get_auth_client)],
    credentials: Annotated[HTTPAuthorizationCredentials | None, Security(bearer_scheme)] = None,
) -> Actor:
    """Resolves the acting user from the session cookie or a bearer token.

    Raises:
        AuthenticationError: If neither identifies an existing profile.
    """
    user = await _user_from_session(request, session)

    if user is None and credentials is not None:
        auth_id = await auth_client.get_user(credentials.credentials)
        user = (await session.exec(select(User).where(User.auth_id == auth_id))).first()
        if user is None:
            logger.warning(f"Bearer token for auth identity {auth_id} has no linked profile")

    if user is None:
        raise AuthenticationError("Sign in required.")

    return await load_actor(session, user)


CurrentActor = Annotated[Actor, Depends(get_current_actor)]
