from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Request, status
from loguru import logger
from sqlmodel.ext.asyncio.session import AsyncSession

from src.app.schemas import LoginRequest, SignUpRequest, UserCreate, UserRead, UserUpdate
from src.core.clients import AuthServiceClient, get_auth_client
from src.core.database import get_session
from src.core.errors import AuthenticationError, JeuxBoardError
from src.core.security import SESSION_KEY, CurrentActor
from src.domain.users import service

router = APIRouter(prefix="/auth", tags=["Authentication"])
api_router = APIRouter(prefix="/api/v1", tags=["Users"])

SessionDep = Annotated[AsyncSession, Depends(get_session)]
AuthClientDep = Annotated[AuthServiceClient, Depends(get_auth_client)]


@router.post("/signup", status_code=status.HTTP_201_CREATED)
async def signup(data: SignUpRequest, session: SessionDep, auth_client: AuthClientDep) -> UserRead:
    """Registers a new account. The caller signs in separately afterwards.

    Args:
        data: Name, email, password and requested role.
        session: The injected asynchronous database session.
        auth_client: Client for the external authentication service.

    Returns:
        UserRead: The created profile.
    """
    user = await service.register_user(session, auth_client, data)
    return UserRead.model_validate(user)


@router.post("/login")
async def login(request: Request, data: LoginRequest, session: SessionDep, auth_client: AuthClientDep) -> UserRead:
    """Authenticates a credential pair and opens a cookie session.

    Raises:
        AuthenticationError: If the credentials are rejected or the identity has no profile.
    """
    auth_session = await auth_client.sign_in_with_password(data.email, data.password)

    user = await service.find_by_auth_id(session, auth_session.auth_id)
    if user is None:
        logger.warning(f"Sign-in for {data.email} succeeded but no profile is linked")
        raise AuthenticationError("No profile is linked to this account. Contact an administrator.")

    request.session[SESSION_KEY] = {
        "id": str(user.id),
        "email": user.email,
        "name": user.name,
        "role": user.role,
        "access_token": auth_session.access_token,
    }

    logger.info(f"User logged in: {user.email}")
    return UserRead.model_validate(user)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(request: Request, auth_client: AuthClientDep) -> None:
    """Clears the session and revokes the bearer token on a best-effort basis."""
    stored = request.session.pop(SESSION_KEY, None) or {}

    token = stored.get("access_token")
    if token:
        try:
            await auth_client.sign_out(token)
        except JeuxBoardError as e:
            logger.warning(f"Remote sign-out failed for {stored.get('email')}: {e.message}")


@router.get("/me")
async def me(actor: CurrentActor, session: SessionDep) -> UserRead:
    return UserRead.model_validate(await service.get_user(session, actor.id))


# --- Roles & users ---


@api_router.get("/roles")
async def list_roles(actor: CurrentActor, session: SessionDep) -> list[str]:
    return await service.list_roles(session)


@api_router.get("/users")
async def list_users(actor: CurrentActor, session: SessionDep) -> list[UserRead]:
    users = await service.list_users(session, actor)
    return [UserRead.model_validate(user) for user in users]


@api_router.post("/users", status_code=status.HTTP_201_CREATED)
async def create_user(
    data: UserCreate, actor: CurrentActor, session: SessionDep, auth_client: AuthClientDep
) -> UserRead:
    """Provisions an account on behalf of another person (admin only)."""
    user = await service.provision_user(session, auth_client, actor, data)
    return UserRead.model_validate(user)


@api_router.patch("/users/{user_id}")
async def update_user(
    request: Request, user_id: UUID, data: UserUpdate, actor: CurrentActor, session: SessionDep
) -> UserRead:
    """Updates profile fields. Only the fields present in the body are touched."""
    user = await service.update_user(session, actor, user_id, data.changes())

    # Keep the cookie in sync when users edit their own profile
    stored = request.session.get(SESSION_KEY)
    if stored and stored.get("id") == str(user.id):
        request.session[SESSION_KEY] = {**stored, "name": user.name, "role": user.role}

    return UserRead.model_validate(user)


@api_router.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(user_id: UUID, actor: CurrentActor, session: SessionDep) -> None:
    await service.delete_user(session, actor, user_id)
