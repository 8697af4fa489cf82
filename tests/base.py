import unittest
from collections.abc import AsyncGenerator
from itertools import count
from unittest.mock import AsyncMock

from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

# Ensure canonical imports are resolved so every table is registered
import src.domain.modules.models  # noqa: F401
import src.domain.projects.models  # noqa: F401
from src.app.schemas import ModuleCreate, ProjectCreate
from src.core.clients import AuthServiceClient
from src.core.database import set_sqlite_pragma
from src.core.security import load_actor
from src.domain.access.policy import Actor
from src.domain.modules.models import Module
from src.domain.projects.models import Project, ProjectMember
from src.domain.users.models import Role, User
from src.domain.users.service import ensure_roles

_sequence = count(1)


class BaseTest(unittest.IsolatedAsyncioTestCase):
    """Base test class providing strict, ephemeral database isolation.

    Every test gets a fresh in-memory schema with the roles table seeded and
    one user per known role, available as ``self.users[Role.X]``.
    """

    async def asyncSetUp(self) -> None:
        """Bootstraps a pure in-memory database with foreign keys enforced."""
        # Explicit in-memory URI mapped to StaticPool to keep schema alive
        # for the duration of a single test's async execution context.
        self.test_engine = create_async_engine(
            "sqlite+aiosqlite:///:memory:",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        # Cascades only fire with the same pragmas as production connections
        event.listen(self.test_engine.sync_engine, "connect", set_sqlite_pragma)
        self.test_session_maker = sessionmaker(bind=self.test_engine, class_=AsyncSession, expire_on_commit=False)

        async with self.test_engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)

        self.session: AsyncSession = self.test_session_maker()
        await ensure_roles(self.session)

        self.users: dict[Role, User] = {}
        for role in Role.known():
            self.users[role] = await self.make_user(role.value)

        self.auth_client = AsyncMock(spec=AuthServiceClient)
        self.auth_client.sign_up.side_effect = lambda email, password: f"auth-{email}"

    async def asyncTearDown(self) -> None:
        """Destroys the in-memory database."""
        await self.session.close()

        async with self.test_engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.drop_all)

        await self.test_engine.dispose()

    async def override_get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Drop-in replacement for the ``get_session`` dependency bound to the test engine."""
        async with self.test_session_maker() as session:
            yield session

    async def make_user(self, role: str, name: str | None = None) -> User:
        n = next(_sequence)
        user = User(
            auth_id=f"auth-{role}-{n}",
            name=name or f"{role.title()} {n}",
            email=f"{role}.{n}@jeuxboard.io",
            role=role,
        )
        self.session.add(user)
        await self.session.commit()
        await self.session.refresh(user)
        return user

    async def actor(self, who: Role | User) -> Actor:
        """Loads the actor for a seeded role or a specific user, with current memberships."""
        user = self.users[who] if isinstance(who, Role) else who
        return await load_actor(self.session, user)

    async def make_project(self, title: str = "Gateway", sprint: str = "S1", stack: str = "python") -> Project:
        project = Project(**ProjectCreate(title=title, stack=stack, sprint=sprint).model_dump(exclude={"member_ids"}))
        self.session.add(project)
        await self.session.commit()
        await self.session.refresh(project)
        return project

    async def add_membership(self, project: Project, user: User) -> ProjectMember:
        member = ProjectMember(project_id=project.id, user_id=user.id)
        self.session.add(member)
        await self.session.commit()
        await self.session.refresh(member)
        return member

    async def make_module(
        self, project: Project, name: str = "Auth Service", assigned_dev: User | None = None, sprint: str = "S1"
    ) -> Module:
        data = ModuleCreate(
            module_name=name,
            platform_stack="fastapi",
            sprint=sprint,
            assigned_dev_id=assigned_dev.id if assigned_dev else None,
        )
        module = Module(project_id=project.id, **data.model_dump())
        self.session.add(module)
        await self.session.commit()
        await self.session.refresh(module)
        return module
