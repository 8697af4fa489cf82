from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager

from loguru import logger
from sqlalchemy import event
from sqlalchemy.engine.interfaces import DBAPIConnection
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import ConnectionPoolEntry
from sqlmodel.ext.asyncio.session import AsyncSession

from src.config.settings import settings
from src.core.errors import ConflictError, StoreError

DATABASE_URL = f"sqlite+aiosqlite:///{settings.SQLITE_DB_PATH}"

engine: AsyncEngine = create_async_engine(
    DATABASE_URL,
    echo=settings.DEBUG,
    connect_args={
        "check_same_thread": False,
        "timeout": 30.0,
    },
)


def set_sqlite_pragma(dbapi_connection: DBAPIConnection, connection_record: ConnectionPoolEntry) -> None:
    """Configures SQLite connection pragmas.

    Foreign keys are off by default in SQLite; they must be enabled on every
    connection for module and membership cascades to fire when a project or
    user is deleted.

    Args:
        dbapi_connection: The raw DBAPI connection object.
        connection_record: The connection pool record.

    Raises:
        sqlite3.OperationalError: If the database is locked and pragmas cannot be set.
    """
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.execute("PRAGMA busy_timeout=30000")
    except Exception as e:
        logger.error(f"Failed to set SQLite pragmas: {e}")
        raise
    finally:
        cursor.close()


event.listen(engine.sync_engine, "connect", set_sqlite_pragma)

async_session_maker = sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Dependency provider for asynchronous database sessions.

    Yields:
        AsyncSession: An active SQLModel asynchronous session.
    """
    async with async_session_maker() as session:
        yield session


@asynccontextmanager
async def store_operation(session: AsyncSession, action: str) -> AsyncIterator[None]:
    """Wraps a unit of store work so failures roll back and surface as toasts.

    Args:
        session: The session the work is performed on.
        action: Human-readable description used in logs and the user message.

    Raises:
        ConflictError: If the store rejects the write on a uniqueness constraint.
        StoreError: For any other store failure. No partial state is kept.
    """
    try:
        yield
    except IntegrityError as e:
        await session.rollback()
        logger.error(f"Store rejected '{action}': {e.orig}")
        raise ConflictError(f"Could not {action}: it conflicts with an existing record.") from e
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Store failure during '{action}': {e}")
        raise StoreError(f"Could not {action}. No changes were applied.") from e
