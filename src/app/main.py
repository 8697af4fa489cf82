import time
import uuid
from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request, Response, status
from fastapi.responses import JSONResponse
from loguru import logger
from sqlmodel import SQLModel
from starlette.middleware.sessions import SessionMiddleware

from src import version
from src.app.schemas import Toast
from src.config.settings import settings
from src.core.clients import close_auth_client, get_auth_client
from src.core.database import async_session_maker, engine
from src.core.errors import JeuxBoardError
from src.core.logger import configure_logging
from src.domain.dashboard.router import router as dashboard_router
from src.domain.modules.router import router as modules_router
from src.domain.projects.router import router as projects_router
from src.domain.users.router import api_router as users_router
from src.domain.users.router import router as auth_router
from src.domain.users.service import ensure_roles


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manages the startup and shutdown lifecycle of the FastAPI application."""
    configure_logging()

    # Initialize SQLite schema
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    async with async_session_maker() as session:
        await ensure_roles(session)

    logger.info(f"{settings.APP_NAME} {version.VERSION} started")
    yield

    # Teardown
    await close_auth_client()


# --- Application Setup ---
app = FastAPI(
    title=settings.APP_NAME,
    debug=settings.DEBUG,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url=None,
)

# --- Middleware ---
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.SECRET_KEY,
    max_age=settings.SESSION_MAX_AGE,
    https_only=not settings.DEBUG,  # Allow HTTP in dev, HTTPS in prod
)


@app.middleware("http")
async def request_id_middleware(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
    """Injects a unique Request-ID into the logging context and response headers.

    Args:
        request: The incoming HTTP request.
        call_next: The next middleware or route handler in the pipeline.

    Returns:
        Response: The HTTP response with injected tracking headers.
    """
    request_id = str(uuid.uuid4())
    request.state.request_id = request_id

    with logger.contextualize(request_id=request_id):
        logger.info(f"Started {request.method} {request.url.path}")
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as e:
            process_time = time.perf_counter() - start_time
            logger.error(f"Request failed after {process_time:.4f}s: {e}")
            raise

        process_time = time.perf_counter() - start_time
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = str(process_time)

        logger.info(f"Completed {response.status_code} in {process_time:.4f}s")
        return response


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "unknown")


# --- Exception Handlers ---
@app.exception_handler(JeuxBoardError)
async def toast_exception_handler(request: Request, exc: JeuxBoardError) -> JSONResponse:
    """Renders handled failures as a toast payload with the matching HTTP status.

    Args:
        request: The incoming HTTP request.
        exc: The raised application error.

    Returns:
        JSONResponse: ``{"level", "message", "request_id"}``.
    """
    toast = Toast(level=exc.level, message=exc.message, request_id=_request_id(request))
    return JSONResponse(status_code=exc.status_code, content=toast.model_dump())


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catches unhandled exceptions and returns a standardized toast payload.

    Returns:
        JSONResponse: A 500 Internal Server Error payload.
    """
    logger.exception("Unhandled server exception")
    toast = Toast(level="danger", message="An unexpected error occurred.", request_id=_request_id(request))
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=toast.model_dump())


# --- Routing ---
app.include_router(auth_router)
app.include_router(users_router)
app.include_router(projects_router)
app.include_router(modules_router)
app.include_router(dashboard_router)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Provides a basic health check for the application.

    Returns:
        dict: The application status and name.
    """
    return {
        "status": "ok",
        "service": settings.APP_NAME,
        "version": version.VERSION,
        "build_time": version.BUILD_TIMESTAMP,
    }


@app.get("/api/v1/health", tags=["System"])
async def api_health_check() -> dict[str, Any]:
    """Strict JSON health payload for external monitors, including the auth service heartbeat.

    Returns:
        dict[str, Any]: Versioning and collaborator connectivity.
    """
    auth_ok, auth_detail = await get_auth_client().ping()

    return {
        "status": "ok" if auth_ok else "degraded",
        "service": settings.APP_NAME,
        "version": version.VERSION,
        "integrations": {"auth": {"status": "ok" if auth_ok else "danger", "detail": auth_detail}},
    }
