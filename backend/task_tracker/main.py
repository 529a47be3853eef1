"""FastAPI application entrypoint and router wiring for the backend."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import APIRouter, FastAPI, status
from fastapi.middleware.cors import CORSMiddleware

from task_tracker.api.auth import router as auth_router
from task_tracker.api.subtasks import router as subtasks_router
from task_tracker.api.tasks import router as tasks_router
from task_tracker.core.config import settings
from task_tracker.core.error_handling import install_error_handling
from task_tracker.core.logging import configure_logging, get_logger
from task_tracker.db.session import dispose_engine, init_db
from task_tracker.schemas.health import HealthStatusResponse
from task_tracker.services.advisor import build_advisor

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

configure_logging()
logger = get_logger(__name__)
OPENAPI_TAGS = [
    {
        "name": "auth",
        "description": "Authentication bootstrap endpoint for resolving the caller's user profile.",
    },
    {
        "name": "health",
        "description": "Service liveness/readiness probes used by infrastructure checks.",
    },
    {
        "name": "tasks",
        "description": (
            "Owner-scoped tasks: create, list with optional AI prioritization, update, "
            "trash and restore, workload report and AI audit trail."
        ),
    },
    {
        "name": "subtasks",
        "description": (
            "Checklist items of a task. Completing the last open subtask completes the task."
        ),
    },
]
_HEALTH_RESPONSES = {
    status.HTTP_200_OK: {
        "description": "Service is alive.",
        "content": {"application/json": {"example": {"ok": True}}},
    },
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create process-wide resources before serving and release them after."""
    logger.info(
        "app.lifecycle.starting environment=%s db_auto_migrate=%s advisor_enabled=%s",
        settings.environment,
        settings.db_auto_migrate,
        settings.advisor_enabled,
    )
    await init_db()
    app.state.advisor = build_advisor(settings)
    logger.info("app.lifecycle.started")
    try:
        yield
    finally:
        await app.state.advisor.aclose()
        await dispose_engine()
        logger.info("app.lifecycle.stopped")


app = FastAPI(
    title="Task Tracker API",
    version="0.1.0",
    lifespan=lifespan,
    openapi_tags=OPENAPI_TAGS,
)

origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
if origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    logger.info("app.cors.enabled origins_count=%s", len(origins))
else:
    logger.info("app.cors.disabled")

install_error_handling(app)


@app.get(
    "/health",
    tags=["health"],
    response_model=HealthStatusResponse,
    summary="Health Check",
    responses=_HEALTH_RESPONSES,
)
def health() -> HealthStatusResponse:
    """Lightweight liveness probe endpoint."""
    return HealthStatusResponse(ok=True)


@app.get(
    "/healthz",
    tags=["health"],
    response_model=HealthStatusResponse,
    summary="Health Alias Check",
    responses=_HEALTH_RESPONSES,
)
def healthz() -> HealthStatusResponse:
    """Alias liveness probe endpoint for platform compatibility."""
    return HealthStatusResponse(ok=True)


@app.get(
    "/readyz",
    tags=["health"],
    response_model=HealthStatusResponse,
    summary="Readiness Check",
    responses=_HEALTH_RESPONSES,
)
def readyz() -> HealthStatusResponse:
    """Readiness probe endpoint for service orchestration checks."""
    return HealthStatusResponse(ok=True)


api_v1 = APIRouter(prefix="/api/v1")
api_v1.include_router(auth_router)
api_v1.include_router(tasks_router)
api_v1.include_router(subtasks_router)
app.include_router(api_v1)

logger.debug("app.routes.registered count=%s", len(app.routes))
