"""repo-migrations FastAPI application."""

from fastapi import FastAPI

from repo_migrations.api.exceptions import (
    MigrationFailedError,
    RequestRejectedError,
    general_exception_handler,
    migration_failed_handler,
    request_rejected_handler,
)
from repo_migrations.api.routers.migrations import router as migrations_router
from repo_migrations.api.routers.repositories import router as repositories_router
from repo_migrations.config import settings
from repo_migrations.logger import setup_logging

setup_logging()

app = FastAPI(
    title=settings.app_name,
    description="Repository migration bot",
    version=settings.version,
    # don't use add_exception_handler because of https://github.com/Kludex/starlette/discussions/2391
    exception_handlers={
        RequestRejectedError: request_rejected_handler,
        MigrationFailedError: migration_failed_handler,
        Exception: general_exception_handler,
    },
)

app.include_router(repositories_router)
app.include_router(migrations_router)


@app.get("/health/live", operation_id="liveness", tags=["Health"])
def liveness() -> dict[str, str]:
    """Liveness probe - returns 200 if service is running."""
    return {
        "status": "ok",
        "service": settings.app_name,
    }
