"""Generic migration endpoints.

Every registered migration is reachable under ``/migrations/{name}``; the
response body and status come straight from the migration result.
"""

from typing import Annotated

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse

from repo_migrations.api.dependencies import RepositoryDep, SecretDep
from repo_migrations.api.exceptions import NotFoundError
from repo_migrations.config import settings
from repo_migrations.dispatch import run_migration
from repo_migrations.logger import get_logger
from repo_migrations.migrations.base import MigrationOptions
from repo_migrations.registry import available_migrations

log = get_logger(__name__)

router = APIRouter(prefix="/migrations", tags=["Migrations"])


@router.get("", operation_id="list-migrations")
def list_migrations() -> list[str]:
    """Names of all registered migrations."""
    return available_migrations()


@router.post("/{name}", operation_id="run-migration", dependencies=[SecretDep])
def run(
    name: str,
    repository: RepositoryDep,
    base_branch: Annotated[str | None, Query(alias="baseBranch")] = None,
) -> JSONResponse:
    if name not in available_migrations():
        raise NotFoundError(f"Unknown migration: {name}")
    owner, repo = repository
    options = MigrationOptions(
        owner=owner,
        repo=repo,
        base_branch=base_branch or settings.default_base_branch,
        os_versions=settings.os_versions,
    )
    result = run_migration(name, options, settings)
    return JSONResponse(status_code=result.status_code, content=result.to_response_body())
