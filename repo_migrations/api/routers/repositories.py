"""Endpoints with their own response contract.

These predate the generic ``/migrations/{name}`` handler and keep answering
in plain text on success.
"""

import threading
from typing import Annotated

from fastapi import APIRouter, Query, status
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, Field

from repo_migrations.api.dependencies import RepositoryDep, SecretDep
from repo_migrations.api.exceptions import (
    MigrationFailedError,
    NotFoundError,
    RequestRejectedError,
)
from repo_migrations.config import settings
from repo_migrations.dispatch import (
    create_repository_api,
    parse_repository,
    release_released,
    run_update_dependencies,
    run_update_specific_dependency,
    update_github_actions,
    update_node_version_many,
)
from repo_migrations.logger import get_logger
from repo_migrations.result import ErrorCode
from repo_migrations.specific_dependency import SpecificDependencyOptions

log = get_logger(__name__)

router = APIRouter(tags=["Repositories"], dependencies=[SecretDep])

# dependency updates are processed one at a time
_dependency_updates = threading.Lock()


class UpdateNodeVersionRequest(BaseModel):
    repository_names: list[str] = Field(default_factory=list, alias="repositoryNames")
    base_branch: str | None = Field(default=None, alias="baseBranch")


class UpdateSpecificDependencyRequest(SpecificDependencyOptions):
    repository_owner: str = Field(default="", alias="repositoryOwner")


@router.api_route(
    "/update-github-actions",
    methods=["GET", "POST"],
    operation_id="update-github-actions",
    response_class=PlainTextResponse,
)
def github_actions(repository: RepositoryDep) -> str:
    """Bump CI OS runners and the required checks referring to them."""
    owner, repo = repository
    result = update_github_actions(owner, repo, settings)
    if result.is_error:
        raise MigrationFailedError(
            "Failed to update GitHub Actions",
            details=result.error_message or "",
            code=ErrorCode.GITHUB_ACTIONS_UPDATE_FAILED,
        )
    if not result.has_changes:
        return "No workflow updates needed"
    return "GitHub Actions update PR created successfully"


@router.post(
    "/update-dependencies",
    operation_id="update-dependencies",
    response_class=PlainTextResponse,
)
def dependencies(
    repository_name: Annotated[str | None, Query(alias="repositoryName")] = None,
) -> str:
    """Run the repository's dependency update script and open or update its PR."""
    if not repository_name:
        raise RequestRejectedError("Missing repositoryName parameter")
    parsed = parse_repository(repository_name)
    if parsed is None:
        raise RequestRejectedError("Invalid repositoryName parameter")
    owner, repo = parsed

    expected_owner = settings.dependency_update.owner
    if owner != expected_owner:
        raise RequestRejectedError(f"Repository owner must be {expected_owner}")

    with create_repository_api(settings, owner, repo) as api:
        if not api.repository_exists():
            raise NotFoundError("Repository not found")

    with _dependency_updates:
        result = run_update_dependencies(owner, repo, settings)
    if result.is_error:
        raise MigrationFailedError(
            "Failed to update dependencies",
            details=result.error_message or "",
            code=ErrorCode.DEPENDENCY_UPDATE_FAILED,
        )
    return (result.data or {}).get("message", "No changes to commit")


@router.post("/release-released", operation_id="release-released")
def release(
    repository: RepositoryDep,
    tag_name: Annotated[str, Query(alias="tagName", min_length=1)],
) -> JSONResponse:
    """Propagate a published release to the repositories depending on it."""
    owner, repo = repository
    result = release_released(owner, repo, tag_name, settings)
    return JSONResponse(status_code=result.status_code, content=result.to_response_body())


@router.post(
    "/multi-migrations/update-node-version",
    operation_id="update-node-version-many",
    status_code=status.HTTP_200_OK,
)
def node_version_many(request: UpdateNodeVersionRequest) -> JSONResponse:
    """Update the Node.js version of several repositories sequentially."""
    result = update_node_version_many(
        request.repository_names, settings, base_branch=request.base_branch
    )
    return JSONResponse(status_code=result.status_code, content=result.to_response_body())


@router.post("/update-specific-dependency", operation_id="update-specific-dependency")
def specific_dependency(request: UpdateSpecificDependencyRequest) -> JSONResponse:
    """Bump one dependency of a repository to a released version."""
    result = run_update_specific_dependency(request.repository_owner, request, settings)
    return JSONResponse(status_code=result.status_code, content=result.to_response_body())
