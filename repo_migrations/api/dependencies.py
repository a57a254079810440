"""Request dependencies shared by the routers."""

import secrets
from typing import Annotated

from fastapi import Depends, Query

from repo_migrations.api.exceptions import RequestRejectedError, UnauthorizedError
from repo_migrations.config import settings
from repo_migrations.dispatch import parse_repository


def verify_secret(secret: Annotated[str, Query()] = "") -> None:
    """Compare the secret query parameter with the configured one.

    An unconfigured secret rejects every request.
    """
    if not settings.secret or not secrets.compare_digest(secret, settings.secret):
        raise UnauthorizedError()


def get_repository(
    repository: Annotated[str | None, Query()] = None,
) -> tuple[str, str]:
    """owner/repo from the repository query parameter."""
    if not repository:
        raise RequestRejectedError("Missing repository parameter")
    parsed = parse_repository(repository)
    if parsed is None:
        raise RequestRejectedError("Invalid repository parameter")
    return parsed


SecretDep = Depends(verify_secret)
RepositoryDep = Annotated[tuple[str, str], Depends(get_repository)]
