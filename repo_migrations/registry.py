"""Name -> migration lookup.

File migrations run through the shared pipeline, repository actions talk to
the hosting API directly and never touch files.
"""

from collections.abc import Callable
from types import MappingProxyType

from repo_migrations.branch_protection import (
    get_branch_protection,
    modernize_branch_protection,
    update_branch_protection_os_versions,
)
from repo_migrations.logger import get_logger
from repo_migrations.migrations.base import Migration, MigrationOptions
from repo_migrations.migrations.files import FILE_MIGRATIONS
from repo_migrations.release import create_release_if_needed
from repo_migrations.result import (
    ErrorCode,
    MigrationResult,
    empty_result,
    error_result,
    stringify_error,
)
from repo_migrations.utils.github_rest import GithubRestApi

log = get_logger(__name__)

RepositoryAction = Callable[[GithubRestApi, MigrationOptions], MigrationResult]


def _modernize_branch_protection(
    api: GithubRestApi, options: MigrationOptions
) -> MigrationResult:
    return modernize_branch_protection(
        api, options.owner, options.repo, options.base_branch
    )


def _get_branch_protection(api: GithubRestApi, options: MigrationOptions) -> MigrationResult:
    return get_branch_protection(api, options.owner, options.repo, options.base_branch)


def _create_release_if_needed(
    api: GithubRestApi, options: MigrationOptions
) -> MigrationResult:
    return create_release_if_needed(api, options.owner, options.repo, options.base_branch)


def _update_branch_protection(
    api: GithubRestApi, options: MigrationOptions
) -> MigrationResult:
    try:
        update = update_branch_protection_os_versions(
            api, options.owner, options.repo, options.base_branch, options.os_versions
        )
    except Exception as e:
        log.exception(
            "updating branch protection failed", extra={"repository": options.full_name}
        )
        return error_result(ErrorCode.UPDATE_BRANCH_PROTECTION_FAILED, stringify_error(e))
    return empty_result(
        data={
            "updatedRulesets": update.updated_rulesets,
            "updatedClassicProtection": update.updated_classic_protection,
        }
    )


MIGRATIONS: MappingProxyType[str, Migration] = MappingProxyType({
    migration.name: migration for migration in FILE_MIGRATIONS
})

REPOSITORY_ACTIONS: MappingProxyType[str, RepositoryAction] = MappingProxyType({
    "modernize-branch-protection": _modernize_branch_protection,
    "create-release-if-needed": _create_release_if_needed,
    "update-branch-protection": _update_branch_protection,
    "get-branch-protection": _get_branch_protection,
})


def available_migrations() -> list[str]:
    return sorted([*MIGRATIONS, *REPOSITORY_ACTIONS])
