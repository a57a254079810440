"""The clone -> transform -> diff -> branch -> commit -> PR pipeline.

Written once and shared by every file migration: :func:`compute_migration`
turns a :class:`Migration` and a file source into a result,
:func:`apply_migration_result` proposes that result as a pull request.
"""

from types import MappingProxyType

from github import GithubException

from repo_migrations.errors import MigrationError
from repo_migrations.logger import get_logger
from repo_migrations.migrations.base import Migration, MigrationOptions, diff_file_sets
from repo_migrations.result import (
    ChangedFile,
    MigrationResult,
    MigrationStatus,
    create_migration_result,
    empty_result,
    error_result,
    stringify_error,
)
from repo_migrations.utils.github_api import GithubRepositoryApi
from repo_migrations.utils.workspace import FileSource

log = get_logger(__name__)


def compute_migration(
    migration: Migration, source: FileSource, options: MigrationOptions
) -> MigrationResult:
    """Run a migration against a file source without side effects.

    Byte-identical output yields the empty result.
    """
    try:
        before = {path: source.read(path) for path in migration.scope(source)}
        after = migration.transform(MappingProxyType(before), options)
        changed_files = diff_file_sets(before, after)
        if not changed_files:
            return empty_result()
        metadata = migration.metadata(changed_files, options)
        return create_migration_result(
            status=MigrationStatus.SUCCESS,
            changed_files=changed_files,
            branch_name=metadata.branch_name,
            commit_message=metadata.commit_message,
            pull_request_title=metadata.pull_request_title,
        )
    except MigrationError as e:
        log.error(
            "migration failed",
            extra={"migration": migration.name, "repository": options.full_name},
        )
        return error_result(e.error_code, str(e))
    except Exception as e:
        log.exception(
            "migration failed",
            extra={"migration": migration.name, "repository": options.full_name},
        )
        return error_result(migration.error_code, stringify_error(e))


def _needs_update(api: GithubRepositoryApi, changed_file: ChangedFile, ref: str) -> bool:
    current = api.get_file(changed_file.path, ref=ref)
    if changed_file.deleted:
        return current is not None
    return current != changed_file.content


def apply_migration_result(
    api: GithubRepositoryApi,
    result: MigrationResult,
    base_branch: str,
    auto_merge: bool = True,
) -> MigrationResult:
    """Create branch, commit and pull request for a successful result.

    Files already matching the base branch are dropped; when none remains
    the empty result is returned and nothing is created. A missing base
    branch raises.
    """
    if result.is_error or not result.changed_files:
        return result

    base_sha = api.get_branch_sha(base_branch)
    changed_files = [
        f for f in result.changed_files if _needs_update(api, f, base_branch)
    ]
    if not changed_files:
        return empty_result()

    branch = result.branch_name
    title = result.pull_request_title
    api.create_branch(branch, base_sha)
    api.commit_files(branch, base_sha, changed_files, result.commit_message or title)
    pull_request = api.create_pull_request(head=branch, base=base_branch, title=title)
    log.info(
        "opened pull request",
        extra={"repository": str(api), "branch": branch, "url": pull_request.html_url},
    )
    if auto_merge:
        try:
            api.enable_auto_merge(pull_request)
        except GithubException as e:
            log.warning(
                "could not enable auto-merge",
                extra={"repository": str(api), "error": str(e)},
            )
    return result.model_copy(
        update={"changed_files": changed_files, "new_branch": branch}
    )
