"""Dependency updates driven by the repository's own update script.

The script (``scripts/update-dependencies.sh`` by default) runs in a fresh
clone. npm occasionally reports a just-published version as missing
(ETARGET); only that failure is retried, every other one is fatal.
"""

from collections.abc import Callable
from pathlib import Path

from sretoolbox.utils import retry

from repo_migrations.config import Settings
from repo_migrations.errors import NoMatchingVersionError
from repo_migrations.logger import get_logger
from repo_migrations.migrations.base import timestamp
from repo_migrations.pipeline import apply_migration_result
from repo_migrations.result import (
    ErrorCode,
    MigrationResult,
    MigrationStatus,
    create_migration_result,
    empty_result,
    error_result,
    stringify_error,
)
from repo_migrations.transforms.node import compute_new_nvmrc_content, ensure_lerna_excluded
from repo_migrations.utils import git
from repo_migrations.utils.github_api import GithubRepositoryApi
from repo_migrations.utils.workspace import temporary_clone

log = get_logger(__name__)

UPDATE_BRANCH_PREFIX = "update-dependencies-"
NO_MATCHING_VERSION_MARKERS = ("ETARGET", "No matching version found")


def _rewrite(path: Path, update: Callable[[str], str]) -> None:
    if not path.is_file():
        return
    content = path.read_text(encoding="utf-8")
    updated = update(content)
    if updated != content:
        path.write_text(updated, encoding="utf-8")


def prepare_workspace(wd: str, script_path: str, node_version: str | None) -> None:
    """Bump .nvmrc and keep lerna out of the ncu calls of the update script."""
    if node_version:
        _rewrite(
            Path(wd, ".nvmrc"),
            lambda content: compute_new_nvmrc_content(content, node_version),
        )
    _rewrite(Path(wd, script_path), ensure_lerna_excluded)


def run_update_script(
    wd: str,
    script_path: str,
    node_version: str | None = None,
    max_attempts: int = 3,
) -> None:
    """Run the update script, retrying while npm reports ETARGET.

    The working tree is reset after every failed attempt and prepared again
    before the next one.
    """

    @retry(exceptions=NoMatchingVersionError, max_attempts=max_attempts)
    def attempt() -> None:
        prepare_workspace(wd, script_path, node_version)
        try:
            git.run(["bash", script_path], wd)
        except git.CommandError as e:
            git.reset_hard(wd)
            if any(marker in str(e) for marker in NO_MATCHING_VERSION_MARKERS):
                log.warning("npm could not resolve a version", extra={"workspace": wd})
                raise NoMatchingVersionError(str(e)) from e
            raise

    attempt()


def update_dependencies(
    owner: str,
    repo: str,
    api: GithubRepositoryApi,
    settings: Settings,
    node_version: str | None = None,
) -> MigrationResult:
    """Run the update script and propose its changes.

    An open update-dependencies pull request of the bot is updated in place,
    otherwise a new ``update-dependencies-<timestamp>`` branch and pull
    request are created.
    """
    config = settings.dependency_update
    title = config.pull_request_title
    try:
        existing = api.find_open_pull_request(
            title, UPDATE_BRANCH_PREFIX, author_id=config.bot_user_id
        )
        branch = existing.head.ref if existing else f"{UPDATE_BRANCH_PREFIX}{timestamp()}"

        with temporary_clone(owner, repo, settings.github.clone_url) as wd:
            run_update_script(
                wd,
                config.script_path,
                node_version=node_version,
                max_attempts=config.max_attempts,
            )
            changed_files = git.compute_changed_files(wd)

        if not changed_files:
            return empty_result(data={"message": "No changes to commit"})

        result = create_migration_result(
            status=MigrationStatus.SUCCESS,
            changed_files=changed_files,
            branch_name=branch,
            commit_message=title,
            pull_request_title=title,
        )

        if existing:
            head_sha = api.get_branch_sha(branch)
            api.commit_files(branch, head_sha, changed_files, title)
            log.info(
                "updated dependencies pull request",
                extra={"repository": f"{owner}/{repo}", "branch": branch},
            )
            return result.model_copy(
                update={"data": {"message": "Dependencies update PR updated successfully"}}
            )

        applied = apply_migration_result(
            api, result, settings.default_base_branch, auto_merge=settings.auto_merge
        )
        if not applied.has_changes:
            return empty_result(data={"message": "No changes to commit"})
        return applied.model_copy(
            update={"data": {"message": "Dependencies update PR created successfully"}}
        )
    except Exception as e:
        log.exception("dependency update failed", extra={"repository": f"{owner}/{repo}"})
        return error_result(
            ErrorCode.DEPENDENCY_UPDATE_FAILED, stringify_error(e), pull_request_title=title
        )
