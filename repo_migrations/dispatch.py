"""Entry points shared by the HTTP surface and the CLI.

Builds the hosting API clients from settings, picks the workspace a
migration needs and turns every failure into a result.
"""

from repo_migrations.branch_protection import update_branch_protection_os_versions
from repo_migrations.config import Settings, load_dependency_config
from repo_migrations.dependencies import update_dependencies
from repo_migrations.logger import get_logger
from repo_migrations.migrations.base import MigrationOptions
from repo_migrations.pipeline import apply_migration_result, compute_migration
from repo_migrations.registry import MIGRATIONS, REPOSITORY_ACTIONS
from repo_migrations.release import BUILTIN_EXTENSIONS_REPOSITORY, handle_release_released
from repo_migrations.result import (
    ErrorCode,
    MigrationResult,
    empty_result,
    error_result,
    stringify_error,
)
from repo_migrations.specific_dependency import (
    SpecificDependencyOptions,
    update_specific_dependency,
    validate_options,
)
from repo_migrations.utils.github_api import GithubRepositoryApi
from repo_migrations.utils.github_rest import GithubRestApi
from repo_migrations.utils.nodejs import get_latest_node_version
from repo_migrations.utils.workspace import (
    LocalFileSource,
    RemoteFileSource,
    temporary_clone,
)

log = get_logger(__name__)


def create_repository_api(settings: Settings, owner: str, repo: str) -> GithubRepositoryApi:
    return GithubRepositoryApi(
        owner,
        repo,
        token=settings.github.token,
        github_api_url=settings.github.api_url,
        timeout=settings.github.timeout,
    )


def create_rest_api(settings: Settings) -> GithubRestApi:
    return GithubRestApi(
        token=settings.github.token,
        api_url=settings.github.api_url,
        api_version=settings.github.api_version,
        timeout=settings.github.timeout,
    )


def parse_repository(name: str) -> tuple[str, str] | None:
    owner, _, repo = name.partition("/")
    if not owner or not repo:
        return None
    return owner, repo


def run_migration(
    name: str,
    options: MigrationOptions,
    settings: Settings,
    dry_run: bool = False,
) -> MigrationResult:
    """Run a registered migration against one repository.

    With ``dry_run`` the computed result is returned without creating a
    branch or pull request.
    """
    if name in REPOSITORY_ACTIONS:
        if dry_run:
            return error_result(
                ErrorCode.VALIDATION_ERROR, f"{name} does not support dry runs"
            )
        log.info("running repository action", extra={"migration": name, "repository": options.full_name})
        with create_rest_api(settings) as rest_api:
            return REPOSITORY_ACTIONS[name](rest_api, options)

    migration = MIGRATIONS.get(name)
    if migration is None:
        return error_result(ErrorCode.VALIDATION_ERROR, f"Unknown migration: {name}")

    log.info("running migration", extra={"migration": name, "repository": options.full_name})
    try:
        if migration.requires_node_version and not options.node_version:
            options = options.model_copy(update={"node_version": get_latest_node_version()})
        with create_repository_api(settings, options.owner, options.repo) as api:
            # raises for a missing base branch, every file would read as absent
            base_sha = api.get_branch_sha(options.base_branch)
            if migration.requires_clone:
                with temporary_clone(
                    options.owner, options.repo, settings.github.clone_url
                ) as wd:
                    result = compute_migration(migration, LocalFileSource(wd), options)
            else:
                result = compute_migration(
                    migration, RemoteFileSource(api, base_sha), options
                )
            if dry_run or result.is_error:
                return result
            result = apply_migration_result(
                api, result, options.base_branch, auto_merge=settings.auto_merge
            )
    except Exception as e:
        log.exception("migration failed", extra={"migration": name, "repository": options.full_name})
        return error_result(migration.error_code, stringify_error(e))
    log.info(
        "migration finished",
        extra={
            "migration": name,
            "repository": options.full_name,
            "changed_files": len(result.changed_files),
        },
    )
    return result


def update_github_actions(
    owner: str, repo: str, settings: Settings, base_branch: str | None = None
) -> MigrationResult:
    """Bump OS runners in workflows, then in required status checks."""
    base_branch = base_branch or settings.default_base_branch
    options = MigrationOptions(
        owner=owner,
        repo=repo,
        base_branch=base_branch,
        os_versions=settings.os_versions,
    )
    result = run_migration("update-github-actions", options, settings)
    if result.is_error:
        return error_result(ErrorCode.GITHUB_ACTIONS_UPDATE_FAILED, result.error_message or "")
    try:
        with create_rest_api(settings) as rest_api:
            protection = update_branch_protection_os_versions(
                rest_api, owner, repo, base_branch, settings.os_versions
            )
    except Exception as e:
        log.exception("updating branch rulesets failed", extra={"repository": f"{owner}/{repo}"})
        return error_result(
            ErrorCode.GITHUB_ACTIONS_UPDATE_FAILED,
            f"failed to update branch rulesets for {owner}/{repo}: {stringify_error(e)}",
        )
    return result.model_copy(
        update={
            "data": {
                "updatedRulesets": protection.updated_rulesets,
                "updatedClassicProtection": protection.updated_classic_protection,
            }
        }
    )


def run_update_dependencies(
    owner: str, repo: str, settings: Settings, node_version: str | None = None
) -> MigrationResult:
    try:
        node_version = node_version or get_latest_node_version()
        with create_repository_api(settings, owner, repo) as api:
            return update_dependencies(owner, repo, api, settings, node_version=node_version)
    except Exception as e:
        log.exception("dependency update failed", extra={"repository": f"{owner}/{repo}"})
        return error_result(ErrorCode.DEPENDENCY_UPDATE_FAILED, stringify_error(e))


def run_update_specific_dependency(
    owner: str,
    options: SpecificDependencyOptions,
    settings: Settings,
    dry_run: bool = False,
) -> MigrationResult:
    if error := validate_options(owner, options):
        return error_result(ErrorCode.VALIDATION_ERROR, error)
    log.info(
        "updating dependency",
        extra={
            "repository": f"{owner}/{options.to_repo}",
            "dependency": options.dependency_name,
            "tag": options.tag_name,
        },
    )
    try:
        with create_repository_api(settings, owner, options.to_repo) as api:
            return update_specific_dependency(
                owner, options, api, settings, dry_run=dry_run
            )
    except Exception as e:
        log.exception("dependency update failed", extra={"repository": f"{owner}/{options.to_repo}"})
        return error_result(ErrorCode.UPDATE_DEPENDENCIES_FAILED, stringify_error(e))


def release_released(
    owner: str,
    repo: str,
    tag_name: str,
    settings: Settings,
    dry_run: bool = False,
) -> MigrationResult:
    """Handle a published release and propose the resulting changes."""
    result = handle_release_released(
        owner,
        repo,
        tag_name,
        load_dependency_config(settings.dependencies_file),
        clone_url=settings.github.clone_url,
    )
    if dry_run or result.is_error or not result.has_changes:
        return result
    try:
        with create_repository_api(settings, owner, BUILTIN_EXTENSIONS_REPOSITORY) as api:
            return apply_migration_result(
                api, result, settings.default_base_branch, auto_merge=settings.auto_merge
            )
    except Exception as e:
        log.exception("handling release failed", extra={"repository": f"{owner}/{repo}"})
        return error_result(ErrorCode.UPDATE_DEPENDENCIES_FAILED, stringify_error(e))


def update_node_version_many(
    repositories: list[str],
    settings: Settings,
    base_branch: str | None = None,
    node_version: str | None = None,
) -> MigrationResult:
    """Run update-node-version for several repositories, one after another."""
    if not repositories:
        return error_result(
            ErrorCode.VALIDATION_ERROR,
            "repositoryNames is required and must be a non-empty array",
        )
    parsed = []
    for name in repositories:
        repository = parse_repository(name)
        if repository is None:
            return error_result(
                ErrorCode.VALIDATION_ERROR,
                f"Invalid repository name format: {name}. Expected format: owner/repo",
            )
        parsed.append((name, repository))

    try:
        node_version = node_version or get_latest_node_version()
    except Exception as e:
        log.exception("fetching node version failed")
        return error_result(ErrorCode.UPDATE_NODE_VERSION_FAILED, stringify_error(e))

    results = []
    for name, (owner, repo) in parsed:
        options = MigrationOptions(
            owner=owner,
            repo=repo,
            base_branch=base_branch or settings.default_base_branch,
            node_version=node_version,
        )
        result = run_migration("update-node-version", options, settings)
        entry = {"repository": name, "success": not result.is_error}
        if result.is_error:
            entry["error"] = result.error_message or result.error_code
        else:
            entry["message"] = result.to_response_body()["message"]
        results.append(entry)

    successful = sum(1 for entry in results if entry["success"])
    return empty_result(
        data={
            "total": len(repositories),
            "successful": successful,
            "failed": len(results) - successful,
            "results": results,
        }
    )
