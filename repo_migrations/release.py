"""Release driven migrations.

``handle_release_released`` reacts to a published release of one of the
editor's repositories, ``create_release_if_needed`` cuts a new minor release
when the base branch moved past the latest tag.
"""

from repo_migrations.config import DependencyConfig
from repo_migrations.errors import GithubApiError
from repo_migrations.logger import get_logger
from repo_migrations.migrations.base import (
    Migration,
    MigrationOptions,
    files,
    fixed_metadata,
    per_file,
)
from repo_migrations.pipeline import compute_migration
from repo_migrations.result import (
    ErrorCode,
    MigrationResult,
    MigrationStatus,
    create_migration_result,
    empty_result,
    error_result,
    stringify_error,
)
from repo_migrations.transforms.node import increment_minor_version, strip_v
from repo_migrations.transforms.package_json import update_builtin_extension_version
from repo_migrations.utils.github_rest import GithubRestApi
from repo_migrations.utils.workspace import LocalFileSource, temporary_clone

log = get_logger(__name__)

BUILTIN_EXTENSIONS_REPOSITORY = "lvce-editor"
BUILTIN_EXTENSIONS_PATH = (
    "packages/build/src/parts/DownloadBuiltinExtensions/builtinExtensions.json"
)
# released repositories that are not shipped as builtin extensions
NOT_BUILTIN_EXTENSIONS = frozenset({"renderer-process"})


def builtin_extensions_migration(released_repository: str, tag_name: str) -> Migration:
    version = strip_v(tag_name)
    title = f"feature: update {released_repository} to version {tag_name}"
    return Migration(
        name="update-builtin-extensions",
        error_code=ErrorCode.UPDATE_DEPENDENCIES_FAILED,
        scope=files(BUILTIN_EXTENSIONS_PATH),
        transform=per_file(
            lambda content, _: update_builtin_extension_version(
                content, released_repository, version
            )
        ),
        metadata=fixed_metadata(
            f"feature/update-{released_repository}-to-{tag_name}", title
        ),
    )


def update_repository_dependencies(
    dependency_config: DependencyConfig, released_repository: str
) -> MigrationResult:
    """List the repositories depending on a released repository.

    The dependents are updated by their own update-dependencies runs, so
    this never changes files.
    """
    try:
        dependents = dependency_config.released_by(released_repository)
        if not dependents:
            return empty_result()
        return empty_result(
            data={"dependents": [dependency.to_repo for dependency in dependents]}
        )
    except Exception as e:
        log.exception("dependency lookup failed", extra={"repository": released_repository})
        return error_result(
            ErrorCode.UPDATE_DEPENDENCIES_FAILED,
            stringify_error(e),
            pull_request_title=f"feature: update dependencies for {released_repository}",
        )


def handle_release_released(
    owner: str,
    released_repository: str,
    tag_name: str,
    dependency_config: DependencyConfig,
    clone_url: str = "https://github.com",
) -> MigrationResult:
    """Aggregate the sub-migrations triggered by a released tag.

    The first failing sub-migration is returned unchanged.
    """
    title = f"feature: handle release {released_repository}@{tag_name}"
    try:
        dependencies = update_repository_dependencies(
            dependency_config, released_repository
        )
        if dependencies.is_error:
            return dependencies
        changed_files = list(dependencies.changed_files)

        if released_repository not in NOT_BUILTIN_EXTENSIONS:
            options = MigrationOptions(owner=owner, repo=BUILTIN_EXTENSIONS_REPOSITORY)
            with temporary_clone(owner, BUILTIN_EXTENSIONS_REPOSITORY, clone_url) as wd:
                builtin_extensions = compute_migration(
                    builtin_extensions_migration(released_repository, tag_name),
                    LocalFileSource(wd),
                    options,
                )
            if builtin_extensions.is_error:
                return builtin_extensions
            changed_files.extend(builtin_extensions.changed_files)

        if not changed_files:
            return empty_result(data=dependencies.data)
        return create_migration_result(
            status=MigrationStatus.SUCCESS,
            changed_files=changed_files,
            branch_name=f"feature/handle-release-{released_repository}-{tag_name}",
            commit_message=title,
            pull_request_title=title,
            data=dependencies.data,
        )
    except Exception as e:
        log.exception(
            "handling release failed",
            extra={"repository": released_repository, "tag": tag_name},
        )
        return error_result(
            ErrorCode.UPDATE_DEPENDENCIES_FAILED,
            stringify_error(e),
            pull_request_title=title,
        )


def _latest_tag(api: GithubRestApi, owner: str, repo: str) -> tuple[str, str] | None:
    """Name of the latest release tag and the revision to compare from.

    Repositories without releases fall back to their newest tag.
    """
    release = api.get_latest_release(owner, repo)
    match release.status:
        case 200:
            tag_name = release.data["tag_name"]
            return tag_name, tag_name
        case 404:
            pass
        case _:
            return None

    tags = api.list_tags(owner, repo, per_page=1)
    if tags.status != 200 or not isinstance(tags.data, list) or not tags.data:
        return None
    tag_name = tags.data[0]["name"]
    tag_ref = api.get_tag_ref(owner, repo, tag_name)
    if tag_ref.status != 200:
        return None
    return tag_name, tag_ref.data["object"]["sha"]


def _commits_since(
    api: GithubRestApi, owner: str, repo: str, base: str, head: str
) -> tuple[bool, int]:
    comparison = api.compare(owner, repo, base, head)
    if comparison.status != 200:
        # an unknown base is treated as "moved on"
        return True, 0
    ahead_by = comparison.data.get("ahead_by") or 0
    return comparison.data.get("status") != "identical" and ahead_by > 0, ahead_by


def _plural(count: int) -> str:
    return "commit" if count == 1 else "commits"


def create_release_if_needed(
    api: GithubRestApi, owner: str, repo: str, base_branch: str = "main"
) -> MigrationResult:
    try:
        latest = _latest_tag(api, owner, repo)
        if latest is None:
            return empty_result(
                data={"message": "No releases or tags found. Skipping release creation."}
            )
        tag_name, base = latest

        branch_ref = api.get_branch_ref(owner, repo, base_branch)
        if branch_ref.status != 200:
            raise GithubApiError(branch_ref.status, "Failed to get branch ref")
        head = branch_ref.data["object"]["sha"]

        has_commits, commit_count = _commits_since(api, owner, repo, base, head)
        if not has_commits:
            return empty_result(
                data={"message": f"No new commits since {tag_name}. No release needed."}
            )

        new_version = increment_minor_version(tag_name)
        summary = f"{commit_count} new {_plural(commit_count)} since {tag_name}"
        created = api.create_release(
            owner,
            repo,
            tag_name=new_version,
            target_commitish=base_branch,
            body=f"Release {new_version} with {summary}",
        )
        if created.status != 201:
            raise GithubApiError(
                created.status, f"Failed to create release {created.data}"
            )
        log.info(
            "created release",
            extra={"repository": f"{owner}/{repo}", "tag": new_version},
        )
        return empty_result(
            data={
                "message": f"Created new release {new_version} with {summary}",
                "releaseTag": new_version,
            }
        )
    except Exception as e:
        log.exception("creating release failed", extra={"repository": f"{owner}/{repo}"})
        return error_result(ErrorCode.CREATE_RELEASE_IF_NEEDED_FAILED, stringify_error(e))
