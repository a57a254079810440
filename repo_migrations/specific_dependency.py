"""Bump one scoped dependency of a repository to a released version.

Only the ``package.json`` of the configured folder is edited, its lock file
is regenerated by ``npm install`` in a scratch directory holding nothing but
the new manifest.
"""

import json
import tempfile
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field
from sretoolbox.utils import retry

from repo_migrations.config import Settings
from repo_migrations.dependencies import NO_MATCHING_VERSION_MARKERS
from repo_migrations.errors import NoMatchingVersionError
from repo_migrations.logger import get_logger
from repo_migrations.pipeline import apply_migration_result
from repo_migrations.result import (
    ChangedFile,
    ErrorCode,
    MigrationResult,
    MigrationStatus,
    create_migration_result,
    empty_result,
    error_result,
    normalize_path,
    stringify_error,
)
from repo_migrations.transforms.node import strip_v
from repo_migrations.transforms.package_json import (
    NPM_SCOPE,
    find_dependency_key,
    stringify_json,
)
from repo_migrations.utils import git
from repo_migrations.utils.github_api import GithubRepositoryApi
from repo_migrations.utils.workspace import temporary_clone

log = get_logger(__name__)


class SpecificDependencyOptions(BaseModel):
    """Released repository and where its package is consumed."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    from_repo: str = Field(default="", alias="fromRepo")
    to_repo: str = Field(default="", alias="toRepo")
    to_folder: str = Field(default="", alias="toFolder")
    tag_name: str = Field(default="", alias="tagName")
    as_name: str | None = Field(
        default=None,
        alias="asName",
        description="Package name when it differs from the released repository",
    )

    @property
    def package_name(self) -> str:
        return self.as_name or self.from_repo

    @property
    def dependency_name(self) -> str:
        return f"{NPM_SCOPE}/{self.package_name}"

    @property
    def version(self) -> str:
        return strip_v(self.tag_name)

    @property
    def folder(self) -> str:
        return normalize_path(self.to_folder).rstrip("/")

    @property
    def pull_request_title(self) -> str:
        return f"feature: update {self.package_name} to version {self.version}"


def validate_options(owner: str, options: SpecificDependencyOptions) -> str | None:
    """Message describing the first invalid parameter, None when all are valid."""
    for name, value in (
        ("fromRepo", options.from_repo),
        ("toRepo", options.to_repo),
        ("toFolder", options.to_folder),
        ("tagName", options.tag_name),
        ("repositoryOwner", owner),
    ):
        if not value.strip():
            return f"Invalid or missing {name} parameter"
    if options.as_name is not None and not options.as_name.strip():
        return "Invalid asName parameter (must be a non-empty string if provided)"
    return None


def generate_lock_file(package_json: str, max_attempts: int = 3) -> str:
    """package-lock.json npm resolves for a manifest.

    Retried while npm does not see a just published version yet.
    """
    with tempfile.TemporaryDirectory(prefix="update-dependency-") as wd:
        Path(wd, "package.json").write_text(package_json, encoding="utf-8")
        cache = str(Path(wd, ".npm-cache"))

        @retry(exceptions=NoMatchingVersionError, max_attempts=max_attempts)
        def install() -> None:
            try:
                git.run(
                    ["npm", "install", "--ignore-scripts", "--prefer-online", "--cache", cache],
                    wd,
                )
            except git.CommandError as e:
                if any(marker in str(e) for marker in NO_MATCHING_VERSION_MARKERS):
                    log.warning("npm could not resolve a version", extra={"workspace": wd})
                    raise NoMatchingVersionError(str(e)) from e
                raise

        install()
        return Path(wd, "package-lock.json").read_text(encoding="utf-8")


def compute_dependency_update(
    wd: str, options: SpecificDependencyOptions, max_attempts: int = 3
) -> MigrationResult:
    """Changed manifest and lock file of a working copy.

    A folder without package.json and a dependency already at the version
    are no-ops, a manifest not listing the dependency is DEPENDENCY_NOT_FOUND.
    """
    prefix = f"{options.folder}/" if options.folder else ""
    package_json_path = f"{prefix}package.json"
    manifest_file = Path(wd, package_json_path)
    if not manifest_file.is_file():
        return empty_result()

    manifest = json.loads(manifest_file.read_text(encoding="utf-8"))
    name = options.dependency_name
    key = find_dependency_key(manifest, name)
    if key is None:
        return error_result(
            ErrorCode.DEPENDENCY_NOT_FOUND,
            f"Dependency {name} not found in {package_json_path}",
            pull_request_title=options.pull_request_title,
        )
    if manifest[key][name].lstrip("^~") == options.version:
        return empty_result()

    manifest[key][name] = f"^{options.version}"
    new_manifest = stringify_json(manifest)
    lock_file = generate_lock_file(new_manifest, max_attempts=max_attempts)
    title = options.pull_request_title
    return create_migration_result(
        status=MigrationStatus.SUCCESS,
        changed_files=[
            ChangedFile(path=package_json_path, content=new_manifest),
            ChangedFile(path=f"{prefix}package-lock.json", content=lock_file),
        ],
        branch_name=f"update-version/{options.from_repo}-{options.tag_name}",
        commit_message=title,
        pull_request_title=title,
    )


def update_specific_dependency(
    owner: str,
    options: SpecificDependencyOptions,
    api: GithubRepositoryApi,
    settings: Settings,
    dry_run: bool = False,
) -> MigrationResult:
    """Propose the dependency bump in ``owner/options.to_repo``."""
    try:
        with temporary_clone(owner, options.to_repo, settings.github.clone_url) as wd:
            result = compute_dependency_update(
                wd, options, max_attempts=settings.dependency_update.max_attempts
            )
        if dry_run or result.is_error or not result.has_changes:
            return result
        return apply_migration_result(
            api, result, settings.default_base_branch, auto_merge=settings.auto_merge
        )
    except Exception as e:
        log.exception(
            "updating dependency failed",
            extra={
                "repository": f"{owner}/{options.to_repo}",
                "dependency": options.dependency_name,
            },
        )
        return error_result(
            ErrorCode.UPDATE_DEPENDENCIES_FAILED,
            stringify_error(e),
            pull_request_title=options.pull_request_title,
        )
