import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass

from pydantic import BaseModel, Field

from repo_migrations.config import OsVersions
from repo_migrations.result import ChangedFile, ErrorCode
from repo_migrations.utils.workspace import FileSource

# repository relative path -> content, None for an absent file
FileSet = Mapping[str, str | None]


class MigrationOptions(BaseModel, frozen=True):
    """Target repository and per-invocation parameters."""

    owner: str
    repo: str
    base_branch: str = "main"
    os_versions: OsVersions = Field(default_factory=OsVersions)
    node_version: str | None = Field(
        default=None, description="Node.js version, e.g. v22.11.0"
    )

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"


class PullRequestMetadata(BaseModel, frozen=True):
    branch_name: str
    commit_message: str
    pull_request_title: str


Scope = Callable[[FileSource], list[str]]
Transform = Callable[[FileSet, MigrationOptions], dict[str, str | None]]
Metadata = Callable[[list[ChangedFile], MigrationOptions], PullRequestMetadata]


@dataclass(frozen=True)
class Migration:
    """A named file transform plus the pull request describing it.

    ``scope`` selects the files to read, ``transform`` maps their current
    content to the new content and ``metadata`` names branch, commit and
    pull request once the changed files are known.
    """

    name: str
    error_code: ErrorCode
    scope: Scope
    transform: Transform
    metadata: Metadata
    requires_clone: bool = False
    requires_node_version: bool = False


def files(*paths: str) -> Scope:
    return lambda source: list(paths)


def workflow_files(*names: str) -> Scope:
    return files(*(f".github/workflows/{name}" for name in names))


def files_with_suffix(*suffixes: str, directory: str = "") -> Scope:
    def scope(source: FileSource) -> list[str]:
        return [
            path
            for path in source.list_files(suffixes)
            if path.startswith(directory)
        ]

    return scope


def per_file(
    update: Callable[[str, MigrationOptions], str],
) -> Transform:
    """Apply ``update`` to every present file of the scope."""

    def transform(file_set: FileSet, options: MigrationOptions) -> dict[str, str | None]:
        return {
            path: None if content is None else update(content, options)
            for path, content in file_set.items()
        }

    return transform


def create_if_missing(content: str) -> Transform:
    def transform(file_set: FileSet, options: MigrationOptions) -> dict[str, str | None]:
        return {
            path: content if current is None else current
            for path, current in file_set.items()
        }

    return transform


def timestamp() -> int:
    return int(time.time() * 1000)


def fixed_metadata(branch_name: str, title: str) -> Metadata:
    metadata = PullRequestMetadata(
        branch_name=branch_name, commit_message=title, pull_request_title=title
    )
    return lambda changed_files, options: metadata


def timestamped_metadata(prefix: str, title: str) -> Metadata:
    """Branch ``<prefix>-<milliseconds>``, unique across repeated runs."""

    def metadata(changed_files: list[ChangedFile], options: MigrationOptions) -> PullRequestMetadata:
        return PullRequestMetadata(
            branch_name=f"{prefix}-{timestamp()}",
            commit_message=title,
            pull_request_title=title,
        )

    return metadata


def diff_file_sets(before: FileSet, after: FileSet) -> list[ChangedFile]:
    """Byte comparison of two file sets, in the order of ``after``."""
    changed = []
    for path, content in after.items():
        previous = before.get(path)
        if content == previous:
            continue
        if content is None:
            changed.append(ChangedFile(path=path, type="deleted"))
        else:
            changed.append(ChangedFile(path=path, content=content))
    return changed
