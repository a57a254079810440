import os
import shutil
import tempfile
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Protocol

from repo_migrations.logger import get_logger
from repo_migrations.utils import git
from repo_migrations.utils.github_api import GithubRepositoryApi

log = get_logger(__name__)

SKIPPED_DIRECTORIES = frozenset({".git", "node_modules"})


class FileSource(Protocol):
    """Read access to the files of one repository revision."""

    def read(self, path: str) -> str | None: ...

    def list_files(self, suffixes: Iterable[str] = ()) -> list[str]: ...


@contextmanager
def temporary_clone(
    owner: str,
    repo: str,
    clone_url: str = "https://github.com",
    depth: int | None = 1,
) -> Iterator[str]:
    """Clone a repository into a fresh temp directory.

    The directory is removed when the context exits, including on errors.
    """
    wd = tempfile.mkdtemp(prefix=f"migration-{owner}-{repo}-")
    try:
        git.clone(f"{clone_url.rstrip('/')}/{owner}/{repo}.git", wd, depth=depth)
        yield wd
    finally:
        shutil.rmtree(wd, ignore_errors=True)
        log.debug("removed workspace", extra={"workspace": wd})


class LocalFileSource:
    """Files of a local working copy."""

    def __init__(self, root: str) -> None:
        self.root = Path(root)

    def read(self, path: str) -> str | None:
        file_path = self.root / path
        if not file_path.is_file():
            return None
        return file_path.read_text(encoding="utf-8")

    def list_files(self, suffixes: Iterable[str] = ()) -> list[str]:
        suffixes = tuple(suffixes)
        files = []
        for dirpath, dirnames, filenames in os.walk(self.root):
            dirnames[:] = [d for d in dirnames if d not in SKIPPED_DIRECTORIES]
            for filename in filenames:
                if suffixes and not filename.endswith(suffixes):
                    continue
                files.append(
                    Path(dirpath, filename).relative_to(self.root).as_posix()
                )
        return sorted(files)


class RemoteFileSource:
    """Files of a branch, read through the hosting API without a clone."""

    def __init__(self, api: GithubRepositoryApi, ref: str) -> None:
        self.api = api
        self.ref = ref
        self._files: list[str] | None = None

    def read(self, path: str) -> str | None:
        return self.api.get_file(path, ref=self.ref)

    def list_files(self, suffixes: Iterable[str] = ()) -> list[str]:
        if self._files is None:
            self._files = sorted(self.api.list_files(ref=self.ref))
        suffixes = tuple(suffixes)
        if not suffixes:
            return list(self._files)
        return [f for f in self._files if f.endswith(suffixes)]
