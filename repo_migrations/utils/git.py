import subprocess
from collections.abc import Callable
from pathlib import Path

from pydantic import BaseModel

from repo_migrations.errors import ChangedFileReadError
from repo_migrations.result import ChangedFile, normalize_path


class CommandError(Exception):
    pass


class GitError(CommandError):
    pass


class ParsedStatusEntry(BaseModel, frozen=True):
    status: str
    file_path: str


StatusFilter = Callable[[str], bool]


def run(cmd: list[str], wd: str, error: type[CommandError] = CommandError) -> str:
    result = subprocess.run(cmd, cwd=wd, capture_output=True, text=True, check=False)
    if result.returncode != 0:
        raise error(f"{' '.join(cmd)} failed: {result.stderr or result.stdout}")
    return result.stdout


def clone(repo_url: str, wd: str, depth: int | None = None) -> None:
    cmd = ["git", "clone"]
    if depth:
        cmd += ["--depth", str(depth)]
    cmd += [repo_url, wd]
    result = subprocess.run(cmd, cwd=wd, capture_output=True, text=True, check=False)
    if result.returncode != 0:
        raise GitError(f"git clone failed: {repo_url}: {result.stderr}")


def status_porcelain(wd: str) -> str:
    # -z keeps paths verbatim, without quoting or escaping
    return run(
        ["git", "status", "--porcelain", "-z", "--untracked-files=all"], wd, GitError
    )


def reset_hard(wd: str) -> None:
    run(["git", "reset", "--hard"], wd, GitError)


def parse_status(report: str) -> list[ParsedStatusEntry]:
    """Parse ``git status --porcelain -z`` output.

    Entries are NUL separated. Entries shorter than four characters cannot
    hold a two letter status, the separating space and a path and are
    skipped. A rename or copy is followed by its source path, which is
    dropped. Order is preserved.
    """
    entries = []
    fields = iter(report.split("\0"))
    for field in fields:
        if len(field) < 4:
            continue
        status = field[:2]
        entries.append(ParsedStatusEntry(status=status, file_path=field[3:]))
        if "R" in status or "C" in status:
            next(fields, None)
    return entries


def is_not_deleted(status: str) -> bool:
    return "D" not in status


def compute_changed_files(
    wd: str, status_filter: StatusFilter = is_not_deleted
) -> list[ChangedFile]:
    """Full content of every changed file of a working copy.

    Raises ChangedFileReadError if a reported file can not be read.
    """
    changed_files = []
    for entry in parse_status(status_porcelain(wd)):
        if not status_filter(entry.status):
            continue
        try:
            content = Path(wd, entry.file_path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ChangedFileReadError(entry.file_path, e) from e
        changed_files.append(
            ChangedFile(path=normalize_path(entry.file_path), content=content)
        )
    return changed_files
