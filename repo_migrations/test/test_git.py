from pathlib import Path

import pytest

from repo_migrations.errors import ChangedFileReadError
from repo_migrations.utils import git
from repo_migrations.utils.git import ParsedStatusEntry


def test_parse_status() -> None:
    report = " M src/file.ts\0A  src/new.ts\0?? src/x.ts\0"
    assert git.parse_status(report) == [
        ParsedStatusEntry(status=" M", file_path="src/file.ts"),
        ParsedStatusEntry(status="A ", file_path="src/new.ts"),
        ParsedStatusEntry(status="??", file_path="src/x.ts"),
    ]


def test_parse_status_skips_short_entries() -> None:
    assert git.parse_status("\0M\0 M \0 D a\0") == [
        ParsedStatusEntry(status=" D", file_path="a"),
    ]


def test_parse_status_keeps_paths_verbatim() -> None:
    report = "?? café.txt\0?? my file.txt\0 M trailing \0"
    assert [entry.file_path for entry in git.parse_status(report)] == [
        "café.txt",
        "my file.txt",
        "trailing ",
    ]


def test_parse_status_drops_rename_source() -> None:
    report = "R  src/new name.ts\0src/old name.ts\0 M b.ts\0"
    assert git.parse_status(report) == [
        ParsedStatusEntry(status="R ", file_path="src/new name.ts"),
        ParsedStatusEntry(status=" M", file_path="b.ts"),
    ]


def test_is_not_deleted() -> None:
    assert git.is_not_deleted(" M")
    assert git.is_not_deleted("??")
    assert not git.is_not_deleted(" D")
    assert not git.is_not_deleted("D ")


def test_compute_changed_files(git_repo) -> None:
    repo = git_repo({"README.md": "old\n", "src/gone.ts": "x\n"})
    (repo / "README.md").write_text("new\n")
    (repo / "src" / "added.ts").write_text("added\n")
    (repo / "src" / "gone.ts").unlink()

    changed = git.compute_changed_files(str(repo))

    assert {(f.path, f.content) for f in changed} == {
        ("README.md", "new\n"),
        ("src/added.ts", "added\n"),
    }


def test_compute_changed_files_custom_filter(git_repo) -> None:
    repo = git_repo({"a.txt": "a\n", "b.txt": "b\n"})
    (repo / "a.txt").write_text("changed\n")
    (repo / "c.txt").write_text("new\n")

    changed = git.compute_changed_files(str(repo), status_filter=lambda s: s == "??")

    assert [f.path for f in changed] == ["c.txt"]


def test_compute_changed_files_unusual_names(git_repo) -> None:
    repo = git_repo({"my file.txt": "old\n"})
    (repo / "my file.txt").write_text("new\n")
    (repo / "café.txt").write_text("crème\n", encoding="utf-8")

    changed = git.compute_changed_files(str(repo))

    assert {(f.path, f.content) for f in changed} == {
        ("my file.txt", "new\n"),
        ("café.txt", "crème\n"),
    }


def test_compute_changed_files_clean(git_repo) -> None:
    repo = git_repo({"a.txt": "a\n"})
    assert git.compute_changed_files(str(repo)) == []


def test_compute_changed_files_unreadable(mocker) -> None:
    mocker.patch.object(git, "status_porcelain", return_value="?? missing.txt\0")
    with pytest.raises(ChangedFileReadError, match="missing.txt"):
        git.compute_changed_files("/nonexistent")


def test_reset_hard(git_repo) -> None:
    repo = git_repo({"a.txt": "a\n"})
    (repo / "a.txt").write_text("changed\n")
    git.reset_hard(str(repo))
    assert (repo / "a.txt").read_text() == "a\n"


def test_run_raises_with_output(tmp_path: Path) -> None:
    with pytest.raises(git.CommandError, match="boom"):
        git.run(["bash", "-c", "echo boom >&2; exit 1"], str(tmp_path))


def test_git_error_is_command_error(tmp_path: Path) -> None:
    with pytest.raises(git.GitError):
        git.status_porcelain(str(tmp_path))
