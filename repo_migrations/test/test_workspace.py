import os
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from repo_migrations.utils import workspace
from repo_migrations.utils.workspace import LocalFileSource, RemoteFileSource


def test_temporary_clone_removes_directory(mocker) -> None:
    clone = mocker.patch.object(workspace.git, "clone")
    with workspace.temporary_clone("owner", "repo", "https://git.example.com/") as wd:
        assert os.path.isdir(wd)
        assert os.path.basename(wd).startswith("migration-owner-repo-")
    assert not os.path.exists(wd)
    clone.assert_called_once_with(
        "https://git.example.com/owner/repo.git", wd, depth=1
    )


def test_temporary_clone_removes_directory_on_error(mocker) -> None:
    mocker.patch.object(workspace.git, "clone")
    with pytest.raises(RuntimeError):
        with workspace.temporary_clone("owner", "repo") as wd:
            raise RuntimeError("boom")
    assert not os.path.exists(wd)


def test_temporary_clone_clone_failure(mocker) -> None:
    mocker.patch.object(workspace.git, "clone", side_effect=workspace.git.GitError("nope"))
    created = []
    mkdtemp = workspace.tempfile.mkdtemp

    def record(**kwargs):
        created.append(mkdtemp(**kwargs))
        return created[-1]

    mocker.patch.object(workspace.tempfile, "mkdtemp", side_effect=record)
    with pytest.raises(workspace.git.GitError):
        with workspace.temporary_clone("owner", "repo"):
            pass
    assert not os.path.exists(created[0])


def test_local_file_source(tmp_path: Path) -> None:
    (tmp_path / ".github" / "workflows").mkdir(parents=True)
    (tmp_path / ".github" / "workflows" / "ci.yml").write_text("ci")
    (tmp_path / "node_modules" / "x").mkdir(parents=True)
    (tmp_path / "node_modules" / "x" / "index.js").write_text("x")
    (tmp_path / ".git").mkdir()
    (tmp_path / ".git" / "config").write_text("")
    (tmp_path / "index.js").write_text("index")

    source = LocalFileSource(str(tmp_path))

    assert source.list_files() == [".github/workflows/ci.yml", "index.js"]
    assert source.list_files([".js"]) == ["index.js"]
    assert source.read("index.js") == "index"
    assert source.read("missing.js") is None
    assert source.read(".github") is None


def test_remote_file_source_caches_listing() -> None:
    api = MagicMock()
    api.list_files.return_value = ["b.yml", "a.js"]
    api.get_file.return_value = "content"
    source = RemoteFileSource(api, ref="develop")

    assert source.list_files() == ["a.js", "b.yml"]
    assert source.list_files([".yml"]) == ["b.yml"]
    assert source.read("a.js") == "content"
    api.list_files.assert_called_once_with(ref="develop")
    api.get_file.assert_called_once_with("a.js", ref="develop")
