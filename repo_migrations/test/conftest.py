"""Pytest configuration and fixtures."""

import os
import subprocess
from collections.abc import Callable, Generator
from pathlib import Path
from typing import TYPE_CHECKING

import pytest
from fastapi.testclient import TestClient
from pytest_httpserver import HTTPServer

if TYPE_CHECKING:
    from repo_migrations.utils.github_rest import GithubRestApi

TEST_SECRET = "test-secret"


def pytest_configure() -> None:
    """Configure the environment before Settings() is instantiated at import time."""
    os.environ.setdefault("REPO_MIGRATIONS_SECRET", TEST_SECRET)
    os.environ.setdefault("REPO_MIGRATIONS_LOG_FORMAT_JSON", "false")
    os.environ.setdefault("REPO_MIGRATIONS_GITHUB__TOKEN", "token")


@pytest.fixture
def patch_sleep(mocker):
    yield mocker.patch("sretoolbox.utils.retry.time.sleep")


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    from repo_migrations.api.main import app

    # raise_server_exceptions=False allows testing error responses (401, 404, etc.)
    # instead of raising exceptions in tests
    yield TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def rest_api(httpserver: HTTPServer) -> Generator["GithubRestApi", None, None]:
    from repo_migrations.utils.github_rest import GithubRestApi

    with GithubRestApi(token="token", api_url=httpserver.url_for("/")) as api:
        yield api


def git(wd: Path, *args: str) -> str:
    return subprocess.run(
        [
            "git",
            "-c",
            "user.name=test",
            "-c",
            "user.email=test@example.com",
            "-c",
            "init.defaultBranch=main",
            *args,
        ],
        cwd=wd,
        check=True,
        capture_output=True,
        text=True,
    ).stdout


@pytest.fixture
def git_repo(tmp_path: Path) -> Callable[[dict[str, str]], Path]:
    """A committed git working copy holding the given files."""

    def _(files: dict[str, str]) -> Path:
        repo = tmp_path / "repo"
        repo.mkdir()
        git(repo, "init", "-q")
        for path, content in files.items():
            file_path = repo / path
            file_path.parent.mkdir(parents=True, exist_ok=True)
            file_path.write_text(content)
        git(repo, "add", "-A")
        git(repo, "commit", "-q", "--allow-empty", "-m", "initial")
        return repo

    return _
