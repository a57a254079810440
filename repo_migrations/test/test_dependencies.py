from collections.abc import Callable
from contextlib import contextmanager
from pathlib import Path
from unittest.mock import MagicMock, create_autospec

import pytest

from repo_migrations import dependencies
from repo_migrations.config import DependencyUpdateSettings, Settings
from repo_migrations.dependencies import (
    prepare_workspace,
    run_update_script,
    update_dependencies,
)
from repo_migrations.errors import NoMatchingVersionError
from repo_migrations.result import ChangedFile, ErrorCode
from repo_migrations.utils.git import CommandError
from repo_migrations.utils.github_api import GithubRepositoryApi

SCRIPT = "scripts/update-dependencies.sh"

# fails with ETARGET until the attempts file reaches $SUCCEED_AFTER
FLAKY_SCRIPT = """\
n=$(cat "$ATTEMPTS" 2>/dev/null || echo 0)
echo $((n + 1)) > "$ATTEMPTS"
if [ "$n" -lt "$SUCCEED_AFTER" ]; then
  echo broken > package.json
  echo "npm ERR! code ETARGET" >&2
  exit 1
fi
echo '{"version": "2.0.0"}' > package.json
"""


@pytest.fixture
def attempts(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Callable[[], int]:
    attempts_file = tmp_path / "attempts"
    monkeypatch.setenv("ATTEMPTS", str(attempts_file))
    return lambda: int(attempts_file.read_text())


def repo_with_script(git_repo, script: str, **files: str) -> Path:
    return git_repo({SCRIPT: script, "package.json": '{"version": "1.0.0"}\n', **files})


def test_prepare_workspace(tmp_path: Path) -> None:
    (tmp_path / "scripts").mkdir()
    (tmp_path / SCRIPT).write_text("OUTPUT=`ncu -u`\n")
    (tmp_path / ".nvmrc").write_text("v20.0.0\n")

    prepare_workspace(str(tmp_path), SCRIPT, "v22.11.0")

    assert (tmp_path / SCRIPT).read_text() == "OUTPUT=`ncu -u -x lerna`\n"
    assert (tmp_path / ".nvmrc").read_text() == "v22.11.0\n"


def test_prepare_workspace_without_files(tmp_path: Path) -> None:
    prepare_workspace(str(tmp_path), SCRIPT, "v22.11.0")
    assert list(tmp_path.iterdir()) == []


def test_run_update_script_retries_etarget(
    git_repo, attempts, monkeypatch: pytest.MonkeyPatch, patch_sleep
) -> None:
    monkeypatch.setenv("SUCCEED_AFTER", "1")
    repo = repo_with_script(git_repo, FLAKY_SCRIPT)

    run_update_script(str(repo), SCRIPT)

    assert attempts() == 2
    assert (repo / "package.json").read_text() == '{"version": "2.0.0"}\n'


def test_run_update_script_gives_up(
    git_repo, attempts, monkeypatch: pytest.MonkeyPatch, patch_sleep
) -> None:
    monkeypatch.setenv("SUCCEED_AFTER", "10")
    repo = repo_with_script(git_repo, FLAKY_SCRIPT)

    with pytest.raises(NoMatchingVersionError, match="ETARGET"):
        run_update_script(str(repo), SCRIPT, max_attempts=2)

    assert attempts() == 2
    assert (repo / "package.json").read_text() == '{"version": "1.0.0"}\n'


def test_run_update_script_other_failure_is_not_retried(
    git_repo, attempts, patch_sleep
) -> None:
    script = 'echo 1 > "$ATTEMPTS"\necho broken > package.json\necho boom >&2\nexit 1\n'
    repo = repo_with_script(git_repo, script)

    with pytest.raises(CommandError, match="boom"):
        run_update_script(str(repo), SCRIPT)

    assert attempts() == 1
    assert (repo / "package.json").read_text() == '{"version": "1.0.0"}\n'
    patch_sleep.assert_not_called()


def test_run_update_script_keeps_preparation_on_retry(
    git_repo, attempts, monkeypatch: pytest.MonkeyPatch, patch_sleep
) -> None:
    monkeypatch.setenv("SUCCEED_AFTER", "1")
    repo = repo_with_script(git_repo, FLAKY_SCRIPT, **{".nvmrc": "v20.0.0\n"})

    run_update_script(str(repo), SCRIPT, node_version="v22.11.0")

    assert (repo / ".nvmrc").read_text() == "v22.11.0\n"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        auto_merge=False,
        dependency_update=DependencyUpdateSettings(bot_user_id=7),
    )


@pytest.fixture
def api() -> MagicMock:
    api = create_autospec(spec=GithubRepositoryApi)
    api.find_open_pull_request.return_value = None
    api.get_branch_sha.return_value = "sha"
    api.get_file.return_value = None
    api.create_pull_request.return_value.html_url = "https://github.com/pr/1"
    return api


@pytest.fixture
def clone(git_repo, mocker) -> Callable[[str], MagicMock]:
    """temporary_clone replaced by a local repository running the given script."""

    def _(script: str) -> MagicMock:
        repo = repo_with_script(git_repo, script)

        @contextmanager
        def temporary_clone(owner: str, repo_name: str, clone_url: str):
            yield str(repo)

        return mocker.patch.object(
            dependencies, "temporary_clone", side_effect=temporary_clone
        )

    return _


UPDATE_SCRIPT = "echo '{\"version\": \"2.0.0\"}' > package.json\n"
UPDATED_PACKAGE_JSON = ChangedFile(path="package.json", content='{"version": "2.0.0"}\n')


def test_update_dependencies_creates_pull_request(
    api: MagicMock, settings: Settings, clone
) -> None:
    clone(UPDATE_SCRIPT)

    result = update_dependencies("lvce-editor", "repo", api, settings)

    assert result.data == {"message": "Dependencies update PR created successfully"}
    assert result.changed_files == [UPDATED_PACKAGE_JSON]
    assert result.new_branch.startswith("update-dependencies-")
    assert result.status_code == 201
    api.find_open_pull_request.assert_called_once_with(
        "update dependencies", "update-dependencies-", author_id=7
    )
    api.create_pull_request.assert_called_once_with(
        head=result.new_branch, base="main", title="update dependencies"
    )
    api.enable_auto_merge.assert_not_called()


def test_update_dependencies_updates_existing_pull_request(
    api: MagicMock, settings: Settings, clone
) -> None:
    clone(UPDATE_SCRIPT)
    api.find_open_pull_request.return_value = MagicMock()
    api.find_open_pull_request.return_value.head.ref = "update-dependencies-1"

    result = update_dependencies("lvce-editor", "repo", api, settings)

    assert result.data == {"message": "Dependencies update PR updated successfully"}
    api.get_branch_sha.assert_called_once_with("update-dependencies-1")
    api.commit_files.assert_called_once_with(
        "update-dependencies-1", "sha", [UPDATED_PACKAGE_JSON], "update dependencies"
    )
    api.create_branch.assert_not_called()
    api.create_pull_request.assert_not_called()


def test_update_dependencies_no_changes(api: MagicMock, settings: Settings, clone) -> None:
    clone("true\n")

    result = update_dependencies("lvce-editor", "repo", api, settings)

    assert result.data == {"message": "No changes to commit"}
    assert result.status_code == 200
    api.create_branch.assert_not_called()


def test_update_dependencies_already_on_base_branch(
    api: MagicMock, settings: Settings, clone
) -> None:
    clone(UPDATE_SCRIPT)
    api.get_file.return_value = '{"version": "2.0.0"}\n'

    result = update_dependencies("lvce-editor", "repo", api, settings)

    assert result.data == {"message": "No changes to commit"}
    api.create_pull_request.assert_not_called()


def test_update_dependencies_script_failure(
    api: MagicMock, settings: Settings, clone
) -> None:
    clone("echo 'npm ERR! code E404' >&2\nexit 1\n")

    result = update_dependencies("lvce-editor", "repo", api, settings)

    assert result.error_code == ErrorCode.DEPENDENCY_UPDATE_FAILED
    assert "E404" in result.error_message
    assert result.pull_request_title == "update dependencies"
    assert result.status_code == 424
