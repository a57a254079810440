from unittest.mock import (
    MagicMock,
    create_autospec,
)

import pytest
from github import Github, GithubException, UnknownObjectException
from github.ContentFile import ContentFile
from github.Repository import Repository

from repo_migrations.errors import GithubApiError
from repo_migrations.result import ChangedFile
from repo_migrations.utils.github_api import GithubRepositoryApi


def github(repo_mock: MagicMock | None = None) -> MagicMock:
    github_mock = create_autospec(spec=Github)
    github_mock.get_repo = MagicMock()
    github_mock.get_repo.return_value = repo_mock or create_autospec(spec=Repository)
    return github_mock


def api_with(repo_mock: MagicMock) -> GithubRepositoryApi:
    return GithubRepositoryApi("my", "repo", token="some-token", github=github(repo_mock))


def content_file(content: bytes) -> MagicMock:
    file_mock = create_autospec(spec=ContentFile)
    file_mock.decoded_content = content
    return file_mock


def pull_request(
    title: str, ref: str, user_type: str = "Bot", user_id: int = 1
) -> MagicMock:
    pr = MagicMock()
    pr.title = title
    pr.head.ref = ref
    pr.user.type = user_type
    pr.user.id = user_id
    return pr


def test_create() -> None:
    gh = github()
    api = GithubRepositoryApi("my", "repo", token="some-token", github=gh)
    gh.get_repo.assert_called_once_with("my/repo", lazy=True)
    assert str(api) == "my/repo"


def test_context_manager_closes() -> None:
    gh = github()
    with GithubRepositoryApi("my", "repo", token="some-token", github=gh):
        pass
    gh.close.assert_called_once_with()


def test_get_file() -> None:
    repo = create_autospec(spec=Repository)
    repo.get_contents.return_value = content_file(b"test")
    api = api_with(repo)

    assert api.get_file("some/path") == "test"
    repo.get_contents.assert_called_once_with("some/path", ref="main")


def test_get_file_with_ref() -> None:
    repo = create_autospec(spec=Repository)
    repo.get_contents.return_value = content_file(b"test")
    api = api_with(repo)

    api.get_file("some/path", ref="some-ref")
    repo.get_contents.assert_called_once_with("some/path", ref="some-ref")


def test_get_file_list_returned() -> None:
    repo = create_autospec(spec=Repository)
    repo.get_contents.return_value = [content_file(b"a"), content_file(b"b")]

    assert api_with(repo).get_file("some/dir") is None


def test_get_file_not_found() -> None:
    repo = create_autospec(spec=Repository)
    repo.get_contents.side_effect = UnknownObjectException(404, {"message": "Not Found"})

    assert api_with(repo).get_file("missing") is None
    repo.get_contents.assert_called_once()


def test_get_file_error(patch_sleep: None) -> None:
    repo = create_autospec(spec=Repository)
    repo.get_contents.side_effect = GithubException(500, {"message": "boom"})

    with pytest.raises(GithubException):
        api_with(repo).get_file("some/path")


def test_list_files_only_blobs() -> None:
    repo = create_autospec(spec=Repository)
    blob = MagicMock(path="a/b.txt", type="blob")
    tree = MagicMock(path="a", type="tree")
    repo.get_git_tree.return_value.tree = [tree, blob]

    assert api_with(repo).list_files("dev") == ["a/b.txt"]
    repo.get_git_tree.assert_called_once_with(sha="dev", recursive=True)


def test_get_branch_sha() -> None:
    repo = create_autospec(spec=Repository)
    repo.get_git_ref.return_value.object.sha = "abc"

    assert api_with(repo).get_branch_sha("main") == "abc"
    repo.get_git_ref.assert_called_once_with("heads/main")


def test_get_branch_sha_missing() -> None:
    repo = create_autospec(spec=Repository)
    repo.get_git_ref.side_effect = UnknownObjectException(404, {"message": "Not Found"})

    with pytest.raises(GithubApiError) as e:
        api_with(repo).get_branch_sha("gone")
    assert e.value.status == 404


def test_create_branch() -> None:
    repo = create_autospec(spec=Repository)
    api_with(repo).create_branch("feature", "abc")
    repo.create_git_ref.assert_called_once_with(ref="refs/heads/feature", sha="abc")


def test_commit_files() -> None:
    repo = create_autospec(spec=Repository)
    base_commit = repo.get_git_commit.return_value
    repo.create_git_commit.return_value.sha = "new-sha"
    files = [
        ChangedFile(path="a.txt", content="A"),
        ChangedFile(path=".gitpod.yml", type="deleted"),
    ]

    sha = api_with(repo).commit_files("feature", "base-sha", files, "message")

    assert sha == "new-sha"
    repo.get_git_commit.assert_called_once_with("base-sha")
    elements, base_tree = repo.create_git_tree.call_args.args
    assert base_tree == base_commit.tree
    assert [e._identity for e in elements] == [
        {"path": "a.txt", "mode": "100644", "type": "blob", "content": "A"},
        {"path": ".gitpod.yml", "mode": "100644", "type": "blob", "sha": None},
    ]
    repo.create_git_commit.assert_called_once_with(
        "message", repo.create_git_tree.return_value, [base_commit]
    )
    repo.get_git_ref.assert_called_once_with("heads/feature")
    repo.get_git_ref.return_value.edit.assert_called_once_with("new-sha")


def test_create_pull_request() -> None:
    repo = create_autospec(spec=Repository)
    api_with(repo).create_pull_request("feature", "main", "title")
    repo.create_pull.assert_called_once_with(
        base="main", head="feature", title="title", body=""
    )


def test_enable_auto_merge() -> None:
    pr = MagicMock()
    GithubRepositoryApi.enable_auto_merge(pr)
    pr.enable_automerge.assert_called_once_with(merge_method="SQUASH")


def test_find_open_pull_request() -> None:
    repo = create_autospec(spec=Repository)
    wanted = pull_request("update dependencies", "update-dependencies-2", user_id=7)
    repo.get_pulls.return_value = [
        pull_request("other title", "update-dependencies-1"),
        pull_request("update dependencies", "feature/other"),
        pull_request("update dependencies", "update-dependencies-3", user_type="User"),
        pull_request("update dependencies", "update-dependencies-4", user_id=8),
        wanted,
    ]

    found = api_with(repo).find_open_pull_request(
        "update dependencies", "update-dependencies-", author_id=7
    )

    assert found is wanted
    repo.get_pulls.assert_called_once_with(state="open")


def test_find_open_pull_request_none() -> None:
    repo = create_autospec(spec=Repository)
    repo.get_pulls.return_value = []
    assert api_with(repo).find_open_pull_request("t", "p-") is None


def test_repository_exists() -> None:
    gh = github()
    api = GithubRepositoryApi("my", "repo", token="some-token", github=gh)
    assert api.repository_exists() is True
    gh.get_repo.side_effect = UnknownObjectException(404, {"message": "Not Found"})
    assert api.repository_exists() is False
