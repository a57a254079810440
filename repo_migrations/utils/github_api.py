from collections.abc import Iterable
from types import TracebackType

from github import Github, GithubException, InputGitTreeElement, UnknownObjectException
from github.PullRequest import PullRequest
from github.Repository import Repository
from sretoolbox.utils import retry

from repo_migrations.errors import GithubApiError
from repo_migrations.result import ChangedFile

FILE_MODE = "100644"


class GithubRepositoryApi:
    """
    Github client for the repository operations of the migration pipeline:
    reading files, creating branches and commits, opening pull requests.

    :param owner: repository owner (user or organization)
    :param repo: repository name
    :param token: auth token for Github
    """

    def __init__(
        self,
        owner: str,
        repo: str,
        token: str,
        github_api_url: str = "https://api.github.com",
        timeout: int = 30,
        github: Github | None = None,
    ) -> None:
        self.owner = owner
        self.repo = repo
        self._github = github or Github(
            login_or_token=token, base_url=github_api_url.rstrip("/"), timeout=timeout
        )
        self._repository: Repository = self._github.get_repo(
            f"{owner}/{repo}", lazy=True
        )

    def __enter__(self) -> "GithubRepositoryApi":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.cleanup()

    def __str__(self) -> str:
        return f"{self.owner}/{self.repo}"

    def cleanup(self) -> None:
        self._github.close()

    def repository_exists(self) -> bool:
        try:
            self._github.get_repo(f"{self.owner}/{self.repo}")
        except UnknownObjectException:
            return False
        return True

    @retry()
    def get_file(self, path: str, ref: str = "main") -> str | None:
        """Content of a file, None if it does not exist or is a directory."""
        try:
            content = self._repository.get_contents(path, ref=ref)
        except GithubException as e:
            if e.status == 404:
                return None
            raise
        if isinstance(content, list):
            return None
        return content.decoded_content.decode("utf-8")

    @retry()
    def list_files(self, ref: str = "main") -> list[str]:
        return [
            item.path
            for item in self._repository.get_git_tree(sha=ref, recursive=True).tree
            if item.type == "blob"
        ]

    def get_branch_sha(self, branch: str) -> str:
        """Head commit of a branch. A missing branch is an error here."""
        try:
            return self._repository.get_git_ref(f"heads/{branch}").object.sha
        except GithubException as e:
            raise GithubApiError(
                e.status, f"Failed to get ref of branch {branch} in {self}"
            ) from e

    def create_branch(self, branch: str, sha: str) -> None:
        self._repository.create_git_ref(ref=f"refs/heads/{branch}", sha=sha)

    def commit_files(
        self,
        branch: str,
        base_sha: str,
        files: Iterable[ChangedFile],
        message: str,
    ) -> str:
        base_commit = self._repository.get_git_commit(base_sha)
        elements = [
            InputGitTreeElement(f.path, FILE_MODE, "blob", sha=None)
            if f.deleted
            else InputGitTreeElement(f.path, FILE_MODE, "blob", content=f.content)
            for f in files
        ]
        tree = self._repository.create_git_tree(elements, base_commit.tree)
        commit = self._repository.create_git_commit(message, tree, [base_commit])
        self._repository.get_git_ref(f"heads/{branch}").edit(commit.sha)
        return commit.sha

    def create_pull_request(
        self, head: str, base: str, title: str, body: str = ""
    ) -> PullRequest:
        return self._repository.create_pull(base=base, head=head, title=title, body=body)

    @staticmethod
    def enable_auto_merge(pull_request: PullRequest) -> None:
        pull_request.enable_automerge(merge_method="SQUASH")

    def find_open_pull_request(
        self, title: str, head_prefix: str, author_id: int | None = None
    ) -> PullRequest | None:
        """Open bot pull request with the given title and branch prefix."""
        for pr in self._repository.get_pulls(state="open"):
            if pr.title != title or not pr.head.ref.startswith(head_prefix):
                continue
            if pr.user.type != "Bot":
                continue
            if author_id is not None and pr.user.id != author_id:
                continue
            return pr
        return None
