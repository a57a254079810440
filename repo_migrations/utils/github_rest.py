from types import TracebackType
from typing import Any

import requests
from pydantic import BaseModel

from repo_migrations.logger import get_logger

log = get_logger(__name__)


class FetchResult(BaseModel, frozen=True):
    """Status and decoded body of one REST call.

    ``data`` holds the decoded JSON document, or the raw text when the body
    is not JSON.
    """

    status: int
    data: Any = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class GithubRestApi:
    """
    REST based GH interface

    Used for the endpoints PyGithub has no support for (repository rulesets)
    and for calls whose status code decides the control flow.
    """

    def __init__(
        self,
        token: str,
        api_url: str = "https://api.github.com",
        api_version: str = "2022-11-28",
        timeout: int = 30,
        session: requests.Session | None = None,
    ) -> None:
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update({
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {token}",
            "X-GitHub-Api-Version": api_version,
        })

    def __enter__(self) -> "GithubRestApi":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        self._session.close()

    def request(
        self,
        method: str,
        path: str,
        json: Any = None,
        params: dict[str, Any] | None = None,
    ) -> FetchResult:
        response = self._session.request(
            method,
            f"{self.api_url}{path}",
            json=json,
            params=params,
            timeout=self.timeout,
        )
        log.debug(
            "github request",
            extra={"method": method, "path": path, "status": response.status_code},
        )
        try:
            data = response.json()
        except ValueError:
            data = response.text
        return FetchResult(status=response.status_code, data=data)

    # rulesets

    def list_rulesets(
        self, owner: str, repo: str, includes_parents: bool = False
    ) -> FetchResult:
        params = {"includes_parents": "true"} if includes_parents else None
        return self.request("GET", f"/repos/{owner}/{repo}/rulesets", params=params)

    def get_ruleset(self, owner: str, repo: str, ruleset_id: int) -> FetchResult:
        return self.request(
            "GET",
            f"/repos/{owner}/{repo}/rulesets/{ruleset_id}",
            params={"includes_parents": "true"},
        )

    def create_ruleset(self, owner: str, repo: str, ruleset: dict[str, Any]) -> FetchResult:
        return self.request("POST", f"/repos/{owner}/{repo}/rulesets", json=ruleset)

    def update_repository_ruleset(
        self, owner: str, repo: str, ruleset_id: int, ruleset: dict[str, Any]
    ) -> FetchResult:
        return self.request(
            "PUT", f"/repos/{owner}/{repo}/rulesets/{ruleset_id}", json=ruleset
        )

    def update_organization_ruleset(
        self, org: str, ruleset_id: int, ruleset: dict[str, Any]
    ) -> FetchResult:
        return self.request("PUT", f"/orgs/{org}/rulesets/{ruleset_id}", json=ruleset)

    # classic branch protection

    def get_branch_protection(self, owner: str, repo: str, branch: str) -> FetchResult:
        return self.request("GET", f"/repos/{owner}/{repo}/branches/{branch}/protection")

    def delete_branch_protection(
        self, owner: str, repo: str, branch: str
    ) -> FetchResult:
        return self.request(
            "DELETE", f"/repos/{owner}/{repo}/branches/{branch}/protection"
        )

    def update_required_status_checks(
        self, owner: str, repo: str, branch: str, strict: bool, contexts: list[str]
    ) -> FetchResult:
        return self.request(
            "PATCH",
            f"/repos/{owner}/{repo}/branches/{branch}/protection/required_status_checks",
            json={"strict": strict, "contexts": contexts},
        )

    # releases, tags and refs

    def get_latest_release(self, owner: str, repo: str) -> FetchResult:
        return self.request("GET", f"/repos/{owner}/{repo}/releases/latest")

    def list_tags(self, owner: str, repo: str, per_page: int = 1) -> FetchResult:
        return self.request(
            "GET", f"/repos/{owner}/{repo}/tags", params={"per_page": per_page}
        )

    def get_tag_ref(self, owner: str, repo: str, tag: str) -> FetchResult:
        return self.request("GET", f"/repos/{owner}/{repo}/git/refs/tags/{tag}")

    def get_branch_ref(self, owner: str, repo: str, branch: str) -> FetchResult:
        return self.request("GET", f"/repos/{owner}/{repo}/git/refs/heads/{branch}")

    def compare(self, owner: str, repo: str, base: str, head: str) -> FetchResult:
        return self.request("GET", f"/repos/{owner}/{repo}/compare/{base}...{head}")

    def create_release(
        self,
        owner: str,
        repo: str,
        tag_name: str,
        target_commitish: str,
        body: str,
    ) -> FetchResult:
        return self.request(
            "POST",
            f"/repos/{owner}/{repo}/releases",
            json={
                "tag_name": tag_name,
                "target_commitish": target_commitish,
                "name": tag_name,
                "body": body,
                "draft": False,
                "prerelease": False,
            },
        )
