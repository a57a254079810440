"""Classic branch protection -> repository ruleset conversion.

GitHub offers two models for gating merges into a branch: the flat "classic"
branch protection and rule based rulesets. This module maps the former onto
the latter and drives the switch for a repository.
"""

import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from repo_migrations.config import OsVersions
from repo_migrations.errors import GithubApiError
from repo_migrations.logger import get_logger
from repo_migrations.result import (
    ErrorCode,
    MigrationResult,
    empty_result,
    error_result,
    stringify_error,
)
from repo_migrations.transforms.workflows import update_os_versions
from repo_migrations.utils.github_rest import FetchResult, GithubRestApi

log = get_logger(__name__)

GITHUB_ACTIONS_INTEGRATION_ID = 15368
REPOSITORY_ADMIN_ROLE_ID = 5
DEFAULT_BRANCH_CONDITION = "~DEFAULT_BRANCH"


class _Classic(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class EnabledSetting(_Classic):
    enabled: bool | None = None


class RequiredPullRequestReviews(_Classic):
    dismiss_stale_reviews: bool = False
    require_code_owner_reviews: bool = False
    required_approving_review_count: int = 0


class RequiredStatusChecks(_Classic):
    contexts: list[str] = Field(default_factory=list)
    strict: bool = False


class ClassicBranchProtection(_Classic):
    """Response of GET /repos/{owner}/{repo}/branches/{branch}/protection."""

    allow_deletions: EnabledSetting | None = None
    allow_force_pushes: EnabledSetting | None = None
    enforce_admins: EnabledSetting | None = None
    required_conversation_resolution: EnabledSetting | None = None
    required_linear_history: EnabledSetting | None = None
    required_pull_request_reviews: RequiredPullRequestReviews | None = None
    required_status_checks: RequiredStatusChecks | None = None


class RulesetRule(BaseModel, frozen=True):
    type: str
    parameters: dict[str, Any] | None = None


class RefNameCondition(BaseModel, frozen=True):
    include: list[str]
    exclude: list[str] = Field(default_factory=list)


class RulesetConditions(BaseModel, frozen=True):
    ref_name: RefNameCondition | None = None


class BypassActor(BaseModel, frozen=True):
    actor_id: int
    actor_type: str
    bypass_mode: str


class RulesetData(BaseModel, frozen=True):
    """Body of POST /repos/{owner}/{repo}/rulesets."""

    name: str
    target: str = "branch"
    enforcement: str = "active"
    conditions: RulesetConditions
    rules: list[RulesetRule]
    bypass_actors: list[BypassActor] = Field(default_factory=list)

    def to_request(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class Ruleset(BaseModel):
    """A ruleset as listed by GET /repos/{owner}/{repo}/rulesets."""

    model_config = ConfigDict(frozen=True, extra="allow")

    id: int
    name: str
    target: str | None = None
    source_type: str | None = None
    source: str | None = None
    enforcement: str | None = None
    # only present on single ruleset responses
    conditions: RulesetConditions | None = None


class RulesetCreation(BaseModel, frozen=True):
    success: bool
    ruleset_id: int | None = None
    error: str | None = None


class ClassicProtectionDeletion(BaseModel, frozen=True):
    success: bool
    error: str | None = None


class BranchProtectionUpdate(BaseModel, frozen=True):
    updated_rulesets: int = 0
    updated_classic_protection: bool = False


def _base_rules() -> list[RulesetRule]:
    return [
        RulesetRule(type="non_fast_forward"),
        RulesetRule(type="required_linear_history"),
    ]


def _ruleset(branch: str, rules: list[RulesetRule], bypass_actors: list[BypassActor]) -> RulesetData:
    return RulesetData(
        name=f"Protect {branch}",
        conditions=RulesetConditions(
            ref_name=RefNameCondition(include=[DEFAULT_BRANCH_CONDITION])
        ),
        rules=rules,
        bypass_actors=bypass_actors,
    )


def convert_classic_to_ruleset(
    classic: ClassicBranchProtection | dict[str, Any], branch: str
) -> RulesetData:
    """Map a classic branch protection onto an equivalent ruleset.

    Raw API payloads are validated first, a malformed payload raises
    pydantic.ValidationError.
    """
    if not isinstance(classic, ClassicBranchProtection):
        classic = ClassicBranchProtection.model_validate(classic)

    rules: list[RulesetRule] = []
    if reviews := classic.required_pull_request_reviews:
        conversation = classic.required_conversation_resolution
        rules.append(
            RulesetRule(
                type="pull_request",
                parameters={
                    "allowed_merge_methods": ["squash"],
                    "dismiss_stale_reviews_on_push": reviews.dismiss_stale_reviews,
                    "require_code_owner_review": reviews.require_code_owner_reviews,
                    "require_last_push_approval": False,
                    "required_approving_review_count": reviews.required_approving_review_count,
                    "required_review_thread_resolution": bool(
                        conversation and conversation.enabled
                    ),
                },
            )
        )

    if checks := classic.required_status_checks:
        rules.append(
            RulesetRule(
                type="required_status_checks",
                parameters={
                    "required_status_checks": [
                        {
                            "context": context,
                            "integration_id": GITHUB_ACTIONS_INTEGRATION_ID,
                        }
                        for context in checks.contexts
                    ],
                    "strict_required_status_checks_policy": checks.strict,
                },
            )
        )

    rules.extend(_base_rules())

    if not (classic.allow_deletions and classic.allow_deletions.enabled):
        rules.append(RulesetRule(type="deletion"))

    bypass_actors = []
    if classic.enforce_admins is not None and classic.enforce_admins.enabled is False:
        bypass_actors.append(
            BypassActor(
                actor_id=REPOSITORY_ADMIN_ROLE_ID,
                actor_type="RepositoryRole",
                bypass_mode="always",
            )
        )

    return _ruleset(branch, rules, bypass_actors)


def default_ruleset(branch: str) -> RulesetData:
    """Minimal ruleset for branches without any protection."""
    return _ruleset(branch, [*_base_rules(), RulesetRule(type="deletion")], [])


def _names_branch(name: str, branch: str) -> bool:
    return (
        re.search(rf"(?<![\w./-]){re.escape(branch)}(?![\w./-])", name, re.IGNORECASE)
        is not None
    )


def protects_branch(ruleset: Ruleset, branch: str) -> bool:
    """Whether a branch ruleset applies to ``branch``.

    The ref name conditions decide when the ruleset carries them.
    ``~DEFAULT_BRANCH`` counts as a match, migrations always target the
    default branch. Listed rulesets come without conditions and match when
    their name holds the branch as a whole word, "Protect main" but not
    "Protect maintenance".
    """
    if ruleset.target != "branch":
        return False
    ref_name = ruleset.conditions.ref_name if ruleset.conditions else None
    if ref_name is None:
        return _names_branch(ruleset.name, branch)
    ref = f"refs/heads/{branch}"
    if ref in ref_name.exclude:
        return False
    return any(
        pattern in (ref, DEFAULT_BRANCH_CONDITION, "~ALL")
        for pattern in ref_name.include
    )


def find_branch_ruleset(rulesets: list[Ruleset], branch: str) -> Ruleset | None:
    return next(
        (ruleset for ruleset in rulesets if protects_branch(ruleset, branch)), None
    )


def get_branch_rulesets(
    api: GithubRestApi, owner: str, repo: str, includes_parents: bool = False
) -> list[Ruleset]:
    result = api.list_rulesets(owner, repo, includes_parents=includes_parents)
    match result.status:
        case 200:
            return [Ruleset.model_validate(r) for r in result.data or []]
        case 404:
            return []
        case status:
            raise GithubApiError(status, f"Failed to list rulesets of {owner}/{repo}")


def get_classic_branch_protection(
    api: GithubRestApi, owner: str, repo: str, branch: str
) -> ClassicBranchProtection | None:
    """Classic protection of a branch, None when it has none or it is hidden."""
    result = api.get_branch_protection(owner, repo, branch)
    match result.status:
        case 200:
            return ClassicBranchProtection.model_validate(result.data)
        case 403 | 404:
            return None
        case status:
            raise GithubApiError(
                status, f"Failed to fetch classic branch protection of {owner}/{repo}@{branch}"
            )


def _describe(result: FetchResult) -> str:
    if isinstance(result.data, dict) and "message" in result.data:
        return f"{result.status} {result.data['message']}"
    return f"{result.status} {result.data}"


def create_ruleset(
    api: GithubRestApi, owner: str, repo: str, ruleset: RulesetData
) -> RulesetCreation:
    result = api.create_ruleset(owner, repo, ruleset.to_request())
    if result.status != 201:
        return RulesetCreation(
            success=False, error=f"Failed to create ruleset: {_describe(result)}"
        )
    return RulesetCreation(success=True, ruleset_id=result.data.get("id"))


def delete_classic_branch_protection(
    api: GithubRestApi, owner: str, repo: str, branch: str
) -> ClassicProtectionDeletion:
    result = api.delete_branch_protection(owner, repo, branch)
    if result.status != 204:
        return ClassicProtectionDeletion(
            success=False,
            error=f"Failed to delete classic branch protection: {_describe(result)}",
        )
    return ClassicProtectionDeletion(success=True)


def modernize_branch_protection(
    api: GithubRestApi, owner: str, repo: str, branch: str = "main"
) -> MigrationResult:
    """Replace the classic protection of a branch by a ruleset.

    The new ruleset is always created before the classic protection is
    deleted, a failed deletion leaves both in place.
    """
    try:
        existing = find_branch_ruleset(get_branch_rulesets(api, owner, repo), branch)
        if existing:
            return empty_result(
                data={
                    "message": "Ruleset already exists for this branch",
                    "migrated": False,
                    "rulesetId": existing.id,
                }
            )

        classic = get_classic_branch_protection(api, owner, repo, branch)
        ruleset = (
            default_ruleset(branch)
            if classic is None
            else convert_classic_to_ruleset(classic, branch)
        )
        creation = create_ruleset(api, owner, repo, ruleset)
        if not creation.success:
            return error_result(
                ErrorCode.CREATE_RULESET_FAILED,
                creation.error or "Failed to create ruleset",
            )
        log.info(
            "created ruleset",
            extra={"repository": f"{owner}/{repo}", "ruleset_id": creation.ruleset_id},
        )

        if classic is None:
            return empty_result(
                data={
                    "message": "Successfully created default branch ruleset",
                    "migrated": True,
                    "rulesetId": creation.ruleset_id,
                }
            )

        deletion = delete_classic_branch_protection(api, owner, repo, branch)
        if not deletion.success:
            return error_result(
                ErrorCode.DELETE_CLASSIC_PROTECTION_FAILED,
                f"{deletion.error} (ruleset {creation.ruleset_id} was created)",
            )
        return empty_result(
            data={
                "message": "Successfully migrated branch protection from classic to rulesets",
                "migrated": True,
                "rulesetId": creation.ruleset_id,
            }
        )
    except Exception as e:
        log.exception("modernizing branch protection failed")
        return error_result(ErrorCode.MODERNIZE_BRANCH_PROTECTION_FAILED, stringify_error(e))


def get_branch_protection(
    api: GithubRestApi, owner: str, repo: str, branch: str = "main"
) -> MigrationResult:
    """Report how a branch is protected.

    ``data.type`` is ``rulesets`` when the repository has any ruleset,
    ``classic`` when the branch has classic protection and ``none``
    otherwise. A failing ruleset listing falls back to the classic lookup.
    """
    try:
        rulesets = api.list_rulesets(owner, repo, includes_parents=True)
        if rulesets.status == 200 and isinstance(rulesets.data, list) and rulesets.data:
            return empty_result(data={"type": "rulesets", "data": rulesets.data})

        classic = api.get_branch_protection(owner, repo, branch)
        match classic.status:
            case 200:
                return empty_result(data={"type": "classic", "data": classic.data})
            case 404:
                return empty_result(data={"type": "none", "data": None})
            case 403:
                return error_result(
                    ErrorCode.FORBIDDEN,
                    f"Not allowed to read branch protection of {owner}/{repo}@{branch}: "
                    f"{_describe(classic)}",
                )
            case status:
                raise GithubApiError(
                    status,
                    f"Failed to fetch branch protection of {owner}/{repo}@{branch}",
                )
    except Exception as e:
        log.exception("getting branch protection failed", extra={"repository": f"{owner}/{repo}"})
        return error_result(ErrorCode.GET_BRANCH_PROTECTION_FAILED, stringify_error(e))


def _update_check(check: Any, os_versions: OsVersions) -> Any:
    if isinstance(check, str):
        return update_os_versions(check, os_versions)
    if isinstance(check, dict) and "context" in check:
        return {**check, "context": update_os_versions(str(check["context"]), os_versions)}
    return check


def _update_rule(rule: dict[str, Any], os_versions: OsVersions) -> dict[str, Any]:
    parameters = rule.get("parameters")
    if not isinstance(parameters, dict):
        return rule
    new_parameters = dict(parameters)
    for key in ("required_status_checks", "required_checks", "checks"):
        checks = parameters.get(key)
        if isinstance(checks, list):
            new_parameters[key] = [_update_check(c, os_versions) for c in checks]
    return {**rule, "parameters": new_parameters}


def _update_rulesets_required_checks(
    api: GithubRestApi, owner: str, repo: str, os_versions: OsVersions
) -> int:
    updated = 0
    for summary in get_branch_rulesets(api, owner, repo, includes_parents=True):
        result = api.get_ruleset(owner, repo, summary.id)
        if result.status != 200:
            raise GithubApiError(
                result.status, f"Failed to get ruleset {summary.id} of {owner}/{repo}"
            )
        ruleset = result.data
        rules = ruleset.get("rules") or []
        new_rules = [_update_rule(rule, os_versions) for rule in rules]
        if new_rules == rules:
            continue
        body = {
            "name": ruleset.get("name"),
            "target": ruleset.get("target"),
            "enforcement": ruleset.get("enforcement"),
            "conditions": ruleset.get("conditions"),
            "bypass_actors": ruleset.get("bypass_actors", []),
            "rules": new_rules,
        }
        if ruleset.get("source_type") == "Organization":
            response = api.update_organization_ruleset(owner, summary.id, body)
        else:
            response = api.update_repository_ruleset(owner, repo, summary.id, body)
        if not response.ok:
            raise GithubApiError(
                response.status, f"Failed to update ruleset {summary.id} of {owner}/{repo}"
            )
        updated += 1
    return updated


def _update_classic_required_checks(
    api: GithubRestApi, owner: str, repo: str, branch: str, os_versions: OsVersions
) -> bool:
    classic = get_classic_branch_protection(api, owner, repo, branch)
    if classic is None or classic.required_status_checks is None:
        return False
    contexts = classic.required_status_checks.contexts
    new_contexts = [update_os_versions(c, os_versions) for c in contexts]
    if new_contexts == contexts:
        return False
    response = api.update_required_status_checks(
        owner, repo, branch, classic.required_status_checks.strict, new_contexts
    )
    if not response.ok:
        raise GithubApiError(
            response.status,
            f"Failed to update required status checks of {owner}/{repo}@{branch}",
        )
    return True


def update_branch_protection_os_versions(
    api: GithubRestApi,
    owner: str,
    repo: str,
    branch: str,
    os_versions: OsVersions,
) -> BranchProtectionUpdate:
    """Rename OS runners in required status checks.

    Rulesets are updated first. Classic protection is only touched when no
    ruleset needed a change.
    """
    updated_rulesets = _update_rulesets_required_checks(api, owner, repo, os_versions)
    updated_classic = False
    if updated_rulesets == 0:
        updated_classic = _update_classic_required_checks(
            api, owner, repo, branch, os_versions
        )
    return BranchProtectionUpdate(
        updated_rulesets=updated_rulesets,
        updated_classic_protection=updated_classic,
    )
