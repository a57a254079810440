"""Uniform result shape every migration returns.

A result is either a success (possibly a no-op with no changed files) or an
error carrying a code from :class:`ErrorCode`. The HTTP-style status code is
derived from the result and never stored.
"""

from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, Field, computed_field, field_validator, model_validator


class MigrationStatus(StrEnum):
    SUCCESS = "success"
    ERROR = "error"


class ErrorCode(StrEnum):
    ADD_DEVCONTAINER_JSON_FAILED = "ADD_DEVCONTAINER_JSON_FAILED"
    ADD_GITATTRIBUTES_FAILED = "ADD_GITATTRIBUTES_FAILED"
    ADD_LINT_SCRIPT_FAILED = "ADD_LINT_SCRIPT_FAILED"
    ADD_OIDC_PERMISSIONS_FAILED = "ADD_OIDC_PERMISSIONS_FAILED"
    ADD_REPOSITORY_LINK_FAILED = "ADD_REPOSITORY_LINK_FAILED"
    CLEAN_PACKAGE_JSON_FAILED = "CLEAN_PACKAGE_JSON_FAILED"
    COMPUTE_DOCKERFILE_CONTENT_FAILED = "COMPUTE_DOCKERFILE_CONTENT_FAILED"
    COMPUTE_NVMRC_CONTENT_FAILED = "COMPUTE_NVMRC_CONTENT_FAILED"
    CREATE_RELEASE_IF_NEEDED_FAILED = "CREATE_RELEASE_IF_NEEDED_FAILED"
    CREATE_RULESET_FAILED = "CREATE_RULESET_FAILED"
    DELETE_CLASSIC_PROTECTION_FAILED = "DELETE_CLASSIC_PROTECTION_FAILED"
    DEPENDENCY_NOT_FOUND = "DEPENDENCY_NOT_FOUND"
    DEPENDENCY_UPDATE_FAILED = "DEPENDENCY_UPDATE_FAILED"
    ENSURE_LERNA_EXCLUDED_FAILED = "ENSURE_LERNA_EXCLUDED_FAILED"
    FORBIDDEN = "FORBIDDEN"
    GET_BRANCH_PROTECTION_FAILED = "GET_BRANCH_PROTECTION_FAILED"
    GITHUB_ACTIONS_UPDATE_FAILED = "GITHUB_ACTIONS_UPDATE_FAILED"
    INITIALIZE_PACKAGE_JSON_FAILED = "INITIALIZE_PACKAGE_JSON_FAILED"
    MODERN_DIRNAME_FAILED = "MODERN_DIRNAME_FAILED"
    MODERNIZE_BRANCH_PROTECTION_FAILED = "MODERNIZE_BRANCH_PROTECTION_FAILED"
    REMOVE_GITPOD_SECTION_FAILED = "REMOVE_GITPOD_SECTION_FAILED"
    REMOVE_GITPOD_YML_FAILED = "REMOVE_GITPOD_YML_FAILED"
    REMOVE_NPM_TOKEN_FAILED = "REMOVE_NPM_TOKEN_FAILED"
    RUN_LINT_IN_CI_FAILED = "RUN_LINT_IN_CI_FAILED"
    UPDATE_BRANCH_PROTECTION_FAILED = "UPDATE_BRANCH_PROTECTION_FAILED"
    UPDATE_CI_VERSIONS_FAILED = "UPDATE_CI_VERSIONS_FAILED"
    UPDATE_DEPENDENCIES_FAILED = "UPDATE_DEPENDENCIES_FAILED"
    UPDATE_GITHUB_ACTIONS_FAILED = "UPDATE_GITHUB_ACTIONS_FAILED"
    UPDATE_NODE_VERSION_FAILED = "UPDATE_NODE_VERSION_FAILED"
    VALIDATION_ERROR = "VALIDATION_ERROR"


# error codes caused by the caller rather than by the migration
CLIENT_ERROR_CODES = frozenset({
    ErrorCode.DEPENDENCY_NOT_FOUND,
    ErrorCode.FORBIDDEN,
    ErrorCode.VALIDATION_ERROR,
})


def normalize_path(path: str) -> str:
    normalized = path.replace("\\", "/")
    while normalized.startswith("./"):
        normalized = normalized[2:]
    return normalized.lstrip("/")


class ChangedFile(BaseModel, frozen=True):
    """Full new content of one repository file."""

    path: str = Field(..., description="Repository relative path, forward slashes")
    content: str = Field(default="", description="Complete new file content")
    type: Literal["deleted"] | None = Field(
        default=None, description="Set when the file is removed"
    )

    @field_validator("path")
    @classmethod
    def _normalize(cls, value: str) -> str:
        return normalize_path(value)

    @property
    def deleted(self) -> bool:
        return self.type == "deleted"


class MigrationResult(BaseModel, frozen=True):
    """Result of a single migration invocation."""

    status: MigrationStatus
    changed_files: list[ChangedFile] = Field(default_factory=list)
    branch_name: str = ""
    commit_message: str = ""
    pull_request_title: str = ""
    error_code: str | None = None
    error_message: str | None = None
    data: dict[str, Any] | None = Field(
        default=None, description="Payload of migrations that change no files"
    )
    new_branch: str | None = Field(
        default=None, description="Branch created on the hosting platform"
    )

    @model_validator(mode="after")
    def _errors_carry_no_files(self) -> "MigrationResult":
        if self.status == MigrationStatus.ERROR and self.changed_files:
            raise ValueError("an error result must not carry changed files")
        return self

    @computed_field  # type: ignore[prop-decorator]
    @property
    def status_code(self) -> int:
        return status_code_for(self)

    @property
    def is_error(self) -> bool:
        return self.status == MigrationStatus.ERROR

    @property
    def has_changes(self) -> bool:
        return bool(self.changed_files)

    def to_response_body(self) -> dict[str, Any]:
        if self.is_error:
            return {
                "error": f"Migration failed: {self.error_code}",
                "details": self.error_message or "",
                "code": self.error_code,
            }
        body: dict[str, Any]
        if not self.changed_files:
            body = {"message": "No changes needed", "changedFiles": 0}
        else:
            body = {
                "message": "Migration applied successfully",
                "changedFiles": len(self.changed_files),
            }
            if self.new_branch:
                body["newBranch"] = self.new_branch
        if self.data is not None:
            body["data"] = self.data
        return body


def status_code_for(result: MigrationResult) -> int:
    if result.status == MigrationStatus.ERROR:
        if result.error_code in CLIENT_ERROR_CODES:
            return 400
        return 424
    if result.changed_files and (result.branch_name or result.new_branch):
        return 201
    return 200


def create_migration_result(
    *,
    status: MigrationStatus | str,
    changed_files: list[ChangedFile] | None = None,
    branch_name: str = "",
    commit_message: str = "",
    pull_request_title: str = "",
    error_code: str | None = None,
    error_message: str | None = None,
    data: dict[str, Any] | None = None,
) -> MigrationResult:
    return MigrationResult(
        status=MigrationStatus(status),
        changed_files=changed_files or [],
        branch_name=branch_name,
        commit_message=commit_message,
        pull_request_title=pull_request_title,
        error_code=error_code,
        error_message=error_message,
        data=data,
    )


def empty_result(data: dict[str, Any] | None = None) -> MigrationResult:
    """The canonical "nothing to do" result."""
    return MigrationResult(status=MigrationStatus.SUCCESS, data=data)


def error_result(
    error_code: str,
    error_message: str,
    pull_request_title: str = "",
) -> MigrationResult:
    return MigrationResult(
        status=MigrationStatus.ERROR,
        error_code=error_code,
        error_message=error_message,
        pull_request_title=pull_request_title,
    )


def validation_error_result(
    error_message: str,
    error_code: str = ErrorCode.UPDATE_DEPENDENCIES_FAILED,
) -> MigrationResult:
    return error_result(error_code, error_message)


def stringify_error(error: BaseException) -> str:
    return str(error) or error.__class__.__name__
