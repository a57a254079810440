"""Configuration management using Pydantic Settings."""

import json
from functools import cache
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import (
    BaseSettings,
    JsonConfigSettingsSource,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

PROJ_ROOT = (Path(__file__) / "..").resolve()
BUNDLED_DEPENDENCIES_FILE = PROJ_ROOT / "data" / "dependencies.json"


class GithubSettings(BaseModel):
    """GitHub API and clone configuration."""

    model_config = ConfigDict(frozen=True)

    api_url: str = Field(
        default="https://api.github.com",
        description="GitHub REST API base URL",
    )
    clone_url: str = Field(
        default="https://github.com",
        description="Base URL repositories are cloned from",
    )
    token: str = Field(
        default="",
        description="Bearer token used for every hosting API call",
    )
    api_version: str = Field(
        default="2022-11-28",
        description="Value of the X-GitHub-Api-Version header",
    )
    timeout: int = Field(
        default=30,
        description="GitHub API timeout in seconds",
    )


class OsVersions(BaseModel):
    """Runner versions CI workflows and required checks are moved to."""

    model_config = ConfigDict(frozen=True)

    ubuntu: str | None = Field(default="24.04", description="ubuntu-XX.YY runner")
    windows: str | None = Field(default="2025", description="windows-YYYY runner")
    macos: str | None = Field(default="15", description="macos-N runner")


class DependencyUpdateSettings(BaseModel):
    """Settings of the update-dependencies endpoint."""

    model_config = ConfigDict(frozen=True)

    owner: str = Field(
        default="lvce-editor",
        description="Only repositories of this owner are accepted",
    )
    script_path: str = Field(
        default="scripts/update-dependencies.sh",
        description="Update script, relative to the repository root",
    )
    max_attempts: int = Field(
        default=3,
        description="Attempts of the update script when npm reports ETARGET",
    )
    pull_request_title: str = Field(
        default="update dependencies",
        description="Title of the dependency update pull request",
    )
    bot_user_id: int | None = Field(
        default=None,
        description="User id existing dependency update pull requests must be authored by",
    )


class Dependency(BaseModel):
    """One entry of the dependencies table."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    from_repo: str = Field(..., alias="fromRepo")
    to_repo: str = Field(..., alias="toRepo")
    to_folder: str = Field(default="", alias="toFolder")
    to_package: str | None = Field(default=None, alias="toPackage")
    as_name: str | None = Field(default=None, alias="asName")


class DependencyConfig(BaseModel):
    """Immutable dependencies table, loaded once per process."""

    model_config = ConfigDict(frozen=True)

    dependencies: tuple[Dependency, ...] = ()

    def released_by(self, repository: str) -> tuple[Dependency, ...]:
        return tuple(d for d in self.dependencies if d.from_repo == repository)


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="REPO_MIGRATIONS_",
        env_nested_delimiter="__",
        json_file=".env.json",
        json_file_encoding="utf-8",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            file_secret_settings,
            dotenv_settings,
            JsonConfigSettingsSource(settings_cls),
        )

    # Application
    app_name: str = "repo-migrations"
    version: str = "0.1.0"

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format_json: bool = Field(
        default=True,
        description="Use JSON logging format (False for human-readable logs in development)",
    )
    log_exclude_loggers: str = Field(
        default="urllib3,github.Requester",
        description="Comma-separated list of logger names kept at WARNING",
    )

    # HTTP surface
    secret: str = Field(
        default="",
        description="Shared secret expected in the secret query parameter. Empty rejects every request.",
    )

    # Migrations
    default_base_branch: str = Field(default="main", description="Base branch of pull requests")
    auto_merge: bool = Field(
        default=True,
        description="Enable squash auto-merge on opened pull requests",
    )
    dependencies_file: str | None = Field(
        default=str(BUNDLED_DEPENDENCIES_FILE),
        description="Path to the dependencies.json table, empty disables it",
    )
    github: GithubSettings = Field(default_factory=GithubSettings)
    os_versions: OsVersions = Field(default_factory=OsVersions)
    dependency_update: DependencyUpdateSettings = Field(
        default_factory=DependencyUpdateSettings
    )


@cache
def load_dependency_config(path: str | None) -> DependencyConfig:
    if not path:
        return DependencyConfig()
    return DependencyConfig.model_validate(json.loads(Path(path).read_text()))


settings = Settings()
