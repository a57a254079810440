"""Tests for configuration settings."""

import json
from pathlib import Path

import pytest

from repo_migrations.config import (
    BUNDLED_DEPENDENCIES_FILE,
    DependencyConfig,
    OsVersions,
    Settings,
    load_dependency_config,
)


@pytest.mark.parametrize(
    ("field", "value"),
    [
        ("app_name", "my-app"),
        ("log_level", "DEBUG"),
        ("log_format_json", False),
        ("secret", "s3cret"),
        ("default_base_branch", "master"),
        ("auto_merge", False),
        ("dependencies_file", "/etc/dependencies.json"),
    ],
)
def test_settings_custom_values(field: str, value: str | bool) -> None:
    """Test Settings accepts custom values for all fields."""
    settings = Settings(**{field: value})  # type: ignore[arg-type]
    assert getattr(settings, field) == value


def test_settings_model_config_env_prefix() -> None:
    """Test Settings model_config has the REPO_MIGRATIONS_ prefix."""
    assert Settings.model_config["env_prefix"] == "REPO_MIGRATIONS_"
    assert Settings.model_config["env_nested_delimiter"] == "__"


def test_settings_nested_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test nested settings are read with the __ delimiter."""
    monkeypatch.setenv("REPO_MIGRATIONS_GITHUB__API_URL", "https://ghe.example.com/api/v3")
    monkeypatch.setenv("REPO_MIGRATIONS_OS_VERSIONS__MACOS", "14")
    monkeypatch.setenv("REPO_MIGRATIONS_DEPENDENCY_UPDATE__MAX_ATTEMPTS", "5")

    settings = Settings()

    assert settings.github.api_url == "https://ghe.example.com/api/v3"
    assert settings.os_versions == OsVersions(macos="14")
    assert settings.dependency_update.max_attempts == 5


def test_os_versions_defaults() -> None:
    """Test the default runner versions."""
    assert OsVersions() == OsVersions(ubuntu="24.04", windows="2025", macos="15")


def test_load_dependency_config(tmp_path: Path) -> None:
    """Test the dependencies table is loaded from JSON."""
    path = tmp_path / "dependencies.json"
    path.write_text(
        json.dumps({
            "dependencies": [
                {"fromRepo": "renderer-process", "toRepo": "lvce-editor", "toFolder": "packages/x"},
                {"fromRepo": "other", "toRepo": "y", "unknown": True},
            ]
        })
    )

    config = load_dependency_config(str(path))

    assert [d.to_repo for d in config.released_by("renderer-process")] == ["lvce-editor"]
    assert config.dependencies[0].to_folder == "packages/x"
    assert load_dependency_config(str(path)) is config


def test_load_dependency_config_without_file() -> None:
    """Test no configured file means an empty table."""
    assert load_dependency_config(None) == DependencyConfig()


def test_settings_default_dependencies_file() -> None:
    """Test the bundled dependencies table is used unless configured otherwise."""
    assert Settings().dependencies_file == str(BUNDLED_DEPENDENCIES_FILE)
    assert BUNDLED_DEPENDENCIES_FILE.is_file()


def test_load_bundled_dependency_config() -> None:
    """Test the bundled table parses and lists dependents of released repositories."""
    config = load_dependency_config(str(BUNDLED_DEPENDENCIES_FILE))

    assert config.dependencies
    assert [d.to_repo for d in config.released_by("test-with-playwright")] == [
        "test-worker"
    ]
    (source_control,) = config.released_by("source-control-view")
    assert source_control.as_name == "source-control-worker"
    assert source_control.to_folder == "packages/renderer-worker"
