import json
import sys
from collections.abc import Callable

import click

from repo_migrations.config import settings
from repo_migrations.dispatch import (
    parse_repository,
    release_released,
    run_migration,
    run_update_dependencies,
    run_update_specific_dependency,
)
from repo_migrations.logger import setup_logging
from repo_migrations.migrations.base import MigrationOptions
from repo_migrations.registry import available_migrations
from repo_migrations.result import MigrationResult
from repo_migrations.specific_dependency import SpecificDependencyOptions


def log_level(function: Callable) -> Callable:
    function = click.option(
        "--log-level",
        help="log-level of the command. Defaults to INFO.",
        type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]),
    )(function)
    return function


def repository(function: Callable) -> Callable:
    function = click.option(
        "--repository",
        required=True,
        help="target repository as owner/repo.",
    )(function)
    return function


def dry_run(function: Callable) -> Callable:
    help_msg = (
        "If `true`, it will only print the computed changes "
        "without creating a branch or pull request."
    )

    function = click.option("--dry-run/--no-dry-run", default=False, help=help_msg)(
        function
    )
    return function


def split_repository(name: str) -> tuple[str, str]:
    parsed = parse_repository(name)
    if parsed is None:
        raise click.BadParameter(f"{name}. Expected format: owner/repo")
    return parsed


def print_result(result: MigrationResult) -> None:
    body = result.to_response_body()
    if result.changed_files:
        body["files"] = [f.path for f in result.changed_files]
    print(json.dumps(body, indent=2))
    if result.is_error:
        sys.exit(1)


@click.group()
@log_level
def cli(log_level: str | None) -> None:
    setup_logging(log_level=log_level)


@cli.command(name="list")
def list_migrations() -> None:
    """List all registered migrations."""
    for name in available_migrations():
        print(name)


@cli.command()
@click.argument("name")
@repository
@click.option("--base-branch", help="base branch of the pull request.", default=None)
@click.option("--node-version", help="Node.js version, e.g. v22.11.0.", default=None)
@dry_run
def run(
    name: str,
    repository: str,
    base_branch: str | None,
    node_version: str | None,
    dry_run: bool,
) -> None:
    """Run migration NAME against a repository."""
    owner, repo = split_repository(repository)
    options = MigrationOptions(
        owner=owner,
        repo=repo,
        base_branch=base_branch or settings.default_base_branch,
        os_versions=settings.os_versions,
        node_version=node_version,
    )
    print_result(run_migration(name, options, settings, dry_run=dry_run))


@cli.command(name="update-dependencies")
@repository
@click.option("--node-version", help="Node.js version, e.g. v22.11.0.", default=None)
def update_dependencies(repository: str, node_version: str | None) -> None:
    """Run the repository's dependency update script and propose the result."""
    owner, repo = split_repository(repository)
    print_result(run_update_dependencies(owner, repo, settings, node_version=node_version))


@cli.command(name="release-released")
@repository
@click.option("--tag-name", required=True, help="released tag, e.g. v1.2.0.")
@dry_run
def release(repository: str, tag_name: str, dry_run: bool) -> None:
    """Propagate a published release."""
    owner, repo = split_repository(repository)
    print_result(release_released(owner, repo, tag_name, settings, dry_run=dry_run))


@cli.command(name="update-specific-dependency")
@click.option("--owner", required=True, help="owner of both repositories.")
@click.option("--from-repo", required=True, help="released repository.")
@click.option("--to-repo", required=True, help="repository consuming the package.")
@click.option("--to-folder", required=True, help="folder holding the package.json to update.")
@click.option("--tag-name", required=True, help="released tag, e.g. v1.2.0.")
@click.option("--as-name", default=None, help="package name if it differs from --from-repo.")
@dry_run
def update_specific_dependency(
    owner: str,
    from_repo: str,
    to_repo: str,
    to_folder: str,
    tag_name: str,
    as_name: str | None,
    dry_run: bool,
) -> None:
    """Bump one dependency of a repository to a released version."""
    options = SpecificDependencyOptions(
        from_repo=from_repo,
        to_repo=to_repo,
        to_folder=to_folder,
        tag_name=tag_name,
        as_name=as_name,
    )
    print_result(
        run_update_specific_dependency(owner, options, settings, dry_run=dry_run)
    )


@cli.command()
@click.option("--host", default="0.0.0.0", help="bind address.")
@click.option("--port", default=8080, type=int, help="bind port.")
def serve(host: str, port: int) -> None:
    """Serve the HTTP API."""
    import uvicorn  # noqa: PLC0415

    uvicorn.run("repo_migrations.api.main:app", host=host, port=port)
