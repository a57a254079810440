from repo_migrations.errors import MigrationError
from repo_migrations.migrations.base import (
    FileSet,
    Migration,
    MigrationOptions,
    PullRequestMetadata,
    create_if_missing,
    files,
    files_with_suffix,
    fixed_metadata,
    per_file,
    timestamp,
    timestamped_metadata,
    workflow_files,
)
from repo_migrations.result import ChangedFile, ErrorCode
from repo_migrations.transforms import node, package_json, text, workflows

CI_WORKFLOWS = ("pr.yml", "ci.yml", "release.yml")
UPDATE_DEPENDENCIES_SCRIPT = "scripts/update-dependencies.sh"
DEVCONTAINER_JSON = package_json.stringify_json({
    "customizations": {"vscode": {"extensions": []}},
    "features": {},
    "image": "mcr.microsoft.com/devcontainers/javascript-node:1-24",
    "name": "Node.js 24",
})


def _ensure_trailing_newline(content: str) -> str:
    return content if content.endswith("\n") else content + "\n"


def _update_os_versions(content: str, options: MigrationOptions) -> str:
    updated = workflows.update_os_versions(content, options.os_versions)
    if updated == content:
        return content
    return _ensure_trailing_newline(updated)


def _run_lint_in_ci(file_set: FileSet, options: MigrationOptions) -> dict[str, str | None]:
    updated: dict[str, str | None] = {}
    errors = []
    for path, content in file_set.items():
        if content is None:
            updated[path] = None
            continue
        try:
            updated[path] = workflows.add_lint_step(content)
        except workflows.NoLintStepAnchorError as e:
            errors.append(f"{path.rsplit('/', 1)[-1]}: {e}")
    if errors:
        raise MigrationError("; ".join(errors), ErrorCode.RUN_LINT_IN_CI_FAILED)
    return updated


def _remove_all(file_set: FileSet, options: MigrationOptions) -> dict[str, str | None]:
    return dict.fromkeys(file_set)


def _remove_gitpod_metadata(
    changed_files: list[ChangedFile], options: MigrationOptions
) -> PullRequestMetadata:
    title = "ci: remove " + " and ".join(f.path for f in changed_files)
    return PullRequestMetadata(
        branch_name="feature/remove-gitpod-yml",
        commit_message=title,
        pull_request_title=title,
    )


def _initialize_package_json(
    file_set: FileSet, options: MigrationOptions
) -> dict[str, str | None]:
    return {
        path: package_json.initial_package_json(options.repo) if content is None else content
        for path, content in file_set.items()
    }


def _update_node_version(file_set: FileSet, options: MigrationOptions) -> dict[str, str | None]:
    version = options.node_version
    if not version:
        raise MigrationError(
            "a node version is required", ErrorCode.UPDATE_NODE_VERSION_FAILED
        )
    updated: dict[str, str | None] = dict(file_set)
    if (nvmrc := file_set.get(".nvmrc")) is not None:
        try:
            updated[".nvmrc"] = node.compute_new_nvmrc_content(nvmrc, version)
        except Exception as e:
            raise MigrationError(str(e), ErrorCode.COMPUTE_NVMRC_CONTENT_FAILED) from e
    for path, compute in (
        ("Dockerfile", node.compute_new_dockerfile_content),
        (".gitpod.Dockerfile", node.compute_new_gitpod_dockerfile_content),
    ):
        if (content := file_set.get(path)) is not None:
            try:
                updated[path] = compute(content, version)
            except Exception as e:
                raise MigrationError(
                    str(e), ErrorCode.COMPUTE_DOCKERFILE_CONTENT_FAILED
                ) from e
    return updated


def _update_node_version_metadata(
    changed_files: list[ChangedFile], options: MigrationOptions
) -> PullRequestMetadata:
    title = f"ci: update Node.js to version {options.node_version}"
    return PullRequestMetadata(
        branch_name=f"update-node-version-{timestamp()}",
        commit_message=title,
        pull_request_title=title,
    )


FILE_MIGRATIONS: tuple[Migration, ...] = (
    Migration(
        name="remove-npm-token",
        error_code=ErrorCode.REMOVE_NPM_TOKEN_FAILED,
        scope=workflow_files("release.yml"),
        transform=per_file(lambda content, _: workflows.remove_npm_token(content)),
        metadata=timestamped_metadata(
            "remove-npm-token", "ci: remove NODE_AUTH_TOKEN from release workflow"
        ),
    ),
    Migration(
        name="add-oidc-permissions",
        error_code=ErrorCode.ADD_OIDC_PERMISSIONS_FAILED,
        scope=workflow_files("release.yml"),
        transform=per_file(lambda content, _: workflows.add_oidc_permissions(content)),
        metadata=fixed_metadata(
            "feature/add-oidc-permissions",
            "ci: add OIDC permissions to release workflow",
        ),
    ),
    Migration(
        name="update-ci-versions",
        error_code=ErrorCode.UPDATE_CI_VERSIONS_FAILED,
        scope=workflow_files(*CI_WORKFLOWS),
        transform=per_file(lambda content, _: workflows.update_ci_versions(content)),
        metadata=fixed_metadata(
            "feature/update-ci-versions", "ci: update CI runner versions"
        ),
    ),
    Migration(
        name="update-github-actions",
        error_code=ErrorCode.UPDATE_GITHUB_ACTIONS_FAILED,
        scope=files_with_suffix(".yml", ".yaml", directory=".github/workflows/"),
        transform=per_file(_update_os_versions),
        metadata=timestamped_metadata("update-gh-actions", "ci: update CI OS versions"),
    ),
    Migration(
        name="add-gitattributes",
        error_code=ErrorCode.ADD_GITATTRIBUTES_FAILED,
        scope=files(".gitattributes"),
        transform=create_if_missing(text.GITATTRIBUTES_CONTENT),
        metadata=fixed_metadata("feature/add-gitattributes", "ci: add .gitattributes file"),
    ),
    Migration(
        name="remove-gitpod-section",
        error_code=ErrorCode.REMOVE_GITPOD_SECTION_FAILED,
        scope=files("README.md"),
        transform=per_file(lambda content, _: text.remove_gitpod_section(content)),
        metadata=fixed_metadata(
            "feature/remove-gitpod-section", "ci: remove Gitpod section from README"
        ),
    ),
    Migration(
        name="remove-gitpodyml",
        error_code=ErrorCode.REMOVE_GITPOD_YML_FAILED,
        scope=files(".gitpod.yml", ".gitpod.Dockerfile"),
        transform=_remove_all,
        metadata=_remove_gitpod_metadata,
    ),
    Migration(
        name="add-lint-script",
        error_code=ErrorCode.ADD_LINT_SCRIPT_FAILED,
        scope=files("package.json"),
        transform=per_file(lambda content, _: package_json.add_lint_script(content)),
        metadata=fixed_metadata("feature/add-lint-script", "feature: add lint script"),
    ),
    Migration(
        name="clean-package-json",
        error_code=ErrorCode.CLEAN_PACKAGE_JSON_FAILED,
        scope=files("package.json"),
        transform=per_file(lambda content, _: package_json.clean_package_json(content)),
        metadata=fixed_metadata("feature/clean-package-json", "chore: clean package.json"),
    ),
    Migration(
        name="add-repository-link",
        error_code=ErrorCode.ADD_REPOSITORY_LINK_FAILED,
        scope=files("extension.json", "packages/extension/extension.json"),
        transform=per_file(
            lambda content, options: package_json.add_repository_link(
                content, options.owner, options.repo
            )
        ),
        metadata=fixed_metadata(
            "feature/add-repository-link",
            "feature: add repository link to extension.json",
        ),
    ),
    Migration(
        name="run-lint-in-ci",
        error_code=ErrorCode.RUN_LINT_IN_CI_FAILED,
        scope=workflow_files(*CI_WORKFLOWS),
        transform=_run_lint_in_ci,
        metadata=fixed_metadata("ci/add-lint-step", "ci: add lint step to workflows"),
    ),
    Migration(
        name="add-devcontainer-json",
        error_code=ErrorCode.ADD_DEVCONTAINER_JSON_FAILED,
        scope=files(".devcontainer/devcontainer.json"),
        transform=create_if_missing(DEVCONTAINER_JSON),
        metadata=fixed_metadata(
            "feature/add-devcontainer-json",
            "chore: add devcontainer.json with Node.js 24",
        ),
    ),
    Migration(
        name="modern-dirname",
        error_code=ErrorCode.MODERN_DIRNAME_FAILED,
        scope=files_with_suffix(".js", ".ts"),
        transform=per_file(lambda content, _: text.modern_dirname(content)),
        metadata=fixed_metadata(
            "feature/modern-dirname",
            "chore: modernize __dirname to use import.meta.dirname",
        ),
        requires_clone=True,
    ),
    Migration(
        name="update-node-version",
        error_code=ErrorCode.UPDATE_NODE_VERSION_FAILED,
        scope=files(".nvmrc", "Dockerfile", ".gitpod.Dockerfile"),
        transform=_update_node_version,
        metadata=_update_node_version_metadata,
        requires_node_version=True,
    ),
    Migration(
        name="ensure-lerna-excluded",
        error_code=ErrorCode.ENSURE_LERNA_EXCLUDED_FAILED,
        scope=files(UPDATE_DEPENDENCIES_SCRIPT),
        transform=per_file(lambda content, _: node.ensure_lerna_excluded(content)),
        metadata=fixed_metadata(
            "feature/ensure-lerna-excluded",
            "ci: exclude lerna from dependency updates",
        ),
    ),
    Migration(
        name="initialize-package-json",
        error_code=ErrorCode.INITIALIZE_PACKAGE_JSON_FAILED,
        scope=files("package.json"),
        transform=_initialize_package_json,
        metadata=fixed_metadata(
            "feature/initialize-package-json", "chore: initialize package.json"
        ),
    ),
)
