import re

from repo_migrations.config import OsVersions

NPM_TOKEN_ENV = re.compile(
    r"^[ \t]*env:[ \t]*\n"
    r"(?P<indent>[ \t]+)NODE_AUTH_TOKEN:[ \t]*\$\{\{\s*secrets\.NPM_TOKEN\s*\}\}[ \t]*"
    r"(?:\n|\Z)(?!(?P=indent)\S)",
    re.MULTILINE,
)

OIDC_PERMISSIONS = [
    "permissions:",
    "  id-token: write # Required for OIDC",
    "  contents: write",
]

# runner label -> replacement, applied in order
CI_RUNNER_UPGRADES = (
    ("ubuntu-22.04", "ubuntu-24.04"),
    ("ubuntu-20.04", "ubuntu-24.04"),
    ("macos-14", "macos-15"),
    ("macos-13", "macos-15"),
    ("macos-12", "macos-15"),
    ("windows-2022", "windows-2025"),
    ("windows-2019", "windows-2025"),
)

# whole runner labels only; windows images are named after a year, so
# code pages such as windows-1252 stay untouched
UBUNTU_RUNNER = re.compile(r"(?<![\w.-])ubuntu-\d{2}\.\d{2}(?![\w.])")
WINDOWS_RUNNER = re.compile(r"(?<![\w.-])windows-20\d{2}(?![\w.])")
MACOS_RUNNER = re.compile(r"(?<![\w.-])macos-\d+(?![\w.])")

LINT_STEP_ANCHORS = ("npm run type-check", "npm test", "npm run build")


class NoLintStepAnchorError(ValueError):
    def __init__(self) -> None:
        super().__init__(
            "No suitable location found to add lint step. Expected to find one of: "
            + ", ".join(LINT_STEP_ANCHORS)
        )


def remove_npm_token(content: str) -> str:
    """Drop ``env: NODE_AUTH_TOKEN: ${{secrets.NPM_TOKEN}}`` blocks.

    Only env blocks holding nothing but the token are removed.
    """
    return NPM_TOKEN_ENV.sub("", content)


def add_oidc_permissions(content: str) -> str:
    if "permissions:" in content:
        return content
    lines = content.split("\n")
    jobs_index = next(
        (i for i, line in enumerate(lines) if line.strip().startswith("jobs:")), None
    )
    if jobs_index is None:
        return "\n".join([*lines, "", *OIDC_PERMISSIONS])
    return "\n".join([
        *lines[:jobs_index],
        "",
        *OIDC_PERMISSIONS,
        "",
        *lines[jobs_index:],
    ])


def update_ci_versions(content: str) -> str:
    updated = content
    for old, new in CI_RUNNER_UPGRADES:
        updated = re.sub(rf"{re.escape(old)}(?!\d)", new, updated)
    if updated != content and not updated.endswith("\n"):
        updated += "\n"
    return updated


def update_os_versions(content: str, os_versions: OsVersions) -> str:
    """Point every ubuntu/windows/macos runner label at the configured version."""
    updated = content
    if os_versions.ubuntu:
        updated = UBUNTU_RUNNER.sub(f"ubuntu-{os_versions.ubuntu}", updated)
    if os_versions.windows:
        updated = WINDOWS_RUNNER.sub(f"windows-{os_versions.windows}", updated)
    if os_versions.macos:
        updated = MACOS_RUNNER.sub(f"macos-{os_versions.macos}", updated)
    return updated


def add_lint_step(content: str) -> str:
    """Add ``- run: npm run lint`` after the type-check, test or build step.

    Raises NoLintStepAnchorError when the workflow runs none of them.
    """
    if "npm run lint" in content:
        return content
    lines = content.split("\n")
    for anchor in LINT_STEP_ANCHORS:
        index = next((i for i, line in enumerate(lines) if anchor in line), None)
        if index is not None:
            break
    else:
        raise NoLintStepAnchorError()
    indentation = re.match(r"^\s*", lines[index]).group(0)  # type: ignore[union-attr]
    lines.insert(index + 1, f"{indentation}- run: npm run lint")
    return "\n".join(lines)
