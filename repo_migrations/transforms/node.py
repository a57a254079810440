import re

import semver

NVMRC_MAJOR = re.compile(r"^\s*v?(\d+)")
DOCKER_NODE_IMAGE = re.compile(r"node:\d+\.\d+\.\d+")
GITPOD_NVM_INSTALL = re.compile(r"(nvm [\w\s]+) \d+\.\d+\.\d+")
NCU_COMMAND = re.compile(r"OUTPUT=`ncu -u(.*?)`")


def _major(version: str) -> int | None:
    match = NVMRC_MAJOR.match(version)
    return int(match.group(1)) if match else None


def strip_v(version: str) -> str:
    return version.removeprefix("v")


def compute_new_nvmrc_content(current_content: str, new_version: str) -> str:
    """New .nvmrc content; a newer major version already in place is kept."""
    existing_major = _major(current_content)
    new_major = _major(new_version)
    if existing_major is not None and new_major is not None and existing_major > new_major:
        return current_content
    return f"{new_version}\n"


def compute_new_dockerfile_content(current_content: str, new_version: str) -> str:
    return DOCKER_NODE_IMAGE.sub(f"node:{strip_v(new_version)}", current_content)


def compute_new_gitpod_dockerfile_content(current_content: str, new_version: str) -> str:
    return GITPOD_NVM_INSTALL.sub(
        lambda m: f"{m.group(1)} {strip_v(new_version)}", current_content
    )


def ensure_lerna_excluded(content: str) -> str:
    """Exclude lerna from every ``ncu -u`` call of an update script."""

    def exclude(match: re.Match[str]) -> str:
        arguments = match.group(1).rstrip()
        if "-x lerna" in arguments:
            return match.group(0)
        return f"OUTPUT=`ncu -u{arguments} -x lerna`"

    return NCU_COMMAND.sub(exclude, content)


def increment_minor_version(tag_name: str) -> str:
    """v1.2.3 -> v1.3.0, keeping the optional v prefix."""
    has_prefix = tag_name.startswith("v")
    try:
        version = semver.Version.parse(strip_v(tag_name))
    except ValueError as e:
        raise ValueError(
            f"Invalid version format: {tag_name}. Expected format: major.minor.patch"
        ) from e
    new_version = str(version.bump_minor())
    return f"v{new_version}" if has_prefix else new_version
