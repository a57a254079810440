import json
from typing import Any

LINT_SCRIPT = "eslint . && prettier --check ."
DEFAULT_LICENSE = "MIT"
DEFAULT_AUTHOR = "Lvce Editor"
NPM_SCOPE = "@lvce-editor"
DEPENDENCY_KEYS = ("dependencies", "devDependencies", "optionalDependencies")


def stringify_json(value: Any) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False) + "\n"


def add_lint_script(content: str) -> str:
    package_json = json.loads(content)
    scripts = package_json.setdefault("scripts", {})
    if scripts.get("lint"):
        return content
    scripts["lint"] = LINT_SCRIPT
    return stringify_json(package_json)


def clean_package_json(content: str) -> str:
    """Fill in license and author, drop empty keywords/skip/description."""
    package_json = json.loads(content)
    changed = False
    if not package_json.get("license"):
        package_json["license"] = DEFAULT_LICENSE
        changed = True
    for key in ("keywords", "skip"):
        if package_json.get(key) == []:
            del package_json[key]
            changed = True
    if package_json.get("description") == "":
        del package_json["description"]
        changed = True
    if not package_json.get("author"):
        package_json["author"] = DEFAULT_AUTHOR
        changed = True
    return stringify_json(package_json) if changed else content


def add_repository_link(content: str, owner: str, repo: str) -> str:
    extension_json = json.loads(content)
    if extension_json.get("repository"):
        return content
    extension_json["repository"] = f"https://github.com/{owner}/{repo}"
    return stringify_json(extension_json)


def update_builtin_extension_version(content: str, repository: str, version: str) -> str:
    """Set the version of ``builtin.<repository>`` in builtinExtensions.json."""
    extensions = json.loads(content)
    name = f"builtin.{repository}"
    updated = [
        {**extension, "version": version} if extension.get("name") == name else extension
        for extension in extensions
    ]
    if updated == extensions:
        return content
    return stringify_json(updated)


def initial_package_json(name: str) -> str:
    return stringify_json({"name": name, "version": "1.0.0", "description": ""})


def find_dependency_key(package_json: dict[str, Any], name: str) -> str | None:
    """First dependency section listing ``name``, None when none does."""
    return next(
        (key for key in DEPENDENCY_KEYS if (package_json.get(key) or {}).get(name)),
        None,
    )
