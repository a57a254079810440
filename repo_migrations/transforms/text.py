import re

GITATTRIBUTES_CONTENT = "* text=auto eol=lf\n"

GITPOD_SECTION = re.compile(
    r"^#{1,6}\s*[Gg]itpod.*?(?=^#{1,6}\s|\Z)", re.MULTILINE | re.DOTALL
)

DIRNAME_ASSIGNMENT = re.compile(
    r"const\s+__dirname\s*=\s*dirname\s*\(\s*fileURLToPath\s*\(\s*import\.meta\.url\s*\)\s*\)"
)
NAMED_IMPORT = r"import\s*{{\s*([^}}]*)\s*}}\s*from\s*['\"]{module}['\"](;?[ \t]*\n?)"
DIRNAME_CALL = re.compile(r"\bdirname\s*\(")


def remove_gitpod_section(content: str) -> str:
    """Remove README sections whose heading starts with Gitpod."""
    return GITPOD_SECTION.sub("", content)


def _drop_named_import(content: str, module: str, name: str) -> str:
    def drop(match: re.Match[str]) -> str:
        names = [n.strip() for n in match.group(1).split(",") if n.strip()]
        remaining = [n for n in names if n != name]
        if not remaining:
            return ""
        return f"import {{ {', '.join(remaining)} }} from '{module}'{match.group(2)}"

    return re.sub(NAMED_IMPORT.format(module=re.escape(module)), drop, content)


def modern_dirname(content: str) -> str:
    """Replace ``dirname(fileURLToPath(import.meta.url))`` by ``import.meta.dirname``.

    Imports only needed by the replaced expression are removed.
    """
    if not DIRNAME_ASSIGNMENT.search(content):
        return content
    updated = DIRNAME_ASSIGNMENT.sub("const __dirname = import.meta.dirname", content)
    if "fileURLToPath" not in _without_imports(updated):
        updated = _drop_named_import(updated, "node:url", "fileURLToPath")
    if not DIRNAME_CALL.search(updated):
        updated = _drop_named_import(updated, "node:path", "dirname")
    updated = re.sub(r"\n\n\n+", "\n\n", updated)
    if not content.startswith("\n"):
        updated = updated.lstrip("\n")
    return updated


def _without_imports(content: str) -> str:
    return re.sub(r"^import\s.*$", "", content, flags=re.MULTILINE)
