from repo_migrations.transforms import text

README = """\
# Title

Intro

## Gitpod

[![Open in Gitpod](https://gitpod.io/button/open-in-gitpod.svg)](https://gitpod.io)

## License

MIT
"""


def test_remove_gitpod_section() -> None:
    updated = text.remove_gitpod_section(README)
    assert updated == "# Title\n\nIntro\n\n## License\n\nMIT\n"
    assert text.remove_gitpod_section(updated) == updated


def test_remove_gitpod_section_last() -> None:
    assert text.remove_gitpod_section("# Title\n\n## Gitpod\n\nlink\n") == "# Title\n\n"


def test_modern_dirname() -> None:
    content = (
        "import { dirname } from 'node:path'\n"
        "import { fileURLToPath } from 'node:url'\n"
        "\n"
        "const __dirname = dirname(fileURLToPath(import.meta.url))\n"
        "\n"
        "export const root = __dirname\n"
    )
    updated = text.modern_dirname(content)
    assert updated == (
        "const __dirname = import.meta.dirname\n\nexport const root = __dirname\n"
    )
    assert text.modern_dirname(updated) == updated


def test_modern_dirname_keeps_used_imports() -> None:
    content = (
        "import { dirname, join } from 'node:path'\n"
        "import { fileURLToPath } from 'node:url'\n"
        "\n"
        "const __dirname = dirname(fileURLToPath(import.meta.url))\n"
        "export const parent = dirname(join(__dirname, 'x'))\n"
    )
    updated = text.modern_dirname(content)
    assert "import { dirname, join } from 'node:path'\n" in updated
    assert "node:url" not in updated
    assert "const __dirname = import.meta.dirname\n" in updated


def test_modern_dirname_untouched() -> None:
    content = "export const x = 1\n"
    assert text.modern_dirname(content) == content
