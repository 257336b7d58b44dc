"""Jinja2 rendering for the files RepoForge writes without the AI service.

Workflows, dependency manifests, the ignore file and the agent configuration
are fully determined by the ``ProjectConfig``; they live as ``.j2`` files in
``repoforge/templates/``.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined

TEMPLATE_ROOT = Path(__file__).parent / "templates"


class TemplateRenderer:
    """Strict Jinja2 environment rooted at the bundled template directory.

    Undefined variables raise instead of rendering as empty strings, so a
    context that forgets a key fails the stage rather than producing a
    broken workflow file.
    """

    def __init__(self, root: str | Path | None = None) -> None:
        self.root = Path(root) if root is not None else TEMPLATE_ROOT
        self.env = Environment(
            loader=FileSystemLoader(str(self.root)),
            undefined=StrictUndefined,
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def render(self, name: str, context: Mapping[str, Any]) -> str:
        """Render the template stored at ``root/name``.

        Raises:
            jinja2.TemplateNotFound: If no such template exists.
            jinja2.UndefinedError: If the template uses a name missing from
                *context*.
        """
        return self.env.get_template(name).render(**context)

    def render_tree(self, files: Mapping[str, str], context: Mapping[str, Any]) -> dict[str, str]:
        """Render several templates with one shared context.

        Args:
            files: Output path to template name.
            context: Variables available to every template.

        Returns:
            Output path to rendered text, in the order of *files*, ready for
            ``ProjectWriter.write_tree``.
        """
        return {path: self.render(name, context) for path, name in files.items()}

    def bundled(self, folder: str = "") -> list[str]:
        """Template names under *folder*, sorted, using forward slashes."""
        base = self.root / folder
        if not base.is_dir():
            return []
        return sorted(p.relative_to(self.root).as_posix() for p in base.rglob("*.j2"))
