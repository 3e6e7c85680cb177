"""Template rendering helpers built on Jinja2.

Built-in templates ship inside this package (``nginx/*.j2``). Operators may
shadow any of them by placing a file with the same relative name under the
configured ``templates_dir``.
"""
from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from jinja2 import (
    BaseLoader,
    ChoiceLoader,
    Environment,
    FileSystemLoader,
    PackageLoader,
    StrictUndefined,
)


@dataclass(slots=True)
class TemplateEngine:
    """Render Jinja2 templates with strict undefined handling."""

    environment: Environment

    @classmethod
    def with_overrides(cls, override_dir: Path | None) -> TemplateEngine:
        """Return an engine that prefers *override_dir* over built-in templates."""
        loaders: list[BaseLoader] = []
        if override_dir is not None and override_dir.is_dir():
            loaders.append(FileSystemLoader(str(override_dir)))
        loaders.append(PackageLoader("proxywiz", "templates"))
        environment = Environment(
            loader=ChoiceLoader(loaders),
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
            autoescape=False,
        )
        return cls(environment=environment)

    def render_to_string(self, template_name: str, context: Mapping[str, object]) -> str:
        """Render *template_name* with *context* and return the text."""
        template = self.environment.get_template(template_name)
        return template.render(**dict(context))


def write_text_if_changed(destination: Path, content: str, *, mode: int = 0o644) -> bool:
    """Replace *destination* with *content* atomically; no-op when identical."""
    if destination.exists() and not destination.is_symlink():
        if destination.read_text(encoding="utf-8") == content:
            destination.chmod(mode)
            return False
    destination.parent.mkdir(parents=True, exist_ok=True)
    staging = destination.with_name(f".{destination.name}.tmp")
    staging.write_text(content, encoding="utf-8")
    staging.chmod(mode)
    os.replace(staging, destination)
    return True


__all__ = ["TemplateEngine", "write_text_if_changed"]
