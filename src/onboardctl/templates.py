"""Jinja2-backed template rendering with operator overrides.

Built-in templates ship inside the package under ``resources/templates``. An
operator may shadow any of them by placing a file with the same relative name
in the configured ``templates_dir``.
"""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from jinja2 import (
    ChoiceLoader,
    Environment,
    FileSystemLoader,
    PackageLoader,
    StrictUndefined,
)

BUILTIN_PACKAGE = "onboardctl"
BUILTIN_PATH = "resources/templates"


@dataclass(frozen=True)
class TemplateEngine:
    """Render templates with strict undefined-variable handling."""

    environment: Environment

    @classmethod
    def with_overrides(cls, override_dir: Path | None) -> TemplateEngine:
        """Return an engine that consults *override_dir* before built-ins."""
        loaders: list[FileSystemLoader | PackageLoader] = []
        if override_dir is not None and Path(override_dir).is_dir():
            loaders.append(FileSystemLoader(str(override_dir)))
        loaders.append(PackageLoader(BUILTIN_PACKAGE, BUILTIN_PATH))
        environment = Environment(  # noqa: S701 - plain text output, not HTML
            loader=ChoiceLoader(loaders),
            undefined=StrictUndefined,
            keep_trailing_newline=True,
            autoescape=False,
        )
        return cls(environment=environment)

    def render_to_string(self, name: str, context: Mapping[str, object]) -> str:
        """Render template *name* with *context* and return the text."""
        template = self.environment.get_template(name)
        return template.render(**context)


__all__ = ["TemplateEngine"]
