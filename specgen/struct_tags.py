"""Render per-field annotation tags from configured Jinja2 templates.

Each template sees ``field_name`` (the document property name) and
``is_optional``. A template that fails to parse or render is skipped.
"""

from __future__ import annotations

import logging

import jinja2

from .config import StructTagsConfig

logger = logging.getLogger(__name__)


class StructTagGenerator:
    def __init__(self, config: StructTagsConfig | None = None) -> None:
        config = config or StructTagsConfig()
        env = jinja2.Environment(undefined=jinja2.StrictUndefined, autoescape=False)
        self._templates: list[tuple[str, jinja2.Template]] = []
        for tag in config.tags:
            try:
                self._templates.append((tag.name, env.from_string(tag.template)))
            except jinja2.TemplateSyntaxError as e:
                logger.debug("Skipping struct tag %r: %s", tag.name, e)

    def generate_tags_map(self, field_name: str, is_optional: bool) -> dict[str, str]:
        """Tag name -> rendered value, in configured order; empty values dropped."""
        result: dict[str, str] = {}
        for name, template in self._templates:
            try:
                value = template.render(field_name=field_name, is_optional=is_optional)
            except jinja2.TemplateError as e:
                logger.debug("Struct tag %r failed to render for %s: %s", name, field_name, e)
                continue
            if value:
                result[name] = value
        return result

    def generate_tags(self, field_name: str, is_optional: bool) -> str:
        """All tags as one string: 'json:"name,omitempty" form:"name"'."""
        return format_tags(self.generate_tags_map(field_name, is_optional))


def format_tags(tags: dict[str, str]) -> str:
    return " ".join(f'{name}:"{value}"' for name, value in tags.items())
