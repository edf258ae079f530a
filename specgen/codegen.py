"""Render templates and write generated output.

Takes the context from context_builder and produces a Python module of
pydantic models.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import jinja2

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "templates"
OUTPUT_PATH = Path("generated") / "models.py"


def _environment() -> jinja2.Environment:
    env = jinja2.Environment(
        loader=jinja2.FileSystemLoader(str(TEMPLATE_DIR)),
        keep_trailing_newline=True,
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["pyrepr"] = repr
    return env


def render_types(context: dict[str, Any]) -> str:
    """Render the models template to source text."""
    template = _environment().get_template("types.py.j2")
    return template.render(**context)


def generate(context: dict[str, Any], output: str | Path | None = None) -> Path:
    """Render the models template and write it to ``output``."""
    output_path = Path(output) if output is not None else OUTPUT_PATH
    source = render_types(context)

    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(source, encoding="utf-8")
    logger.debug("Wrote %d bytes to %s", len(source), output_path)

    print(
        f"Generated {output_path} ({context['type_count']} types,"
        f" {context['operation_count']} operations)"
    )
    return output_path
