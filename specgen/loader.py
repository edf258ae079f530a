"""Load and parse an OpenAPI document.

Reads JSON or YAML from disk or over HTTP and extracts paths, webhooks,
component schemas, and local $ref targets.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import httpx
import yaml

from .errors import DanglingReferenceError, SpecgenError

logger = logging.getLogger(__name__)

_YAML_SUFFIXES = {".yaml", ".yml"}


def _parse(text: str, hint: str) -> dict[str, Any]:
    """Parse document text as JSON or YAML based on a filename/content-type hint."""
    if hint.endswith(tuple(_YAML_SUFFIXES)) or "yaml" in hint:
        document = yaml.safe_load(text)
    else:
        try:
            document = json.loads(text)
        except json.JSONDecodeError:
            # YAML is a superset of JSON; retry for unlabelled sources
            document = yaml.safe_load(text)
    if not isinstance(document, dict):
        raise SpecgenError(f"Document root must be a mapping, got {type(document).__name__}")
    return document


def load_document(
    source: str | Path,
    client: httpx.Client | None = None,
) -> dict[str, Any]:
    """Load an OpenAPI document from a file path or an http(s) URL."""
    source_str = str(source)
    if source_str.startswith(("http://", "https://")):
        logger.info("Fetching document from %s", source_str)
        owns_client = client is None
        http = client or httpx.Client(timeout=30.0, follow_redirects=True)
        try:
            resp = http.get(source_str)
            resp.raise_for_status()
        except httpx.HTTPError as e:
            raise SpecgenError(f"Failed to fetch document from {source_str}: {e}") from e
        finally:
            if owns_client:
                http.close()
        hint = source_str + " " + resp.headers.get("content-type", "")
        return _parse(resp.text, hint.lower())

    path = Path(source)
    logger.info("Reading document from %s", path)
    with open(path, encoding="utf-8") as f:
        return _parse(f.read(), path.suffix.lower())


def get_paths(document: dict[str, Any]) -> dict[str, Any]:
    """Extract paths from the document."""
    return document.get("paths") or {}


def get_webhooks(document: dict[str, Any]) -> dict[str, Any]:
    """Extract webhooks (OpenAPI 3.1) from the document."""
    return document.get("webhooks") or {}


def get_schemas(document: dict[str, Any]) -> dict[str, Any]:
    """Extract component schemas from the document."""
    return (document.get("components") or {}).get("schemas") or {}


def ref_segments(ref: str) -> tuple[str, ...]:
    """Split a local JSON pointer ref into unescaped segments."""
    if not ref.startswith("#"):
        raise DanglingReferenceError(ref)
    pointer = ref[1:].lstrip("/")
    if not pointer:
        return ()
    return tuple(
        part.replace("~1", "/").replace("~0", "~") for part in pointer.split("/")
    )


def resolve_ref(document: dict[str, Any], ref: str, path: Any = None) -> Any:
    """Resolve a local $ref pointer in the document.

    Raises DanglingReferenceError (carrying ``path``, the position that
    holds the ref) when the target does not exist.
    """
    try:
        parts = ref_segments(ref)
    except DanglingReferenceError as e:
        raise DanglingReferenceError(ref, path) from e
    node: Any = document
    for part in parts:
        if isinstance(node, dict) and part in node:
            node = node[part]
        elif isinstance(node, list) and part.isdigit() and int(part) < len(node):
            node = node[int(part)]
        else:
            raise DanglingReferenceError(ref, path)
    return node
