"""Classify media types.

Decides which content types get typed descriptors, which are sequential
(a stream of discrete items), and the short token a content type
contributes to generated names.
"""

from __future__ import annotations

import re

from .config import ContentTypesConfig

# Checked in order; sequential types come first so "application/jsonl"
# does not collapse into the generic JSON token.
_SHORT_TOKENS: list[tuple[str, str]] = [
    (r"^text/event-stream$", "EventStream"),
    (r"^application/jsonl$", "JSONL"),
    (r"^application/x-ndjson$", "NDJSON"),
    (r"^application/json-seq$", "JSONSeq"),
    (r"^multipart/mixed$", "MultipartMixed"),
    (r"json", "JSON"),
    (r"^application/x-www-form-urlencoded$", "Form"),
    (r"^multipart/form-data$", "Multipart"),
    (r"^text/plain$", "Text"),
    (r"xml", "XML"),
]


def media_type(content_type: str) -> str:
    """Strip parameters and normalize case: 'Application/JSON; charset=utf-8' -> 'application/json'."""
    return content_type.split(";", 1)[0].strip().lower()


def is_sequential_media_type(content_type: str) -> bool:
    """Check a content type against the default sequential patterns."""
    return ContentTypeMatcher().is_sequential(content_type)


def is_json_media_type(content_type: str) -> bool:
    """JSON documents under the default sequential patterns."""
    return ContentTypeMatcher().is_json(content_type)


def is_form_media_type(content_type: str) -> bool:
    return media_type(content_type) == "application/x-www-form-urlencoded"


class ContentTypeMatcher:
    """Configurable matcher for typed and sequential content types."""

    def __init__(self, config: ContentTypesConfig | None = None) -> None:
        config = config or ContentTypesConfig()
        self._typed = [re.compile(p) for p in config.typed]
        self._sequential = [re.compile(p) for p in config.sequential]

    def is_sequential(self, content_type: str) -> bool:
        mt = media_type(content_type)
        return any(p.search(mt) for p in self._sequential)

    def is_json(self, content_type: str) -> bool:
        """JSON documents: application/json and */*+json, excluding streaming variants."""
        mt = media_type(content_type)
        if self.is_sequential(mt) or "/" not in mt:
            return False
        subtype = mt.split("/", 1)[1]
        return subtype == "json" or subtype.endswith("+json")

    def is_typed(self, content_type: str) -> bool:
        """Whether schemas under this content type get descriptors."""
        mt = media_type(content_type)
        return self.is_sequential(mt) or any(p.search(mt) for p in self._typed)


def short_token(content_type: str, pascal) -> str:
    """Short content-type token for generated names.

    ``pascal`` mangles media types without a well-known token.
    """
    mt = media_type(content_type)
    for pattern, token in _SHORT_TOKENS:
        if re.search(pattern, mt):
            return token
    return pascal(mt)
