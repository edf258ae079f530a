"""Exceptions raised while resolving an OpenAPI document.

Every fatal error carries the structural path of the offending schema
occurrence so the document location is always identifiable.
"""

from __future__ import annotations

from typing import Any


class SpecgenError(Exception):
    """Base class for fatal resolution errors."""

    def __init__(self, message: str, path: Any = None) -> None:
        self.path = path
        if path is not None:
            message = f"{message} (at {path})"
        super().__init__(message)


class DanglingReferenceError(SpecgenError):
    """A $ref points at nothing in the document."""

    def __init__(self, ref: str, path: Any = None) -> None:
        self.ref = ref
        super().__init__(f"Unresolvable reference {ref!r}", path)


class UnclassifiableSchemaError(SpecgenError):
    """A schema uses a composition the resolver cannot turn into a shape."""


class OverrideCollisionError(SpecgenError):
    """Two explicit type-name overrides resolve to the same final name."""

    def __init__(self, name: str, first: Any, second: Any) -> None:
        self.name = name
        self.first = first
        self.second = second
        super().__init__(
            f"Type name override {name!r} is used by both {first} and {second}"
        )


class ConfigError(SpecgenError):
    """Configuration could not be loaded."""
