"""Per-run registry of the supporting code generated output relies on.

The resolver declares every import, helper, parameter style and custom
type as it resolves the descriptor that needs it, so emitters only emit
what is actually referenced. Registration is idempotent.
"""

from __future__ import annotations


def param_style_key(prefix: str, style: str, explode: bool) -> str:
    """Key for a parameter style: ("style_", "form", True) -> "style_form_explode"."""
    key = f"{prefix}{style}"
    if explode:
        key += "_explode"
    return key


class CodegenContext:
    """Accumulates features needed by one generation run."""

    def __init__(self) -> None:
        self._imports: dict[str, str] = {}
        self._helpers: set[str] = set()
        self._params: set[str] = set()
        self._custom_types: set[str] = set()

    def add_import(self, path: str | None, alias: str = "") -> None:
        if path:
            self._imports.setdefault(path, alias)

    def add_imports(self, imports: dict[str, str]) -> None:
        for path, alias in imports.items():
            self.add_import(path, alias)

    def need_helper(self, name: str) -> None:
        """Record a helper, e.g. "marshal_form" or "union"."""
        if name:
            self._helpers.add(name)

    def need_param(self, style: str, explode: bool) -> None:
        """Record a parameter style for both serialization and binding."""
        self._params.add(param_style_key("style_", style, explode))
        self._params.add(param_style_key("bind_", style, explode))

    def need_custom_type(self, name: str) -> None:
        """Record a support type, e.g. "Nullable"."""
        if name:
            self._custom_types.add(name)

    def imports(self) -> dict[str, str]:
        return dict(sorted(self._imports.items()))

    def required_helpers(self) -> list[str]:
        return sorted(self._helpers)

    def required_params(self) -> list[str]:
        return sorted(self._params)

    def has_any_params(self) -> bool:
        return bool(self._params)

    def required_custom_types(self) -> list[str]:
        return sorted(self._custom_types)
