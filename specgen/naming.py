"""Convert document names into target identifiers.

Type names are PascalCase with known initialisms upper-cased, attribute and
variable names are snake_case:

  Resource_MVO          -> ResourceMVO
  JsonPatch             -> JSONPatch
  createOrder           -> CreateOrder
  application/merge-patch+json -> ApplicationMergePatchJSON
  petId                 -> pet_id
  class                 -> class_

Operations without an operationId get one from method + path:

  GET  /pets                -> GetPets
  GET  /pets/{petId}        -> GetPetsPetID
  POST /api/v0/searches     -> PostAPIV0Searches
"""

from __future__ import annotations

import keyword
import re
from collections import defaultdict

from .config import NameMangling, NameSubstitutions

# Names the generated models module binds itself
_MODULE_NAMES = {
    "Any", "BaseModel", "ConfigDict", "Field", "Literal", "Optional", "Union",
}

# Attributes pydantic models already define
_MODEL_ATTRIBUTES = {
    "construct", "copy", "dict", "fields", "json", "parse_obj", "parse_raw",
    "schema", "schema_json", "validate", "model_config", "model_fields",
}


def _camel_to_snake(name: str) -> str:
    """Convert camelCase or PascalCase to snake_case."""
    s1 = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1_\2", name)
    return re.sub(r"([a-z\d])([A-Z])", r"\1_\2", s1).lower()


def _split_words(name: str) -> list[str]:
    """Split a name into words on separators and case boundaries."""
    s1 = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1_\2", name)
    s2 = re.sub(r"([a-z\d])([A-Z])", r"\1_\2", s1)
    return [w for w in re.split(r"[^A-Za-z0-9]+", s2) if w]


def _sanitize_segment(segment: str) -> str:
    """Sanitize a name for use in a Python identifier."""
    name = _camel_to_snake(segment)
    name = re.sub(r"[.\-]", "_", name)
    name = re.sub(r"[^a-z0-9_]", "_", name)
    name = re.sub(r"_+", "_", name)
    return name.strip("_")


def _extract_path_parts(path: str) -> list[str]:
    """Extract path segments, keeping {param} names as words."""
    return [p.strip("{}") for p in path.split("/") if p]


class NameMangler:
    """Applies the configured casing, reserved-word and substitution rules."""

    def __init__(
        self,
        mangling: NameMangling | None = None,
        substitutions: NameSubstitutions | None = None,
    ) -> None:
        self.mangling = mangling or NameMangling()
        self.substitutions = substitutions or NameSubstitutions()
        self._initialisms = {i.upper(): i for i in self.mangling.initialisms}
        extra = set(self.mangling.reserved_words)
        self._reserved_types = set(keyword.kwlist) | _MODULE_NAMES | extra
        self._reserved_fields = (
            set(keyword.kwlist) | set(keyword.softkwlist) | _MODEL_ATTRIBUTES | extra
        )

    def _word(self, word: str) -> str:
        if word.upper() in self._initialisms:
            return self._initialisms[word.upper()]
        return word[0].upper() + word[1:]

    def pascal(self, name: str) -> str:
        """PascalCase ``name`` without substitution or reserved-word handling."""
        return "".join(self._word(w) for w in _split_words(name))

    def type_name(self, raw: str) -> str:
        """Mangle a document name into a type identifier."""
        if raw in self.substitutions.type_names:
            return self.substitutions.type_names[raw]
        name = self.pascal(raw)
        if name in self.substitutions.type_names:
            return self.substitutions.type_names[name]
        if not name:
            name = "Type"
        if name[0].isdigit():
            name = self.mangling.digit_prefix + name
        if name in self._reserved_types:
            name += self.mangling.reserved_suffix
        return name

    def field_name(self, raw: str) -> str:
        """Mangle a property or parameter name into a snake_case attribute."""
        if raw in self.substitutions.property_names:
            return self.substitutions.property_names[raw]
        name = _sanitize_segment(raw) or "field"
        if name[0].isdigit():
            name = self.mangling.digit_prefix.lower() + "_" + name
        if name in self._reserved_fields or name.startswith("model_"):
            name += self.mangling.reserved_suffix
        return name

    def field_names(self, raws: list[str]) -> list[str]:
        """Mangle the property names of one struct into distinct attributes.

        Names that mangle alike (petId, pet_id) are all suffixed 1..n.
        """
        names = assign_unique([(i, self.field_name(raw)) for i, raw in enumerate(raws)], set())
        return [names[i] for i in range(len(raws))]

    def operation_id(self, operation_id: str | None, method: str, path: str) -> str:
        """Mangle an operationId, deriving one from method + path when absent."""
        if operation_id:
            return self.type_name(operation_id)
        return self.type_name(derive_operation_id(method, path))


def assign_unique(
    bases: list[tuple[object, str]],
    taken: set[str],
) -> dict[object, str]:
    """Give each (key, base) a unique name.

    A base used by more than one key, or already in ``taken``, is suffixed
    1..n for every holder in order. ``taken`` is updated in place.
    """
    counts: dict[str, int] = defaultdict(int)
    for _, base in bases:
        counts[base] += 1

    result: dict[object, str] = {}
    next_suffix: dict[str, int] = defaultdict(int)
    for key, base in bases:
        if counts[base] == 1 and base not in taken:
            name = base
        else:
            while True:
                next_suffix[base] += 1
                name = f"{base}{next_suffix[base]}"
                if name not in taken and name not in counts:
                    break
        taken.add(name)
        result[key] = name
    return result


def derive_operation_id(method: str, path: str) -> str:
    """Build a raw operation identifier from HTTP method and path."""
    parts = _extract_path_parts(path)
    if not parts:
        return f"{method.lower()}_root"
    return "_".join([method.lower(), *parts])


def is_identifier(name: object) -> bool:
    """Check that an operator-supplied name is a usable identifier."""
    return (
        isinstance(name, str)
        and name.isidentifier()
        and not keyword.iskeyword(name)
    )
