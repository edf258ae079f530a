"""Decide the generated shape of every schema descriptor.

Handles:
- Full type overrides (x-oapi-codegen-type-override)
- oneOf/anyOf with a null member -> NullableWrapper
- oneOf/anyOf -> UnionWrapper, de-duplicated by resolved target
- allOf -> one merged Struct, with per-field directives propagated
- Arrays, objects, maps and scalars
- Field pointer and omit-empty rules

Descriptors are resolved recursively on demand, members before owners, so
every shape that looks at another descriptor sees it already classified.
A descriptor still in progress (a recursive type) is treated as struct-like.
"""

from __future__ import annotations

import logging
from typing import Any

from .config import Configuration, TypeSpec
from .descriptors import (
    Alias,
    Array,
    CompositionGroup,
    Field,
    NullableWrapper,
    ResolvedGraph,
    SchemaDescriptor,
    SchemaPath,
    Shape,
    Struct,
    Target,
    UnionWrapper,
)
from .errors import UnclassifiableSchemaError
from .features import CodegenContext
from .schema_graph import is_null_schema

logger = logging.getLogger(__name__)

_KNOWN_TYPES = {"string", "integer", "number", "boolean", "object", "array", "null"}


class _FieldInfo:
    """A property being merged from one or more struct sources."""

    def __init__(self, name: str, target: SchemaPath, raw: dict[str, Any]) -> None:
        self.name = name
        self.target = target
        self.raw = raw
        self.required = False
        self.skip_pointer = False
        self.omit_empty: bool | None = None


class CompositionResolver:
    def __init__(
        self,
        graph: ResolvedGraph,
        config: Configuration,
        features: CodegenContext,
    ) -> None:
        self.graph = graph
        self.config = config
        self.features = features
        self.keys = config.extensions
        self._in_progress: set[SchemaPath] = set()

    def resolve_all(self) -> None:
        for descriptor in self.graph:
            self.resolve(descriptor.path)

    def resolve(self, path: SchemaPath) -> Shape | None:
        descriptor = self.graph.get(path)
        if descriptor.shape is not None:
            return descriptor.shape
        if path in self._in_progress:
            return None
        self._in_progress.add(path)
        try:
            shape = self._classify(descriptor)
        finally:
            self._in_progress.discard(path)
        descriptor.shape = shape
        return shape

    # -- helpers -----------------------------------------------------------

    def _primitive(self, type_name: str | None, fmt: str | None = None) -> str:
        spec: TypeSpec = self.config.type_mapping.resolve(type_name, fmt)
        self.features.add_import(spec.import_path)
        return spec.type

    def _member(self, descriptor: SchemaDescriptor, *parts: Any) -> SchemaPath | None:
        target = self.graph.target_of(descriptor.path.child(*parts))
        if target is not None:
            self.resolve(target)
        return target

    def canonical(self, path: SchemaPath) -> SchemaPath:
        """Follow Alias chains to the descriptor a path finally denotes."""
        seen = {path}
        while True:
            shape = self.resolve(path)
            if not isinstance(shape, Alias) or not isinstance(shape.target, SchemaPath):
                return path
            if shape.target in seen:
                return path
            seen.add(shape.target)
            path = shape.target

    def _is_reference_like(self, target: Target) -> bool:
        """Shapes whose empty value already means 'absent': arrays, nullables, maps."""
        if not isinstance(target, SchemaPath):
            return False
        shape = self.resolve(self.canonical(target))
        if isinstance(shape, (Array, NullableWrapper)):
            return True
        if isinstance(shape, Struct):
            return not shape.fields and shape.additional is not None
        if isinstance(shape, Alias) and isinstance(shape.target, str):
            return shape.target == self.config.type_mapping.object.type
        return False

    # -- classification ----------------------------------------------------

    def _classify(self, d: SchemaDescriptor) -> Shape:
        s = d.schema

        if d.overrides.type:
            self.features.add_import(d.overrides.type_import)
            return Alias(d.overrides.type)

        if "$ref" in s:
            target = self.graph.target_of(d.path.child("$ref"))
            self.resolve(target)
            return Alias(target)

        has_one, has_any, has_all = "oneOf" in s, "anyOf" in s, "allOf" in s
        if has_one and has_any:
            raise UnclassifiableSchemaError("Schema has both oneOf and anyOf", d.path)
        if has_all and (has_one or has_any):
            raise UnclassifiableSchemaError("allOf cannot be combined with oneOf/anyOf", d.path)

        if has_one or has_any:
            return self._union(d, "oneOf" if has_one else "anyOf")
        if has_all:
            return self._all_of(d)

        types, nullable = self._types(d)

        if "array" in types or (not types and "items" in s):
            element: Target
            if isinstance(s.get("items"), dict):
                element = self._member(d, "items")
            else:
                element = self._primitive(None)
            return Array(element)

        if "object" in types or (not types and ("properties" in s or "additionalProperties" in s)):
            extra = s.get("additionalProperties")
            if s.get("properties") or isinstance(extra, dict):
                return self._struct(d)
            return Alias(self._primitive("object"))

        if len(types) > 1:
            # ["string", "integer"] and the like: no single target
            return Alias(self._primitive(None))

        type_name = types[0] if types else None
        if type_name == "null":
            return Alias("None")
        primitive = self._primitive(type_name, s.get("format"))
        if nullable:
            self.features.need_custom_type("Nullable")
            return NullableWrapper(primitive)
        return Alias(primitive, tuple(s.get("enum") or ()))

    def _types(self, d: SchemaDescriptor) -> tuple[list[str], bool]:
        """Declared non-null types and whether null is admitted."""
        raw = d.schema.get("type")
        declared = raw if isinstance(raw, list) else ([raw] if raw is not None else [])
        for t in declared:
            if t not in _KNOWN_TYPES:
                raise UnclassifiableSchemaError(f"Unknown type {t!r}", d.path)
        nullable = bool(d.schema.get("nullable")) or ("null" in declared and len(declared) > 1)
        types = [t for t in declared if t != "null"] if len(declared) > 1 else declared
        return types, nullable

    def _union(self, d: SchemaDescriptor, kind: str) -> Shape:
        raw_members = d.schema.get(kind) or []
        if not raw_members:
            if self.config.strict_empty_unions:
                raise UnclassifiableSchemaError(f"Empty {kind}", d.path)
            logger.warning("Empty %s at %s; generating an empty union", kind, d.path)
            self.features.need_helper("union")
            return UnionWrapper((), kind)

        group = CompositionGroup(kind)
        for i, sub in enumerate(raw_members):
            if is_null_schema(sub):
                group.has_null = True
                continue
            target = self._member(d, kind, i)
            if target is not None:
                group.members.append(target)

        seen: set[SchemaPath] = set()
        for member in group.members:
            key = self.canonical(member)
            if key not in seen:
                seen.add(key)
                group.unique.append(member)
        if group.collapsed:
            logger.debug(
                "Collapsed %d duplicate %s members at %s",
                len(group.members) - len(group.unique), kind, d.path,
            )

        if group.has_null and len(group.unique) <= 1:
            self.features.need_custom_type("Nullable")
            if not group.unique:
                return NullableWrapper(self._primitive(None))
            inner: Target = group.unique[0]
            if self.canonical(inner) == d.path:
                raise UnclassifiableSchemaError("Nullable wrapper refers to itself", d.path)
            shape = self.resolve(inner)
            while isinstance(shape, NullableWrapper):
                inner = shape.inner
                if not isinstance(inner, SchemaPath):
                    break
                shape = self.resolve(inner)
            return NullableWrapper(inner)

        self.features.need_helper("union")
        if group.has_null:
            self.features.need_custom_type("Nullable")
        discriminator = d.schema.get("discriminator")
        return UnionWrapper(
            tuple(group.unique),
            kind,
            nullable=group.has_null,
            discriminator=discriminator.get("propertyName") if isinstance(discriminator, dict) else None,
        )

    def _all_of(self, d: SchemaDescriptor) -> Shape:
        members = []
        for i in range(len(d.schema["allOf"])):
            member = self._member(d, "allOf", i)
            if member is not None:
                members.append(member)
        if len(members) == 1 and not d.schema.get("properties"):
            only = self.graph.get(members[0])
            if only.is_component:
                return Alias(only.path)
        return self._struct(d)

    # -- structs -----------------------------------------------------------

    def _struct(self, d: SchemaDescriptor) -> Struct:
        merged: dict[str, _FieldInfo] = {}
        required: set[str] = set()
        additional: list[SchemaPath] = []
        self._collect(d.path, merged, required, additional, set())
        for name in required:
            if name in merged:
                merged[name].required = True

        fields = tuple(self._field(info) for info in merged.values())
        return Struct(fields, additional[0] if additional else None)

    def _collect(
        self,
        path: SchemaPath,
        merged: dict[str, _FieldInfo],
        required: set[str],
        additional: list[SchemaPath],
        seen: set[SchemaPath],
    ) -> None:
        """Gather properties of ``path``, following references and nested allOf."""
        if path in seen:
            return
        seen.add(path)
        descriptor = self.graph.get(path)
        schema = descriptor.schema

        if "$ref" in schema and not descriptor.overrides.type:
            target = self.graph.target_of(path.child("$ref"))
            self._collect(target, merged, required, additional, seen)
            return

        for i in range(len(schema.get("allOf") or [])):
            member = self.graph.target_of(path.child("allOf", i))
            if member is not None:
                self._collect(member, merged, required, additional, seen)

        required.update(schema.get("required") or [])
        for name, raw in (schema.get("properties") or {}).items():
            target = self.graph.target_of(path.child("properties", name))
            raw = raw if isinstance(raw, dict) else {}
            info = merged.get(name)
            if info is None:
                info = merged[name] = _FieldInfo(name, target, raw)
            # directives from any member win over their absence
            if raw.get(self.keys.skip_optional_pointer):
                info.skip_pointer = True
            if self.keys.omit_empty in raw:
                info.omit_empty = bool(raw[self.keys.omit_empty]) or bool(info.omit_empty)

        extra = schema.get("additionalProperties")
        if isinstance(extra, dict):
            target = self.graph.target_of(path.child("additionalProperties"))
            if target is not None:
                additional.append(target)

    def _field(self, info: _FieldInfo) -> Field:
        target_desc = self.graph.get(info.target)
        self.resolve(info.target)
        overrides = target_desc.overrides
        skip = info.skip_pointer or bool(overrides.skip_optional_pointer)
        omit = info.omit_empty
        if omit is None and overrides.omit_empty is not None:
            omit = overrides.omit_empty
        if omit is None:
            omit = not info.required
        target_schema = target_desc.schema
        return Field(
            name=info.name,
            target=info.target,
            required=info.required,
            pointer=not info.required and not skip and not self._is_reference_like(info.target),
            omit_empty=omit,
            read_only=bool(info.raw.get("readOnly") or target_schema.get("readOnly")),
            write_only=bool(info.raw.get("writeOnly") or target_schema.get("writeOnly")),
            description=info.raw.get("description") or target_schema.get("description"),
        )


def resolve_shapes(
    graph: ResolvedGraph,
    config: Configuration | None = None,
    features: CodegenContext | None = None,
) -> None:
    """Set the shape of every descriptor in ``graph``."""
    config = config or Configuration()
    features = features if features is not None else graph.features
    CompositionResolver(graph, config, features).resolve_all()
    logger.debug("Resolved shapes for %d descriptors", len(graph))
