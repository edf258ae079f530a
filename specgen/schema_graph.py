"""Walk an OpenAPI document and collect every schema occurrence.

Produces one SchemaDescriptor per distinct structural position:

- component schemas, in declaration order
- parameter, request body and response schemas of every operation
  (paths in declaration order, then methods), their callbacks, then webhooks
- nested properties, items, additionalProperties and composition branches
- itemSchema bindings under sequential media types

A $ref into components/schemas is a reference, not an occurrence; the
position records its target. $refs to shared parameters, request bodies,
responses, path items and headers are dereferenced where they are used, so
every use is its own occurrence. No naming or shape decisions happen here.
"""

from __future__ import annotations

import logging
from typing import Any

from .config import Configuration, ExtensionKeys
from .content_types import ContentTypeMatcher
from .descriptors import (
    OperationKey,
    OperationKind,
    OperationOrigin,
    Origin,
    Overrides,
    ResolvedGraph,
    Role,
    SchemaDescriptor,
    SchemaPath,
    Section,
)
from .errors import DanglingReferenceError, SpecgenError
from .loader import get_paths, get_schemas, get_webhooks, ref_segments, resolve_ref

logger = logging.getLogger(__name__)

HTTP_METHODS = ("get", "put", "post", "delete", "options", "head", "patch", "trace")

_SCHEMA_REF_PREFIX = ("components", "schemas")


def is_null_schema(schema: Any) -> bool:
    """A schema that only admits null: {"type": "null"} or {"type": ["null"]}."""
    if not isinstance(schema, dict):
        return False
    t = schema.get("type")
    if t == "null" or t == ["null"]:
        return not any(k in schema for k in ("properties", "items", "oneOf", "anyOf", "allOf"))
    return False


def read_overrides(schema: dict[str, Any], keys: ExtensionKeys) -> Overrides:
    """Collect operator overrides from a schema's extension keys."""
    type_override = schema.get(keys.type_override)
    type_import = None
    if isinstance(type_override, dict):
        type_import = type_override.get("import")
        type_override = type_override.get("type")
    if type_override is not None and not isinstance(type_override, str):
        logger.debug("Ignoring non-string %s: %r", keys.type_override, type_override)
        type_override = None
    skip = schema.get(keys.skip_optional_pointer)
    omit = schema.get(keys.omit_empty)
    return Overrides(
        type_name=schema.get(keys.type_name_override),
        type=type_override,
        type_import=type_import,
        skip_optional_pointer=None if skip is None else bool(skip),
        omit_empty=None if omit is None else bool(omit),
    )


class _GraphBuilder:
    def __init__(
        self,
        document: dict[str, Any],
        config: Configuration,
        matcher: ContentTypeMatcher,
    ) -> None:
        self.document = document
        self.config = config
        self.matcher = matcher
        self.graph = ResolvedGraph(document)
        self._inline_refs: list[str] = []

    # -- references ---------------------------------------------------------

    def _deref(self, node: Any, position: SchemaPath) -> Any:
        return deref(self.document, node, position)

    def _record_ref(self, position: SchemaPath, ref: str) -> bool:
        """Record a schema reference; False when the ref must be inlined."""
        if not isinstance(ref, str):
            raise DanglingReferenceError(repr(ref), position)
        resolve_ref(self.document, ref, position)
        segments = ref_segments(ref)
        if segments[:2] != _SCHEMA_REF_PREFIX or len(segments) < 3:
            return False
        self.graph.references[position] = SchemaPath(segments)
        return True

    # -- schemas ------------------------------------------------------------

    def visit(
        self,
        position: SchemaPath,
        schema: Any,
        section: Section,
        scope: Section,
        *,
        raw_name: str | None = None,
        parent: SchemaPath | None = None,
        role: Role = Role.ROOT,
        role_key: str | None = None,
        origin: Origin | None = None,
    ) -> SchemaPath | None:
        """Visit a schema position; returns the descriptor path it resolves to."""
        if not isinstance(schema, dict):
            schema = {}

        is_component_root = role is Role.ROOT and section is Section.COMPONENT_SCHEMA
        if "$ref" in schema and not is_component_root:
            ref = schema["$ref"]
            if self._record_ref(position, ref):
                return self.graph.references[position]
            if ref in self._inline_refs:
                raise SpecgenError(f"Circular reference {ref!r}", position)
            self._inline_refs.append(ref)
            try:
                target = resolve_ref(self.document, ref, position)
                return self.visit(
                    position, target, section, scope,
                    raw_name=raw_name, parent=parent, role=role,
                    role_key=role_key, origin=origin,
                )
            finally:
                self._inline_refs.pop()

        descriptor = SchemaDescriptor(
            path=position,
            section=section,
            schema=schema,
            scope=scope,
            raw_name=raw_name,
            parent=parent,
            role=role,
            role_key=role_key,
            origin=origin,
            overrides=read_overrides(schema, self.config.extensions),
        )
        self.graph.add(descriptor)

        if "$ref" in schema:
            # a component that is nothing but a reference to another one
            if not self._record_ref(position.child("$ref"), schema["$ref"]):
                raise SpecgenError(
                    f"Component schema refers outside components: {schema['$ref']!r}",
                    position,
                )
            return position

        self._visit_children(descriptor)
        return position

    def _visit_children(self, descriptor: SchemaDescriptor) -> None:
        schema = descriptor.schema
        position = descriptor.path

        def child(sub: Any, where: SchemaPath, role: Role, key: str | None = None) -> None:
            self.visit(
                where, sub, Section.INLINE, descriptor.scope,
                parent=position, role=role, role_key=key, origin=descriptor.origin,
            )

        for name, sub in (schema.get("properties") or {}).items():
            child(sub, position.child("properties", name), Role.PROPERTY, name)

        if isinstance(schema.get("items"), dict):
            child(schema["items"], position.child("items"), Role.ITEMS)

        if isinstance(schema.get("additionalProperties"), dict):
            child(
                schema["additionalProperties"],
                position.child("additionalProperties"),
                Role.ADDITIONAL_PROPERTIES,
            )

        for keyword, role in (("oneOf", Role.ONE_OF), ("anyOf", Role.ANY_OF)):
            for i, sub in enumerate(schema.get(keyword) or []):
                if is_null_schema(sub):
                    descriptor.null_members += 1
                    continue
                child(sub, position.child(keyword, i), role, str(i))

        for i, sub in enumerate(schema.get("allOf") or []):
            child(sub, position.child("allOf", i), Role.ALL_OF, str(i))

    # -- operations ---------------------------------------------------------

    def walk(self) -> ResolvedGraph:
        for name, schema in get_schemas(self.document).items():
            self.visit(
                SchemaPath.of("components", "schemas", name),
                schema,
                Section.COMPONENT_SCHEMA,
                Section.COMPONENT_SCHEMA,
                raw_name=name,
            )

        for path, path_item in get_paths(self.document).items():
            base = SchemaPath.of("paths", path)
            self._walk_path_item(base, path_item, OperationKind.PATH, path, path)

        for name, path_item in get_webhooks(self.document).items():
            base = SchemaPath.of("webhooks", name)
            self._walk_path_item(base, path_item, OperationKind.WEBHOOK, name, name)

        self._check_references()
        logger.debug(
            "Collected %d schema descriptors across %d operations",
            len(self.graph), len(self.graph.origins),
        )
        return self.graph

    def _walk_path_item(
        self,
        base: SchemaPath,
        path_item: Any,
        kind: OperationKind,
        location: str,
        path: str,
    ) -> None:
        path_item = self._deref(path_item, base)
        if not isinstance(path_item, dict):
            return
        for method in path_item:
            if method not in HTTP_METHODS or not isinstance(path_item[method], dict):
                continue
            operation = path_item[method]
            origin = OperationOrigin(
                key=OperationKey(kind, location, method),
                operation_id=operation.get("operationId"),
                path=path,
                operation=operation,
                path_item=path_item,
                base_path=base.child(method),
            )
            self.graph.origins.append(origin)
            self._walk_operation(origin)

            for cb_name, callback in (operation.get("callbacks") or {}).items():
                cb_base = origin.base_path.child("callbacks", cb_name)
                callback = self._deref(callback, cb_base)
                for expression, cb_item in (callback or {}).items():
                    self._walk_path_item(
                        cb_base.child(expression),
                        cb_item,
                        OperationKind.CALLBACK,
                        f"{location} {cb_name} {expression}",
                        expression,
                    )

    def _walk_operation(self, origin: OperationOrigin) -> None:
        base = origin.base_path
        key = origin.key

        for param in merged_parameters(self.document, origin):
            name, location = param.get("name"), param.get("in")
            if not name or not location:
                continue
            position = parameter_schema_position(base, param)
            if position is None:
                continue
            self.visit(
                position, parameter_schema(param), Section.PARAMETER, Section.PARAMETER,
                origin=Origin(key, "parameter", param_name=name, param_in=location),
            )

        body_base = base.child("requestBody")
        body = self._deref(origin.operation.get("requestBody"), body_base)
        if isinstance(body, dict):
            for ct, media in (body.get("content") or {}).items():
                self._walk_media(
                    body_base.child("content", ct), ct, media,
                    Section.REQUEST_BODY, Origin(key, "request", content_type=ct),
                )

        for status, response in (origin.operation.get("responses") or {}).items():
            status = str(status)
            resp_base = base.child("responses", status)
            response = self._deref(response, resp_base)
            if not isinstance(response, dict):
                continue
            for ct, media in (response.get("content") or {}).items():
                self._walk_media(
                    resp_base.child("content", ct), ct, media,
                    Section.RESPONSE, Origin(key, "response", content_type=ct, status=status),
                )

    def _walk_media(
        self,
        media_base: SchemaPath,
        content_type: str,
        media: Any,
        section: Section,
        origin: Origin,
    ) -> None:
        if not isinstance(media, dict) or not self.matcher.is_typed(content_type):
            return
        envelope = None
        if "schema" in media:
            envelope = self.visit(
                media_base.child("schema"), media["schema"], section, section, origin=origin,
            )
        if "itemSchema" in media and self.matcher.is_sequential(content_type):
            # envelope and item stay separate descriptors
            parent = envelope if envelope == media_base.child("schema") else None
            self.visit(
                media_base.child("itemSchema"), media["itemSchema"], section, section,
                parent=parent, role=Role.ITEM_SCHEMA, origin=origin,
            )

    def _check_references(self) -> None:
        """Every recorded reference must land on a descriptor."""
        for position, target in list(self.graph.references.items()):
            seen = {position}
            while target not in self.graph and target in self.graph.references:
                if target in seen:
                    raise SpecgenError("Circular reference", position)
                seen.add(target)
                target = self.graph.references[target]
            if target not in self.graph:
                raise DanglingReferenceError(target.pointer, position)
            self.graph.references[position] = target


def deref(document: dict[str, Any], node: Any, position: SchemaPath) -> Any:
    """Follow $ref chains on a non-schema object (parameter, response, ...)."""
    seen: set[str] = set()
    while isinstance(node, dict) and "$ref" in node:
        ref = node["$ref"]
        if ref in seen:
            raise SpecgenError(f"Circular reference {ref!r}", position)
        seen.add(ref)
        node = resolve_ref(document, ref, position)
    return node


def merged_parameters(document: dict[str, Any], origin: OperationOrigin) -> list[dict[str, Any]]:
    """Path-level parameters overlaid by operation-level ones, keyed by (name, in)."""
    merged: dict[tuple[Any, Any], dict[str, Any]] = {}
    for level, owner in (("path", origin.path_item), ("operation", origin.operation)):
        for i, param in enumerate(owner.get("parameters") or []):
            position = origin.base_path.child("parameters", level, i)
            param = deref(document, param, position)
            if isinstance(param, dict):
                merged[(param.get("name"), param.get("in"))] = param
    return list(merged.values())


def parameter_schema(param: dict[str, Any]) -> Any:
    """The schema of a parameter, from ``schema`` or its single ``content`` entry."""
    if "schema" in param:
        return param["schema"]
    for media in (param.get("content") or {}).values():
        if isinstance(media, dict):
            return media.get("schema")
    return None


def parameter_schema_position(base: SchemaPath, param: dict[str, Any]) -> SchemaPath | None:
    """Where a parameter's schema sits within its operation.

    Parameters are identified by location and name, since a path-level
    parameter is an occurrence of every operation that inherits it.
    """
    param_base = base.child("parameters", param.get("in"), param.get("name"))
    if "schema" in param:
        return param_base.child("schema")
    for ct, media in (param.get("content") or {}).items():
        if isinstance(media, dict) and "schema" in media:
            return param_base.child("content", ct, "schema")
        return None
    return None


def build_graph(
    document: dict[str, Any],
    config: Configuration | None = None,
    matcher: ContentTypeMatcher | None = None,
) -> ResolvedGraph:
    """Collect all schema descriptors and operation origins of ``document``."""
    config = config or Configuration()
    matcher = matcher or ContentTypeMatcher(config.content_types)
    return _GraphBuilder(document, config, matcher).walk()
