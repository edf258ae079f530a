"""Build the Jinja2 template context from a resolved graph.

This is the read-only view emitters consume: plain dicts and lists, with
every type reference already turned into a type expression. Primitive
aliases and arrays nested inside other schemas are inlined; everything
else becomes a declaration.
"""

from __future__ import annotations

import re
from typing import Any

from .config import Configuration
from .descriptors import (
    Alias,
    Array,
    NullableWrapper,
    OperationDescriptor,
    ResolvedGraph,
    SchemaDescriptor,
    SchemaPath,
    Struct,
    Target,
    UnionWrapper,
)
from .naming import NameMangler
from .struct_tags import StructTagGenerator, format_tags


def _strip_html(text: str) -> str:
    """Strip HTML tags and collapse whitespace."""
    text = re.sub(r"<[^>]+>", "", text)
    text = re.sub(r"\s+", " ", text).strip()
    return text


def _make_description(op: OperationDescriptor) -> str:
    """One-line docstring for an operation."""
    if op.summary:
        doc = op.summary
    elif op.description:
        doc = op.description.split(".")[0]
    else:
        doc = f"{op.method.upper()} {op.path}"
    return _strip_html(doc).rstrip(". ")


def _kind(shape: Any) -> str:
    return {
        Struct: "struct",
        Alias: "alias",
        Array: "array",
        UnionWrapper: "union",
        NullableWrapper: "nullable",
    }[type(shape)]


def _literal(values: tuple[Any, ...]) -> str | None:
    if values and all(isinstance(v, (str, int, bool)) or v is None for v in values):
        return "Literal[" + ", ".join(repr(v) for v in values) + "]"
    return None


class _ContextBuilder:
    def __init__(self, graph: ResolvedGraph, config: Configuration) -> None:
        self.graph = graph
        self.config = config
        self.mangler = NameMangler(config.name_mangling, config.name_substitutions)
        self.tags = StructTagGenerator(config.struct_tags)

    # -- type expressions --------------------------------------------------

    def is_inlined(self, d: SchemaDescriptor) -> bool:
        """Nested primitive aliases and arrays need no declaration of their own."""
        if d.parent is None or d.overrides.type_name is not None:
            return False
        shape = d.shape
        if isinstance(shape, Alias):
            return isinstance(shape.target, str) and _literal(shape.enum) is None
        return isinstance(shape, (Array, NullableWrapper))

    def type_expr(self, target: Target | None) -> str:
        if target is None:
            return self.config.type_mapping.any.type
        if isinstance(target, str):
            return target
        d = self.graph.get(target)
        if self.is_inlined(d):
            return self.shape_expr(d)
        return self.graph.name_of(target)

    def shape_expr(self, d: SchemaDescriptor) -> str:
        """Right-hand side of a declaration for a non-struct shape."""
        shape = d.shape
        if isinstance(shape, Alias):
            return _literal(shape.enum) or self.type_expr(shape.target)
        if isinstance(shape, Array):
            return f"list[{self.type_expr(shape.element)}]"
        if isinstance(shape, NullableWrapper):
            return f"Optional[{self.type_expr(shape.inner)}]"
        if isinstance(shape, UnionWrapper):
            if not shape.members:
                return self.config.type_mapping.any.type
            members = [self.type_expr(m) for m in shape.members]
            expr = members[0] if len(members) == 1 else f"Union[{', '.join(members)}]"
            return f"Optional[{expr}]" if shape.nullable else expr
        raise TypeError(f"No expression for {type(shape).__name__} at {d.path}")

    def dependencies(self, d: SchemaDescriptor) -> list[str]:
        """Declared names a non-struct declaration evaluates at import time."""
        shape = d.shape
        targets: list[Target] = []
        if isinstance(shape, Alias):
            targets = [shape.target]
        elif isinstance(shape, Array):
            targets = [shape.element]
        elif isinstance(shape, NullableWrapper):
            targets = [shape.inner]
        elif isinstance(shape, UnionWrapper):
            targets = list(shape.members)
        names: list[str] = []
        for target in targets:
            if not isinstance(target, SchemaPath):
                continue
            dep = self.graph.get(target)
            if self.is_inlined(dep):
                names.extend(self.dependencies(dep))
            elif not isinstance(dep.shape, Struct):
                names.append(self.graph.name_of(target))
        return names

    # -- declarations ------------------------------------------------------

    def _field(self, field: Any, attr: str) -> dict[str, Any]:
        tag_map = self.tags.generate_tags_map(field.name, field.optional)
        if "json" in tag_map:
            # explicit omit-empty directives beat the template's default
            value = tag_map["json"].replace(",omitempty", "")
            tag_map["json"] = value + (",omitempty" if field.omit_empty else "")
        type_expr = self.type_expr(field.target)
        annotation = type_expr
        if field.optional and not type_expr.startswith("Optional["):
            annotation = f"Optional[{type_expr}]"
        return {
            "name": field.name,
            "attr": attr,
            "type": type_expr,
            "annotation": annotation,
            "required": field.required,
            "optional": field.optional,
            "pointer": field.pointer,
            "omit_empty": field.omit_empty,
            "read_only": field.read_only,
            "write_only": field.write_only,
            "description": _strip_html(field.description or ""),
            "tags": format_tags(tag_map),
        }

    def _type(self, d: SchemaDescriptor) -> dict[str, Any]:
        shape = d.shape
        entry: dict[str, Any] = {
            "name": d.final_name,
            "kind": _kind(shape),
            "path": d.path.pointer,
            "scope": d.scope.value,
            "description": _strip_html(d.schema.get("description") or ""),
        }
        if isinstance(shape, Struct):
            attrs = self.mangler.field_names([f.name for f in shape.fields])
            entry["fields"] = [self._field(f, a) for f, a in zip(shape.fields, attrs)]
            entry["additional"] = (
                self.type_expr(shape.additional) if shape.additional is not None else None
            )
        else:
            entry["expr"] = self.shape_expr(d)
            entry["depends_on"] = self.dependencies(d)
            if isinstance(shape, UnionWrapper):
                entry["members"] = [self.type_expr(m) for m in shape.members]
                entry["discriminator"] = shape.discriminator
                entry["nullable"] = shape.nullable
            if isinstance(shape, Alias):
                entry["enum"] = list(shape.enum)
        return entry

    def types(self) -> list[dict[str, Any]]:
        """Structs first, then other declarations ordered by their dependencies."""
        declared = [d for d in self.graph if not self.is_inlined(d)]
        structs = [self._type(d) for d in declared if isinstance(d.shape, Struct)]
        others = [self._type(d) for d in declared if not isinstance(d.shape, Struct)]
        return structs + _topological(others)

    # -- operations --------------------------------------------------------

    def operation(self, op: OperationDescriptor) -> dict[str, Any]:
        def item(binding: Any) -> str | None:
            return self.type_expr(binding.schema) if binding is not None else None

        return {
            "name": op.mangled_id,
            "operation_id": op.operation_id,
            "method": op.method,
            "path": op.path,
            "kind": op.kind.value,
            "description": _make_description(op),
            "is_simple": op.is_simple,
            "has_body": op.has_body,
            "params": [
                {
                    "name": p.name,
                    "var_name": p.var_name,
                    "location": p.location,
                    "required": p.required,
                    "style": p.style,
                    "explode": p.explode,
                    "type": self.type_expr(p.schema),
                    "description": _strip_html(p.description),
                }
                for p in op.params
            ],
            "bodies": [
                {
                    "content_type": b.content_type,
                    "type": self.type_expr(b.schema) if b.generate_typed else "bytes",
                    "typed": b.generate_typed,
                    "required": b.required,
                    "is_json": b.is_json,
                    "is_form": b.is_form_encoded,
                    "sequential": b.is_sequential,
                    "item_type": item(b.item_schema),
                    "func_suffix": b.func_suffix,
                }
                for b in op.bodies
            ],
            "responses": [
                {
                    "status": r.status_code,
                    "description": _strip_html(r.description),
                    "contents": [
                        {
                            "content_type": c.content_type,
                            "type": self.type_expr(c.schema) if c.schema is not None else None,
                            "is_json": c.is_json,
                            "sequential": c.is_sequential,
                            "item_type": item(c.item_schema),
                        }
                        for c in r.contents
                    ],
                }
                for r in op.responses
            ],
        }


def _topological(entries: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Order declarations so each follows the ones it evaluates.

    Stable: entries with no pending dependency keep their original order.
    A back-reference in a cycle is quoted as a forward reference.
    """
    by_name = {e["name"]: e for e in entries}
    ordered: list[dict[str, Any]] = []
    state: dict[str, int] = {}  # 1 visiting, 2 done

    def visit(entry: dict[str, Any]) -> None:
        name = entry["name"]
        if state.get(name) == 2:
            return
        state[name] = 1
        for dep in entry["depends_on"]:
            if dep in by_name and state.get(dep) is None:
                visit(by_name[dep])
            elif state.get(dep) == 1:
                entry["expr"] = re.sub(rf"\b{re.escape(dep)}\b", f'"{dep}"', entry["expr"])
        state[name] = 2
        ordered.append(entry)

    for entry in entries:
        visit(entry)
    return ordered


def build_context(graph: ResolvedGraph, config: Configuration | None = None) -> dict[str, Any]:
    """Build the full template context from a resolved graph."""
    builder = _ContextBuilder(graph, config or Configuration())
    types = builder.types()
    operations = [builder.operation(op) for op in graph.operations]
    info = graph.document.get("info") or {}

    return {
        "title": info.get("title", ""),
        "version": info.get("version", "unknown"),
        "types": types,
        "operations": operations,
        "imports": list(graph.features.imports()),
        "helpers": graph.features.required_helpers(),
        "params": graph.features.required_params(),
        "custom_types": graph.features.required_custom_types(),
        "type_count": len(types),
        "operation_count": len(operations),
    }
