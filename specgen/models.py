"""Build pydantic models from struct shapes for in-process encode/decode.

Each Struct descriptor becomes a model named after its final name. Field
attributes are mangled names with the document property name as alias.
Recursive and forward references are resolved with model_rebuild once
every model exists.
"""

from __future__ import annotations

import datetime
import decimal
import logging
import uuid
from typing import Any, ForwardRef, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, create_model

from .config import Configuration
from .descriptors import (
    Alias,
    Array,
    NullableWrapper,
    ResolvedGraph,
    SchemaPath,
    Struct,
    Target,
    UnionWrapper,
)
from .naming import NameMangler

logger = logging.getLogger(__name__)

_PRIMITIVES: dict[str, Any] = {
    "int": int,
    "float": float,
    "bool": bool,
    "str": str,
    "bytes": bytes,
    "None": type(None),
    "Any": Any,
    "dict[str, Any]": dict[str, Any],
    "datetime.datetime": datetime.datetime,
    "datetime.date": datetime.date,
    "datetime.time": datetime.time,
    "uuid.UUID": uuid.UUID,
    "decimal.Decimal": decimal.Decimal,
}

_ANY = TypeAdapter(Any)


class ModelSet:
    """Models built from one resolved graph, keyed by final name."""

    def __init__(self) -> None:
        self.models: dict[str, type[BaseModel]] = {}
        self._omit_empty: dict[type[BaseModel], set[str]] = {}

    def __getitem__(self, name: str) -> type[BaseModel]:
        return self.models[name]

    def __contains__(self, name: object) -> bool:
        return name in self.models

    def __len__(self) -> int:
        return len(self.models)

    def decode(self, name: str, data: Any) -> BaseModel:
        return self.models[name].model_validate(data)

    def encode(self, instance: BaseModel) -> dict[str, Any]:
        """Dump by document property name; unset omit-empty fields are dropped."""
        omit = self._omit_empty.get(type(instance), set())
        result: dict[str, Any] = {}
        for attr, info in type(instance).model_fields.items():
            value = getattr(instance, attr)
            if value is None and attr in omit:
                continue
            result[info.alias or attr] = self._encode_value(value)
        for key, value in (instance.model_extra or {}).items():
            result[key] = self._encode_value(value)
        return result

    def _encode_value(self, value: Any) -> Any:
        if isinstance(value, BaseModel):
            return self.encode(value)
        if isinstance(value, list):
            return [self._encode_value(v) for v in value]
        if isinstance(value, dict):
            return {k: self._encode_value(v) for k, v in value.items()}
        return _ANY.dump_python(value, mode="json")


class _ModelBuilder:
    def __init__(self, graph: ResolvedGraph, config: Configuration) -> None:
        self.graph = graph
        self.mangler = NameMangler(config.name_mangling, config.name_substitutions)
        self.result = ModelSet()
        self._building: set[SchemaPath] = set()
        self._built: dict[SchemaPath, type[BaseModel]] = {}

    def build(self) -> ModelSet:
        for d in self.graph:
            if isinstance(d.shape, Struct):
                self.model(d.path)
        # created models share no module namespace, so forward references
        # only resolve against an explicit one; model_rebuild exposes no
        # public parameter for it
        namespace = dict(self.result.models)
        for model in self.result.models.values():
            model.model_rebuild(force=True, _types_namespace=namespace)
        return self.result

    def runtime_type(self, target: Target | None, seen: frozenset[SchemaPath] = frozenset()) -> Any:
        if target is None:
            return Any
        if isinstance(target, str):
            if target not in _PRIMITIVES:
                logger.debug("No runtime type for %r; using Any", target)
            return _PRIMITIVES.get(target, Any)
        if target in seen:
            return Any

        d = self.graph.get(target)
        shape = d.shape
        seen = seen | {target}
        if isinstance(shape, Struct):
            return self.model(target)
        if isinstance(shape, Alias):
            if shape.enum:
                return Literal[shape.enum]
            return self.runtime_type(shape.target, seen)
        if isinstance(shape, Array):
            return list[self.runtime_type(shape.element, seen)]
        if isinstance(shape, NullableWrapper):
            return Optional[self.runtime_type(shape.inner, seen)]
        if isinstance(shape, UnionWrapper):
            if not shape.members:
                return Any
            members = tuple(self.runtime_type(m, seen) for m in shape.members)
            inner = members[0] if len(members) == 1 else Union[members]
            return Optional[inner] if shape.nullable else inner
        return Any

    def model(self, path: SchemaPath) -> Any:
        if path in self._built:
            return self._built[path]
        d = self.graph.get(path)
        if path in self._building:
            # recursive: resolved by model_rebuild
            return ForwardRef(d.final_name)

        self._building.add(path)
        try:
            shape = d.shape
            fields: dict[str, Any] = {}
            omit: set[str] = set()
            attrs = self.mangler.field_names([f.name for f in shape.fields])
            for field, attr in zip(shape.fields, attrs):
                annotation = self.runtime_type(field.target)
                if field.required:
                    fields[attr] = (annotation, Field(alias=field.name))
                else:
                    fields[attr] = (Optional[annotation], Field(None, alias=field.name))
                if field.omit_empty:
                    omit.add(attr)
            model_config = ConfigDict(
                populate_by_name=True,
                extra="allow" if shape.additional is not None else "ignore",
            )
            model = create_model(d.final_name, __config__=model_config, **fields)
        finally:
            self._building.discard(path)

        self._built[path] = model
        if d.final_name in self.result.models:
            logger.warning("%s at %s shadows an earlier model of that name", d.final_name, path)
        self.result.models[d.final_name] = model
        self.result._omit_empty[model] = omit
        return model


def build_models(graph: ResolvedGraph, config: Configuration | None = None) -> ModelSet:
    """Create a pydantic model for every struct shape in ``graph``."""
    models = _ModelBuilder(graph, config or Configuration()).build()
    logger.debug("Built %d models", len(models))
    return models
