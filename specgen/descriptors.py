"""Descriptor model for a resolved OpenAPI document.

A SchemaDescriptor exists for every schema occurrence; its identity is its
structural path, never its name. Shapes are a closed set of frozen
variants, each carrying only what that shape needs. The ResolvedGraph owns
all descriptors for one generation run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator, Union

from .features import CodegenContext


@dataclass(frozen=True, order=True)
class SchemaPath:
    """Structural locator of a schema occurrence in the document."""

    parts: tuple[str, ...]

    @classmethod
    def of(cls, *parts: Any) -> SchemaPath:
        return cls(tuple(str(p) for p in parts))

    def child(self, *parts: Any) -> SchemaPath:
        return SchemaPath(self.parts + tuple(str(p) for p in parts))

    @property
    def pointer(self) -> str:
        escaped = (p.replace("~", "~0").replace("/", "~1") for p in self.parts)
        return "#/" + "/".join(escaped)

    def __str__(self) -> str:
        return self.pointer


class Section(Enum):
    COMPONENT_SCHEMA = "component_schema"
    PARAMETER = "parameter"
    REQUEST_BODY = "request_body"
    RESPONSE = "response"
    INLINE = "inline"


class Role(Enum):
    """How a descriptor hangs from its parent."""

    ROOT = "root"
    PROPERTY = "property"
    ITEMS = "items"
    ADDITIONAL_PROPERTIES = "additional_properties"
    ONE_OF = "one_of"
    ANY_OF = "any_of"
    ALL_OF = "all_of"
    ITEM_SCHEMA = "item_schema"


class OperationKind(Enum):
    PATH = "path"
    WEBHOOK = "webhook"
    CALLBACK = "callback"


@dataclass(frozen=True)
class OperationKey:
    """Identity of an operation: kind, location and method.

    ``location`` is the path template for path operations, the webhook name
    for webhooks, and "<parent path> <callback name> <expression>" for
    callbacks.
    """

    kind: OperationKind
    location: str
    method: str


@dataclass(frozen=True)
class OperationOrigin:
    """An operation as seen by the graph builder, before naming."""

    key: OperationKey
    operation_id: str | None
    path: str
    operation: dict[str, Any] = field(compare=False, hash=False, repr=False)
    path_item: dict[str, Any] = field(compare=False, hash=False, repr=False)
    base_path: SchemaPath = field(compare=False, hash=False, repr=False, default=SchemaPath(()))


@dataclass(frozen=True)
class Origin:
    """Where an operation-anchored schema sits within its operation."""

    operation: OperationKey
    role: str  # "request", "response" or "parameter"
    content_type: str | None = None
    status: str | None = None
    param_name: str | None = None
    param_in: str | None = None


@dataclass(frozen=True)
class Overrides:
    """Operator directives read from schema extensions."""

    type_name: Any = None
    type: str | None = None
    type_import: str | None = None
    skip_optional_pointer: bool | None = None
    omit_empty: bool | None = None

    def __bool__(self) -> bool:
        return any(
            v is not None
            for v in (self.type_name, self.type, self.skip_optional_pointer, self.omit_empty)
        )


# A type target is either another descriptor or a mapped primitive type.
Target = Union[SchemaPath, str]


@dataclass(frozen=True)
class Field:
    name: str
    target: SchemaPath
    required: bool = False
    pointer: bool = False
    omit_empty: bool = False
    read_only: bool = False
    write_only: bool = False
    description: str | None = None

    @property
    def optional(self) -> bool:
        return not self.required


@dataclass(frozen=True)
class Struct:
    fields: tuple[Field, ...] = ()
    additional: SchemaPath | None = None


@dataclass(frozen=True)
class Alias:
    target: Target
    enum: tuple[Any, ...] = ()


@dataclass(frozen=True)
class Array:
    element: Target


@dataclass(frozen=True)
class UnionWrapper:
    members: tuple[SchemaPath, ...]
    kind: str = "oneOf"
    nullable: bool = False
    discriminator: str | None = None


@dataclass(frozen=True)
class NullableWrapper:
    inner: Target


Shape = Union[Struct, Alias, Array, UnionWrapper, NullableWrapper]


@dataclass
class CompositionGroup:
    """Members under a oneOf/anyOf while the resolver classifies them."""

    kind: str
    members: list[SchemaPath] = field(default_factory=list)
    has_null: bool = False
    unique: list[SchemaPath] = field(default_factory=list)

    @property
    def collapsed(self) -> bool:
        """True when de-duplication removed at least one member."""
        return len(self.unique) < len(self.members)


@dataclass
class SchemaDescriptor:
    path: SchemaPath
    section: Section
    schema: dict[str, Any] = field(repr=False)
    scope: Section = Section.COMPONENT_SCHEMA
    raw_name: str | None = None
    parent: SchemaPath | None = None
    role: Role = Role.ROOT
    role_key: str | None = None
    origin: Origin | None = None
    overrides: Overrides = field(default_factory=Overrides)
    null_members: int = 0
    _shape: Shape | None = field(default=None, repr=False)
    _final_name: str | None = field(default=None, repr=False)

    @property
    def shape(self) -> Shape | None:
        return self._shape

    @shape.setter
    def shape(self, value: Shape) -> None:
        if self._shape is not None:
            raise ValueError(f"Shape of {self.path} is already set")
        self._shape = value

    @property
    def final_name(self) -> str | None:
        return self._final_name

    @final_name.setter
    def final_name(self, value: str) -> None:
        if self._final_name is not None:
            raise ValueError(f"Name of {self.path} is already final")
        if not value:
            raise ValueError(f"Empty name for {self.path}")
        self._final_name = value

    @property
    def is_component(self) -> bool:
        return self.section is Section.COMPONENT_SCHEMA and self.role is Role.ROOT


@dataclass(frozen=True)
class ItemSchemaBinding:
    """One element of a sequential stream, independent of the envelope."""

    schema: SchemaPath


@dataclass
class ParameterDescriptor:
    name: str
    location: str
    required: bool
    style: str
    explode: bool
    schema: SchemaPath | None
    var_name: str
    description: str = ""


@dataclass
class RequestBodyDescriptor:
    content_type: str
    schema: SchemaPath | None
    required: bool
    is_json: bool
    is_form_encoded: bool
    is_sequential: bool
    generate_typed: bool
    type_name: str
    func_suffix: str
    item_schema: ItemSchemaBinding | None = None


@dataclass
class ResponseContentDescriptor:
    content_type: str
    schema: SchemaPath | None
    is_json: bool
    is_sequential: bool
    item_schema: ItemSchemaBinding | None = None


@dataclass
class ResponseDescriptor:
    status_code: str
    description: str
    contents: list[ResponseContentDescriptor] = field(default_factory=list)

    @property
    def is_success(self) -> bool:
        return self.status_code.startswith("2")


@dataclass
class OperationDescriptor:
    operation_id: str | None
    mangled_id: str
    method: str
    path: str
    kind: OperationKind
    summary: str = ""
    description: str = ""
    path_params: list[ParameterDescriptor] = field(default_factory=list)
    query_params: list[ParameterDescriptor] = field(default_factory=list)
    header_params: list[ParameterDescriptor] = field(default_factory=list)
    cookie_params: list[ParameterDescriptor] = field(default_factory=list)
    bodies: list[RequestBodyDescriptor] = field(default_factory=list)
    responses: list[ResponseDescriptor] = field(default_factory=list)
    is_simple: bool = False

    @property
    def has_body(self) -> bool:
        return bool(self.bodies)

    @property
    def has_typed_body(self) -> bool:
        return any(b.generate_typed for b in self.bodies)

    def default_typed_body(self) -> RequestBodyDescriptor | None:
        """The JSON typed body if there is one, else the first typed body."""
        typed = [b for b in self.bodies if b.generate_typed]
        for body in typed:
            if body.is_json:
                return body
        return typed[0] if typed else None

    @property
    def params(self) -> list[ParameterDescriptor]:
        return self.path_params + self.query_params + self.header_params + self.cookie_params


class ResolvedGraph:
    """All descriptors of one generation run, in visitation order."""

    def __init__(self, document: dict[str, Any]) -> None:
        self.document = document
        self._descriptors: dict[SchemaPath, SchemaDescriptor] = {}
        # position holding a $ref -> descriptor path it resolves to
        self.references: dict[SchemaPath, SchemaPath] = {}
        self.origins: list[OperationOrigin] = []
        self.operation_ids: dict[OperationKey, str] = {}
        self.operations: list[OperationDescriptor] = []
        self.features = CodegenContext()

    def add(self, descriptor: SchemaDescriptor) -> SchemaDescriptor:
        if descriptor.path in self._descriptors:
            raise ValueError(f"Duplicate descriptor path {descriptor.path}")
        self._descriptors[descriptor.path] = descriptor
        return descriptor

    def __contains__(self, path: object) -> bool:
        return path in self._descriptors

    def __iter__(self) -> Iterator[SchemaDescriptor]:
        return iter(list(self._descriptors.values()))

    def __len__(self) -> int:
        return len(self._descriptors)

    def get(self, path: SchemaPath) -> SchemaDescriptor:
        return self._descriptors[path]

    def target_of(self, position: SchemaPath) -> SchemaPath | None:
        """Descriptor path for a schema position, following a recorded $ref."""
        if position in self.references:
            return self.references[position]
        if position in self._descriptors:
            return position
        return None

    def children(self, path: SchemaPath) -> list[SchemaDescriptor]:
        return [d for d in self._descriptors.values() if d.parent == path]

    def by_name(self, name: str, scope: Section | None = None) -> list[SchemaDescriptor]:
        return [
            d for d in self._descriptors.values()
            if d.final_name == name and (scope is None or d.scope is scope)
        ]

    def components(self) -> list[SchemaDescriptor]:
        return [d for d in self._descriptors.values() if d.is_component]

    def name_of(self, target: Target) -> str:
        """Final name for a descriptor path, or the primitive type as-is."""
        if isinstance(target, SchemaPath):
            name = self.get(target).final_name
            if name is None:
                raise ValueError(f"{target} has no final name yet")
            return name
        return target
