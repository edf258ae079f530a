"""Assign final, collision-free names to every descriptor.

Names are unique within a naming scope (component schemas, parameters,
request bodies, responses). Inferred names in two scopes may coincide,
but no inferred name ever takes a component or override name.
Priority within a scope:

1. x-oapi-codegen-type-name-override, verbatim
2. component schemas keep their bare mangled name
3. operation-anchored schemas derive from the operation id and role
   (CreatePetJSONRequest, ListPetsJSONResponse, ListPetsLimitParameter);
   nested members derive from their parent (PetTags, PetTagsItem,
   ShapeOneOf1)
4. inferred names that still collide get 1-based suffixes in declaration
   order, with no un-suffixed variant among them

Operation ids get the same treatment, so two operations never share one.
"""

from __future__ import annotations

import logging
from collections import defaultdict

import jinja2

from .config import Configuration, NameTemplates
from .content_types import short_token
from .descriptors import (
    OperationKey,
    ResolvedGraph,
    Role,
    SchemaDescriptor,
    Section,
)
from .errors import OverrideCollisionError
from .naming import NameMangler, assign_unique, is_identifier

logger = logging.getLogger(__name__)

_ROLE_SUFFIXES = {
    Role.ITEMS: "Item",
    Role.ADDITIONAL_PROPERTIES: "AdditionalProperties",
}

_COMPOSITION_TOKENS = {
    Role.ONE_OF: "OneOf",
    Role.ANY_OF: "AnyOf",
    Role.ALL_OF: "AllOf",
}


class _TemplateRenderer:
    """Render role name templates, falling back to the defaults."""

    def __init__(self, templates: NameTemplates) -> None:
        self._env = jinja2.Environment(undefined=jinja2.StrictUndefined, autoescape=False)
        self._templates = templates
        self._defaults = NameTemplates()

    def render(self, role: str, **values: str) -> str:
        source = getattr(self._templates, role)
        try:
            name = self._env.from_string(source).render(**values)
        except jinja2.TemplateError as e:
            logger.debug("Skipping %s name template %r: %s", role, source, e)
            name = ""
        if not is_identifier(name):
            if name:
                logger.debug("Name template %r produced %r; using the default", source, name)
            name = self._env.from_string(getattr(self._defaults, role)).render(**values)
        return name


class NameResolver:
    def __init__(self, graph: ResolvedGraph, config: Configuration) -> None:
        self.graph = graph
        self.config = config
        self.mangler = NameMangler(config.name_mangling, config.name_substitutions)
        self.templates = _TemplateRenderer(config.name_templates)
        self._taken: dict[Section, set[str]] = defaultdict(set)
        # component and override names, off limits to inference in every scope
        self._reserved: set[str] = set()

    def resolve(self) -> None:
        self._operation_ids()
        self._overrides()
        self._components()
        self._inferred()

    # -- operation ids -----------------------------------------------------

    def _operation_ids(self) -> None:
        bases: list[tuple[object, str]] = []
        for origin in self.graph.origins:
            key = origin.key
            bases.append((key, self.mangler.operation_id(origin.operation_id, key.method, origin.path)))
        self.graph.operation_ids.update(assign_unique(bases, set()))

    # -- priority names ----------------------------------------------------

    def _overrides(self) -> None:
        owners: dict[tuple[Section, str], SchemaDescriptor] = {}
        for d in self.graph:
            name = d.overrides.type_name
            if name is None:
                continue
            if not is_identifier(name):
                logger.debug("Ignoring unusable type name override %r at %s", name, d.path)
                continue
            previous = owners.get((d.scope, name))
            if previous is not None:
                raise OverrideCollisionError(name, previous.path, d.path)
            owners[(d.scope, name)] = d
            d.final_name = name
            self._taken[d.scope].add(name)
            self._reserved.add(name)

    def _components(self) -> None:
        pending = [d for d in self.graph.components() if d.final_name is None]
        bases = [(d.path, self.mangler.type_name(d.raw_name or "")) for d in pending]
        names = assign_unique(bases, self._taken[Section.COMPONENT_SCHEMA])
        for d in pending:
            d.final_name = names[d.path]
        self._reserved.update(names.values())

    # -- inferred names ----------------------------------------------------

    def _depth(self, d: SchemaDescriptor) -> int:
        depth = 0
        while d.parent is not None:
            depth += 1
            d = self.graph.get(d.parent)
        return depth

    def _inferred(self) -> None:
        layers: dict[int, list[SchemaDescriptor]] = defaultdict(list)
        for d in self.graph:
            if d.final_name is None:
                layers[self._depth(d)].append(d)

        statuses = self._typed_statuses()
        for depth in sorted(layers):
            by_scope: dict[Section, list[tuple[object, str]]] = defaultdict(list)
            for d in layers[depth]:
                by_scope[d.scope].append((d.path, self._base_name(d, statuses)))
            for scope, bases in by_scope.items():
                taken = self._taken[scope]
                taken.update(self._reserved)
                names = assign_unique(bases, taken)
                for path, name in names.items():
                    self.graph.get(path).final_name = name

    def _typed_statuses(self) -> dict[OperationKey, list[str]]:
        """Response statuses per operation that carry at least one descriptor."""
        statuses: dict[OperationKey, list[str]] = defaultdict(list)
        for d in self.graph:
            if d.section is Section.RESPONSE and d.origin and d.origin.status is not None:
                found = statuses[d.origin.operation]
                if d.origin.status not in found:
                    found.append(d.origin.status)
        return statuses

    def _substitute(self, name: str) -> str:
        return self.config.name_substitutions.type_names.get(name, name)

    def _base_name(self, d: SchemaDescriptor, statuses: dict[OperationKey, list[str]]) -> str:
        if d.role is Role.ITEM_SCHEMA:
            if d.parent is not None:
                envelope = self.graph.get(d.parent).final_name or ""
            else:
                envelope = self._anchor_name(d, statuses)
            return self._substitute(self.templates.render("item_schema", envelope=envelope))

        if d.parent is None:
            return self._substitute(self._anchor_name(d, statuses))

        parent = self.graph.get(d.parent)
        owner = parent
        if d.role is Role.PROPERTY and parent.role is Role.ALL_OF and parent.parent is not None:
            # properties of inline allOf members belong to the merged owner
            owner = self.graph.get(parent.parent)
        owner_name = owner.final_name or ""

        if d.role is Role.PROPERTY:
            suffix = self.mangler.pascal(d.role_key or "") or "Property"
        elif d.role in _COMPOSITION_TOKENS:
            suffix = f"{_COMPOSITION_TOKENS[d.role]}{int(d.role_key or 0) + 1}"
        else:
            suffix = _ROLE_SUFFIXES.get(d.role, "")
        return self._substitute(owner_name + suffix)

    def _anchor_name(self, d: SchemaDescriptor, statuses: dict[OperationKey, list[str]]) -> str:
        """Name for a schema anchored directly under an operation."""
        origin = d.origin
        if origin is None:
            return self.mangler.type_name(d.path.parts[-1])
        operation_id = self.graph.operation_ids[origin.operation]
        content = (
            short_token(origin.content_type, self.mangler.pascal)
            if origin.content_type else ""
        )
        if origin.role == "parameter":
            return self.templates.render(
                "parameter",
                operation_id=operation_id,
                name=self.mangler.pascal(origin.param_name or "") or "Param",
                location=self.mangler.pascal(origin.param_in or ""),
            )
        if origin.role == "request":
            return self.templates.render(
                "request_body", operation_id=operation_id, content=content,
            )
        status = ""
        if len(statuses.get(origin.operation, [])) > 1:
            status = self.mangler.pascal(origin.status or "")
        return self.templates.render(
            "response", operation_id=operation_id, content=content, status=status,
        )

    def check(self) -> None:
        """Every descriptor named, names unique per scope."""
        seen: dict[tuple[Section, str], SchemaDescriptor] = {}
        for d in self.graph:
            if not d.final_name:
                raise ValueError(f"{d.path} has no name")
            key = (d.scope, d.final_name)
            if key in seen:
                raise ValueError(
                    f"{d.final_name!r} used by both {seen[key].path} and {d.path}"
                )
            seen[key] = d


def resolve_names(graph: ResolvedGraph, config: Configuration | None = None) -> None:
    """Assign final names to every descriptor and operation in ``graph``."""
    resolver = NameResolver(graph, config or Configuration())
    resolver.resolve()
    resolver.check()
    logger.debug("Named %d descriptors", len(graph))
