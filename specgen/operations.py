"""Build per-operation views over the resolved schema graph.

For every path, callback and webhook operation (in the order the graph
builder saw them), attaches parameter, request body and response
descriptors. Each typed content is bound to its schema descriptor by path.
Nothing here is fatal: a missing or opaque body only means the operation
is not "simple".
"""

from __future__ import annotations

import logging
import re
from typing import Any

from .config import Configuration
from .content_types import (
    ContentTypeMatcher,
    is_form_media_type,
    media_type,
    short_token,
)
from .descriptors import (
    ItemSchemaBinding,
    OperationDescriptor,
    OperationOrigin,
    ParameterDescriptor,
    RequestBodyDescriptor,
    ResolvedGraph,
    ResponseContentDescriptor,
    ResponseDescriptor,
    SchemaPath,
)
from .features import CodegenContext
from .naming import NameMangler, assign_unique
from .schema_graph import deref, merged_parameters, parameter_schema_position

logger = logging.getLogger(__name__)

# Default serialization style per parameter location
_DEFAULT_STYLES = {
    "query": "form",
    "path": "simple",
    "header": "simple",
    "cookie": "form",
}


def _path_param_order(path: str) -> list[str]:
    """Parameter names in the order they appear in a path template."""
    return re.findall(r"\{([^}]+)\}", path)


class OperationBuilder:
    def __init__(
        self,
        graph: ResolvedGraph,
        config: Configuration,
        matcher: ContentTypeMatcher,
        features: CodegenContext,
    ) -> None:
        self.graph = graph
        self.config = config
        self.matcher = matcher
        self.features = features
        self.mangler = NameMangler(config.name_mangling, config.name_substitutions)

    def build(self) -> list[OperationDescriptor]:
        return [self._operation(origin) for origin in self.graph.origins]

    def _bound(self, position: SchemaPath | None) -> SchemaPath | None:
        return self.graph.target_of(position) if position is not None else None

    def _operation(self, origin: OperationOrigin) -> OperationDescriptor:
        operation = origin.operation
        op = OperationDescriptor(
            operation_id=origin.operation_id,
            mangled_id=self.graph.operation_ids[origin.key],
            method=origin.key.method,
            path=origin.path,
            kind=origin.key.kind,
            summary=operation.get("summary", ""),
            description=operation.get("description", ""),
        )

        for param in self._parameters(origin):
            getattr(op, f"{param.location}_params").append(param)
        order = _path_param_order(origin.path)
        op.path_params.sort(
            key=lambda p: order.index(p.name) if p.name in order else len(order)
        )

        op.bodies = self._bodies(origin)
        op.responses = self._responses(origin)
        op.is_simple = self._is_simple(op)
        return op

    def _parameters(self, origin: OperationOrigin) -> list[ParameterDescriptor]:
        params: list[ParameterDescriptor] = []
        for param in merged_parameters(self.graph.document, origin):
            name, location = param.get("name"), param.get("in")
            if not name or location not in _DEFAULT_STYLES:
                logger.debug("Skipping parameter %r in %r at %s", name, location, origin.base_path)
                continue
            style = param.get("style") or _DEFAULT_STYLES[location]
            explode = param.get("explode", style == "form")
            self.features.need_param(style, explode)
            params.append(ParameterDescriptor(
                name=name,
                location=location,
                required=bool(param.get("required", location == "path")),
                style=style,
                explode=bool(explode),
                schema=self._bound(parameter_schema_position(origin.base_path, param)),
                var_name=name,
                description=param.get("description", ""),
            ))
        # query petId and header pet_id still need distinct arguments
        for param, var_name in zip(params, self.mangler.field_names([p.name for p in params])):
            param.var_name = var_name
        return params

    def _bodies(self, origin: OperationOrigin) -> list[RequestBodyDescriptor]:
        base = origin.base_path.child("requestBody")
        body = deref(self.graph.document, origin.operation.get("requestBody"), base)
        if not isinstance(body, dict):
            return []

        bodies: list[RequestBodyDescriptor] = []
        for ct, media in (body.get("content") or {}).items():
            media = media if isinstance(media, dict) else {}
            media_base = base.child("content", ct)
            schema = None
            if "schema" in media and self.matcher.is_typed(ct):
                schema = self._bound(media_base.child("schema"))
            is_json = self.matcher.is_json(ct)
            is_form = is_form_media_type(ct)
            typed = schema is not None and (is_json or is_form)
            if typed and is_form:
                self.features.need_helper("marshal_form")
            bodies.append(RequestBodyDescriptor(
                content_type=ct,
                schema=schema,
                required=bool(body.get("required", False)),
                is_json=is_json,
                is_form_encoded=is_form,
                is_sequential=self.matcher.is_sequential(ct),
                generate_typed=typed,
                type_name=self.graph.name_of(schema) if schema is not None else "",
                func_suffix="",
                item_schema=self._item_schema(media_base, ct, media),
            ))

        default = next((b for b in bodies if b.generate_typed and b.is_json), None)
        rest = [b for b in bodies if b is not default]
        tokens = [
            short_token(b.content_type, self.mangler.pascal) if b.generate_typed else ""
            for b in rest
        ]
        claimed = list(tokens)
        if default is not None:
            claimed.append(short_token(default.content_type, self.mangler.pascal))
        bases: list[tuple[object, str]] = []
        for i, (b, token) in enumerate(zip(rest, tokens)):
            if claimed.count(token) > 1:
                # merge-patch+json and json-patch+json share the JSON token
                token = self.mangler.pascal(media_type(b.content_type))
            bases.append((i, f"With{token}Body"))
        suffixes = assign_unique(bases, set())
        for i, b in enumerate(rest):
            b.func_suffix = suffixes[i]
        return bodies

    def _responses(self, origin: OperationOrigin) -> list[ResponseDescriptor]:
        responses: list[ResponseDescriptor] = []
        for status, response in (origin.operation.get("responses") or {}).items():
            status = str(status)
            base = origin.base_path.child("responses", status)
            response = deref(self.graph.document, response, base)
            if not isinstance(response, dict):
                continue
            result = ResponseDescriptor(status, response.get("description", ""))
            for ct, media in (response.get("content") or {}).items():
                media = media if isinstance(media, dict) else {}
                media_base = base.child("content", ct)
                schema = None
                if "schema" in media and self.matcher.is_typed(ct):
                    schema = self._bound(media_base.child("schema"))
                result.contents.append(ResponseContentDescriptor(
                    content_type=ct,
                    schema=schema,
                    is_json=self.matcher.is_json(ct),
                    is_sequential=self.matcher.is_sequential(ct),
                    item_schema=self._item_schema(media_base, ct, media),
                ))
            responses.append(result)
        return responses

    def _item_schema(
        self, media_base: SchemaPath, content_type: str, media: dict[str, Any],
    ) -> ItemSchemaBinding | None:
        if "itemSchema" not in media or not self.matcher.is_sequential(content_type):
            return None
        target = self._bound(media_base.child("itemSchema"))
        return ItemSchemaBinding(target) if target is not None else None

    def _is_simple(self, op: OperationDescriptor) -> bool:
        """Exactly one 2xx response with exactly one JSON content, and a typed body if any."""
        success = [r for r in op.responses if r.is_success]
        reason = ""
        if len(success) != 1:
            reason = f"{len(success)} success responses"
        elif len(success[0].contents) != 1:
            reason = f"{len(success[0].contents)} content types on {success[0].status_code}"
        elif not success[0].contents[0].is_json:
            reason = f"non-JSON response {success[0].contents[0].content_type}"
        elif op.has_body and not op.has_typed_body:
            reason = "untyped request body"
        if reason:
            logger.debug("%s is not simple: %s", op.mangled_id, reason)
            return False
        return True


def build_operations(
    graph: ResolvedGraph,
    config: Configuration | None = None,
    matcher: ContentTypeMatcher | None = None,
    features: CodegenContext | None = None,
) -> list[OperationDescriptor]:
    """Build every operation descriptor and store them on ``graph``."""
    config = config or Configuration()
    matcher = matcher or ContentTypeMatcher(config.content_types)
    features = features if features is not None else graph.features
    graph.operations = OperationBuilder(graph, config, matcher, features).build()
    logger.debug("Built %d operations", len(graph.operations))
    return graph.operations
