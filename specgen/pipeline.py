"""Run the resolution phases over one document.

graph builder -> composition resolver -> name resolver -> operation builder

Each call builds a fresh graph and feature registry; nothing is shared
between runs.
"""

from __future__ import annotations

import logging
from typing import Any

from .composition import resolve_shapes
from .config import Configuration
from .content_types import ContentTypeMatcher
from .descriptors import ResolvedGraph
from .name_resolver import resolve_names
from .operations import build_operations
from .schema_graph import build_graph

logger = logging.getLogger(__name__)


def resolve_document(
    document: dict[str, Any],
    config: Configuration | None = None,
) -> ResolvedGraph:
    """Resolve shapes, names and operations for ``document``."""
    config = config or Configuration()
    matcher = ContentTypeMatcher(config.content_types)

    graph = build_graph(document, config, matcher)
    resolve_shapes(graph, config, graph.features)
    resolve_names(graph, config)
    build_operations(graph, config, matcher, graph.features)

    logger.info(
        "Resolved %d schemas and %d operations",
        len(graph), len(graph.operations),
    )
    return graph
