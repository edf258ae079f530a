"""Shared fixtures: the petstore document and its resolved graph.

Each fixture loads or resolves afresh, so tests never share a graph.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from specgen.descriptors import ResolvedGraph
from specgen.loader import load_document
from specgen.pipeline import resolve_document

FIXTURES = Path(__file__).parent / "fixtures"
PETSTORE = FIXTURES / "petstore.yaml"


@pytest.fixture
def petstore_path() -> Path:
    return PETSTORE


@pytest.fixture
def petstore() -> dict[str, Any]:
    return load_document(PETSTORE)


@pytest.fixture
def petstore_graph(petstore: dict[str, Any]) -> ResolvedGraph:
    return resolve_document(petstore)
