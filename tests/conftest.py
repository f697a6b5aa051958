"""
Shared fixtures for the studio_graph test suite.
"""

import pytest

from studio_graph import (
    ForceDirectedLayout,
    GraphDocument,
    GraphEdge,
    GraphNode,
    NodeRole,
)


VIEWPORT = (800.0, 600.0)


def make_document(n_nodes, edges, type_ids=()):
    type_ids = set(type_ids)
    nodes = [
        GraphNode(id=f"n{i}", role=NodeRole.TYPE if f"n{i}" in type_ids else NodeRole.INSTANCE)
        for i in range(n_nodes)
    ]
    return GraphDocument(
        nodes=nodes,
        edges=[GraphEdge(source_id=s, target_id=t, label="rel") for s, t in edges],
    )


@pytest.fixture
def viewport():
    return VIEWPORT


@pytest.fixture
def cycle_document():
    """A -> B -> C -> A"""
    return GraphDocument(
        nodes=[GraphNode(id="A"), GraphNode(id="B"), GraphNode(id="C")],
        edges=[
            GraphEdge(source_id="A", target_id="B", label="next"),
            GraphEdge(source_id="B", target_id="C", label="next"),
            GraphEdge(source_id="C", target_id="A", label="next"),
        ],
    )


@pytest.fixture
def small_graph():
    """Twelve nodes: a ring plus a few chords."""
    ids = [f"v{i}" for i in range(12)]
    edges = [GraphEdge(source_id=ids[i], target_id=ids[(i + 1) % 12], label="ring") for i in range(12)]
    edges += [
        GraphEdge(source_id="v0", target_id="v6", label="chord"),
        GraphEdge(source_id="v3", target_id="v9", label="chord"),
    ]
    return ids, edges


@pytest.fixture
def engine():
    return ForceDirectedLayout(seed=1234)
