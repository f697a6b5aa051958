"""
Graph document model handed to the engine by the host.

A GraphDocument is a plain node/edge container. Identifiers are opaque
strings; everything else on a node or edge is a display hint that the
engine reads only where noted (role for the backbone, weight for springs).

Conversion helpers to and from networkx graphs are provided so hosts and
analytics can share the same structure.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

import networkx as nx


class NodeRole(str, Enum):
    """Structural role of a node in the graph."""

    TYPE = "type"            # class / table definition
    INSTANCE = "instance"
    PROPERTY = "property"
    LITERAL = "literal"


class EdgeKind(str, Enum):
    SUB_CLASS_OF = "subClassOf"
    INSTANCE_OF = "instanceOf"
    RELATIONSHIP = "relationship"
    PROPERTY = "property"


@dataclass
class GraphNode:
    id: str
    label: str = ""
    role: NodeRole = NodeRole.INSTANCE
    ontology_class: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)
    metrics: Dict[str, float] = field(default_factory=dict)
    community_id: Optional[int] = None

    def __post_init__(self):
        if not self.label:
            self.label = self.id


@dataclass
class GraphEdge:
    source_id: str
    target_id: str
    label: str = ""
    id: str = ""
    kind: EdgeKind = EdgeKind.RELATIONSHIP
    weight: Optional[float] = None

    def __post_init__(self):
        if not self.id:
            self.id = f"{self.source_id}-{self.label}->{self.target_id}"


@dataclass
class GraphDocument:
    nodes: List[GraphNode] = field(default_factory=list)
    edges: List[GraphEdge] = field(default_factory=list)

    @property
    def node_ids(self) -> List[str]:
        return [n.id for n in self.nodes]

    def node_map(self) -> Dict[str, GraphNode]:
        return {n.id: n for n in self.nodes}

    def ids_with_role(self, role: NodeRole) -> List[str]:
        return [n.id for n in self.nodes if n.role == role]

    def with_nodes(self, nodes: Iterable[GraphNode]) -> "GraphDocument":
        return replace(self, nodes=list(nodes), edges=list(self.edges))

    # ------------------------------------------------------------------ #
    # networkx bridge
    # ------------------------------------------------------------------ #

    def to_networkx(self) -> nx.MultiDiGraph:
        """
        Directed multigraph view of the document.

        Edges referencing unknown nodes are dropped, matching how the engine
        treats them.
        """
        G = nx.MultiDiGraph()
        for n in self.nodes:
            G.add_node(
                n.id,
                label=n.label,
                role=n.role.value,
                ontology_class=n.ontology_class,
                community_id=n.community_id,
                **n.metrics,
            )
        for e in self.edges:
            if e.source_id in G and e.target_id in G:
                attrs: Dict[str, Any] = {"label": e.label, "kind": e.kind.value, "id": e.id}
                if e.weight is not None:
                    attrs["weight"] = e.weight
                G.add_edge(e.source_id, e.target_id, **attrs)
        return G

    @classmethod
    def from_networkx(cls, G: nx.Graph) -> "GraphDocument":
        """Build a document from any networkx graph; node keys become string ids."""
        nodes = []
        for n, data in G.nodes(data=True):
            role = data.get("role", NodeRole.INSTANCE.value)
            nodes.append(
                GraphNode(
                    id=str(n),
                    label=str(data.get("label", n)),
                    role=NodeRole(role),
                    ontology_class=data.get("ontology_class"),
                )
            )

        edges = []
        for u, v, data in G.edges(data=True):
            kind = data.get("kind", EdgeKind.RELATIONSHIP.value)
            edges.append(
                GraphEdge(
                    source_id=str(u),
                    target_id=str(v),
                    label=str(data.get("label", "")),
                    kind=EdgeKind(kind),
                    weight=data.get("weight"),
                )
            )
        return cls(nodes=nodes, edges=edges)


def edge_endpoints(edge: Any) -> Tuple[str, str]:
    """Accept GraphEdge instances or plain (source, target[, ...]) tuples."""
    if isinstance(edge, GraphEdge):
        return edge.source_id, edge.target_id
    return str(edge[0]), str(edge[1])


def edge_weight(edge: Any) -> Optional[float]:
    if isinstance(edge, GraphEdge):
        return edge.weight
    if len(edge) > 3:
        return edge[3]
    return None


def node_id_of(node: Any) -> str:
    if isinstance(node, GraphNode):
        return node.id
    return str(node)
