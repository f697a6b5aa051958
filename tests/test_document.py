"""
Document model tests: defaults, edge helpers and the networkx bridge.
"""

import networkx as nx

from studio_graph import (
    EdgeKind,
    GraphDocument,
    GraphEdge,
    GraphNode,
    NodeRole,
    compute_document_metrics,
)
from studio_graph.document import edge_endpoints, edge_weight, node_id_of


class TestDefaults:

    def test_label_defaults_to_id(self):
        assert GraphNode(id="Person").label == "Person"

    def test_edge_id_is_derived(self):
        edge = GraphEdge(source_id="a", target_id="b", label="knows")
        assert edge.id == "a-knows->b"

    def test_ids_with_role(self):
        doc = GraphDocument(nodes=[
            GraphNode(id="Person", role=NodeRole.TYPE),
            GraphNode(id="alice"),
        ])
        assert doc.ids_with_role(NodeRole.TYPE) == ["Person"]


class TestEdgeHelpers:

    def test_tuple_edges(self):
        assert edge_endpoints(("a", "b")) == ("a", "b")
        assert edge_endpoints((1, 2, "label")) == ("1", "2")
        assert edge_weight(("a", "b", "rel", 2.5)) == 2.5
        assert edge_weight(("a", "b")) is None

    def test_graph_edge(self):
        edge = GraphEdge(source_id="a", target_id="b", weight=0.5)
        assert edge_endpoints(edge) == ("a", "b")
        assert edge_weight(edge) == 0.5

    def test_node_id_of(self):
        assert node_id_of(GraphNode(id="x")) == "x"
        assert node_id_of(7) == "7"


class TestNetworkxBridge:

    def test_to_networkx_drops_dangling_edges(self):
        doc = GraphDocument(
            nodes=[GraphNode(id="a"), GraphNode(id="b")],
            edges=[
                GraphEdge(source_id="a", target_id="b", label="r", weight=2.0),
                GraphEdge(source_id="a", target_id="ghost", label="r"),
            ],
        )
        G = doc.to_networkx()

        assert G.is_directed() and G.is_multigraph()
        assert set(G.nodes()) == {"a", "b"}
        assert G.number_of_edges() == 1
        (_, _, data), = G.edges(data=True)
        assert data["weight"] == 2.0

    def test_parallel_edges_survive(self):
        doc = GraphDocument(
            nodes=[GraphNode(id="a"), GraphNode(id="b")],
            edges=[
                GraphEdge(source_id="a", target_id="b", label="likes"),
                GraphEdge(source_id="a", target_id="b", label="knows"),
            ],
        )
        assert doc.to_networkx().number_of_edges() == 2

    def test_from_networkx_round_trip_keeps_roles(self):
        doc = GraphDocument(
            nodes=[GraphNode(id="Person", role=NodeRole.TYPE), GraphNode(id="alice")],
            edges=[GraphEdge(source_id="alice", target_id="Person", kind=EdgeKind.INSTANCE_OF)],
        )
        back = GraphDocument.from_networkx(doc.to_networkx())

        assert back.node_map()["Person"].role is NodeRole.TYPE
        assert back.edges[0].kind is EdgeKind.INSTANCE_OF

    def test_edge_kind_is_stored_as_its_value(self):
        doc = GraphDocument(
            nodes=[GraphNode(id="Person", role=NodeRole.TYPE), GraphNode(id="Agent", role=NodeRole.TYPE)],
            edges=[
                GraphEdge(source_id="Person", target_id="Agent", kind=EdgeKind.SUB_CLASS_OF),
                GraphEdge(source_id="Agent", target_id="Person", label="knows"),
            ],
        )
        kinds = sorted(data["kind"] for _, _, data in doc.to_networkx().edges(data=True))

        assert kinds == ["relationship", "subClassOf"]
        assert doc.edges[1].kind is EdgeKind.RELATIONSHIP

    def test_from_networkx_defaults_to_relationship(self):
        G = nx.DiGraph()
        G.add_edge("a", "b")
        doc = GraphDocument.from_networkx(G)
        assert doc.edges[0].kind is EdgeKind.RELATIONSHIP
        assert doc.node_map()["a"].role is NodeRole.INSTANCE

    def test_karate_club_metrics(self):
        doc = GraphDocument.from_networkx(nx.karate_club_graph())
        metrics = compute_document_metrics(doc)

        assert len(doc.nodes) == 34
        assert len(metrics.degree) == 34
        # instructor and administrator are the two hubs
        top_two = sorted(metrics.degree, key=metrics.degree.get, reverse=True)[:2]
        assert set(top_two) == {"0", "33"}
        assert 1 <= metrics.community_count < 34
