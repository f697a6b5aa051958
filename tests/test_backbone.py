"""
Backbone selection tests.
"""

import pytest

from studio_graph import (
    MetricsConfig,
    backbone_target,
    compute_document_metrics,
    select_backbone,
)

from conftest import make_document


def _star_edges(hub, leaves):
    return [(f"n{hub}", f"n{leaf}") for leaf in leaves]


class TestBackboneTarget:

    @pytest.mark.parametrize("n,expected", [(100, 30), (150, 30), (500, 100), (999, 199), (5000, 200)])
    def test_clamped_fraction(self, n, expected):
        assert backbone_target(n) == expected

    def test_custom_config(self):
        cfg = MetricsConfig(backbone_fraction=10, backbone_min=5, backbone_max=20)
        assert backbone_target(100, cfg) == 10
        assert backbone_target(10, cfg) == 5
        assert backbone_target(1000, cfg) == 20


class TestSelectBackbone:

    def test_small_graph_is_returned_whole(self):
        doc = make_document(49, [("n0", "n1")])
        metrics = compute_document_metrics(doc)
        assert select_backbone(doc, metrics) == set(doc.node_ids)

    def test_large_graph_keeps_types_and_stays_bounded(self):
        type_ids = [f"n{i}" for i in range(490, 500)]
        edges = []
        for hub in range(0, 50):
            edges += _star_edges(hub, range(100 + hub * 5, 105 + hub * 5))
        doc = make_document(500, edges, type_ids=type_ids)
        metrics = compute_document_metrics(doc)

        backbone = select_backbone(doc, metrics)

        assert set(type_ids) <= backbone
        assert len(backbone) <= 200
        assert len(backbone) == 110
        # the 50 hubs have the highest degree
        assert {f"n{i}" for i in range(50)} <= backbone

    def test_ties_keep_document_order(self):
        doc = make_document(100, [])
        metrics = compute_document_metrics(doc)

        backbone = select_backbone(doc, metrics)

        assert backbone == {f"n{i}" for i in range(30)}

    def test_deterministic(self):
        edges = [(f"n{i}", f"n{(i * 13) % 200}") for i in range(200)]
        doc = make_document(200, edges, type_ids=["n7"])
        metrics = compute_document_metrics(doc)
        assert select_backbone(doc, metrics) == select_backbone(doc, metrics)

    def test_missing_degree_counts_as_zero(self):
        doc = make_document(60, [("n59", "n58")])
        metrics = compute_document_metrics(doc)
        partial = type(metrics)(degree={"n59": 1.0}, pagerank={}, community_id={})

        backbone = select_backbone(doc, partial)
        assert "n59" in backbone
        assert len(backbone) == 30
