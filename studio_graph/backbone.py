"""
Backbone selection: a representative node subset for large graphs.

Small graphs are shown whole. Larger graphs start from every TYPE node plus
the top-K nodes by degree, K = clamp(n // fraction, min, max).
"""

from __future__ import annotations

from typing import Optional, Set

from .analytics import GraphMetrics
from .document import GraphDocument, NodeRole
from .presets import DEFAULT_CONFIG, MetricsConfig


def backbone_target(node_count: int, config: Optional[MetricsConfig] = None) -> int:
    cfg = config or DEFAULT_CONFIG.metrics
    return min(cfg.backbone_max, max(cfg.backbone_min, node_count // cfg.backbone_fraction))


def select_backbone(
    document: GraphDocument,
    metrics: GraphMetrics,
    *,
    config: Optional[MetricsConfig] = None,
) -> Set[str]:
    cfg = config or DEFAULT_CONFIG.metrics
    nodes = document.nodes
    if len(nodes) < cfg.backbone_min_nodes:
        return {n.id for n in nodes}

    selected = {n.id for n in nodes if n.role == NodeRole.TYPE}

    # sorted() is stable, so equal degrees keep document order
    ranked = sorted(nodes, key=lambda n: metrics.degree.get(n.id, 0.0), reverse=True)
    for node in ranked[:backbone_target(len(nodes), cfg)]:
        selected.add(node.id)

    return selected
