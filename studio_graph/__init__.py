"""
studio_graph: layout and analytics engine for the graph explorer.

Non-visual core consumed by the UI: an incremental force-directed layout
simulator plus degree / PageRank / community metrics and a backbone
selector for large graphs.
"""

# ---------------------------------------------------------------------------
# Configuration and errors
# ---------------------------------------------------------------------------
from .presets import (
    LayoutParams,
    SchedulerConfig,
    MetricsConfig,
    EngineConfig,
    DEFAULT_CONFIG,
    load_config,
)
from .exceptions import StudioGraphError, SimulationBusyError

# ---------------------------------------------------------------------------
# Document model
# ---------------------------------------------------------------------------
from .document import (
    GraphDocument,
    GraphNode,
    GraphEdge,
    NodeRole,
    EdgeKind,
)

# ---------------------------------------------------------------------------
# Analytics
# ---------------------------------------------------------------------------
from .analytics import (
    GraphMetrics,
    GraphStats,
    Xorshift128Plus,
    compute_graph_metrics,
    compute_document_metrics,
    degree_centrality,
    pagerank,
    label_propagation,
    attach_metrics,
    compute_graph_stats,
)
from .backbone import select_backbone, backbone_target

# ---------------------------------------------------------------------------
# Layout engine
# ---------------------------------------------------------------------------
from .layout import (
    NodePosition,
    TimelineAxis,
    QuadTree,
    CollisionGrid,
    ForceDirectedLayout,
    warmup_iterations,
    SimulationLoop,
    SimulationController,
    batch_size_for,
)

# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
__all__ = [
    # Config / errors
    "LayoutParams",
    "SchedulerConfig",
    "MetricsConfig",
    "EngineConfig",
    "DEFAULT_CONFIG",
    "load_config",
    "StudioGraphError",
    "SimulationBusyError",

    # Document
    "GraphDocument",
    "GraphNode",
    "GraphEdge",
    "NodeRole",
    "EdgeKind",

    # Analytics
    "GraphMetrics",
    "GraphStats",
    "Xorshift128Plus",
    "compute_graph_metrics",
    "compute_document_metrics",
    "degree_centrality",
    "pagerank",
    "label_propagation",
    "attach_metrics",
    "compute_graph_stats",
    "select_backbone",
    "backbone_target",

    # Layout
    "NodePosition",
    "TimelineAxis",
    "QuadTree",
    "CollisionGrid",
    "ForceDirectedLayout",
    "warmup_iterations",
    "SimulationLoop",
    "SimulationController",
    "batch_size_for",
]
