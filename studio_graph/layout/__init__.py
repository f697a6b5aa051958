# studio_graph/layout/__init__.py

"""
Layout subpackage for studio_graph.

Provides:
  - Barnes-Hut quadtree and spatial-hash collision layer
  - the incremental force-directed simulation engine
  - the cooperative frame loop that drives it
"""

from __future__ import annotations

from .state import NodePosition, TimelineAxis
from .quadtree import QuadTree
from .collision import CollisionGrid
from .simulation import ForceDirectedLayout, warmup_iterations
from .scheduler import SimulationLoop, SimulationController, batch_size_for

__all__ = [
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
