"""
Preset configuration for the studio_graph engine.

Three groups of knobs:
  - LayoutParams     force-directed simulation constants
  - SchedulerConfig  frame loop pacing (batch sizes, frame interval)
  - MetricsConfig    PageRank / label propagation / backbone settings

EngineConfig bundles them and is what hosts usually pass around.
load_config() builds one from STUDIO_GRAPH_* environment variables.
"""

from __future__ import annotations

import logging
import math
import os
from dataclasses import dataclass, asdict, field
from typing import Any, Dict, Optional


# --------------------------------------------------------------------------- #
# Layout parameters
# --------------------------------------------------------------------------- #

@dataclass
class LayoutParams:
    """
    Engine-wide simulation constants.

    Lengths are in world units (the same units as the viewport size).
    """

    ideal_length: float = 120.0
    spring_stiffness: float = 0.04
    repulsion_strength: float = 800.0
    center_strength: float = 0.02

    # extra repulsion between "class" nodes
    class_repulsion_multiplier: float = 4.0

    # collision layer
    minimum_node_distance: float = 56.0
    collision_strength: float = 0.7

    # 0 = every edge gets the same ideal length
    degree_scale_factor: float = 0.3
    max_length_scale: float = 2.5

    alpha_decay: float = 0.95
    alpha_min: float = 0.01
    velocity_decay: float = 0.55
    max_iterations: int = 300

    # Barnes-Hut accuracy (0 = exact) and quadtree depth guard
    theta: float = 0.8
    max_depth: int = 20

    timeline_strength: float = 0.3
    timeline_cross_damping: float = 0.5

    # world is clamped to center +- max(w, h) * world_limit_factor
    world_limit_factor: float = 8.0

    def __post_init__(self):
        if self.theta < 0 or not math.isfinite(self.theta):
            raise ValueError(f"theta must be a finite value >= 0, got {self.theta!r}")
        if self.max_depth < 1:
            raise ValueError(f"max_depth must be >= 1, got {self.max_depth!r}")
        if not 0.0 < self.alpha_decay <= 1.0:
            raise ValueError(f"alpha_decay must be in (0, 1], got {self.alpha_decay!r}")
        if self.max_iterations < 0:
            raise ValueError(f"max_iterations must be >= 0, got {self.max_iterations!r}")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# --------------------------------------------------------------------------- #
# Frame loop pacing
# --------------------------------------------------------------------------- #

@dataclass
class SchedulerConfig:
    frame_interval: float = 0.016

    # ticks per frame while hot / warm / cooling
    hot_batch: int = 4
    warm_batch: int = 2
    hot_alpha: float = 0.5
    warm_alpha: float = 0.1

    # warmup iteration count = clamp(per_log * log2(n + 1), floor, cap)
    warmup_per_log: float = 30.0
    warmup_floor: int = 20
    warmup_cap: int = 300

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# --------------------------------------------------------------------------- #
# Analytics
# --------------------------------------------------------------------------- #

@dataclass
class MetricsConfig:
    damping: float = 0.85
    pagerank_iterations: int = 20
    pagerank_tolerance: float = 1e-6

    label_iterations: int = 20
    seed: int = 42

    backbone_min_nodes: int = 50
    backbone_fraction: int = 5
    backbone_min: int = 30
    backbone_max: int = 200

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# --------------------------------------------------------------------------- #
# Bundle
# --------------------------------------------------------------------------- #

@dataclass
class EngineConfig:
    """
    Top-level configuration handed to hosts.

    seed=None leaves the layout randomness unseeded.
    """

    layout: LayoutParams = field(default_factory=LayoutParams)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    metrics: MetricsConfig = field(default_factory=MetricsConfig)
    seed: Optional[int] = None
    enable_logging: bool = False

    version: str = "studio_graph.engine.v1"

    def __post_init__(self):
        # callers sometimes pass None explicitly
        if self.layout is None:
            self.layout = LayoutParams()
        if self.scheduler is None:
            self.scheduler = SchedulerConfig()
        if self.metrics is None:
            self.metrics = MetricsConfig()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "layout": self.layout.to_dict(),
            "scheduler": self.scheduler.to_dict(),
            "metrics": self.metrics.to_dict(),
            "seed": self.seed,
            "enable_logging": self.enable_logging,
            "version": self.version,
        }


def load_config() -> EngineConfig:
    """
    Load EngineConfig from environment variables, falling back to defaults.

    Recognized variables:
        STUDIO_GRAPH_SEED             (int; layout randomness seed)
        STUDIO_GRAPH_MAX_ITERATIONS   (int)
        STUDIO_GRAPH_THETA            (float)
        STUDIO_GRAPH_FRAME_INTERVAL   (float, seconds)
        STUDIO_GRAPH_COMMUNITY_SEED   (int)
        STUDIO_GRAPH_ENABLE_LOGGING   ("true" / "false" / "1" / "0")
    """

    def _env_flag(name: str, default: bool) -> bool:
        val = os.getenv(name)
        if val is None:
            return default
        return val.strip().lower() in ("1", "true", "yes", "on")

    def _env_int(name: str) -> Optional[int]:
        val = os.getenv(name)
        return int(val) if val not in (None, "") else None

    def _env_float(name: str) -> Optional[float]:
        val = os.getenv(name)
        return float(val) if val not in (None, "") else None

    layout = LayoutParams()
    max_iter = _env_int("STUDIO_GRAPH_MAX_ITERATIONS")
    if max_iter is not None:
        layout.max_iterations = max_iter
    theta = _env_float("STUDIO_GRAPH_THETA")
    if theta is not None:
        layout.theta = theta
    # re-run validation on the overridden values
    layout.__post_init__()

    scheduler = SchedulerConfig()
    interval = _env_float("STUDIO_GRAPH_FRAME_INTERVAL")
    if interval is not None:
        scheduler.frame_interval = interval

    metrics = MetricsConfig()
    community_seed = _env_int("STUDIO_GRAPH_COMMUNITY_SEED")
    if community_seed is not None:
        metrics.seed = community_seed

    cfg = EngineConfig(
        layout=layout,
        scheduler=scheduler,
        metrics=metrics,
        seed=_env_int("STUDIO_GRAPH_SEED"),
        enable_logging=_env_flag("STUDIO_GRAPH_ENABLE_LOGGING", False),
    )

    if cfg.enable_logging:
        logging.basicConfig(level=logging.INFO)
        logging.getLogger(__name__).info("Loaded studio_graph config: %s", cfg.to_dict())

    return cfg


# Default config shared by the engine and analytics when none is supplied
DEFAULT_CONFIG = EngineConfig()
