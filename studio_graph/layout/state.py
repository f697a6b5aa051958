"""
Boundary value types for the layout engine.

The engine stores its state in flat arrays; these types are what the host
sees when it reads positions back or configures optional forces.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, Tuple

Point = Tuple[float, float]
Size = Tuple[float, float]


@dataclass
class NodePosition:
    x: float
    y: float
    velocity_x: float = 0.0
    velocity_y: float = 0.0
    pinned: bool = False

    @property
    def point(self) -> Point:
        return (self.x, self.y)


@dataclass
class TimelineAxis:
    """
    A line that pulls its member nodes toward one coordinate.

    orientation="horizontal" pulls members toward y == coordinate and damps
    their vertical velocity; "vertical" does the same along x.
    """

    coordinate: float
    node_ids: FrozenSet[str] = field(default_factory=frozenset)
    orientation: str = "horizontal"

    def __post_init__(self):
        if self.orientation not in ("horizontal", "vertical"):
            raise ValueError(f"orientation must be 'horizontal' or 'vertical', got {self.orientation!r}")
        if not isinstance(self.node_ids, frozenset):
            self.node_ids = frozenset(self.node_ids)

    @classmethod
    def horizontal(cls, y: float, node_ids: Iterable[str]) -> "TimelineAxis":
        return cls(coordinate=y, node_ids=frozenset(node_ids), orientation="horizontal")

    @classmethod
    def vertical(cls, x: float, node_ids: Iterable[str]) -> "TimelineAxis":
        return cls(coordinate=x, node_ids=frozenset(node_ids), orientation="vertical")
