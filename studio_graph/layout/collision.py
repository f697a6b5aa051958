"""
Spatial hash collision layer.

Bodies are bucketed into square cells whose side equals the minimum
separation distance, so every pair closer than that distance lives in the
same or an adjacent cell. Each body only inspects its 3x3 cell
neighbourhood.

Cell coordinates are clamped to the signed 32-bit range and neighbour
offsets use saturating addition, so extreme coordinates pile up in the
edge cells instead of wrapping around onto unrelated ones.
"""

from __future__ import annotations

import math
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from .quadtree import random_offset

INT32_MIN = -(2 ** 31)
INT32_MAX = 2 ** 31 - 1


def clamp_int32(value: float) -> int:
    if not math.isfinite(value):
        return 0
    if value <= INT32_MIN:
        return INT32_MIN
    if value >= INT32_MAX:
        return INT32_MAX
    return int(value)


def saturating_add(lhs: int, rhs: int) -> int:
    total = lhs + rhs
    if total <= INT32_MIN:
        return INT32_MIN
    if total >= INT32_MAX:
        return INT32_MAX
    return total


def pack_key(cx: int, cy: int) -> int:
    return (cx << 32) ^ (cy & 0xFFFFFFFF)


def _cell_coord(value: float, cell_size: float) -> int:
    scaled = value / cell_size
    if not math.isfinite(scaled):
        return 0
    return clamp_int32(math.floor(scaled))


def cell_of(x: float, y: float, cell_size: float) -> Tuple[int, int]:
    if not math.isfinite(cell_size) or cell_size <= 0:
        return (0, 0)
    return (_cell_coord(x, cell_size), _cell_coord(y, cell_size))


class CollisionGrid:
    """
    Minimum-separation enforcement over a spatial hash.

    For every unordered pair closer than `min_distance` a linear impulse of
    (min_distance - dist) * strength is applied along the separating axis,
    equal and opposite on the two bodies.
    """

    def __init__(self, rng: Optional[np.random.Generator] = None):
        self.rng = rng if rng is not None else np.random.default_rng()
        self._buckets: Dict[int, List[int]] = {}

    @property
    def bucket_count(self) -> int:
        return len(self._buckets)

    def apply(
        self,
        xs: Sequence[float],
        ys: Sequence[float],
        fx: np.ndarray,
        fy: np.ndarray,
        min_distance: float,
        strength: float,
    ) -> int:
        """
        Accumulate collision impulses into fx / fy in place.

        Returns the number of colliding pairs.
        """
        if not (math.isfinite(min_distance) and min_distance > 0):
            return 0
        if not (math.isfinite(strength) and strength > 0):
            return 0

        px = np.asarray(xs, dtype=float).tolist()
        py = np.asarray(ys, dtype=float).tolist()
        n = len(px)
        if n < 2:
            return 0

        buckets = self._buckets
        buckets.clear()

        cells: List[Tuple[int, int]] = []
        for i in range(n):
            cell = cell_of(px[i], py[i], min_distance)
            cells.append(cell)
            key = pack_key(*cell)
            bucket = buckets.get(key)
            if bucket is None:
                buckets[key] = [i]
            else:
                bucket.append(i)

        min_dist_sq = min_distance * min_distance
        pairs = 0

        for i in range(n):
            cx, cy = cells[i]
            seen = set()
            for ox in (-1, 0, 1):
                nx_ = saturating_add(cx, ox)
                for oy in (-1, 0, 1):
                    key = pack_key(nx_, saturating_add(cy, oy))
                    # saturated neighbours can collapse onto the same cell
                    if key in seen:
                        continue
                    seen.add(key)
                    neighbours = buckets.get(key)
                    if not neighbours:
                        continue

                    for j in neighbours:
                        if j <= i:
                            continue
                        dx = px[j] - px[i]
                        dy = py[j] - py[i]
                        dist_sq = dx * dx + dy * dy
                        if dist_sq >= min_dist_sq:
                            continue
                        if dist_sq < 1.0:
                            dx, dy, dist_sq = random_offset(self.rng)
                        if not math.isfinite(dist_sq):
                            continue

                        dist = math.sqrt(dist_sq)
                        penetration = min_distance - dist
                        if penetration <= 0:
                            continue

                        force = penetration * strength
                        if not math.isfinite(force):
                            continue
                        ix = force * dx / dist
                        iy = force * dy / dist
                        fx[i] -= ix
                        fy[i] -= iy
                        fx[j] += ix
                        fy[j] += iy
                        pairs += 1

        return pairs
