"""
Barnes-Hut quadtree over point bodies.

The tree is rebuilt from scratch on every simulation step. Nodes live in a
flat, index-addressed arena of parallel lists that is kept between builds,
so a steady-state simulation does not allocate tree nodes per tick.

Per node the arena stores:
  - bounding box (min_x, max_x, min_y, max_y)
  - center of mass and mass (= number of bodies in the subtree)
  - leaf body index (-1 for empty / internal nodes)
  - four child indices NW, NE, SW, SE (-1 = no child)

Insertion updates mass and center of mass as a running average on every
visited node. A depth guard stops subdivision: bodies that reach it are
folded into that node's aggregate, which keeps coincident points from
recursing without bound.

Reference: Barnes & Hut, "A hierarchical O(N log N) force-calculation
algorithm", Nature 1986.
"""

from __future__ import annotations

import math
from typing import List, Optional, Sequence, Tuple

import numpy as np

NW, NE, SW, SE = 0, 1, 2, 3


def random_offset(rng: np.random.Generator) -> Tuple[float, float, float]:
    """Small random displacement in [-1, 1]^2 with a non-zero length."""
    while True:
        dx = float(rng.uniform(-1.0, 1.0))
        dy = float(rng.uniform(-1.0, 1.0))
        dist_sq = dx * dx + dy * dy
        if dist_sq > 0.0:
            return dx, dy, dist_sq


class QuadTree:
    """
    Flat-arena Barnes-Hut quadtree.

    Usage:
        tree = QuadTree(theta=0.8)
        tree.build(xs, ys)
        fx, fy = tree.repulsion(strength=800.0)

    theta = 0 gives exact pairwise forces; larger values treat more distant
    cells as a single pseudo-body.
    """

    def __init__(
        self,
        theta: float = 0.8,
        max_depth: int = 20,
        rng: Optional[np.random.Generator] = None,
    ):
        self.theta = float(theta)
        self.max_depth = int(max_depth)
        self.rng = rng if rng is not None else np.random.default_rng()

        self._xs: List[float] = []
        self._ys: List[float] = []

        self._count = 0
        self._capacity = 0

        # arena columns
        self._com_x: List[float] = []
        self._com_y: List[float] = []
        self._mass: List[int] = []
        self._body: List[int] = []
        self._child: List[int] = []  # 4 slots per node
        self._min_x: List[float] = []
        self._max_x: List[float] = []
        self._min_y: List[float] = []
        self._max_y: List[float] = []

    # ------------------------------------------------------------------ #
    # Introspection
    # ------------------------------------------------------------------ #

    @property
    def node_count(self) -> int:
        return self._count

    @property
    def body_count(self) -> int:
        return len(self._xs)

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def root_mass(self) -> int:
        return self._mass[0] if self._count else 0

    @property
    def root_center_of_mass(self) -> Tuple[float, float]:
        if not self._count:
            return (0.0, 0.0)
        return (self._com_x[0], self._com_y[0])

    @property
    def root_bounds(self) -> Tuple[float, float, float, float]:
        """(min_x, max_x, min_y, max_y) of the root cell."""
        if not self._count:
            return (0.0, 0.0, 0.0, 0.0)
        return (self._min_x[0], self._max_x[0], self._min_y[0], self._max_y[0])

    def children_of(self, node: int) -> Tuple[int, int, int, int]:
        base = 4 * node
        c = self._child
        return (c[base], c[base + 1], c[base + 2], c[base + 3])

    def mass_of(self, node: int) -> int:
        return self._mass[node]

    def center_of_mass_of(self, node: int) -> Tuple[float, float]:
        return (self._com_x[node], self._com_y[node])

    # ------------------------------------------------------------------ #
    # Arena management
    # ------------------------------------------------------------------ #

    def _reserve(self, capacity: int) -> None:
        if capacity <= self._capacity:
            return
        grow = capacity - self._capacity
        self._com_x.extend([0.0] * grow)
        self._com_y.extend([0.0] * grow)
        self._mass.extend([0] * grow)
        self._body.extend([-1] * grow)
        self._child.extend([-1] * (4 * grow))
        self._min_x.extend([0.0] * grow)
        self._max_x.extend([0.0] * grow)
        self._min_y.extend([0.0] * grow)
        self._max_y.extend([0.0] * grow)
        self._capacity = capacity

    def _alloc(self, min_x: float, max_x: float, min_y: float, max_y: float) -> int:
        idx = self._count
        self._count += 1
        if idx >= self._capacity:
            self._reserve(max(16, self._capacity * 2))

        self._com_x[idx] = 0.0
        self._com_y[idx] = 0.0
        self._mass[idx] = 0
        self._body[idx] = -1
        base = 4 * idx
        self._child[base] = -1
        self._child[base + 1] = -1
        self._child[base + 2] = -1
        self._child[base + 3] = -1
        self._min_x[idx] = min_x
        self._max_x[idx] = max_x
        self._min_y[idx] = min_y
        self._max_y[idx] = max_y
        return idx

    # ------------------------------------------------------------------ #
    # Construction
    # ------------------------------------------------------------------ #

    def build(self, xs: Sequence[float], ys: Sequence[float]) -> None:
        """Rebuild the tree over the given body positions (must be finite)."""
        self._xs = np.asarray(xs, dtype=float).tolist()
        self._ys = np.asarray(ys, dtype=float).tolist()
        self._count = 0

        n = len(self._xs)
        if n == 0:
            return

        min_x, max_x = min(self._xs), max(self._xs)
        min_y, max_y = min(self._ys), max(self._ys)
        pad = max(max_x - min_x, max_y - min_y, 100.0) * 0.05 + 1.0

        # worst case is about 4 nodes per body
        self._reserve(4 * n + 16)

        root = self._alloc(min_x - pad, max_x + pad, min_y - pad, max_y + pad)
        for i in range(n):
            self._insert(i, root, 0)

    def _insert(self, body: int, node: int, depth: int) -> None:
        bx = self._xs[body]
        by = self._ys[body]

        m = self._mass[node]
        if m == 0:
            self._body[node] = body
            self._com_x[node] = bx
            self._com_y[node] = by
            self._mass[node] = 1
            return

        new_mass = m + 1
        self._com_x[node] = (self._com_x[node] * m + bx) / new_mass
        self._com_y[node] = (self._com_y[node] * m + by) / new_mass
        self._mass[node] = new_mass

        if depth >= self.max_depth:
            return

        existing = self._body[node]
        if existing >= 0:
            self._body[node] = -1
            self._insert_into_child(existing, node, depth)

        self._insert_into_child(body, node, depth)

    def _insert_into_child(self, body: int, parent: int, depth: int) -> None:
        bx = self._xs[body]
        by = self._ys[body]
        p_min_x, p_max_x = self._min_x[parent], self._max_x[parent]
        p_min_y, p_max_y = self._min_y[parent], self._max_y[parent]
        mid_x = (p_min_x + p_max_x) * 0.5
        mid_y = (p_min_y + p_max_y) * 0.5

        west = bx <= mid_x
        north = by <= mid_y

        if west and north:
            quadrant, box = NW, (p_min_x, mid_x, p_min_y, mid_y)
        elif north:
            quadrant, box = NE, (mid_x, p_max_x, p_min_y, mid_y)
        elif west:
            quadrant, box = SW, (p_min_x, mid_x, mid_y, p_max_y)
        else:
            quadrant, box = SE, (mid_x, p_max_x, mid_y, p_max_y)

        slot = 4 * parent + quadrant
        child = self._child[slot]
        if child < 0:
            child = self._alloc(*box)
            self._child[slot] = child

        self._insert(body, child, depth + 1)

    # ------------------------------------------------------------------ #
    # Force evaluation
    # ------------------------------------------------------------------ #

    def force_on(self, index: int, strength: float) -> Tuple[float, float]:
        """
        Approximate repulsion on body `index` from every other body.

        Magnitude is strength * mass / distance, directed away from the
        (pseudo-)body.
        """
        if self._count == 0:
            return (0.0, 0.0)

        bx = self._xs[index]
        by = self._ys[index]
        theta_sq = self.theta * self.theta

        com_x, com_y = self._com_x, self._com_y
        mass, bodies, child = self._mass, self._body, self._child
        min_x, max_x = self._min_x, self._max_x

        fx = 0.0
        fy = 0.0
        stack = [0]
        while stack:
            node = stack.pop()
            m = mass[node]
            if m == 0:
                continue
            # leaf holding only the query body
            if m == 1 and bodies[node] == index:
                continue

            dx = com_x[node] - bx
            dy = com_y[node] - by
            dist_sq = dx * dx + dy * dy

            base = 4 * node
            c0, c1, c2, c3 = child[base], child[base + 1], child[base + 2], child[base + 3]
            external = c0 < 0 and c1 < 0 and c2 < 0 and c3 < 0

            width = max_x[node] - min_x[node]
            far = dist_sq > 0.0 and (width * width) / dist_sq < theta_sq

            if external or far:
                if dist_sq < 1.0:
                    dx, dy, dist_sq = random_offset(self.rng)
                dist = math.sqrt(dist_sq)
                force = strength * m / dist
                # dx points from body to cluster, push the other way
                fx -= force * dx / dist
                fy -= force * dy / dist
                continue

            if c3 >= 0:
                stack.append(c3)
            if c2 >= 0:
                stack.append(c2)
            if c1 >= 0:
                stack.append(c1)
            if c0 >= 0:
                stack.append(c0)

        return (fx, fy)

    def repulsion(self, strength: float) -> Tuple[np.ndarray, np.ndarray]:
        """Repulsion vectors for every body of the last build."""
        n = len(self._xs)
        fx = np.zeros(n, dtype=float)
        fy = np.zeros(n, dtype=float)
        if n < 2:
            return fx, fy
        for i in range(n):
            fx[i], fy[i] = self.force_on(i, strength)
        return fx, fy
