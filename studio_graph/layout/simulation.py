"""
Force-directed layout simulation (Barnes-Hut repulsion, spring attraction).

Per tick the engine accumulates, for every body:
  - Barnes-Hut repulsion over a quadtree (O(N log N))
  - extra repulsion between designated "class" nodes (O(C^2), C << N)
  - spring attraction along edges toward an ideal length that grows with
    the square root of the endpoint degree (capped)
  - a weak pull toward the viewport center
  - minimum-separation collision impulses from a spatial hash
  - an optional pull toward a timeline axis

and then integrates damped velocities with an annealed temperature
(alpha) until either the iteration cap or the alpha floor is reached.

State lives in an index-based arena: every node id gets a dense integer
index and positions / velocities / pin flags are numpy arrays. Ids only
appear at the boundary (tick / pin / positions).

The engine is not thread-safe. At most one driver may step it at a time,
see `claim` / `release` and studio_graph.layout.scheduler.
"""

from __future__ import annotations

import logging
import math
from dataclasses import replace
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from ..document import edge_endpoints, edge_weight
from ..exceptions import SimulationBusyError
from ..presets import DEFAULT_CONFIG, EngineConfig, LayoutParams, SchedulerConfig
from .collision import CollisionGrid
from .quadtree import QuadTree, random_offset
from .state import NodePosition, Point, Size, TimelineAxis

logger = logging.getLogger(__name__)

PositionLike = Union[NodePosition, Tuple[float, float]]


def _get_emit(emit: Optional[Callable[[str, Dict[str, Any]], None]]):
    if emit:
        return emit
    return lambda *_args, **_kwargs: None


def _coerce_point(value: PositionLike) -> Tuple[float, float]:
    if isinstance(value, NodePosition):
        return (float(value.x), float(value.y))
    return (float(value[0]), float(value[1]))


def warmup_iterations(node_count: int, config: Optional[SchedulerConfig] = None) -> int:
    """Warmup length: grows with log2 of the node count, clamped to [floor, cap]."""
    cfg = config or DEFAULT_CONFIG.scheduler
    if node_count <= 0:
        return 0
    count = int(cfg.warmup_per_log * math.log2(node_count + 1))
    return min(cfg.warmup_cap, max(cfg.warmup_floor, count))


class ForceDirectedLayout:
    """
    Incremental force-directed layout engine.

    Typical host usage:

        engine = ForceDirectedLayout(seed=7)
        engine.initialize(ids, (800, 600))
        engine.warmup(ids, edges, (800, 600))
        while engine.tick(ids, edges, (800, 600)):
            render(engine.position_map())
    """

    def __init__(
        self,
        params: Optional[LayoutParams] = None,
        *,
        config: Optional[EngineConfig] = None,
        rng: Optional[np.random.Generator] = None,
        seed: Optional[int] = None,
        emit: Optional[Callable[[str, Dict[str, Any]], None]] = None,
    ):
        cfg = config or DEFAULT_CONFIG
        self.params: LayoutParams = params if params is not None else replace(cfg.layout)
        self.scheduler_config: SchedulerConfig = cfg.scheduler

        if rng is None:
            rng = np.random.default_rng(seed if seed is not None else cfg.seed)
        self.rng = rng
        self.emit = _get_emit(emit)

        # optional secondary forces, set by the host
        self.class_node_ids: frozenset = frozenset()
        self.timeline_axis: Optional[TimelineAxis] = None

        self._alpha = 1.0
        self._iteration = 0
        self._is_running = False
        self._owner: Optional[object] = None

        # arena
        self._ids: List[str] = []
        self._index: Dict[str, int] = {}
        self._x = np.zeros(0, dtype=float)
        self._y = np.zeros(0, dtype=float)
        self._vx = np.zeros(0, dtype=float)
        self._vy = np.zeros(0, dtype=float)
        self._pinned = np.zeros(0, dtype=bool)

        # scratch structures reused across ticks
        self._tree = QuadTree(theta=self.params.theta, max_depth=self.params.max_depth, rng=self.rng)
        self._collision = CollisionGrid(rng=self.rng)

    # ------------------------------------------------------------------ #
    # Read-only state
    # ------------------------------------------------------------------ #

    @property
    def alpha(self) -> float:
        return self._alpha

    @property
    def iteration(self) -> int:
        return self._iteration

    @property
    def is_running(self) -> bool:
        return self._is_running

    @property
    def node_ids(self) -> List[str]:
        return list(self._ids)

    def __len__(self) -> int:
        return len(self._ids)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._index

    @property
    def positions(self) -> Dict[str, NodePosition]:
        return {
            nid: NodePosition(
                x=float(self._x[i]),
                y=float(self._y[i]),
                velocity_x=float(self._vx[i]),
                velocity_y=float(self._vy[i]),
                pinned=bool(self._pinned[i]),
            )
            for i, nid in enumerate(self._ids)
        }

    def position(self, node_id: str) -> Optional[Point]:
        i = self._index.get(node_id)
        if i is None:
            return None
        return (float(self._x[i]), float(self._y[i]))

    def position_map(self) -> Dict[str, Point]:
        xs = self._x.tolist()
        ys = self._y.tolist()
        return {nid: (xs[i], ys[i]) for i, nid in enumerate(self._ids)}

    def is_pinned(self, node_id: str) -> bool:
        i = self._index.get(node_id)
        return bool(self._pinned[i]) if i is not None else False

    # ------------------------------------------------------------------ #
    # Driver ownership
    # ------------------------------------------------------------------ #

    @property
    def owner(self) -> Optional[object]:
        return self._owner

    def claim(self, owner: object) -> None:
        """Register `owner` as the only driver allowed to step this engine."""
        if self._owner is not None and self._owner is not owner:
            raise SimulationBusyError(self._owner, owner)
        self._owner = owner

    def release(self, owner: object) -> None:
        if self._owner is owner:
            self._owner = None

    # ------------------------------------------------------------------ #
    # Arena helpers
    # ------------------------------------------------------------------ #

    def _jitter(self, cx: float, cy: float, spread: float) -> Tuple[float, float]:
        return (
            cx + float(self.rng.uniform(-spread, spread)),
            cy + float(self.rng.uniform(-spread, spread)),
        )

    def _reset_arena(self, ids: Sequence[str], xs: Sequence[float], ys: Sequence[float]) -> None:
        self._ids = list(ids)
        self._index = {nid: i for i, nid in enumerate(self._ids)}
        n = len(self._ids)
        self._x = np.asarray(xs, dtype=float).reshape(n).copy()
        self._y = np.asarray(ys, dtype=float).reshape(n).copy()
        self._vx = np.zeros(n, dtype=float)
        self._vy = np.zeros(n, dtype=float)
        self._pinned = np.zeros(n, dtype=bool)

    def _append(self, ids: Sequence[str], xs: Sequence[float], ys: Sequence[float]) -> None:
        if not ids:
            return
        start = len(self._ids)
        for k, nid in enumerate(ids):
            self._index[nid] = start + k
        self._ids.extend(ids)
        m = len(ids)
        self._x = np.concatenate([self._x, np.asarray(xs, dtype=float)])
        self._y = np.concatenate([self._y, np.asarray(ys, dtype=float)])
        self._vx = np.concatenate([self._vx, np.zeros(m)])
        self._vy = np.concatenate([self._vy, np.zeros(m)])
        self._pinned = np.concatenate([self._pinned, np.zeros(m, dtype=bool)])

    def _indices_for(self, ids: Sequence[str], cx: float, cy: float) -> np.ndarray:
        """Arena indices for `ids`; unknown ids are seeded near the center."""
        missing = [nid for nid in ids if nid not in self._index]
        if missing:
            pts = [self._jitter(cx, cy, 20.0) for _ in missing]
            self._append(missing, [p[0] for p in pts], [p[1] for p in pts])
        return np.fromiter((self._index[nid] for nid in ids), dtype=np.intp, count=len(ids))

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def initialize(
        self,
        node_ids: Iterable[str],
        viewport: Size,
        initial_positions: Optional[Mapping[str, PositionLike]] = None,
    ) -> None:
        """
        Seed positions for `node_ids` and reset the temperature.

        Without prior positions nodes go on a jittered circle whose radius
        grows with sqrt(node count). With prior positions (layout
        transitions) known ids keep their coordinates and the rest land
        near the center.
        """
        ids = list(dict.fromkeys(node_ids))
        width, height = float(viewport[0]), float(viewport[1])
        cx, cy = width / 2.0, height / 2.0
        n = len(ids)

        xs: List[float] = []
        ys: List[float] = []
        if initial_positions is not None:
            for nid in ids:
                prior = initial_positions.get(nid)
                if prior is not None:
                    px, py = _coerce_point(prior)
                else:
                    px, py = self._jitter(cx, cy, 50.0)
                xs.append(px)
                ys.append(py)
        else:
            base_radius = min(width, height) * 0.3
            radius = base_radius * math.sqrt(max(n, 1) / 20.0)
            for i in range(n):
                angle = (i / max(n, 1)) * 2.0 * math.pi
                jx, jy = self._jitter(0.0, 0.0, 30.0)
                xs.append(cx + math.cos(angle) * radius + jx)
                ys.append(cy + math.sin(angle) * radius + jy)

        self._reset_arena(ids, xs, ys)
        self._iteration = 0
        self._alpha = 1.0
        logger.debug("Initialized layout with %d nodes (prior=%s)", n, initial_positions is not None)

    def restart(self) -> None:
        self._iteration = 0
        self._alpha = 1.0
        self._is_running = True

    def reheat(self, alpha: float = 0.15) -> None:
        """Gentle re-relaxation: keep positions, zero velocities, low temperature."""
        self._vx[:] = 0.0
        self._vy[:] = 0.0
        self._iteration = 0
        self._alpha = max(alpha, self.params.alpha_min * 2.0)
        self._is_running = True

    def warmup(
        self,
        node_ids: Sequence[str],
        edges: Sequence[Any],
        viewport: Size,
        iterations: Optional[int] = None,
    ) -> int:
        """Run ticks back to back before first display. Returns ticks performed."""
        if iterations is None:
            iterations = warmup_iterations(len(node_ids), self.scheduler_config)
        done = 0
        for _ in range(max(0, iterations)):
            if not self.tick(node_ids, edges, viewport):
                break
            done += 1
        logger.debug("Warmup ran %d/%d ticks (alpha=%.4f)", done, iterations, self._alpha)
        return done

    # ------------------------------------------------------------------ #
    # Node operations
    # ------------------------------------------------------------------ #

    def pin(self, node_id: str, point: Point) -> None:
        i = self._index.get(node_id)
        if i is None:
            return
        self._x[i] = float(point[0])
        self._y[i] = float(point[1])
        self._vx[i] = 0.0
        self._vy[i] = 0.0
        self._pinned[i] = True

    def unpin(self, node_id: str) -> None:
        i = self._index.get(node_id)
        if i is not None:
            self._pinned[i] = False

    def add_nodes(self, node_ids: Iterable[str]) -> None:
        """Grow the arena; new nodes land near the centroid of the existing ones."""
        new_ids = [nid for nid in dict.fromkeys(node_ids) if nid not in self._index]
        if not new_ids:
            return

        finite = np.isfinite(self._x) & np.isfinite(self._y)
        if finite.any():
            cx = float(self._x[finite].mean())
            cy = float(self._y[finite].mean())
        else:
            cx, cy = 400.0, 300.0

        pts = [self._jitter(cx, cy, 80.0) for _ in new_ids]
        self._append(new_ids, [p[0] for p in pts], [p[1] for p in pts])

    def remove_nodes(self, node_ids: Iterable[str]) -> None:
        drop = {nid for nid in node_ids if nid in self._index}
        if not drop:
            return
        keep = np.fromiter((nid not in drop for nid in self._ids), dtype=bool, count=len(self._ids))
        self._ids = [nid for nid in self._ids if nid not in drop]
        self._index = {nid: i for i, nid in enumerate(self._ids)}
        self._x = self._x[keep]
        self._y = self._y[keep]
        self._vx = self._vx[keep]
        self._vy = self._vy[keep]
        self._pinned = self._pinned[keep]

    def set_positions(self, positions: Mapping[str, PositionLike]) -> None:
        """Replace the whole arena (used by non-physics layouts such as radial)."""
        ids = list(positions.keys())
        pts = [_coerce_point(positions[nid]) for nid in ids]
        self._reset_arena(ids, [p[0] for p in pts], [p[1] for p in pts])
        for i, nid in enumerate(ids):
            value = positions[nid]
            if isinstance(value, NodePosition):
                self._vx[i] = value.velocity_x
                self._vy[i] = value.velocity_y
                self._pinned[i] = value.pinned

    def merge_positions(self, positions: Mapping[str, PositionLike]) -> None:
        """Copy coordinates for ids already in the arena and stop them."""
        for nid, value in positions.items():
            i = self._index.get(nid)
            if i is None:
                continue
            self._x[i], self._y[i] = _coerce_point(value)
            self._vx[i] = 0.0
            self._vy[i] = 0.0

    # ------------------------------------------------------------------ #
    # Simulation step
    # ------------------------------------------------------------------ #

    def tick(self, node_ids: Sequence[str], edges: Sequence[Any], viewport: Size) -> bool:
        """
        Advance one step. Returns False once converged (iteration cap or
        alpha floor) or when there is nothing to lay out.
        """
        p = self.params
        if self._iteration >= p.max_iterations or self._alpha <= p.alpha_min:
            if self._is_running:
                self.emit("log", {"message": "[layout] converged",
                                  "iteration": self._iteration, "alpha": self._alpha})
                logger.debug("Layout stopped at iteration %d (alpha=%.4f)", self._iteration, self._alpha)
            self._is_running = False
            return False

        ids = list(dict.fromkeys(node_ids))
        n = len(ids)
        if n == 0:
            self._is_running = False
            return False

        width, height = float(viewport[0]), float(viewport[1])
        cx, cy = width / 2.0, height / 2.0
        area = max(1.0, width * height)
        density_spacing = math.sqrt(area / n)
        base_length = min(p.ideal_length, max(40.0, density_spacing * 0.9))
        max_length = base_length * p.max_length_scale
        scaled_repulsion = p.repulsion_strength * min(1.0, math.sqrt(40.0 / n))
        collision_distance = max(p.minimum_node_distance, base_length * 0.9)
        alpha = self._alpha

        # 1. flat copies of the live positions, healing non-finite entries
        idx = self._indices_for(ids, cx, cy)
        xs = self._x[idx]
        ys = self._y[idx]
        self._heal_positions(idx, xs, ys, cx, cy)

        fx = np.zeros(n, dtype=float)
        fy = np.zeros(n, dtype=float)

        # 2. Barnes-Hut repulsion
        if n > 1:
            self._tree.theta = p.theta
            self._tree.max_depth = p.max_depth
            self._tree.build(xs, ys)
            rx, ry = self._tree.repulsion(scaled_repulsion)
            fx += rx * alpha
            fy += ry * alpha

        # 3. class-to-class repulsion
        if self.class_node_ids and p.class_repulsion_multiplier > 1.0:
            extra = scaled_repulsion * (p.class_repulsion_multiplier - 1.0) * alpha
            self._apply_class_repulsion(ids, xs, ys, fx, fy, extra)

        # 4. springs
        if edges:
            self._apply_springs(ids, edges, xs, ys, fx, fy, base_length, max_length, alpha)

        # 5. center gravity
        fx += (cx - xs) * p.center_strength * alpha
        fy += (cy - ys) * p.center_strength * alpha

        # 6. collisions
        if n > 1:
            self._collision.apply(xs, ys, fx, fy, collision_distance, p.collision_strength)

        # 7. timeline axis
        timeline_members = self._apply_timeline(ids, xs, ys, fx, fy, alpha)

        # 8. integrate
        self._integrate(idx, xs, ys, fx, fy, width, height, cx, cy, timeline_members)

        self._alpha *= p.alpha_decay
        self._iteration += 1
        self._is_running = True
        return True

    def _heal_positions(self, idx: np.ndarray, xs: np.ndarray, ys: np.ndarray, cx: float, cy: float) -> None:
        bad = ~(np.isfinite(xs) & np.isfinite(ys))
        if not bad.any():
            return
        for k in np.flatnonzero(bad):
            px, py = self._jitter(cx, cy, 20.0)
            xs[k] = px
            ys[k] = py
            i = idx[k]
            self._x[i] = px
            self._y[i] = py
            self._vx[i] = 0.0
            self._vy[i] = 0.0
        logger.debug("Re-seeded %d non-finite positions near the center", int(bad.sum()))

    def _apply_class_repulsion(
        self,
        ids: Sequence[str],
        xs: np.ndarray,
        ys: np.ndarray,
        fx: np.ndarray,
        fy: np.ndarray,
        strength: float,
    ) -> None:
        members = [k for k, nid in enumerate(ids) if nid in self.class_node_ids]
        px = xs.tolist()
        py = ys.tolist()
        for a in range(len(members)):
            ai = members[a]
            for b in range(a + 1, len(members)):
                bi = members[b]
                dx = px[bi] - px[ai]
                dy = py[bi] - py[ai]
                dist_sq = dx * dx + dy * dy
                if dist_sq < 1.0:
                    dx, dy, dist_sq = random_offset(self.rng)
                dist = math.sqrt(dist_sq)
                force = strength / dist
                ix = force * dx / dist
                iy = force * dy / dist
                fx[ai] -= ix
                fy[ai] -= iy
                fx[bi] += ix
                fy[bi] += iy

    def _apply_springs(
        self,
        ids: Sequence[str],
        edges: Sequence[Any],
        xs: np.ndarray,
        ys: np.ndarray,
        fx: np.ndarray,
        fy: np.ndarray,
        base_length: float,
        max_length: float,
        alpha: float,
    ) -> None:
        p = self.params
        local = {nid: k for k, nid in enumerate(ids)}
        degree = np.zeros(len(ids), dtype=float)

        src: List[int] = []
        tgt: List[int] = []
        weights: List[float] = []
        for edge in edges:
            s_id, t_id = edge_endpoints(edge)
            si = local.get(s_id)
            ti = local.get(t_id)
            if si is not None:
                degree[si] += 1
            if ti is not None:
                degree[ti] += 1
            if si is None or ti is None:
                continue
            src.append(si)
            tgt.append(ti)
            w = edge_weight(edge)
            weights.append(float(w) if w is not None and math.isfinite(w) and w > 0 else 1.0)

        if not src:
            return

        s = np.asarray(src, dtype=np.intp)
        t = np.asarray(tgt, dtype=np.intp)
        w = np.asarray(weights, dtype=float)

        dx = xs[t] - xs[s]
        dy = ys[t] - ys[s]
        dist = np.hypot(dx, dy)
        ok = dist > 0
        if not ok.any():
            return
        s, t, w, dx, dy, dist = s[ok], t[ok], w[ok], dx[ok], dy[ok], dist[ok]

        max_deg = np.maximum(degree[s], degree[t])
        length = np.minimum(base_length * (1.0 + p.degree_scale_factor * np.sqrt(max_deg)), max_length)

        force = p.spring_stiffness * w * (dist - length) * alpha
        ix = force * dx / dist
        iy = force * dy / dist

        np.add.at(fx, s, ix)
        np.add.at(fy, s, iy)
        np.add.at(fx, t, -ix)
        np.add.at(fy, t, -iy)

    def _apply_timeline(
        self,
        ids: Sequence[str],
        xs: np.ndarray,
        ys: np.ndarray,
        fx: np.ndarray,
        fy: np.ndarray,
        alpha: float,
    ) -> Optional[np.ndarray]:
        axis = self.timeline_axis
        if axis is None or not axis.node_ids:
            return None
        members = np.fromiter((nid in axis.node_ids for nid in ids), dtype=bool, count=len(ids))
        if not members.any():
            return None

        k = self.params.timeline_strength * alpha
        if axis.orientation == "horizontal":
            fy[members] += (axis.coordinate - ys[members]) * k
        else:
            fx[members] += (axis.coordinate - xs[members]) * k
        return members

    def _integrate(
        self,
        idx: np.ndarray,
        xs: np.ndarray,
        ys: np.ndarray,
        fx: np.ndarray,
        fy: np.ndarray,
        width: float,
        height: float,
        cx: float,
        cy: float,
        timeline_members: Optional[np.ndarray],
    ) -> None:
        p = self.params
        world_limit = max(width, height, 1.0) * p.world_limit_factor
        max_velocity = max(120.0, world_limit * 0.2)

        vx = (self._vx[idx] + fx) * p.velocity_decay
        vy = (self._vy[idx] + fy) * p.velocity_decay
        vx[~np.isfinite(vx)] = 0.0
        vy[~np.isfinite(vy)] = 0.0

        if timeline_members is not None:
            keep = 1.0 - p.timeline_cross_damping
            if self.timeline_axis.orientation == "horizontal":
                vy[timeline_members] *= keep
            else:
                vx[timeline_members] *= keep

        np.clip(vx, -max_velocity, max_velocity, out=vx)
        np.clip(vy, -max_velocity, max_velocity, out=vy)

        new_x = xs + vx
        new_y = ys + vy

        diverged = ~(np.isfinite(new_x) & np.isfinite(new_y))
        if diverged.any():
            for k in np.flatnonzero(diverged):
                new_x[k], new_y[k] = self._jitter(cx, cy, 20.0)
                vx[k] = 0.0
                vy[k] = 0.0
            logger.debug("Recovered %d diverged bodies", int(diverged.sum()))

        np.clip(new_x, cx - world_limit, cx + world_limit, out=new_x)
        np.clip(new_y, cy - world_limit, cy + world_limit, out=new_y)

        free = ~self._pinned[idx]
        target = idx[free]
        self._vx[target] = vx[free]
        self._vy[target] = vy[free]
        self._x[target] = new_x[free]
        self._y[target] = new_y[free]
