"""
Frame loop driving a ForceDirectedLayout.

The loop is single-threaded and cooperative. Each frame performs a batch
of ticks (bigger while the simulation is hot, one tick near convergence)
and then yields for one frame interval. Hosts with their own event loop
call `SimulationLoop.step()` once per frame; hosts without one can use
`run()` (blocking) or `run_async()` (asyncio).

Cancellation is a flag checked at every frame boundary. A
SimulationController keeps at most one live loop per engine and cancels
the previous loop before starting another.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Optional, Sequence

from ..presets import DEFAULT_CONFIG, SchedulerConfig
from .simulation import ForceDirectedLayout
from .state import Size

logger = logging.getLogger(__name__)

FrameCallback = Callable[["SimulationLoop"], None]


def batch_size_for(alpha: float, config: Optional[SchedulerConfig] = None) -> int:
    """Ticks per frame for the current temperature."""
    cfg = config or DEFAULT_CONFIG.scheduler
    if alpha > cfg.hot_alpha:
        return max(1, cfg.hot_batch)
    if alpha > cfg.warm_alpha:
        return max(1, cfg.warm_batch)
    return 1


class SimulationLoop:
    """
    One run of the simulation over a fixed node / edge set.

    The loop claims the engine on its first step and releases it once it
    finishes or is cancelled.
    """

    def __init__(
        self,
        engine: ForceDirectedLayout,
        node_ids: Sequence[str],
        edges: Sequence[Any],
        viewport: Size,
        *,
        config: Optional[SchedulerConfig] = None,
        on_frame: Optional[FrameCallback] = None,
    ):
        self.engine = engine
        self.node_ids = list(node_ids)
        self.edges = list(edges)
        self.viewport = (float(viewport[0]), float(viewport[1]))
        self.config = config or engine.scheduler_config
        self.on_frame = on_frame

        self.frames = 0
        self.ticks = 0
        self._cancelled = False
        self._finished = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def active(self) -> bool:
        return not (self._cancelled or self._finished)

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        self.engine.release(self)
        logger.debug("Simulation loop cancelled after %d frames", self.frames)

    def step(self) -> bool:
        """
        Run one frame worth of ticks.

        Returns True while the loop should be scheduled again.
        """
        if not self.active:
            return False

        self.engine.claim(self)

        running = True
        for _ in range(batch_size_for(self.engine.alpha, self.config)):
            running = self.engine.tick(self.node_ids, self.edges, self.viewport)
            if not running:
                break
            self.ticks += 1

        self.frames += 1
        if self.on_frame is not None:
            self.on_frame(self)

        if not running:
            self._finish()
        return running

    def _finish(self) -> None:
        self._finished = True
        self.engine.release(self)
        logger.debug(
            "Simulation loop finished: %d ticks over %d frames (alpha=%.4f)",
            self.ticks, self.frames, self.engine.alpha,
        )

    def run(self, sleep: Callable[[float], None] = time.sleep) -> int:
        """Blocking loop; returns the number of ticks performed."""
        while self.step():
            sleep(self.config.frame_interval)
            if self._cancelled:
                break
        return self.ticks

    async def run_async(self) -> int:
        """asyncio loop; the frame sleep is the only suspension point."""
        try:
            while self.step():
                await asyncio.sleep(self.config.frame_interval)
                if self._cancelled:
                    break
        except asyncio.CancelledError:
            self.cancel()
            raise
        return self.ticks


class SimulationController:
    """
    Owns the current SimulationLoop for one engine.

    start() re-seeds positions; resume() keeps them and only reheats.
    Both cancel whatever loop was running before.
    """

    def __init__(
        self,
        engine: ForceDirectedLayout,
        *,
        config: Optional[SchedulerConfig] = None,
        on_frame: Optional[FrameCallback] = None,
    ):
        self.engine = engine
        self.config = config or engine.scheduler_config
        self.on_frame = on_frame
        self.loop: Optional[SimulationLoop] = None

    def _new_loop(self, node_ids, edges, viewport) -> SimulationLoop:
        self.loop = SimulationLoop(
            self.engine, node_ids, edges, viewport,
            config=self.config, on_frame=self.on_frame,
        )
        return self.loop

    def start(self, node_ids: Sequence[str], edges: Sequence[Any], viewport: Size) -> SimulationLoop:
        self.stop()
        self.engine.initialize(node_ids, viewport)
        self.engine.restart()
        return self._new_loop(node_ids, edges, viewport)

    def resume(
        self,
        node_ids: Sequence[str],
        edges: Sequence[Any],
        viewport: Size,
        alpha: float = 0.15,
    ) -> SimulationLoop:
        self.stop()
        self.engine.reheat(alpha)
        return self._new_loop(node_ids, edges, viewport)

    def stop(self) -> None:
        if self.loop is not None:
            self.loop.cancel()
            self.loop = None

    @property
    def running(self) -> bool:
        return self.loop is not None and self.loop.active
