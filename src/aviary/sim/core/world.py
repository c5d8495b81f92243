from __future__ import annotations

import dataclasses
import logging
import threading
from time import perf_counter
from typing import List, Optional

from pygame.math import Vector2

from .agent import Boid
from .canvas import Canvas, ExtentProvider
from .config import FlockWeights, SimulationConfig
from .flock import Flock
from .rng import DeterministicRng
from ..systems import metrics as metrics_system
from ..systems.render import attraction_indicator
from ..types.frame import Frame
from ..types.metrics import FrameMetrics

logger = logging.getLogger(__name__)


class World:
    """Explicit simulation context owned by a loop controller.

    Holds the flock, the live weight configuration, the optional attraction
    point and the canvas extent provider. ``step`` and every mutator take the
    same lock, so appends, resets and weight changes arriving from another
    thread never interleave with a frame pass.
    """

    def __init__(self, config: SimulationConfig, extent: Optional[ExtentProvider] = None):
        config.validate()
        self._config = config
        self._rng = DeterministicRng(config.seed)
        self._extent: ExtentProvider = extent if extent is not None else Canvas(config.canvas.width, config.canvas.height)
        self._flock = Flock(config.boid, config.flock, config.render)
        self._weights = dataclasses.replace(config.flock.weights)
        self._attraction: Optional[Vector2] = None
        self._frame = 0
        self._metrics: FrameMetrics | None = None
        self._lock = threading.RLock()
        self._bootstrap_population()

    @property
    def config(self) -> SimulationConfig:
        return self._config

    @property
    def flock(self) -> Flock:
        return self._flock

    @property
    def boids(self) -> List[Boid]:
        return self._flock.boids

    @property
    def weights(self) -> FlockWeights:
        return self._weights

    @property
    def attraction_point(self) -> Optional[Vector2]:
        return None if self._attraction is None else Vector2(self._attraction)

    @property
    def extent(self) -> ExtentProvider:
        return self._extent

    @property
    def frame(self) -> int:
        return self._frame

    @property
    def metrics(self) -> FrameMetrics | None:
        return self._metrics

    def step(self) -> Frame:
        with self._lock:
            start = perf_counter()
            width, height = self._extent.size()
            attraction = None if self._attraction is None else Vector2(self._attraction)
            commands = self._flock.update(self._weights, attraction, width, height)
            elapsed_ms = (perf_counter() - start) * 1000.0
            metrics = metrics_system.create_metrics(
                self._frame,
                len(self._flock),
                self._flock.neighbor_checks,
                self._flock.speed_sum,
                attraction is not None,
                elapsed_ms,
            )
            frame = Frame(
                index=self._frame,
                width=width,
                height=height,
                metrics=metrics,
                boids=commands,
                attraction=None if attraction is None else attraction_indicator(attraction, self._config.render),
            )
            self._metrics = metrics
            self._frame += 1
            return frame

    def add_boid(self, x: float, y: float) -> Boid:
        with self._lock:
            boid = self._flock.add(x, y, self._rng)
            logger.debug("Added boid %d at (%.1f, %.1f); population=%d", boid.id, x, y, len(self._flock))
            return boid

    def set_attraction(self, x: float, y: float) -> None:
        with self._lock:
            self._attraction = Vector2(x, y)

    def clear_attraction(self) -> None:
        with self._lock:
            self._attraction = None

    def set_weights(
        self,
        separation: Optional[float] = None,
        alignment: Optional[float] = None,
        cohesion: Optional[float] = None,
    ) -> FlockWeights:
        changes = {
            name: float(value)
            for name, value in (("separation", separation), ("alignment", alignment), ("cohesion", cohesion))
            if value is not None
        }
        with self._lock:
            self._weights = dataclasses.replace(self._weights, **changes)
            return self._weights

    def resize(self, width: float, height: float) -> None:
        if not isinstance(self._extent, Canvas):
            raise TypeError(f"Extent provider {type(self._extent).__name__} cannot be resized by the world")
        with self._lock:
            self._extent.resize(width, height)

    def reset(self) -> None:
        with self._lock:
            self._flock.clear()
            self._rng.reset()
            self._frame = 0
            self._metrics = None
            self._bootstrap_population()
            logger.debug("World reset (seed=%d, population=%d)", self._config.seed, len(self._flock))

    def _bootstrap_population(self) -> None:
        width, height = self._extent.size()
        for index in range(self._config.initial_population):
            if index == 0:
                x, y = width / 2, height / 2
            else:
                x = self._rng.next_range(0.0, width)
                y = self._rng.next_range(0.0, height)
            self._flock.add(x, y, self._rng)
