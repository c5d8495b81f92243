from __future__ import annotations

from operator import attrgetter
from typing import Iterator, List, Optional, Sequence

from pygame.math import Vector2

from .agent import Boid, Kinematic, NeighborState
from .config import BoidConfig, FlockConfig, FlockWeights, RenderConfig
from .rng import DeterministicRng
from ..systems.render import draw_command_for
from ..types.frame import BoidDrawCommand

_BY_DEPTH = attrgetter("depth")


class Flock:
    """Insertion-ordered population, re-sorted back-to-front once per frame.

    Agents are only ever appended; ``clear`` is the only way to shrink it.
    """

    def __init__(self, boid_config: BoidConfig, flock_config: FlockConfig, render_config: RenderConfig):
        self._boid_config = boid_config
        self._flock_config = flock_config
        self._render_config = render_config
        self._boids: List[Boid] = []
        self._next_id = 0
        self.neighbor_checks = 0
        self.speed_sum = 0.0

    def __len__(self) -> int:
        return len(self._boids)

    def __iter__(self) -> Iterator[Boid]:
        return iter(self._boids)

    @property
    def boids(self) -> List[Boid]:
        return self._boids

    def add(self, x: float, y: float, rng: DeterministicRng) -> Boid:
        config = self._boid_config
        boid = Boid(
            id=self._next_id,
            position=Vector2(x, y),
            velocity=rng.next_velocity(config.initial_velocity_spread),
            depth=rng.next_range(config.depth_min, config.depth_max),
            max_speed=config.max_speed,
            max_force=config.max_force,
            perception_radius=config.perception_radius,
        )
        self._boids.append(boid)
        self._next_id += 1
        return boid

    def clear(self) -> None:
        self._boids.clear()
        self._next_id = 0
        self.neighbor_checks = 0
        self.speed_sum = 0.0

    def sort_by_depth(self) -> None:
        self._boids.sort(key=_BY_DEPTH)

    def _neighbor_view(self, width: float, height: float) -> Sequence[Kinematic]:
        if self._flock_config.neighbor_mode == "live":
            return self._boids
        # Wrap everyone up front so the frozen copy holds post-wrap positions.
        for boid in self._boids:
            boid.edges(width, height)
        return [NeighborState.capture(boid) for boid in self._boids]

    def update(
        self,
        weights: FlockWeights,
        attraction_point: Optional[Vector2],
        width: float,
        height: float,
    ) -> List[BoidDrawCommand]:
        """Advance every boid one frame and return draw commands in back-to-front order."""
        flock_config = self._flock_config
        self.sort_by_depth()
        neighbors = self._neighbor_view(width, height)
        commands: List[BoidDrawCommand] = []
        neighbor_checks = 0
        speed_sum = 0.0
        for boid in self._boids:
            boid.edges(width, height)
            neighbor_checks += boid.flock(
                neighbors,
                weights,
                attraction_point,
                attraction_weight=flock_config.attraction_weight,
                attraction_force_scale=flock_config.attraction_force_scale,
            )
            boid.update()
            speed_sum += boid.velocity.length()
            commands.append(draw_command_for(boid, self._render_config))
        self.neighbor_checks = neighbor_checks
        self.speed_sum = speed_sum
        return commands
