from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable, Optional, Protocol

from pygame.math import Vector2

from ..systems import integration, steering

if TYPE_CHECKING:
    from .config import FlockWeights


class Kinematic(Protocol):
    """Anything a boid can read as a neighbor: a live boid or a frozen copy."""

    id: int
    position: Vector2
    velocity: Vector2


@dataclass(frozen=True, slots=True)
class NeighborState:
    id: int
    position: Vector2
    velocity: Vector2

    @classmethod
    def capture(cls, boid: "Boid") -> "NeighborState":
        return cls(boid.id, Vector2(boid.position), Vector2(boid.velocity))


@dataclass(slots=True)
class Boid:
    """A single flocking agent.

    ``depth`` only affects rendering (size, brightness, draw order); it never
    enters the steering math. ``acceleration`` is overwritten by :meth:`flock`
    and zeroed again by :meth:`update`.
    """

    id: int
    position: Vector2
    velocity: Vector2
    depth: float = 1.0
    max_speed: float = 4.0
    max_force: float = 0.1
    perception_radius: float = 100.0
    acceleration: Vector2 = field(default_factory=Vector2)

    def edges(self, width: float, height: float) -> None:
        integration.wrap_edges(self, width, height)

    def align(self, boids: Iterable[Kinematic]) -> Vector2:
        return steering.alignment(self, boids)

    def cohesion(self, boids: Iterable[Kinematic]) -> Vector2:
        return steering.cohesion(self, boids)

    def separation(self, boids: Iterable[Kinematic]) -> Vector2:
        return steering.separation(self, boids)

    def attract(self, point: Optional[Vector2], force_scale: float = 2.0) -> Vector2:
        return steering.attraction(self, point, force_scale)

    def flock(
        self,
        boids: Iterable[Kinematic],
        weights: "FlockWeights",
        attraction_point: Optional[Vector2] = None,
        attraction_weight: float = 3.0,
        attraction_force_scale: float = 2.0,
    ) -> int:
        """Assign this frame's acceleration; returns the number of neighbors seen."""
        force, neighbor_count = steering.flocking_force(
            self,
            boids,
            weights,
            attraction_point,
            attraction_weight=attraction_weight,
            attraction_force_scale=attraction_force_scale,
        )
        self.acceleration.update(force.x, force.y)
        return neighbor_count

    def update(self) -> None:
        integration.integrate(self)
