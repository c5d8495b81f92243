from __future__ import annotations

import math
from typing import TYPE_CHECKING, Iterable, List, Optional

from pygame.math import Vector2

from ..utils.math2d import distance, limit, set_mag

if TYPE_CHECKING:
    from ..core.agent import Boid, Kinematic
    from ..core.config import FlockWeights


def _steer_towards(agent: Boid, desired_x: float, desired_y: float, max_force: float) -> Vector2:
    desired = set_mag(Vector2(desired_x, desired_y), agent.max_speed)
    return limit(desired - agent.velocity, max_force)


def collect_neighbors(agent: Boid, boids: Iterable[Kinematic], radius: float) -> List[Kinematic]:
    """Brute-force scan for everything strictly inside ``radius``, excluding ``agent``."""
    position = agent.position
    found: List[Kinematic] = []
    for other in boids:
        if other.id == agent.id:
            continue
        if distance(other.position, position) < radius:
            found.append(other)
    return found


def alignment(agent: Boid, boids: Iterable[Kinematic]) -> Vector2:
    sum_x = 0.0
    sum_y = 0.0
    total = 0
    for other in collect_neighbors(agent, boids, agent.perception_radius):
        sum_x += other.velocity.x
        sum_y += other.velocity.y
        total += 1
    if total == 0:
        return Vector2()
    return _steer_towards(agent, sum_x / total, sum_y / total, agent.max_force)


def cohesion(agent: Boid, boids: Iterable[Kinematic]) -> Vector2:
    sum_x = 0.0
    sum_y = 0.0
    total = 0
    for other in collect_neighbors(agent, boids, agent.perception_radius):
        sum_x += other.position.x
        sum_y += other.position.y
        total += 1
    if total == 0:
        return Vector2()
    center_x = sum_x / total
    center_y = sum_y / total
    return _steer_towards(agent, center_x - agent.position.x, center_y - agent.position.y, agent.max_force)


def separation(agent: Boid, boids: Iterable[Kinematic]) -> Vector2:
    """Steer away from crowding; each away-vector is weighted by 1/distance."""
    sum_x = 0.0
    sum_y = 0.0
    total = 0
    pos_x = agent.position.x
    pos_y = agent.position.y
    for other in collect_neighbors(agent, boids, agent.perception_radius / 2):
        diff_x = pos_x - other.position.x
        diff_y = pos_y - other.position.y
        dist = math.hypot(diff_x, diff_y)
        if dist > 0:
            # Unit away-vector scaled by 1/dist.
            dist_sq = dist * dist
            diff_x /= dist_sq
            diff_y /= dist_sq
        sum_x += diff_x
        sum_y += diff_y
        total += 1
    if total == 0:
        return Vector2()
    return _steer_towards(agent, sum_x / total, sum_y / total, agent.max_force)


def attraction(agent: Boid, point: Optional[Vector2], force_scale: float = 2.0) -> Vector2:
    if point is None:
        return Vector2()
    return _steer_towards(
        agent,
        point.x - agent.position.x,
        point.y - agent.position.y,
        agent.max_force * force_scale,
    )


def flocking_force(
    agent: Boid,
    boids: Iterable[Kinematic],
    weights: FlockWeights,
    attraction_point: Optional[Vector2] = None,
    attraction_weight: float = 3.0,
    attraction_force_scale: float = 2.0,
) -> tuple[Vector2, int]:
    """Weighted sum of the three flock rules plus the attraction term.

    The population is scanned once at the full perception radius; each rule
    narrows that set with its own radius test.
    """
    neighbors = collect_neighbors(agent, boids, agent.perception_radius)
    force = (
        alignment(agent, neighbors) * weights.alignment
        + cohesion(agent, neighbors) * weights.cohesion
        + separation(agent, neighbors) * weights.separation
        + attraction(agent, attraction_point, attraction_force_scale) * attraction_weight
    )
    return force, len(neighbors)
