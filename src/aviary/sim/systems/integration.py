from __future__ import annotations

import math
from typing import TYPE_CHECKING

from ..utils.math2d import limit_xy

if TYPE_CHECKING:
    from ..core.agent import Boid


def _wrap_axis(value: float, extent: float) -> float:
    if value >= extent:
        return 0.0
    if value < 0:
        # Opposite edge, kept inside the half-open range [0, extent).
        return math.nextafter(extent, 0.0)
    return value


def wrap_edges(agent: Boid, width: float, height: float) -> None:
    """Toroidal wrap. Mutates ``agent.position`` in place so aliases stay current."""
    position = agent.position
    position.update(_wrap_axis(position.x, width), _wrap_axis(position.y, height))


def integrate(agent: Boid) -> None:
    """Semi-implicit Euler: velocity first, clamp, then position, then clear acceleration."""
    velocity = agent.velocity
    vel_x, vel_y = limit_xy(
        velocity.x + agent.acceleration.x,
        velocity.y + agent.acceleration.y,
        agent.max_speed,
    )
    velocity.update(vel_x, vel_y)
    agent.position.update(agent.position.x + vel_x, agent.position.y + vel_y)
    agent.acceleration.update(0.0, 0.0)
