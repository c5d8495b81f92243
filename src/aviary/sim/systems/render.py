from __future__ import annotations

import math
from typing import TYPE_CHECKING, Any, List, Protocol, Tuple

from pygame.math import Vector2

from ..types.frame import AttractionIndicator, BoidDrawCommand, Frame
from ..utils.math2d import heading_from_velocity

if TYPE_CHECKING:
    from ..core.agent import Boid
    from ..core.config import RenderConfig


class RenderSink(Protocol):
    def begin_frame(self, width: float, height: float) -> None: ...

    def draw_boid(self, command: BoidDrawCommand) -> None: ...

    def draw_attraction(self, indicator: AttractionIndicator) -> None: ...

    def end_frame(self) -> None: ...


def draw_command_for(boid: Boid, config: RenderConfig) -> BoidDrawCommand:
    depth = boid.depth
    return BoidDrawCommand(
        id=boid.id,
        x=boid.position.x,
        y=boid.position.y,
        heading=heading_from_velocity(boid.velocity),
        size=config.size_scale * depth,
        brightness=int(math.floor(config.brightness_base + depth * config.brightness_span)),
        opacity=config.opacity_base + depth * config.opacity_span,
        stroke_alpha_scale=config.stroke_alpha_scale,
    )


def attraction_indicator(point: Vector2, config: RenderConfig) -> AttractionIndicator:
    return AttractionIndicator(
        x=point.x,
        y=point.y,
        ring_radius=config.ring_radius,
        ring_width=config.ring_width,
        ring_rgba=(255, 255, 255, config.ring_alpha),
        core_radius=config.core_radius,
        core_rgba=(255, 255, 255, config.core_alpha),
    )


def render_frame(frame: Frame, sink: RenderSink) -> None:
    """Issue a fully computed frame to a sink; boids are already in back-to-front order."""
    sink.begin_frame(frame.width, frame.height)
    for command in frame.boids:
        sink.draw_boid(command)
    if frame.attraction is not None:
        sink.draw_attraction(frame.attraction)
    sink.end_frame()


class RecordingSink:
    """Keeps every call it receives; used by the headless runner and tests."""

    def __init__(self) -> None:
        self.calls: List[Tuple[str, Any]] = []
        self.frames = 0

    def begin_frame(self, width: float, height: float) -> None:
        self.calls.append(("begin_frame", (width, height)))

    def draw_boid(self, command: BoidDrawCommand) -> None:
        self.calls.append(("draw_boid", command))

    def draw_attraction(self, indicator: AttractionIndicator) -> None:
        self.calls.append(("draw_attraction", indicator))

    def end_frame(self) -> None:
        self.calls.append(("end_frame", None))
        self.frames += 1

    def clear(self) -> None:
        self.calls.clear()
