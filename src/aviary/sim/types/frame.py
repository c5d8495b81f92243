from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import List, Optional

from .metrics import FrameMetrics

Rgba = tuple[int, int, int, float]


@dataclass(frozen=True, slots=True)
class BoidDrawCommand:
    id: int
    x: float
    y: float
    heading: float
    size: float
    brightness: int
    opacity: float
    stroke_alpha_scale: float = 0.6

    @property
    def fill_rgba(self) -> Rgba:
        return (self.brightness, self.brightness, self.brightness, self.opacity)

    @property
    def stroke_rgba(self) -> Rgba:
        return (self.brightness, self.brightness, self.brightness, self.opacity * self.stroke_alpha_scale)

    def triangle(self) -> list[tuple[float, float]]:
        """Tip and two tail corners in world coordinates, pointing along ``heading``."""
        cos_h = math.cos(self.heading)
        sin_h = math.sin(self.heading)
        half = self.size / 2
        local = ((self.size, 0.0), (-half, half), (-half, -half))
        return [(self.x + lx * cos_h - ly * sin_h, self.y + lx * sin_h + ly * cos_h) for lx, ly in local]


@dataclass(frozen=True, slots=True)
class AttractionIndicator:
    x: float
    y: float
    ring_radius: float = 20.0
    ring_width: int = 2
    ring_rgba: Rgba = (255, 255, 255, 0.5)
    core_radius: float = 10.0
    core_rgba: Rgba = (255, 255, 255, 0.3)


@dataclass(slots=True)
class Frame:
    index: int
    width: float
    height: float
    metrics: FrameMetrics
    boids: List[BoidDrawCommand] = field(default_factory=list)
    attraction: Optional[AttractionIndicator] = None
