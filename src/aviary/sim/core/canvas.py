from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


class ExtentProvider(Protocol):
    def size(self) -> tuple[float, float]: ...


@dataclass
class Canvas:
    """Resizable extent; the world re-reads ``size()`` at the start of every frame."""

    width: float
    height: float

    def size(self) -> tuple[float, float]:
        return self.width, self.height

    def resize(self, width: float, height: float) -> None:
        if width <= 0 or height <= 0:
            raise ValueError(f"Canvas extent must be positive, got {width}x{height}")
        self.width = float(width)
        self.height = float(height)
