from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol

from ..sim.core.config import FlockWeights


class InputTarget(Protocol):
    def add_boid(self, x: float, y: float) -> object: ...

    def set_attraction(self, x: float, y: float) -> None: ...

    def clear_attraction(self) -> None: ...


@dataclass
class _Press:
    x: float
    y: float
    started_at: float
    long: bool = False


class PointerTracker:
    """Turns raw press/move/release events into add-boid and attraction requests.

    A press held for ``long_press_seconds`` becomes an attraction point that
    follows the pointer; anything shorter is a tap that adds a boid where the
    pointer was released. Timestamps come from the caller.
    """

    def __init__(self, target: InputTarget, long_press_seconds: float = 0.3):
        self._target = target
        self._threshold = long_press_seconds
        self._press: Optional[_Press] = None

    @property
    def pressed(self) -> bool:
        return self._press is not None

    @property
    def long_press(self) -> bool:
        return self._press is not None and self._press.long

    def press(self, x: float, y: float, now: float) -> None:
        self._press = _Press(x, y, now)

    def poll(self, now: float) -> None:
        press = self._press
        if press is None or press.long:
            return
        if now - press.started_at >= self._threshold:
            press.long = True
            self._target.set_attraction(press.x, press.y)

    def move(self, x: float, y: float, now: float) -> None:
        self.poll(now)
        if self.long_press:
            self._target.set_attraction(x, y)

    def release(self, x: float, y: float, now: float) -> None:
        press = self._press
        if press is None:
            return
        self.poll(now)
        if not press.long:
            self._target.add_boid(x, y)
        self._press = None
        self._target.clear_attraction()


# key name -> (weight field, direction)
WEIGHT_BINDINGS = {
    "q": ("separation", 1),
    "a": ("separation", -1),
    "w": ("alignment", 1),
    "s": ("alignment", -1),
    "e": ("cohesion", 1),
    "d": ("cohesion", -1),
}


def adjust_weight(
    weights: FlockWeights,
    name: str,
    direction: int,
    step: float = 0.1,
    bounds: tuple[float, float] = (0.0, 3.0),
) -> float:
    low, high = bounds
    value = getattr(weights, name) + direction * step
    # Repeated float steps drift (0.1 * 3 != 0.3).
    return round(max(low, min(high, value)), 6)
