from __future__ import annotations

import random

from pygame.math import Vector2


class DeterministicRng:
    def __init__(self, seed: int):
        self._seed = seed
        self._random = random.Random(seed)

    @property
    def seed(self) -> int:
        return self._seed

    def reset(self) -> None:
        self._random.seed(self._seed)

    def next_float(self) -> float:
        return self._random.random()

    def next_range(self, low: float, high: float) -> float:
        return self._random.uniform(low, high)

    def next_velocity(self, spread: float) -> Vector2:
        half = spread * 0.5
        return Vector2(self.next_range(-half, half), self.next_range(-half, half))
