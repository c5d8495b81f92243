from __future__ import annotations

import math

from pygame.math import Vector2


def set_mag(vector: Vector2, magnitude: float) -> Vector2:
    length_sq = vector.x * vector.x + vector.y * vector.y
    if length_sq <= 0.0:
        return Vector2(vector)
    scale = magnitude / math.sqrt(length_sq)
    return Vector2(vector.x * scale, vector.y * scale)


def limit(vector: Vector2, max_length: float) -> Vector2:
    length_sq = vector.x * vector.x + vector.y * vector.y
    if length_sq <= max_length * max_length:
        return Vector2(vector)
    scale = max_length / math.sqrt(length_sq)
    return Vector2(vector.x * scale, vector.y * scale)


def limit_xy(x: float, y: float, max_length: float) -> tuple[float, float]:
    length_sq = x * x + y * y
    if length_sq <= max_length * max_length:
        return x, y
    scale = max_length / math.sqrt(length_sq)
    return x * scale, y * scale


def distance(a: Vector2, b: Vector2) -> float:
    return math.hypot(a.x - b.x, a.y - b.y)


def heading_from_velocity(vector: Vector2) -> float:
    return math.atan2(vector.y, vector.x)
