from __future__ import annotations

from ..types.metrics import FrameMetrics


def create_metrics(
    frame: int,
    population: int,
    neighbor_checks: int,
    speed_sum: float,
    attracting: bool,
    duration_ms: float,
) -> FrameMetrics:
    return FrameMetrics(
        frame=frame,
        population=population,
        neighbor_checks=neighbor_checks,
        average_speed=0.0 if population == 0 else speed_sum / population,
        attracting=attracting,
        frame_duration_ms=duration_ms,
    )
