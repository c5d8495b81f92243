from __future__ import annotations

import argparse
import csv
import json
import logging
import math
from pathlib import Path
from typing import Optional, Sequence

from ..sim.core.config import SimulationConfig
from ..sim.core.world import World
from ..sim.systems.render import RecordingSink, render_frame
from ..sim.types.metrics import FrameMetrics
from .cli import configure_logging, load_cli_config

logger = logging.getLogger(__name__)

_HEADER = [
    "frame",
    "population",
    "neighbor_checks",
    "neighbor_checks_per_boid",
    "avg_speed",
    "max_speed",
    "attracting",
    "frame_ms",
]


def _format_row(world: World, metrics: FrameMetrics, frame_ms: float) -> list[object]:
    population = metrics.population
    max_speed = max((boid.velocity.length() for boid in world.boids), default=0.0)
    per_boid = 0.0 if population <= 0 else metrics.neighbor_checks / population
    return [
        metrics.frame,
        population,
        metrics.neighbor_checks,
        f"{per_boid:.4f}",
        f"{metrics.average_speed:.4f}",
        f"{max_speed:.4f}",
        int(metrics.attracting),
        f"{frame_ms:.3f}",
    ]


def _percentile(sorted_values: list[float], percentile: float) -> float:
    if not sorted_values:
        return 0.0
    if len(sorted_values) == 1:
        return float(sorted_values[0])
    pos = (len(sorted_values) - 1) * percentile
    low = int(math.floor(pos))
    high = int(math.ceil(pos))
    if low == high:
        return float(sorted_values[low])
    weight = pos - low
    return float(sorted_values[low] + (sorted_values[high] - sorted_values[low]) * weight)


def _summary_stats(values: list[float]) -> dict[str, float]:
    if not values:
        return {"min": 0.0, "max": 0.0, "avg": 0.0, "p50": 0.0, "p90": 0.0, "p99": 0.0}
    sorted_values = sorted(values)
    return {
        "min": float(sorted_values[0]),
        "max": float(sorted_values[-1]),
        "avg": float(sum(values) / len(values)),
        "p50": _percentile(sorted_values, 0.50),
        "p90": _percentile(sorted_values, 0.90),
        "p99": _percentile(sorted_values, 0.99),
    }


def run_headless(
    frames: int,
    seed: Optional[int] = None,
    log_path: Optional[Path] = None,
    deterministic_log: bool = False,
    initial_population: Optional[int] = None,
    attraction: Optional[tuple[float, float]] = None,
    summary_path: Optional[Path] = None,
    config: Optional[SimulationConfig] = None,
) -> World:
    if frames < 0:
        raise ValueError(f"frames must be non-negative, got {frames}")
    config = config if config is not None else SimulationConfig()
    if seed is not None:
        config.seed = seed
    if initial_population is not None:
        config.initial_population = initial_population
    world = World(config)
    if attraction is not None:
        world.set_attraction(*attraction)
    sink = RecordingSink()

    writer = None
    csv_file = None
    if log_path:
        csv_file = Path(log_path).open("w", newline="")
        writer = csv.writer(csv_file)
        writer.writerow(_HEADER)

    frame_ms_series: list[float] = []
    neighbor_series: list[float] = []
    speed_series: list[float] = []
    try:
        for _ in range(frames):
            frame = world.step()
            render_frame(frame, sink)
            sink.clear()
            metrics = frame.metrics
            frame_ms = 0.0 if deterministic_log else metrics.frame_duration_ms
            frame_ms_series.append(frame_ms)
            neighbor_series.append(float(metrics.neighbor_checks))
            speed_series.append(metrics.average_speed)
            if writer:
                writer.writerow(_format_row(world, metrics, frame_ms))
    finally:
        if csv_file:
            csv_file.close()

    logger.info("Ran %d frames with %d boids", frames, len(world.flock))
    if summary_path:
        summary = {
            "frames": frames,
            "seed": config.seed,
            "population": len(world.flock),
            "deterministic_log": deterministic_log,
            "attraction": list(attraction) if attraction is not None else None,
            "frame_ms": _summary_stats(frame_ms_series),
            "neighbor_checks": _summary_stats(neighbor_series),
            "average_speed": _summary_stats(speed_series),
            "rendered_frames": sink.frames,
        }
        Path(summary_path).write_text(json.dumps(summary, indent=2))
    return world


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Headless boids simulation")
    parser.add_argument("--frames", type=int, default=600)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--boids", type=int, default=None, help="Initial population")
    parser.add_argument("--attract", type=float, nargs=2, metavar=("X", "Y"), default=None)
    parser.add_argument("--config", type=Path, default=None, help="YAML configuration file")
    parser.add_argument("--log", type=Path, default=None, help="CSV file to write per-frame metrics")
    parser.add_argument("--summary", type=Path, default=None, help="Optional JSON file for summary stats")
    parser.add_argument(
        "--deterministic-log",
        action="store_true",
        help="Write deterministic CSV (frame_ms is forced to 0.000 so identical seeds match).",
    )
    parser.add_argument("--log-level", default="INFO")
    args = parser.parse_args(argv)
    configure_logging(args.log_level)
    config = load_cli_config(args.config, args.seed, args.boids)
    run_headless(
        args.frames,
        log_path=args.log,
        deterministic_log=args.deterministic_log,
        attraction=tuple(args.attract) if args.attract else None,
        summary_path=args.summary,
        config=config,
    )


if __name__ == "__main__":
    main()
