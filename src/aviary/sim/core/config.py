from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict

import yaml

NEIGHBOR_MODES = ("snapshot", "live")


@dataclass(slots=True)
class FlockWeights:
    separation: float = 1.5
    alignment: float = 1.0
    cohesion: float = 1.0


@dataclass
class BoidConfig:
    max_speed: float = 4.0
    max_force: float = 0.1
    perception_radius: float = 100.0
    # Each velocity component is drawn from [-spread/2, spread/2].
    initial_velocity_spread: float = 4.0
    depth_min: float = 0.4
    depth_max: float = 1.0


@dataclass
class FlockConfig:
    weights: FlockWeights = field(default_factory=FlockWeights)
    attraction_weight: float = 3.0
    attraction_force_scale: float = 2.0
    neighbor_mode: str = "snapshot"


@dataclass
class CanvasConfig:
    width: float = 800.0
    height: float = 600.0


@dataclass
class LoopConfig:
    fps: int = 60
    long_press_seconds: float = 0.3
    broadcast_interval: int = 1
    # Frames kept for clients that have not acked yet.
    frame_queue_limit: int = 240
    weight_step: float = 0.1
    weight_bounds: tuple[float, float] = (0.0, 3.0)


@dataclass
class RenderConfig:
    background: tuple[int, int, int] = (20, 24, 35)
    trail_alpha: float = 0.15
    size_scale: float = 8.0
    brightness_base: int = 180
    brightness_span: int = 75
    opacity_base: float = 0.5
    opacity_span: float = 0.5
    stroke_alpha_scale: float = 0.6
    ring_radius: float = 20.0
    ring_width: int = 2
    ring_alpha: float = 0.5
    core_radius: float = 10.0
    core_alpha: float = 0.3
    hud_visible: bool = False
    hud_color: tuple[int, int, int] = (220, 224, 235)


@dataclass
class SimulationConfig:
    seed: int = 42
    initial_population: int = 1
    config_version: str = "v1"
    boid: BoidConfig = field(default_factory=BoidConfig)
    flock: FlockConfig = field(default_factory=FlockConfig)
    canvas: CanvasConfig = field(default_factory=CanvasConfig)
    loop: LoopConfig = field(default_factory=LoopConfig)
    render: RenderConfig = field(default_factory=RenderConfig)

    @staticmethod
    def from_yaml(path: Path) -> "SimulationConfig":
        data = yaml.safe_load(Path(path).read_text()) or {}
        return load_config(data)

    def validate(self) -> "SimulationConfig":
        boid = self.boid
        if boid.max_speed <= 0 or boid.max_force <= 0 or boid.perception_radius <= 0:
            raise ValueError("boid max_speed, max_force and perception_radius must be positive")
        if not 0.0 <= boid.depth_min <= boid.depth_max:
            raise ValueError(f"Invalid depth range: [{boid.depth_min}, {boid.depth_max}]")
        if self.flock.neighbor_mode not in NEIGHBOR_MODES:
            raise ValueError(f"Unknown neighbor mode: {self.flock.neighbor_mode}")
        if self.canvas.width <= 0 or self.canvas.height <= 0:
            raise ValueError("canvas width and height must be positive")
        if self.initial_population < 0:
            raise ValueError("initial_population must be non-negative")
        if self.loop.fps <= 0:
            raise ValueError("loop fps must be positive")
        if self.loop.frame_queue_limit <= 0:
            raise ValueError("loop frame_queue_limit must be positive")
        return self


def load_config(raw: Dict[str, Any]) -> SimulationConfig:
    def _triple(value: Any, default: tuple[int, int, int]) -> tuple[int, int, int]:
        if isinstance(value, (tuple, list)) and len(value) == 3:
            return (int(value[0]), int(value[1]), int(value[2]))
        return default

    def _pair(value: Any, default: tuple[float, float]) -> tuple[float, float]:
        if isinstance(value, (tuple, list)) and len(value) == 2:
            return (float(value[0]), float(value[1]))
        return default

    boid = BoidConfig(**raw.get("boid", {}))
    flock_raw = dict(raw.get("flock", {}))
    weights = FlockWeights(**flock_raw.pop("weights", {}))
    flock = FlockConfig(weights=weights, **flock_raw)
    canvas = CanvasConfig(**raw.get("canvas", {}))

    loop_raw = dict(raw.get("loop", {}))
    default_loop = LoopConfig()
    loop = LoopConfig(
        weight_bounds=_pair(loop_raw.pop("weight_bounds", None), default_loop.weight_bounds),
        **loop_raw,
    )

    render_raw = dict(raw.get("render", {}))
    default_render = RenderConfig()
    render = RenderConfig(
        background=_triple(render_raw.pop("background", None), default_render.background),
        hud_color=_triple(render_raw.pop("hud_color", None), default_render.hud_color),
        **render_raw,
    )

    sim_values = {k: v for k, v in raw.items() if k not in {"boid", "flock", "canvas", "loop", "render"}}
    config = SimulationConfig(boid=boid, flock=flock, canvas=canvas, loop=loop, render=render, **sim_values)
    return config.validate()
