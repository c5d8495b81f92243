from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from ..sim.core.config import SimulationConfig


def configure_logging(level: str) -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format="[%(levelname)s] %(message)s")


def load_cli_config(config_path: Optional[Path], seed: Optional[int], boids: Optional[int]) -> SimulationConfig:
    config = SimulationConfig.from_yaml(config_path) if config_path else SimulationConfig()
    if seed is not None:
        config.seed = seed
    if boids is not None:
        config.initial_population = boids
    return config.validate()
