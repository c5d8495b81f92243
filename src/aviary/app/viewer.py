from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import List, Optional, Sequence

import pygame
from pygame import gfxdraw

from ..sim.core.config import RenderConfig, SimulationConfig
from ..sim.core.world import World
from ..sim.systems.render import render_frame
from ..sim.types.frame import AttractionIndicator, BoidDrawCommand, Rgba
from .cli import configure_logging, load_cli_config
from .input import WEIGHT_BINDINGS, PointerTracker, adjust_weight

logger = logging.getLogger(__name__)


def _color(rgba: Rgba) -> tuple[int, int, int, int]:
    r, g, b, alpha = rgba
    return (r, g, b, max(0, min(255, int(round(alpha * 255)))))


class DisplayExtent:
    """Reads the live window size so resizes reach the world on the next frame."""

    def size(self) -> tuple[float, float]:
        surface = pygame.display.get_surface()
        if surface is None:
            raise RuntimeError("pygame display is not initialised")
        width, height = surface.get_size()
        return float(width), float(height)


class PygameRenderer:
    def __init__(self, surface: pygame.Surface, config: RenderConfig):
        self._surface = surface
        self._config = config
        self._trail: Optional[pygame.Surface] = None
        self._font: Optional[pygame.font.Font] = None
        self.hud_lines: List[str] = []

    @property
    def surface(self) -> pygame.Surface:
        return self._surface

    def retarget(self, surface: pygame.Surface) -> None:
        self._surface = surface

    def begin_frame(self, width: float, height: float) -> None:
        size = self._surface.get_size()
        if self._trail is None or self._trail.get_size() != size:
            self._trail = pygame.Surface(size, pygame.SRCALPHA)
            r, g, b = self._config.background
            self._trail.fill((r, g, b, int(round(self._config.trail_alpha * 255))))
        self._surface.blit(self._trail, (0, 0))

    def draw_boid(self, command: BoidDrawCommand) -> None:
        points = [(int(round(x)), int(round(y))) for x, y in command.triangle()]
        gfxdraw.filled_polygon(self._surface, points, _color(command.fill_rgba))
        gfxdraw.aapolygon(self._surface, points, _color(command.stroke_rgba))

    def draw_attraction(self, indicator: AttractionIndicator) -> None:
        x = int(round(indicator.x))
        y = int(round(indicator.y))
        gfxdraw.filled_circle(self._surface, x, y, int(indicator.core_radius), _color(indicator.core_rgba))
        ring = _color(indicator.ring_rgba)
        for inset in range(indicator.ring_width):
            gfxdraw.aacircle(self._surface, x, y, int(indicator.ring_radius) - inset, ring)

    def end_frame(self) -> None:
        if not self.hud_lines:
            return
        if self._font is None:
            pygame.font.init()
            self._font = pygame.font.Font(None, 20)
        y = 8
        for line in self.hud_lines:
            text = self._font.render(line, True, self._config.hud_color)
            self._surface.blit(text, (8, y))
            y += text.get_height() + 2


class Viewer:
    """Frame-driven loop controller; the only code that touches the window."""

    def __init__(self, config: SimulationConfig):
        self._config = config
        self._running = False
        self._panel_visible = config.render.hud_visible
        self.world: Optional[World] = None

    def run(self, max_frames: Optional[int] = None) -> None:
        config = self._config
        pygame.init()
        screen = pygame.display.set_mode(
            (int(config.canvas.width), int(config.canvas.height)), pygame.RESIZABLE
        )
        pygame.display.set_caption("Aviary")
        screen.fill(config.render.background)
        world = World(config, extent=DisplayExtent())
        self.world = world
        renderer = PygameRenderer(screen, config.render)
        tracker = PointerTracker(world, config.loop.long_press_seconds)
        clock = pygame.time.Clock()
        self._running = True
        logger.info("Viewer started at %dx%d, %d fps", screen.get_width(), screen.get_height(), config.loop.fps)
        try:
            while self._running:
                now = pygame.time.get_ticks() / 1000.0
                for event in pygame.event.get():
                    self._handle_event(event, world, tracker, now)
                tracker.poll(now)
                renderer.retarget(pygame.display.get_surface())
                renderer.hud_lines = self._hud_lines(world)
                render_frame(world.step(), renderer)
                pygame.display.flip()
                clock.tick(config.loop.fps)
                if max_frames is not None and world.frame >= max_frames:
                    self._running = False
        finally:
            logger.info("Viewer stopped after %d frames", world.frame)
            pygame.quit()

    def stop(self) -> None:
        self._running = False

    def _hud_lines(self, world: World) -> List[str]:
        lines = [f"Boids: {len(world.flock)}"]
        if self._panel_visible:
            weights = world.weights
            lines.extend(
                [
                    f"Separation: {weights.separation:.1f}  [Q/A]",
                    f"Alignment: {weights.alignment:.1f}  [W/S]",
                    f"Cohesion: {weights.cohesion:.1f}  [E/D]",
                    "Reset [R]  Panel [H]",
                ]
            )
        return lines

    def _handle_event(self, event: pygame.event.Event, world: World, tracker: PointerTracker, now: float) -> None:
        if event.type == pygame.QUIT:
            self._running = False
        elif event.type == pygame.KEYDOWN:
            self._handle_key(pygame.key.name(event.key), world)
        elif event.type in (pygame.MOUSEBUTTONDOWN, pygame.MOUSEBUTTONUP, pygame.MOUSEMOTION):
            # Touch input arrives separately as FINGER* events.
            if getattr(event, "touch", False):
                return
            x, y = event.pos
            if event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
                tracker.press(x, y, now)
            elif event.type == pygame.MOUSEBUTTONUP and event.button == 1:
                tracker.release(x, y, now)
            elif event.type == pygame.MOUSEMOTION and tracker.pressed:
                tracker.move(x, y, now)
        elif event.type in (pygame.FINGERDOWN, pygame.FINGERUP, pygame.FINGERMOTION):
            width, height = world.extent.size()
            x = event.x * width
            y = event.y * height
            if event.type == pygame.FINGERDOWN:
                tracker.press(x, y, now)
            elif event.type == pygame.FINGERUP:
                tracker.release(x, y, now)
            elif tracker.pressed:
                tracker.move(x, y, now)

    def _handle_key(self, key: str, world: World) -> None:
        loop = self._config.loop
        if key == "escape":
            self._running = False
        elif key == "r":
            world.reset()
            logger.info("Population reset")
        elif key == "h":
            self._panel_visible = not self._panel_visible
        elif key in WEIGHT_BINDINGS:
            name, direction = WEIGHT_BINDINGS[key]
            value = adjust_weight(world.weights, name, direction, loop.weight_step, loop.weight_bounds)
            world.set_weights(**{name: value})


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Interactive boids flocking viewer")
    parser.add_argument("--config", type=Path, default=None, help="YAML configuration file")
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--boids", type=int, default=None, help="Initial population (default 1)")
    parser.add_argument("--fps", type=int, default=None)
    parser.add_argument("--log-level", default="INFO")
    args = parser.parse_args(argv)
    configure_logging(args.log_level)
    config = load_cli_config(args.config, args.seed, args.boids)
    if args.fps is not None:
        config.loop.fps = args.fps
    Viewer(config.validate()).run()


if __name__ == "__main__":
    main()
