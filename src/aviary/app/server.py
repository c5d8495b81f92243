from __future__ import annotations

import argparse
import asyncio
import json
import logging
from collections import deque
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Set

import anyio
import uvicorn
from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from ..sim.core.config import SimulationConfig
from ..sim.core.world import World
from ..sim.types.frame import Frame
from .cli import configure_logging, load_cli_config

logger = logging.getLogger(__name__)

# What a send to a closed or half-closed socket can raise, depending on where the close is noticed.
_SEND_FAILURES = (
    WebSocketDisconnect,
    RuntimeError,
    OSError,
    anyio.ClosedResourceError,
    anyio.BrokenResourceError,
)


@dataclass(frozen=True)
class QueuedFrame:
    frame: int
    payload: str


class SimulationController:
    """Drives a ``World`` from an asyncio loop and fans frames out to websockets.

    The frame loop and every input request share ``_lock``, so population
    changes are applied between frame passes, never during one.
    """

    def __init__(self, config: SimulationConfig, broadcast_interval: Optional[int] = None):
        self.config = config
        self.world = World(config)
        interval = config.loop.broadcast_interval if broadcast_interval is None else broadcast_interval
        self.broadcast_interval = max(1, interval)
        self.running = False
        self.speed_multiplier = 1.0
        self.clients: Set[WebSocket] = set()
        self._client_last_sent: Dict[WebSocket, int] = {}
        self._frame_queue: deque[QueuedFrame] = deque(maxlen=config.loop.frame_queue_limit)
        self._lock = asyncio.Lock()
        self._queue_lock = asyncio.Lock()
        self._loop_task: asyncio.Task | None = None

    async def start(self) -> None:
        if self._loop_task is None:
            self._loop_task = asyncio.create_task(self._loop())
            self._loop_task.add_done_callback(self._on_loop_exit)
        self.running = True
        logger.info("Simulation loop started")

    def _on_loop_exit(self, task: asyncio.Task) -> None:
        self._loop_task = None
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Simulation loop crashed", exc_info=exc)

    async def stop(self) -> None:
        self.running = False

    async def advance(self) -> Frame:
        async with self._lock:
            frame = self.world.step()
        if (frame.index + 1) % self.broadcast_interval == 0:
            await self._broadcast_frame(frame)
        return frame

    async def reset(self) -> None:
        async with self._lock:
            self.world.reset()
        async with self._queue_lock:
            self._frame_queue.clear()
        for client in self._client_last_sent:
            self._client_last_sent[client] = -1

    async def add_boid(self, x: float, y: float) -> int:
        async with self._lock:
            self.world.add_boid(x, y)
            return len(self.world.flock)

    async def set_attraction(self, x: float, y: float) -> None:
        async with self._lock:
            self.world.set_attraction(x, y)

    async def clear_attraction(self) -> None:
        async with self._lock:
            self.world.clear_attraction()

    async def set_weights(self, **weights: Optional[float]) -> Dict[str, float]:
        async with self._lock:
            return asdict(self.world.set_weights(**weights))

    async def resize(self, width: float, height: float) -> None:
        async with self._lock:
            self.world.resize(width, height)

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(1.0 / (self.config.loop.fps * self.speed_multiplier))
            if not self.running:
                continue
            await self.advance()

    async def acknowledge(self, frame: int) -> None:
        async with self._queue_lock:
            while self._frame_queue and self._frame_queue[0].frame <= frame:
                self._frame_queue.popleft()

    @staticmethod
    def _serialize_frame(frame: Frame) -> QueuedFrame:
        payload = {"type": "frame", "frame": frame.index, "payload": asdict(frame)}
        return QueuedFrame(frame=frame.index, payload=json.dumps(payload))

    async def _send_pending_frames(self, client: WebSocket) -> None:
        last_sent = self._client_last_sent.get(client, -1)
        async with self._queue_lock:
            pending = [item for item in self._frame_queue if item.frame > last_sent]
        for item in pending:
            await client.send_text(item.payload)
            last_sent = item.frame
        self._client_last_sent[client] = last_sent

    async def _broadcast_frame(self, frame: Frame) -> None:
        if not self.clients:
            return
        queued = self._serialize_frame(frame)
        async with self._queue_lock:
            self._frame_queue.append(queued)
        stale: Set[WebSocket] = set()
        for client in self.clients:
            try:
                await self._send_pending_frames(client)
            except _SEND_FAILURES as exc:
                logger.info("Dropping websocket client after failed send: %r", exc)
                stale.add(client)
        for client in stale:
            self.discard_client(client)

    def discard_client(self, client: WebSocket) -> None:
        self.clients.discard(client)
        self._client_last_sent.pop(client, None)
        if not self.clients:
            self._frame_queue.clear()


def _number(payload: Dict[str, Any], key: str) -> float:
    value = payload.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise HTTPException(status_code=400, detail=f"'{key}' must be a number")
    return float(value)


app = FastAPI(title="Aviary Flocking Simulation")
controller = SimulationController(SimulationConfig())


@app.on_event("startup")
async def _startup() -> None:
    await controller.start()


@app.get("/api/status")
async def status() -> JSONResponse:
    world = controller.world
    metrics = world.metrics
    attraction = world.attraction_point
    width, height = world.extent.size()
    return JSONResponse(
        {
            "running": controller.running,
            "frame": world.frame,
            "population": len(world.flock),
            "weights": asdict(world.weights),
            "attraction": None if attraction is None else [attraction.x, attraction.y],
            "canvas": [width, height],
            "metrics": None if metrics is None else asdict(metrics),
        }
    )


@app.post("/api/control/start")
async def start_simulation() -> JSONResponse:
    controller.running = True
    return JSONResponse({"running": True})


@app.post("/api/control/stop")
async def stop_simulation() -> JSONResponse:
    await controller.stop()
    return JSONResponse({"running": False})


@app.post("/api/control/reset")
async def reset_simulation() -> JSONResponse:
    await controller.reset()
    return JSONResponse({"running": controller.running, "population": len(controller.world.flock)})


@app.post("/api/control/speed")
async def set_speed(payload: dict) -> JSONResponse:
    speed = _number(payload, "multiplier") if "multiplier" in payload else 1.0
    controller.speed_multiplier = max(0.1, min(5.0, speed))
    return JSONResponse({"multiplier": controller.speed_multiplier})


@app.post("/api/boids")
async def add_boid(payload: dict) -> JSONResponse:
    population = await controller.add_boid(_number(payload, "x"), _number(payload, "y"))
    return JSONResponse({"population": population})


@app.post("/api/attraction")
async def set_attraction(payload: dict) -> JSONResponse:
    x, y = _number(payload, "x"), _number(payload, "y")
    await controller.set_attraction(x, y)
    return JSONResponse({"attraction": [x, y]})


@app.delete("/api/attraction")
async def clear_attraction() -> JSONResponse:
    await controller.clear_attraction()
    return JSONResponse({"attraction": None})


@app.post("/api/weights")
async def set_weights(payload: dict) -> JSONResponse:
    unknown = set(payload) - {"separation", "alignment", "cohesion"}
    if unknown:
        raise HTTPException(status_code=400, detail=f"Unknown weights: {sorted(unknown)}")
    weights = {key: _number(payload, key) for key in payload}
    return JSONResponse(await controller.set_weights(**weights))


@app.post("/api/canvas")
async def resize_canvas(payload: dict) -> JSONResponse:
    width, height = _number(payload, "width"), _number(payload, "height")
    try:
        await controller.resize(width, height)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return JSONResponse({"canvas": [width, height]})


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    await websocket.accept()
    controller.clients.add(websocket)
    controller._client_last_sent[websocket] = -1
    try:
        await controller._send_pending_frames(websocket)
        while True:
            message = await websocket.receive_text()
            try:
                payload = json.loads(message)
            except json.JSONDecodeError:
                continue
            if not isinstance(payload, dict) or payload.get("type") != "ack":
                continue
            frame = payload.get("frame")
            if isinstance(frame, int) and not isinstance(frame, bool):
                await controller.acknowledge(frame)
    except WebSocketDisconnect:
        logger.debug("Websocket client disconnected")
    finally:
        controller.discard_client(websocket)


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Serve the flocking simulation over HTTP and WebSocket")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--config", type=Path, default=None, help="YAML configuration file")
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--boids", type=int, default=None, help="Initial population")
    parser.add_argument("--log-level", default="INFO")
    args = parser.parse_args(argv)
    configure_logging(args.log_level)
    global controller
    controller = SimulationController(load_cli_config(args.config, args.seed, args.boids))
    uvicorn.run(app, host=args.host, port=args.port, log_level=args.log_level.lower())


__all__ = ["app", "controller", "SimulationController"]
