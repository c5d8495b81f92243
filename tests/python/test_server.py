import asyncio
import json

import anyio
import pytest
from fastapi import HTTPException, WebSocketDisconnect

from aviary.app import server
from aviary.app.server import SimulationController
from aviary.sim.core.config import LoopConfig, SimulationConfig


class FakeClient:
    def __init__(self) -> None:
        self.sent: list[dict] = []

    async def send_text(self, text: str) -> None:
        self.sent.append(json.loads(text))


class ClosedClient:
    async def send_text(self, text: str) -> None:
        raise WebSocketDisconnect(code=1001)


class FailingClient:
    def __init__(self, exc: Exception) -> None:
        self.exc = exc

    async def send_text(self, text: str) -> None:
        raise self.exc


class ScriptedSocket(FakeClient):
    """Websocket stand-in that replays incoming messages, then raises ``end``."""

    def __init__(self, messages: list[str], end: Exception) -> None:
        super().__init__()
        self._messages = list(messages)
        self._end = end
        self.accepted = False

    async def accept(self) -> None:
        self.accepted = True

    async def receive_text(self) -> str:
        if self._messages:
            return self._messages.pop(0)
        raise self._end


async def _queued(controller: SimulationController) -> list[int]:
    async with controller._queue_lock:
        return [item.frame for item in controller._frame_queue]


def test_frame_queue_ack_cleanup() -> None:
    controller = SimulationController(SimulationConfig())
    controller.clients.add(FakeClient())

    async def exercise() -> None:
        await controller.advance()
        await controller.advance()
        assert await _queued(controller) == [0, 1]
        await controller.acknowledge(0)
        assert await _queued(controller) == [1]

    asyncio.run(exercise())


def test_no_frames_are_queued_without_clients() -> None:
    controller = SimulationController(SimulationConfig())

    async def exercise() -> None:
        for _ in range(50):
            await controller.advance()
        assert await _queued(controller) == []

    asyncio.run(exercise())


def test_queue_is_capped_when_client_never_acks() -> None:
    controller = SimulationController(SimulationConfig(loop=LoopConfig(frame_queue_limit=5)))
    client = FakeClient()
    controller.clients.add(client)

    async def exercise() -> None:
        for _ in range(20):
            await controller.advance()
        assert await _queued(controller) == [15, 16, 17, 18, 19]

    asyncio.run(exercise())
    assert len(client.sent) == 20


def test_broadcast_interval_skips_frames() -> None:
    controller = SimulationController(SimulationConfig(), broadcast_interval=2)
    controller.clients.add(FakeClient())

    async def exercise() -> None:
        for _ in range(4):
            await controller.advance()
        assert await _queued(controller) == [1, 3]

    asyncio.run(exercise())


def test_reset_clears_queue_and_population() -> None:
    controller = SimulationController(SimulationConfig())
    controller.clients.add(FakeClient())

    async def exercise() -> None:
        assert await controller.add_boid(10.0, 10.0) == 2
        await controller.advance()
        await controller.reset()
        assert await _queued(controller) == []
        assert len(controller.world.flock) == 1
        assert controller.world.frame == 0

    asyncio.run(exercise())


def test_inputs_are_applied_to_world() -> None:
    controller = SimulationController(SimulationConfig())

    async def exercise() -> None:
        weights = await controller.set_weights(alignment=2.0)
        assert weights == {"separation": 1.5, "alignment": 2.0, "cohesion": 1.0}
        await controller.set_attraction(50.0, 60.0)
        frame = await controller.advance()
        assert frame.attraction is not None
        await controller.clear_attraction()
        await controller.resize(400.0, 300.0)
        frame = await controller.advance()
        assert frame.attraction is None
        assert (frame.width, frame.height) == (400.0, 300.0)

    asyncio.run(exercise())


def test_frames_are_sent_to_clients_and_closed_clients_dropped() -> None:
    controller = SimulationController(SimulationConfig(initial_population=3))
    client = FakeClient()
    closed = ClosedClient()
    controller.clients.update({client, closed})

    async def exercise() -> None:
        await controller.advance()
        await controller.advance()

    asyncio.run(exercise())

    assert [message["frame"] for message in client.sent] == [0, 1]
    message = client.sent[0]
    assert message["type"] == "frame"
    assert len(message["payload"]["boids"]) == 3
    assert message["payload"]["metrics"]["population"] == 3
    assert closed not in controller.clients


@pytest.mark.parametrize(
    "exc",
    [anyio.ClosedResourceError(), anyio.BrokenResourceError(), RuntimeError("closed"), ConnectionResetError()],
)
def test_any_send_failure_drops_client_and_keeps_advancing(exc) -> None:
    controller = SimulationController(SimulationConfig())
    client = FakeClient()
    failing = FailingClient(exc)
    controller.clients.update({client, failing})

    async def exercise() -> None:
        await controller.advance()
        await controller.advance()

    asyncio.run(exercise())

    assert failing not in controller.clients
    assert failing not in controller._client_last_sent
    assert [message["frame"] for message in client.sent] == [0, 1]


def test_websocket_ignores_non_object_messages_and_handles_ack(monkeypatch) -> None:
    controller = SimulationController(SimulationConfig())
    other = FakeClient()
    controller.clients.add(other)
    monkeypatch.setattr(server, "controller", controller)
    socket = ScriptedSocket(
        ["[1, 2]", '"ack"', "null", "not json", '{"type": "ack", "frame": true}', '{"type": "ack", "frame": 0}'],
        WebSocketDisconnect(code=1000),
    )

    async def exercise() -> None:
        await controller.advance()
        await server.websocket_endpoint(socket)
        assert await _queued(controller) == []
        await controller.advance()

    asyncio.run(exercise())

    assert socket.accepted
    assert [message["frame"] for message in socket.sent] == [0]
    assert socket not in controller.clients
    assert socket not in controller._client_last_sent
    assert [message["frame"] for message in other.sent] == [0, 1]


def test_websocket_is_unregistered_when_receive_fails(monkeypatch) -> None:
    controller = SimulationController(SimulationConfig())
    monkeypatch.setattr(server, "controller", controller)
    socket = ScriptedSocket([], RuntimeError("socket closed"))

    with pytest.raises(RuntimeError):
        asyncio.run(server.websocket_endpoint(socket))

    assert socket not in controller.clients
    assert socket not in controller._client_last_sent


@pytest.mark.parametrize("payload", [{"multiplier": "fast"}, {"multiplier": None}, {"multiplier": True}])
def test_speed_rejects_non_numeric_multiplier(monkeypatch, payload) -> None:
    controller = SimulationController(SimulationConfig())
    monkeypatch.setattr(server, "controller", controller)

    with pytest.raises(HTTPException) as excinfo:
        asyncio.run(server.set_speed(payload))

    assert excinfo.value.status_code == 400
    assert controller.speed_multiplier == 1.0


def test_speed_is_clamped_and_defaults_to_one(monkeypatch) -> None:
    controller = SimulationController(SimulationConfig())
    monkeypatch.setattr(server, "controller", controller)

    asyncio.run(server.set_speed({"multiplier": 9}))
    assert controller.speed_multiplier == 5.0
    asyncio.run(server.set_speed({}))
    assert controller.speed_multiplier == 1.0
