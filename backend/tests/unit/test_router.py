"""Tests for the progress websocket handler outside of a running app."""

import asyncio
import logging

import pytest
from fastapi import WebSocketDisconnect

from playsync.progress.router import progress_socket
from playsync.progress.schemas import RequestProgressMessage
from playsync.progress.transport import LocalTransport


class ClosedOutboundSocket:
    """Client that sends one frame and leaves; every outbound write fails."""

    def __init__(self, transport: LocalTransport, surface_id: str) -> None:
        self.transport = transport
        self.surface_id = surface_id
        self.send_attempts = 0
        self.frames = ["not json", '{"type": "updateProgress"}']

    async def accept(self) -> None:
        return None

    async def send_json(self, payload: dict) -> None:
        self.send_attempts += 1
        msg = "Cannot call send once a close message has been sent"
        raise RuntimeError(msg)

    async def receive_text(self) -> str:
        if not self.frames:
            raise WebSocketDisconnect()
        if self.send_attempts == 0:
            self.transport.send(
                RequestProgressMessage(surface_id=self.surface_id, video_id="video-1", user_id="user-1", device_id="tv")
            )
            for _ in range(3):
                await asyncio.sleep(0)
        return self.frames.pop(0)


async def test_failed_outbound_stream_is_logged_on_teardown(caplog: pytest.LogCaptureFixture) -> None:
    transport = LocalTransport()
    websocket = ClosedOutboundSocket(transport, "tv")

    with caplog.at_level(logging.ERROR, logger="playsync.progress.router"):
        await progress_socket(websocket, "tv", transport)

    assert websocket.send_attempts == 1
    assert "Outbound stream to surface tv failed" in caplog.text


async def test_disconnect_removes_outbound_sink() -> None:
    transport = LocalTransport()
    websocket = ClosedOutboundSocket(transport, "tv")
    websocket.frames = []

    await progress_socket(websocket, "tv", transport)
    transport.send(RequestProgressMessage(surface_id="tv", video_id="video-1", user_id="user-1", device_id="tv"))
    await asyncio.sleep(0)

    assert websocket.send_attempts == 0
