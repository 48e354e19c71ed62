"""Tests for the in-process message transport."""

import logging
from unittest.mock import MagicMock

import pytest

from playsync.progress.schemas import RequestProgressMessage
from playsync.progress.transport import ANY_MESSAGE, LocalTransport


def test_deliver_routes_by_message_type() -> None:
    transport = LocalTransport()
    update_handler, sync_handler = MagicMock(), MagicMock()
    transport.on("updateProgress", update_handler)
    transport.on("progressSync", sync_handler)

    raw = {"type": "updateProgress", "videoId": "video-1"}
    assert transport.deliver(raw) is True

    update_handler.assert_called_once_with(raw)
    sync_handler.assert_not_called()


def test_catch_all_handlers_see_every_message() -> None:
    transport = LocalTransport()
    handler = MagicMock()
    transport.on(ANY_MESSAGE, handler)

    transport.deliver({"type": "requestProgress"})
    transport.deliver({"type": "progressCleared"})

    assert handler.call_count == 2


def test_payloads_without_type_are_dropped() -> None:
    transport = LocalTransport()
    handler = MagicMock()
    transport.on(ANY_MESSAGE, handler)

    assert transport.deliver({"videoId": "video-1"}) is False
    assert transport.deliver({"type": 42}) is False
    assert transport.deliver(["updateProgress"]) is False
    handler.assert_not_called()


def test_off_stops_delivery() -> None:
    transport = LocalTransport()
    handler = MagicMock()
    transport.on("updateProgress", handler)
    transport.off("updateProgress", handler)
    transport.off("neverRegistered", handler)

    transport.deliver({"type": "updateProgress"})
    handler.assert_not_called()


def test_failing_handler_does_not_block_others() -> None:
    transport = LocalTransport()
    healthy = MagicMock()
    transport.on("updateProgress", MagicMock(side_effect=ValueError("bad")))
    transport.on("updateProgress", healthy)

    transport.deliver({"type": "updateProgress"})
    healthy.assert_called_once()


def test_send_serializes_models_for_every_sink() -> None:
    transport = LocalTransport()
    first: list[dict] = []
    second: list[dict] = []
    transport.add_sink(first.append)
    transport.add_sink(second.append)

    transport.send(RequestProgressMessage(surface_id="player", video_id="video-1", user_id="user-1", device_id="tv"))

    expected = {
        "type": "requestProgress",
        "surfaceId": "player",
        "videoId": "video-1",
        "userId": "user-1",
        "deviceId": "tv",
    }
    assert first == [expected]
    assert second == [expected]


def test_removed_sink_receives_nothing() -> None:
    transport = LocalTransport()
    sent: list[dict] = []
    transport.add_sink(sent.append)
    transport.remove_sink(sent.append)

    transport.send({"type": "requestProgress"})
    assert sent == []


def test_failing_sink_does_not_block_others(caplog: pytest.LogCaptureFixture) -> None:
    transport = LocalTransport()
    sent: list[dict] = []
    transport.add_sink(MagicMock(side_effect=RuntimeError("socket closed")))
    transport.add_sink(sent.append)

    with caplog.at_level(logging.ERROR, logger="playsync.progress.transport"):
        transport.send({"type": "requestProgress"})

    assert sent == [{"type": "requestProgress"}]
    assert "Outbound sink failed for requestProgress" in caplog.text
