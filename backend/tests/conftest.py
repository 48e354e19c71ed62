"""Shared fixtures for progress synchronization tests.

Testing Strategy:
1. Coordinator: real instance over an in-process LocalTransport
2. Clock: injected fake so staleness is deterministic
3. API: httpx AsyncClient against the ASGI app, no network
"""

import pytest

from playsync.progress.config import ProgressSyncOptions
from playsync.progress.service import ProgressCoordinator
from playsync.progress.transport import LocalTransport
from tests.fixtures.progress import EventRecorder, FakeClock


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def transport() -> LocalTransport:
    return LocalTransport()


@pytest.fixture
def outbound(transport: LocalTransport) -> list[dict]:
    """Every message the coordinator sends, as wire payloads."""
    sent: list[dict] = []
    transport.add_sink(sent.append)
    return sent


@pytest.fixture
def options() -> ProgressSyncOptions:
    return ProgressSyncOptions()


@pytest.fixture
def coordinator(transport: LocalTransport, options: ProgressSyncOptions, clock: FakeClock):
    coordinator = ProgressCoordinator(transport, options, clock=clock)
    yield coordinator
    coordinator.destroy()


@pytest.fixture
def recorder(coordinator: ProgressCoordinator) -> EventRecorder:
    return EventRecorder(coordinator)
