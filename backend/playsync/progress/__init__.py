"""Cross-device playback progress tracking."""

from .config import ProgressSyncOptions
from .models import (
    ConflictResolution,
    ProgressEventData,
    ProgressEventType,
    ProgressKey,
    ProgressState,
    ProgressTrackingState,
    SyncStrategy,
)
from .service import ProgressCoordinator
from .transport import LocalTransport, Transport


__all__ = [
    "ConflictResolution",
    "LocalTransport",
    "ProgressCoordinator",
    "ProgressEventData",
    "ProgressEventType",
    "ProgressKey",
    "ProgressState",
    "ProgressSyncOptions",
    "ProgressTrackingState",
    "SyncStrategy",
    "Transport",
]
