"""Core types for cross-device playback progress tracking."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, NamedTuple


if TYPE_CHECKING:
    from .schemas import PlaybackPosition, SceneContext, SessionInfo


class DeviceType(str, Enum):
    """Kind of device a playback session runs on."""

    DESKTOP = "desktop"
    MOBILE = "mobile"
    TABLET = "tablet"
    TV = "tv"
    UNKNOWN = "unknown"


class ProgressTrackingState(str, Enum):
    """Tracking state reported alongside a playback position."""

    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class ConflictResolution(str, Enum):
    """Strategy for picking a winner among conflicting sessions."""

    USE_LATEST = "use_latest"
    USE_FURTHEST = "use_furthest"
    PROMPT_USER = "prompt_user"


class SyncStrategy(str, Enum):
    """When the coordinator asks clients to re-synchronize."""

    MANUAL = "manual"
    AUTOMATIC = "automatic"
    SCENE_BOUNDARY = "scene-boundary"


class ClearReason(str, Enum):
    """Why progress for a video was cleared."""

    USER_ACTION = "user_action"
    EXPIRATION = "expiration"
    COMPLETION = "completion"
    RESET = "reset"


class ProgressEventType(str, Enum):
    """Local events published by the progress coordinator."""

    PROGRESS_UPDATED = "progressUpdated"
    PROGRESS_SYNCED = "progressSynced"
    PROGRESS_REQUESTED = "progressRequested"
    PROGRESS_CLEARED = "progressCleared"
    PROGRESS_CONFLICT = "progressConflict"
    SCENE_CHANGED = "sceneChanged"
    VIDEO_COMPLETED = "videoCompleted"
    SYNC_REQUIRED = "syncRequired"


class ProgressKey(NamedTuple):
    """Composite key of the canonical progress record."""

    video_id: str
    user_id: str


@dataclass
class ProgressState:
    """Canonical progress record for a single (video, user) pair."""

    video_id: str
    user_id: str
    position: PlaybackPosition
    session: SessionInfo
    state: ProgressTrackingState
    # time.monotonic() reading, only meaningful for staleness checks
    last_synced_at: float
    last_scene_id: str | None = None

    @property
    def key(self) -> ProgressKey:
        return ProgressKey(self.video_id, self.user_id)


@dataclass(frozen=True)
class ConflictInfo:
    sessions: list[SessionInfo]
    resolution: ConflictResolution


@dataclass(frozen=True)
class ProgressEventData:
    """Payload delivered to local event subscribers."""

    video_id: str
    user_id: str
    position: PlaybackPosition | None = None
    scene: SceneContext | None = None
    session: SessionInfo | None = None
    conflict: ConflictInfo | None = None
