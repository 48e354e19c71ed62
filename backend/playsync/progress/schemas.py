"""Wire shapes for progress tracking messages and the playback API.

Everything on the wire is camelCase JSON; the models accept either the
camelCase alias or the snake_case field name.
"""

from datetime import datetime
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .calculator import calculate_progress
from .models import (
    ClearReason,
    ConflictResolution,
    DeviceType,
    ProgressState,
    ProgressTrackingState,
)


class CamelModel(BaseModel):
    """Base schema that speaks camelCase on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        allow_inf_nan=False,
    )

    def to_wire(self) -> dict[str, Any]:
        """Serialize for the transport."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def _validate_iso_timestamp(value: str) -> str:
    try:
        datetime.fromisoformat(value)
    except ValueError as e:
        msg = f"Invalid ISO-8601 timestamp: {value!r}"
        raise ValueError(msg) from e
    return value


class SceneContext(CamelModel):
    """Scene or chapter of a video, used for contextual resume."""

    scene_id: str = Field(..., min_length=1)
    title: str
    start_time: float = Field(..., ge=0, description="Scene start in seconds")
    end_time: float = Field(..., gt=0, description="Scene end in seconds")
    description: str | None = None
    thumbnail: str | None = None

    @model_validator(mode="after")
    def check_interval(self) -> "SceneContext":
        if self.start_time >= self.end_time:
            msg = f"Scene {self.scene_id} must start before it ends"
            raise ValueError(msg)
        return self


class PlaybackPosition(CamelModel):
    """Playback position with optional scene context and player settings."""

    position: float = Field(..., ge=0, description="Current position in seconds")
    duration: float = Field(..., ge=0, description="Total duration in seconds")
    progress: float = Field(0.0, ge=0, le=100, description="Derived from position and duration")
    is_playing: bool
    current_scene: SceneContext | None = None
    playback_rate: float | None = Field(None, gt=0)
    quality: Literal["auto", "low", "medium", "high", "4k"] | None = None
    volume: float | None = Field(None, ge=0, le=1)
    is_muted: bool | None = None

    @model_validator(mode="before")
    @classmethod
    def drop_reported_progress(cls, data: Any) -> Any:
        # Clients may send stale or bogus percentages; the value is derived below
        if isinstance(data, dict):
            data = {k: v for k, v in data.items() if k != "progress"}
        return data

    @model_validator(mode="after")
    def derive_progress(self) -> "PlaybackPosition":
        self.progress = calculate_progress(self.position, self.duration)
        return self


class SessionInfo(CamelModel):
    """A single device connection watching a video."""

    session_id: str = Field(..., min_length=1)
    device_id: str = Field(..., min_length=1)
    device_type: DeviceType = DeviceType.UNKNOWN
    device_name: str | None = None
    started_at: str
    last_activity_at: str
    user_agent: str | None = None
    ip_address: str | None = None

    @field_validator("started_at", "last_activity_at")
    @classmethod
    def check_timestamps(cls, v: str) -> str:
        return _validate_iso_timestamp(v)


# === Transport messages ===


class ProgressMessageBase(CamelModel):
    surface_id: str = Field(..., min_length=1)
    video_id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)


class UpdateProgressMessage(ProgressMessageBase):
    """Current playback position reported by a client."""

    type: Literal["updateProgress"] = "updateProgress"
    position: PlaybackPosition
    session: SessionInfo
    state: ProgressTrackingState
    timestamp: str

    @field_validator("timestamp")
    @classmethod
    def check_timestamp(cls, v: str) -> str:
        return _validate_iso_timestamp(v)


class ProgressSyncMessage(ProgressMessageBase):
    """Synchronized or restored progress for a video."""

    type: Literal["progressSync"] = "progressSync"
    position: PlaybackPosition
    source_session: SessionInfo | None = None
    active_sessions: list[SessionInfo] | None = None
    is_resume: bool
    last_saved_at: str
    next_scenes: list[SceneContext] | None = None

    @field_validator("last_saved_at")
    @classmethod
    def check_timestamp(cls, v: str) -> str:
        return _validate_iso_timestamp(v)


class RequestProgressMessage(ProgressMessageBase):
    """Request for the current progress of a video."""

    type: Literal["requestProgress"] = "requestProgress"
    device_id: str = Field(..., min_length=1)


class ProgressClearedMessage(ProgressMessageBase):
    """Notification that progress for a video was cleared."""

    type: Literal["progressCleared"] = "progressCleared"
    reason: ClearReason | None = None
    timestamp: str

    @field_validator("timestamp")
    @classmethod
    def check_timestamp(cls, v: str) -> str:
        return _validate_iso_timestamp(v)


class ProgressConflictMessage(ProgressMessageBase):
    """Conflicting progress reported by several sessions."""

    type: Literal["progressConflict"] = "progressConflict"
    conflicting_sessions: list[SessionInfo]
    # Falls back to the coordinator's configured default when omitted
    resolution: ConflictResolution | None = None
    timestamp: str

    @field_validator("timestamp")
    @classmethod
    def check_timestamp(cls, v: str) -> str:
        return _validate_iso_timestamp(v)


ProgressMessage = Annotated[
    UpdateProgressMessage
    | ProgressSyncMessage
    | RequestProgressMessage
    | ProgressClearedMessage
    | ProgressConflictMessage,
    Field(discriminator="type"),
]

_MESSAGE_ADAPTER: TypeAdapter[ProgressMessage] = TypeAdapter(ProgressMessage)


def parse_progress_message(raw: Any) -> ProgressMessage:
    """Validate a raw transport payload into a typed progress message.

    Raises pydantic.ValidationError on unknown types or malformed shapes.
    """
    if isinstance(raw, BaseModel):
        raw = raw.model_dump(by_alias=True)
    return _MESSAGE_ADAPTER.validate_python(raw)


def is_progress_message(raw: Any) -> bool:
    try:
        parse_progress_message(raw)
    except ValidationError:
        return False
    return True


# === API schemas ===


class ProgressUpdateRequest(CamelModel):
    """Body of a direct progress update from a local caller."""

    surface_id: str = Field(..., min_length=1)
    position: PlaybackPosition
    session: SessionInfo
    state: ProgressTrackingState = ProgressTrackingState.ACTIVE


class ProgressSyncRequest(CamelModel):
    """Body of a request to push the canonical progress to a surface."""

    surface_id: str = Field(..., min_length=1)
    device_id: str | None = None


class ProgressStateResponse(CamelModel):
    """Canonical progress record as returned by the API."""

    video_id: str
    user_id: str
    position: PlaybackPosition
    session: SessionInfo
    state: ProgressTrackingState
    last_scene_id: str | None = None

    @classmethod
    def from_state(cls, state: ProgressState) -> "ProgressStateResponse":
        return cls(
            video_id=state.video_id,
            user_id=state.user_id,
            position=state.position,
            session=state.session,
            state=state.state,
            last_scene_id=state.last_scene_id,
        )
