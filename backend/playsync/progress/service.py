"""Progress coordinator: cross-device playback progress with scene-aware resume.

The coordinator owns the canonical progress records, reacts to progress
messages arriving over the transport and publishes local events for every
change it observes. Every handler is synchronous and runs on the event loop
that owns the transport, so no locking is needed around the store.
"""

import logging
import time
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError

from .calculator import is_video_completed
from .config import ProgressSyncOptions
from .conflicts import resolve_progress_conflict
from .events import ProgressEventEmitter, ProgressEventHandler
from .models import (
    ClearReason,
    ConflictInfo,
    ConflictResolution,
    ProgressEventData,
    ProgressEventType,
    ProgressKey,
    ProgressState,
    ProgressTrackingState,
    SyncStrategy,
)
from .scenes import SceneIndex
from .scheduler import SyncScheduler
from .schemas import (
    CamelModel,
    PlaybackPosition,
    ProgressClearedMessage,
    ProgressConflictMessage,
    ProgressSyncMessage,
    RequestProgressMessage,
    SceneContext,
    SessionInfo,
    UpdateProgressMessage,
)
from .store import ProgressStateStore
from .transitions import transition_state
from .transport import MessageHandler, Transport


logger = logging.getLogger(__name__)


def utc_now_iso() -> str:
    return datetime.now(UTC).isoformat()


class ProgressCoordinator:
    """Reconcile playback progress reported by every session of a user."""

    def __init__(
        self,
        transport: Transport,
        options: ProgressSyncOptions | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.transport = transport
        self.options = options or ProgressSyncOptions()
        self._clock = clock
        self._store = ProgressStateStore()
        self._scenes = SceneIndex()
        self._events = ProgressEventEmitter()
        self._scheduler = SyncScheduler(
            self._store,
            self._on_sync_required,
            interval_ms=self.options.sync_interval,
            clock=clock,
        )
        self._subscriptions: list[tuple[str, MessageHandler]] = [
            ("updateProgress", self._receive(UpdateProgressMessage, self._handle_update_progress)),
            ("progressSync", self._receive(ProgressSyncMessage, self._handle_progress_sync)),
            ("requestProgress", self._receive(RequestProgressMessage, self._handle_request_progress)),
            ("progressCleared", self._receive(ProgressClearedMessage, self._handle_progress_cleared)),
            ("progressConflict", self._receive(ProgressConflictMessage, self._handle_progress_conflict)),
        ]
        for message_type, handler in self._subscriptions:
            self.transport.on(message_type, handler)

    # === Lifecycle ===

    def start(self) -> None:
        """Start background synchronization if the options call for it."""
        if self.options.auto_sync and self.options.sync_strategy == SyncStrategy.AUTOMATIC:
            self.start_auto_sync()

    def start_auto_sync(self) -> None:
        self._scheduler.start()

    def stop_auto_sync(self) -> None:
        self._scheduler.stop()

    @property
    def auto_sync_running(self) -> bool:
        return self._scheduler.is_running

    def destroy(self) -> None:
        """Stop syncing and drop all records, scenes and subscribers."""
        self.stop_auto_sync()
        for message_type, handler in self._subscriptions:
            self.transport.off(message_type, handler)
        self._subscriptions.clear()
        self._events.clear()
        self._store.clear()
        self._scenes.clear()

    async def close(self) -> None:
        """Wait for the sync scan to wind down, then destroy."""
        await self._scheduler.wait_stopped()
        self.destroy()

    # === Local entry points ===

    def update_progress(
        self,
        surface_id: str,
        video_id: str,
        user_id: str,
        position: PlaybackPosition,
        session: SessionInfo,
        state: ProgressTrackingState = ProgressTrackingState.ACTIVE,
    ) -> ProgressState:
        """Record progress reported by the local session and broadcast it."""
        key = ProgressKey(video_id, user_id)
        previous = self._store.get(key)
        scene = self._scenes.find_current_scene(video_id, position.position)
        scene_changed = self._scene_changed(previous, scene)

        record = self._write(key, position, session, state, previous, scene)

        self.transport.send(
            UpdateProgressMessage(
                surface_id=surface_id,
                video_id=video_id,
                user_id=user_id,
                position=position,
                session=session,
                state=record.state,
                timestamp=utc_now_iso(),
            )
        )
        self._publish_update(video_id, user_id, position, scene, session, scene_changed)

        if self.options.sync_strategy == SyncStrategy.SCENE_BOUNDARY and scene_changed:
            self._emit(
                ProgressEventType.SYNC_REQUIRED,
                video_id,
                user_id,
                position=position,
                scene=scene,
                session=session,
            )
        return record

    def request_progress(self, surface_id: str, video_id: str, user_id: str, device_id: str) -> None:
        """Ask connected clients for their current progress on a video."""
        self.transport.send(
            RequestProgressMessage(surface_id=surface_id, video_id=video_id, user_id=user_id, device_id=device_id)
        )

    def sync_progress(
        self,
        surface_id: str,
        video_id: str,
        user_id: str,
        device_id: str | None = None,
    ) -> ProgressSyncMessage | None:
        """Push the canonical progress to a surface, e.g. to resume on another device.

        Returns the message that was sent, or None when no progress is recorded.
        """
        record = self._store.get(ProgressKey(video_id, user_id))
        if record is None:
            return None

        message = ProgressSyncMessage(
            surface_id=surface_id,
            video_id=video_id,
            user_id=user_id,
            position=record.position,
            source_session=record.session,
            is_resume=device_id is not None and device_id != record.session.device_id,
            last_saved_at=utc_now_iso(),
            next_scenes=self._scenes.get_next_scenes(video_id, record.position.position) or None,
        )
        self.transport.send(message)
        return message

    def clear_progress(
        self,
        video_id: str,
        user_id: str,
        *,
        surface_id: str | None = None,
        reason: ClearReason | None = None,
    ) -> bool:
        """Forget progress for a video; notify the surface when one is given."""
        removed = self._store.delete(ProgressKey(video_id, user_id))
        if removed:
            logger.info(f"Cleared progress for video {video_id}, user {user_id}")
        if surface_id is not None:
            self.transport.send(
                ProgressClearedMessage(
                    surface_id=surface_id,
                    video_id=video_id,
                    user_id=user_id,
                    reason=reason,
                    timestamp=utc_now_iso(),
                )
            )
        return removed

    def get_progress_state(self, video_id: str, user_id: str) -> ProgressState | None:
        return self._store.get(ProgressKey(video_id, user_id))

    def set_scenes(self, video_id: str, scenes: list[SceneContext]) -> None:
        self._scenes.set_scenes(video_id, scenes)

    def get_scenes(self, video_id: str) -> list[SceneContext]:
        return self._scenes.get_scenes(video_id)

    def get_next_scenes(self, video_id: str, position: float, limit: int = 3) -> list[SceneContext]:
        return self._scenes.get_next_scenes(video_id, position, limit)

    def on(self, event: ProgressEventType | str, handler: ProgressEventHandler) -> None:
        self._events.on(event, handler)

    def off(self, event: ProgressEventType | str, handler: ProgressEventHandler) -> None:
        self._events.off(event, handler)

    def check_stale(self) -> list[ProgressState]:
        """Run one staleness scan immediately."""
        return self._scheduler.tick()

    # === Inbound messages ===

    def _receive(self, schema: type[CamelModel], handler: Callable[[Any], None]) -> MessageHandler:
        def receive(raw: Any) -> None:
            try:
                message = raw if isinstance(raw, schema) else schema.model_validate(raw)
            except ValidationError as e:
                logger.debug(f"Dropping malformed {schema.__name__}: {e.error_count()} validation error(s)")
                return
            handler(message)

        return receive

    def _handle_update_progress(self, msg: UpdateProgressMessage) -> None:
        key = ProgressKey(msg.video_id, msg.user_id)
        previous = self._store.get(key)
        scene = msg.position.current_scene
        scene_changed = self._scene_changed(previous, scene)

        self._write(key, msg.position, msg.session, msg.state, previous, scene)
        self._publish_update(msg.video_id, msg.user_id, msg.position, scene, msg.session, scene_changed)

    def _handle_progress_sync(self, msg: ProgressSyncMessage) -> None:
        if msg.source_session is not None:
            key = ProgressKey(msg.video_id, msg.user_id)
            reported = ProgressTrackingState.ACTIVE if msg.position.is_playing else ProgressTrackingState.PAUSED
            self._write(
                key,
                msg.position,
                msg.source_session,
                reported,
                self._store.get(key),
                msg.position.current_scene,
            )

        self._emit(
            ProgressEventType.PROGRESS_SYNCED,
            msg.video_id,
            msg.user_id,
            position=msg.position,
            scene=msg.position.current_scene,
            session=msg.source_session,
        )

    def _handle_request_progress(self, msg: RequestProgressMessage) -> None:
        self._emit(ProgressEventType.PROGRESS_REQUESTED, msg.video_id, msg.user_id)

    def _handle_progress_cleared(self, msg: ProgressClearedMessage) -> None:
        self.clear_progress(msg.video_id, msg.user_id)
        self._emit(ProgressEventType.PROGRESS_CLEARED, msg.video_id, msg.user_id)

    def _handle_progress_conflict(self, msg: ProgressConflictMessage) -> None:
        resolution = msg.resolution or self.options.default_conflict_resolution
        conflict = ConflictInfo(sessions=list(msg.conflicting_sessions), resolution=resolution)

        resolved = None
        if self.options.enable_conflict_resolution and resolution != ConflictResolution.PROMPT_USER:
            current = self._store.get(ProgressKey(msg.video_id, msg.user_id))
            if current is not None:
                # The canonical record is the only position sample we hold
                positions = {current.session.session_id: current.position}
                resolved = resolve_progress_conflict(msg.conflicting_sessions, positions, resolution)

        if resolved is None:
            logger.debug(f"Conflict on video {msg.video_id} left for the user to resolve")
        self._emit(
            ProgressEventType.PROGRESS_CONFLICT,
            msg.video_id,
            msg.user_id,
            session=resolved,
            conflict=conflict,
        )

    # === Internals ===

    @staticmethod
    def _scene_changed(previous: ProgressState | None, scene: SceneContext | None) -> bool:
        if scene is None:
            return False
        previous_scene_id = previous.last_scene_id if previous else None
        return previous_scene_id != scene.scene_id

    def _write(
        self,
        key: ProgressKey,
        position: PlaybackPosition,
        session: SessionInfo,
        reported: ProgressTrackingState,
        previous: ProgressState | None,
        scene: SceneContext | None,
    ) -> ProgressState:
        record = ProgressState(
            video_id=key.video_id,
            user_id=key.user_id,
            position=position,
            session=session,
            state=transition_state(previous.state if previous else None, reported),
            last_synced_at=self._clock(),
            last_scene_id=scene.scene_id if scene else None,
        )
        self._store.set(key, record)
        return record

    def _publish_update(
        self,
        video_id: str,
        user_id: str,
        position: PlaybackPosition,
        scene: SceneContext | None,
        session: SessionInfo,
        scene_changed: bool,
    ) -> None:
        self._emit(
            ProgressEventType.PROGRESS_UPDATED,
            video_id,
            user_id,
            position=position,
            scene=scene,
            session=session,
        )
        if scene_changed:
            self._emit(
                ProgressEventType.SCENE_CHANGED,
                video_id,
                user_id,
                position=position,
                scene=scene,
                session=session,
            )
        if is_video_completed(position.position, position.duration, self.options.completion_threshold):
            self._emit(ProgressEventType.VIDEO_COMPLETED, video_id, user_id, position=position, session=session)

    def _on_sync_required(self, state: ProgressState) -> None:
        self._emit(
            ProgressEventType.SYNC_REQUIRED,
            state.video_id,
            state.user_id,
            position=state.position,
            session=state.session,
        )

    def _emit(self, event: ProgressEventType, video_id: str, user_id: str, **fields: Any) -> None:
        self._events.emit(event, ProgressEventData(video_id=video_id, user_id=user_id, **fields))
