"""Playback progress API endpoints and the progress websocket."""

import asyncio
import json
import logging
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status
from pydantic import ValidationError

from playsync.exceptions import ResourceNotFoundError

from .dependencies import Coordinator, LimitParam, PositionParam, TransportDep
from .models import ClearReason
from .schemas import (
    ProgressStateResponse,
    ProgressSyncMessage,
    ProgressSyncRequest,
    ProgressUpdateRequest,
    SceneContext,
    parse_progress_message,
)


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/playback", tags=["playback"])


def _progress_not_found(video_id: str, user_id: str) -> ResourceNotFoundError:
    return ResourceNotFoundError("Progress", f"{video_id}/{user_id}")


@router.put("/videos/{video_id}/scenes")
async def set_scenes(video_id: str, scenes: list[SceneContext], coordinator: Coordinator) -> list[SceneContext]:
    """Replace the scene list of a video."""
    coordinator.set_scenes(video_id, scenes)
    logger.info(f"Registered {len(scenes)} scene(s) for video {video_id}")
    return coordinator.get_scenes(video_id)


@router.get("/videos/{video_id}/scenes")
async def get_scenes(
    video_id: str,
    coordinator: Coordinator,
    position: PositionParam = None,
    limit: LimitParam = 3,
) -> list[SceneContext]:
    """List the scenes of a video, or only the upcoming ones when a position is given."""
    if position is None:
        return coordinator.get_scenes(video_id)
    return coordinator.get_next_scenes(video_id, position, limit)


@router.get("/progress/{video_id}/{user_id}")
async def get_progress(video_id: str, user_id: str, coordinator: Coordinator) -> ProgressStateResponse:
    """Get the canonical progress for a video and user."""
    state = coordinator.get_progress_state(video_id, user_id)
    if state is None:
        raise _progress_not_found(video_id, user_id)
    return ProgressStateResponse.from_state(state)


@router.put("/progress/{video_id}/{user_id}")
async def update_progress(
    video_id: str,
    user_id: str,
    request: ProgressUpdateRequest,
    coordinator: Coordinator,
) -> ProgressStateResponse:
    """Report progress from the local session."""
    state = coordinator.update_progress(
        request.surface_id,
        video_id,
        user_id,
        request.position,
        request.session,
        request.state,
    )
    return ProgressStateResponse.from_state(state)


@router.post("/progress/{video_id}/{user_id}/sync")
async def sync_progress(
    video_id: str,
    user_id: str,
    request: ProgressSyncRequest,
    coordinator: Coordinator,
) -> ProgressSyncMessage:
    """Push the canonical progress to a surface."""
    message = coordinator.sync_progress(request.surface_id, video_id, user_id, request.device_id)
    if message is None:
        raise _progress_not_found(video_id, user_id)
    return message


@router.delete("/progress/{video_id}/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def clear_progress(
    video_id: str,
    user_id: str,
    coordinator: Coordinator,
    surface_id: str | None = None,
    reason: ClearReason | None = None,
) -> None:
    """Clear progress for a video and user."""
    if coordinator.get_progress_state(video_id, user_id) is None:
        raise _progress_not_found(video_id, user_id)
    coordinator.clear_progress(video_id, user_id, surface_id=surface_id, reason=reason)


async def _forward_outbound(websocket: WebSocket, queue: "asyncio.Queue[dict[str, Any]]") -> None:
    while True:
        payload = await queue.get()
        await websocket.send_json(payload)


@router.websocket("/ws/{surface_id}")
async def progress_socket(websocket: WebSocket, surface_id: str, transport: TransportDep) -> None:
    """Exchange progress messages with a client surface.

    Inbound frames are validated and handed to the transport; outbound
    messages addressed to this surface are streamed back.
    """
    await websocket.accept()
    queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue()

    def sink(payload: dict[str, Any]) -> None:
        if payload.get("surfaceId") == surface_id:
            queue.put_nowait(payload)

    transport.add_sink(sink)
    sender = asyncio.create_task(_forward_outbound(websocket, queue))
    logger.info(f"Surface {surface_id} connected")
    try:
        while True:
            text = await websocket.receive_text()
            try:
                message = parse_progress_message(json.loads(text))
            except json.JSONDecodeError:
                logger.debug(f"Dropping non-JSON frame from surface {surface_id}")
                continue
            except ValidationError as e:
                logger.debug(f"Dropping invalid message from surface {surface_id}: {e.error_count()} error(s)")
                continue
            transport.deliver(message)
    except WebSocketDisconnect:
        logger.info(f"Surface {surface_id} disconnected")
    finally:
        transport.remove_sink(sink)
        sender.cancel()
        try:
            await sender
        except (asyncio.CancelledError, WebSocketDisconnect):
            pass
        except Exception:
            logger.exception(f"Outbound stream to surface {surface_id} failed")
