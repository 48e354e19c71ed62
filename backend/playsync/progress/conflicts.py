"""Pick a winning session among sessions reporting conflicting progress."""

import logging
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime

from .models import ConflictResolution
from .schemas import PlaybackPosition, SessionInfo


logger = logging.getLogger(__name__)


def _last_activity(session: SessionInfo) -> datetime | None:
    try:
        parsed = datetime.fromisoformat(session.last_activity_at)
    except (TypeError, ValueError):
        logger.debug(f"Unparseable lastActivityAt on session {session.session_id}: {session.last_activity_at!r}")
        return None
    # Naive timestamps are taken as UTC so they compare against aware ones
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _resolve_latest(sessions: Sequence[SessionInfo]) -> SessionInfo:
    latest = sessions[0]
    latest_at = _last_activity(latest)
    for current in sessions[1:]:
        current_at = _last_activity(current)
        # Strict comparison keeps the earlier session on ties
        if current_at is not None and (latest_at is None or current_at > latest_at):
            latest, latest_at = current, current_at
    return latest


def _resolve_furthest(
    sessions: Sequence[SessionInfo],
    positions: Mapping[str, PlaybackPosition],
) -> SessionInfo | None:
    furthest: SessionInfo | None = None
    furthest_position = -1.0
    for session in sessions:
        position = positions.get(session.session_id)
        if position is not None and position.position > furthest_position:
            furthest_position = position.position
            furthest = session
    return furthest


def resolve_progress_conflict(
    sessions: Sequence[SessionInfo],
    positions: Mapping[str, PlaybackPosition],
    strategy: ConflictResolution,
) -> SessionInfo | None:
    """Resolve a progress conflict with an automatic strategy.

    Args:
        sessions: Conflicting sessions, in the order they were reported.
        positions: Known playback positions keyed by session id.
        strategy: ``use_latest`` picks the most recent ``lastActivityAt``;
            ``use_furthest`` picks the furthest known position.

    Returns
    -------
        The winning session, or None when nothing qualifies. ``prompt_user``
        always returns None since the user has to decide.
    """
    if not sessions:
        return None

    strategy = ConflictResolution(strategy)
    if strategy is ConflictResolution.USE_LATEST:
        return _resolve_latest(sessions)
    if strategy is ConflictResolution.USE_FURTHEST:
        return _resolve_furthest(sessions, positions)
    return None
