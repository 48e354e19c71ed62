"""Tracking-state transitions for the canonical progress record."""

from .models import ProgressTrackingState


def transition_state(
    previous: ProgressTrackingState | None,
    reported: ProgressTrackingState,
) -> ProgressTrackingState:
    """Return the state to store when a session reports ``reported``.

    Transitions are permissive: the reported state always replaces the
    previous one, so ``completed`` and ``abandoned`` are not terminal.
    """
    return reported
