"""Progress percentage calculations shared by every playback path."""


def calculate_progress(position: float, duration: float) -> float:
    """Return playback progress as a percentage clamped to 0-100.

    A non-positive duration always yields 0.
    """
    if duration <= 0:
        return 0.0
    return min(100.0, max(0.0, (position / duration) * 100))


def is_video_completed(position: float, duration: float, threshold: float = 95) -> bool:
    """Check whether playback has reached the completion threshold (a percentage)."""
    return calculate_progress(position, duration) >= threshold
