"""Per-video scene index used for scene-aware resume.

Scene lists are scanned linearly. Callers must supply scenes sorted by
start time; lookups do not re-sort, and when intervals overlap the first
match in list order wins.
"""

from collections.abc import Sequence

from .schemas import SceneContext


def find_current_scene(position: float, scenes: Sequence[SceneContext]) -> SceneContext | None:
    """Return the first scene whose [start, end) interval contains the position."""
    for scene in scenes:
        if scene.start_time <= position < scene.end_time:
            return scene
    return None


def get_next_scenes(position: float, scenes: Sequence[SceneContext], limit: int = 3) -> list[SceneContext]:
    """Return up to ``limit`` scenes starting after the position, in list order."""
    if limit <= 0:
        return []
    upcoming = [scene for scene in scenes if scene.start_time > position]
    return upcoming[:limit]


class SceneIndex:
    """Scene lists keyed by video id."""

    def __init__(self) -> None:
        self._scenes: dict[str, list[SceneContext]] = {}

    def set_scenes(self, video_id: str, scenes: Sequence[SceneContext]) -> None:
        """Replace the scene list for a video."""
        self._scenes[video_id] = list(scenes)

    def get_scenes(self, video_id: str) -> list[SceneContext]:
        return list(self._scenes.get(video_id, []))

    def find_current_scene(self, video_id: str, position: float) -> SceneContext | None:
        return find_current_scene(position, self._scenes.get(video_id, []))

    def get_next_scenes(self, video_id: str, position: float, limit: int = 3) -> list[SceneContext]:
        return get_next_scenes(position, self._scenes.get(video_id, []), limit)

    def clear(self) -> None:
        self._scenes.clear()
