from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from playsync.progress.config import ProgressSyncOptions
from playsync.progress.models import ConflictResolution, SyncStrategy


class Settings(BaseSettings):
    """Application settings - only define what needs validation."""

    DEBUG: bool = False
    API_HOST: str = "127.0.0.1"
    API_PORT: int = 8080
    ENVIRONMENT: str = "development"  # "development", "production", "test"
    LOG_LEVEL: str = "INFO"

    # Progress synchronization
    PROGRESS_AUTO_SYNC: bool = True
    PROGRESS_SYNC_STRATEGY: SyncStrategy = SyncStrategy.AUTOMATIC
    PROGRESS_SYNC_INTERVAL_MS: int = 10000
    PROGRESS_SCENE_BOUNDARY_THRESHOLD: float = 5
    PROGRESS_COMPLETION_THRESHOLD: float = 95
    PROGRESS_ENABLE_CONFLICT_RESOLUTION: bool = True
    PROGRESS_DEFAULT_CONFLICT_RESOLUTION: ConflictResolution = ConflictResolution.USE_FURTHEST

    def progress_options(self) -> ProgressSyncOptions:
        """Build coordinator options from the PROGRESS_* settings."""
        return ProgressSyncOptions(
            auto_sync=self.PROGRESS_AUTO_SYNC,
            sync_strategy=self.PROGRESS_SYNC_STRATEGY,
            sync_interval=self.PROGRESS_SYNC_INTERVAL_MS,
            scene_boundary_threshold=self.PROGRESS_SCENE_BOUNDARY_THRESHOLD,
            completion_threshold=self.PROGRESS_COMPLETION_THRESHOLD,
            enable_conflict_resolution=self.PROGRESS_ENABLE_CONFLICT_RESOLUTION,
            default_conflict_resolution=self.PROGRESS_DEFAULT_CONFLICT_RESOLUTION,
        )

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local"),
        env_file_encoding="utf-8",
        extra="allow",
        case_sensitive=False,
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
