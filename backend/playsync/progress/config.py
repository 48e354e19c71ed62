"""Progress synchronization options."""

from pydantic import BaseModel, ConfigDict, Field

from .models import ConflictResolution, SyncStrategy


class ProgressSyncOptions(BaseModel):
    """Coordinator configuration, fixed once the coordinator is built."""

    model_config = ConfigDict(frozen=True)

    auto_sync: bool = Field(
        default=True,
        description="Run the recurring staleness scan when the strategy is automatic",
    )
    sync_strategy: SyncStrategy = Field(
        default=SyncStrategy.AUTOMATIC,
        description="manual, automatic (timer driven) or scene-boundary",
    )
    sync_interval: int = Field(
        default=10000,
        gt=0,
        description="Staleness interval and scan period in milliseconds",
    )
    scene_boundary_threshold: float = Field(
        default=5,
        ge=0,
        description="Seconds from a scene edge that count as near the boundary (reserved)",
    )
    completion_threshold: float = Field(
        default=95,
        ge=0,
        le=100,
        description="Progress percentage at which a video counts as completed",
    )
    enable_conflict_resolution: bool = Field(
        default=True,
        description="Resolve conflicts automatically unless the user must be prompted",
    )
    default_conflict_resolution: ConflictResolution = Field(
        default=ConflictResolution.USE_FURTHEST,
        description="Strategy used when a conflict message does not suggest one",
    )
