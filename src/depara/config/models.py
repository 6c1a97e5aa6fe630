"""Configuration models describing DePara settings."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_IMAGE_EXTENSIONS = ["jpg", "jpeg", "png", "gif", "bmp", "webp", "tiff"]


class DeParaBaseModel(BaseModel):
    """Shared configuration for DePara settings models."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)


class BackupSettings(DeParaBaseModel):
    """Backup vault configuration.

    Attributes:
        enabled: Whether deletes are always preceded by a backup copy.
        backup_dir: Directory that receives backup copies.
        retention_days: Age in days after which backups are purged.
        compress_backups: Whether backup copies are gzip-compressed.
    """

    enabled: bool = True
    backup_dir: str = "~/.depara/backups"
    retention_days: int = Field(default=30, ge=0)
    compress_backups: bool = False


class BatchSettings(DeParaBaseModel):
    """Batch execution limits.

    Attributes:
        max_concurrent_operations: Requested parallelism; capped at three.
        pause_seconds: Cooldown inserted between consecutive batches.
    """

    max_concurrent_operations: int = Field(default=2, ge=1)
    pause_seconds: float = Field(default=0.1, ge=0)


class SchedulerSettings(DeParaBaseModel):
    """Recurring schedule behavior.

    Attributes:
        default_interval_seconds: Interval used when a frequency cannot be parsed.
        skip_overlapping_ticks: Skip a tick while the same operation is still running.
    """

    default_interval_seconds: float = Field(default=60.0, gt=0)
    skip_overlapping_ticks: bool = True


class SecuritySettings(DeParaBaseModel):
    """Path allow-list configuration.

    Attributes:
        allowed_base_paths: Additional base directories operations may touch.
        include_default_bases: Whether the built-in base directories are allowed.
    """

    allowed_base_paths: List[str] = Field(default_factory=list)
    include_default_bases: bool = True


class IgnoreSettings(DeParaBaseModel):
    """Ignore-pattern configuration.

    Attributes:
        extra_patterns: User patterns checked after the built-in groups.
    """

    extra_patterns: List[str] = Field(default_factory=list)


class ImageSettings(DeParaBaseModel):
    """Defaults for recursive image listings.

    Attributes:
        max_depth: Deepest sub-directory level scanned.
        extensions: File extensions treated as images.
    """

    max_depth: int = Field(default=10, ge=0)
    extensions: List[str] = Field(default_factory=lambda: list(DEFAULT_IMAGE_EXTENSIONS))


class LoggingSettings(DeParaBaseModel):
    """Runtime logging configuration.

    Attributes:
        level: Logging verbosity level.
        file: Optional log file path; console-only when unset.
        max_size_mb: Maximum log size before rotation.
        backup_count: Number of historical log files to retain.
    """

    level: str = "INFO"
    file: Optional[str] = None
    max_size_mb: int = 10
    backup_count: int = 5


class DeParaConfig(DeParaBaseModel):
    """Top-level configuration struct for DePara.

    Attributes:
        backup: Backup vault settings.
        batch: Batch execution settings.
        scheduler: Scheduler settings.
        security: Path allow-list settings.
        ignore: Ignore-pattern settings.
        images: Image listing defaults.
        logging: Logging configuration.
        schedules: Operation definitions started by ``depara serve``.
    """

    backup: BackupSettings = Field(default_factory=BackupSettings)
    batch: BatchSettings = Field(default_factory=BatchSettings)
    scheduler: SchedulerSettings = Field(default_factory=SchedulerSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    ignore: IgnoreSettings = Field(default_factory=IgnoreSettings)
    images: ImageSettings = Field(default_factory=ImageSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    schedules: List[dict] = Field(default_factory=list)


__all__ = [
    "DEFAULT_IMAGE_EXTENSIONS",
    "DeParaBaseModel",
    "BackupSettings",
    "BatchSettings",
    "SchedulerSettings",
    "SecuritySettings",
    "IgnoreSettings",
    "ImageSettings",
    "LoggingSettings",
    "DeParaConfig",
]
