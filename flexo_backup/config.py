"""Configuration management for flexo-backup."""

import os
from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class StoreConfig:
    """Backup store configuration."""
    backend: str = "filesystem"  # filesystem, s3
    root_dir: str = "./backups/machines"

    # S3 specific settings
    s3_bucket: Optional[str] = None
    s3_prefix: str = "machine-backups/"
    s3_region: str = "us-east-1"
    s3_endpoint_url: Optional[str] = None

    @classmethod
    def from_env(cls) -> 'StoreConfig':
        """Create config from environment variables."""
        return cls(
            backend=os.getenv("BACKUP_STORE_BACKEND", "filesystem"),
            root_dir=os.getenv("BACKUP_DIR", "./backups/machines"),
            s3_bucket=os.getenv("BACKUP_S3_BUCKET", None),
            s3_prefix=os.getenv("BACKUP_S3_PREFIX", "machine-backups/"),
            s3_region=os.getenv("AWS_REGION", "us-east-1"),
            s3_endpoint_url=os.getenv("BACKUP_S3_ENDPOINT_URL", None),
        )

    def __post_init__(self):
        """Validate configuration."""
        if self.backend not in {"filesystem", "s3"}:
            raise ValueError(f"Unknown store backend: {self.backend}")
        if self.backend == "s3" and not self.s3_bucket:
            raise ValueError("s3_bucket is required for the s3 store backend")


@dataclass(frozen=True)
class TableConfig:
    """Live machine-program table configuration."""
    backend: str = "memory"  # memory, redis
    redis_url: str = "redis://localhost:6379"
    redis_password: Optional[str] = None
    key_prefix: str = "flexo:machine_programs:"

    @classmethod
    def from_env(cls) -> 'TableConfig':
        """Create config from environment variables."""
        return cls(
            backend=os.getenv("MACHINE_TABLE_BACKEND", "memory"),
            redis_url=os.getenv("REDIS_URL", "redis://localhost:6379"),
            redis_password=os.getenv("REDIS_PASSWORD", None),
            key_prefix=os.getenv("MACHINE_TABLE_PREFIX", "flexo:machine_programs:"),
        )

    def __post_init__(self):
        """Validate configuration."""
        if self.backend not in {"memory", "redis"}:
            raise ValueError(f"Unknown table backend: {self.backend}")


@dataclass(frozen=True)
class SchedulerConfig:
    """Daily backup trigger configuration."""
    enabled: bool = True
    interval_hours: float = 24.0
    initial_delay_seconds: float = 300.0
    retention_days: int = 30  # 0 keeps daily backups forever

    @classmethod
    def from_env(cls) -> 'SchedulerConfig':
        """Create config from environment variables."""
        return cls(
            enabled=os.getenv("BACKUP_SCHEDULER_ENABLED", "true").lower() == "true",
            interval_hours=float(os.getenv("BACKUP_SCHEDULER_INTERVAL_HOURS", "24")),
            initial_delay_seconds=float(os.getenv("BACKUP_SCHEDULER_INITIAL_DELAY_SEC", "300")),
            retention_days=int(os.getenv("BACKUP_RETENTION_DAYS", "30")),
        )

    def __post_init__(self):
        """Validate configuration."""
        if self.interval_hours <= 0:
            raise ValueError(f"interval_hours must be positive, got {self.interval_hours}")
        if self.initial_delay_seconds < 0:
            raise ValueError(f"initial_delay_seconds must be non-negative, got {self.initial_delay_seconds}")
        if self.retention_days < 0:
            raise ValueError(f"retention_days must be non-negative, got {self.retention_days}")


@dataclass(frozen=True)
class BackupConfig:
    """Main backup engine configuration."""
    store: StoreConfig = field(default_factory=StoreConfig)
    table: TableConfig = field(default_factory=TableConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    max_import_bytes: int = 50 * 1024 * 1024

    @classmethod
    def from_env(cls) -> 'BackupConfig':
        """Create complete config from environment variables."""
        return cls(
            store=StoreConfig.from_env(),
            table=TableConfig.from_env(),
            scheduler=SchedulerConfig.from_env(),
            max_import_bytes=int(os.getenv("BACKUP_MAX_IMPORT_BYTES", str(50 * 1024 * 1024))),
        )

    def __post_init__(self):
        """Validate configuration."""
        if self.max_import_bytes <= 0:
            raise ValueError(f"max_import_bytes must be positive, got {self.max_import_bytes}")
