"""Configuration for FastAPI application."""

import json
from typing import List, Optional, Union

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",  # Ignore extra environment variables
    )

    # API Configuration
    api_prefix: str = "/api"
    api_title: str = "FlexoAPP Machine Backup API"
    api_version: str = "1.0.0"
    allowed_origins: Union[str, List[str]] = ["*"]

    @field_validator("allowed_origins", mode="before")
    @classmethod
    def parse_allowed_origins(cls, v):
        """Parse allowed_origins from string or list."""
        if isinstance(v, str):
            # If it's a JSON array string, parse it
            if v.startswith("["):
                try:
                    return json.loads(v)
                except json.JSONDecodeError:
                    return [v]
            # Single origin string
            return [v]
        return v

    # Uploads larger than this are rejected before reaching the import codec
    max_upload_bytes: Optional[int] = None

    # Backend overrides (fall back to BackupConfig.from_env when unset)
    backup_store_backend: Optional[str] = None
    backup_dir: Optional[str] = None
    machine_table_backend: Optional[str] = None
    redis_url: Optional[str] = None
    redis_password: Optional[str] = None

    # Scheduler
    backup_scheduler_enabled: bool = True


settings = Settings()
