"""Application configuration settings."""

from typing import Optional
from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LoggingSettings(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Logging level")
    format: str = Field(default="console", description="Logging format (json, console)")
    file_path: Optional[str] = Field(default=None, description="Optional rotating log file")


class ListingSettings(BaseModel):
    """Remote listing configuration."""

    page_delay_seconds: float = Field(default=0.1, ge=0, description="Throttle between listing pages")
    remote_trash_prefix: str = Field(default=".bucketsync-trash/", description="Where remote deletes are moved")


class TransferSettings(BaseModel):
    """Action execution configuration."""

    concurrency_limit: int = Field(default=1, ge=1, description="Simultaneous in-flight actions")
    retry_delay_seconds: float = Field(default=1.0, ge=0, description="Delay before the single retry")
    chunk_size: int = Field(default=64 * 1024, ge=1024, description="Read size for hashing and streaming")


class StorageSettings(BaseModel):
    """Where persisted documents live."""

    data_dir: str = Field(default="~/.bucketsync", description="Directory for JSON documents")
    plans_file: str = Field(default="sync-plans.json")
    instances_file: str = Field(default="s3-config.json")

    def plans_path(self) -> Path:
        return Path(self.data_dir).expanduser() / self.plans_file

    def instances_path(self) -> Path:
        return Path(self.data_dir).expanduser() / self.instances_file


class CacheSettings(BaseModel):
    """Cache sizes and lifetimes."""

    listing_cache_size: int = Field(default=32, ge=1, description="Max cached remote listings")
    client_cache_size: int = Field(default=50, ge=1, description="Max cached object store clients")
    client_cache_ttl_seconds: float = Field(default=60.0, gt=0, description="Client cache lifetime")


class BucketSyncSettings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="BUCKETSYNC_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    name: str = Field(default="bucketsync")
    version: str = Field(default="0.1.0")

    # Sub-settings
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    listing: ListingSettings = Field(default_factory=ListingSettings)
    transfer: TransferSettings = Field(default_factory=TransferSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)


# Global settings instance
settings = BucketSyncSettings()


def get_settings() -> BucketSyncSettings:
    """Get application settings."""
    return settings


def reload_settings() -> BucketSyncSettings:
    """Re-read settings from the environment."""
    global settings
    settings = BucketSyncSettings()
    return settings
