"""Configuration contracts."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field, field_validator

from tilesync.contracts.tiles import BoundingBox

# Scheduled cycles may not run more often than this.
MIN_UPDATE_INTERVAL_MINUTES = 15


class TileSyncConfig(BaseModel):
    api_base_url: str = "https://activecaptain.garmin.com/community/thirdparty"
    api_key: str | None = None
    data_dir: Path = Path("tilesync-data")
    bounding_boxes: list[BoundingBox] = Field(default_factory=list)
    update_interval_minutes: int = Field(default=MIN_UPDATE_INTERVAL_MINUTES, ge=MIN_UPDATE_INTERVAL_MINUTES)
    max_pages_per_tile: int = Field(default=1000, ge=1)
    export_batch_size: int = Field(default=100, ge=1, le=100)
    tile_timeout_seconds: float | None = Field(default=None, gt=0)
    request_timeout_seconds: float = Field(default=30.0, gt=0)
    max_retries: int = Field(default=3, ge=0, le=10)

    model_config = {"frozen": True}

    @field_validator("api_base_url")
    @classmethod
    def validate_api_base_url(cls, value: str) -> str:
        value = value.strip().rstrip("/")
        if not value.startswith(("http://", "https://")):
            raise ValueError("api_base_url must be an http(s) URL")
        return value
