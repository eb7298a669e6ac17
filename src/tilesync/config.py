"""Config loading and validation."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from tilesync.contracts.config import TileSyncConfig
from tilesync.contracts.exceptions import ConfigError

API_KEY_ENV = "TILESYNC_API_KEY"


def _resolve_path(value: Path, *, base_dir: Path) -> Path:
    if value.is_absolute():
        return value
    return (base_dir / value).resolve()


def load_config(path: str | Path) -> TileSyncConfig:
    """Load config from JSON, resolving ``data_dir`` against the config directory.

    ``api_key`` falls back to the ``TILESYNC_API_KEY`` environment variable.
    """
    config_path = Path(path).expanduser().resolve()
    config_dir = config_path.parent

    try:
        raw_payload: Any = json.loads(config_path.read_text(encoding="utf-8"))
        parsed = TileSyncConfig.model_validate(raw_payload)
    except OSError as exc:
        raise ConfigError(f"failed reading config file: {config_path}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"invalid JSON in config file: {config_path}") from exc
    except ValidationError as exc:
        raise ConfigError(f"invalid config: {exc}") from exc

    api_key = (parsed.api_key or os.getenv(API_KEY_ENV) or "").strip()
    if not api_key:
        raise ConfigError(f"api_key is not set in {config_path} and {API_KEY_ENV} is empty")

    return parsed.model_copy(
        update={
            "api_key": api_key,
            "data_dir": _resolve_path(parsed.data_dir, base_dir=config_dir),
        }
    )
