"""Public API surface for tilesync."""

__version__ = "1.0.0"

from tilesync.config import load_config
from tilesync.contracts.config import TileSyncConfig
from tilesync.contracts.exceptions import (
    ConfigError,
    IntegrityError,
    NegotiationError,
    RemoteServiceError,
    ResultSetTooLargeError,
    StoreError,
    TileSyncError,
)
from tilesync.contracts.remote import RemoteSyncService
from tilesync.contracts.store import TileStore
from tilesync.contracts.sync import CycleResult, ExportResult, TileStrategies, TileSyncResult
from tilesync.contracts.tiles import (
    BoundingBox,
    Coordinate,
    DataClass,
    SyncOutcome,
    SyncStrategy,
    TileCoordinate,
    TileCursors,
)
from tilesync.engine import SyncOrchestrator, SyncProgress
from tilesync.sdk import TileSync

__all__ = [
    "BoundingBox",
    "ConfigError",
    "Coordinate",
    "CycleResult",
    "DataClass",
    "ExportResult",
    "IntegrityError",
    "NegotiationError",
    "RemoteServiceError",
    "RemoteSyncService",
    "ResultSetTooLargeError",
    "StoreError",
    "SyncOrchestrator",
    "SyncOutcome",
    "SyncProgress",
    "SyncStrategy",
    "TileCoordinate",
    "TileCursors",
    "TileStore",
    "TileStrategies",
    "TileSync",
    "TileSyncConfig",
    "TileSyncError",
    "TileSyncResult",
    "load_config",
]
