"""Public contracts for tilesync."""

from tilesync.contracts.config import MIN_UPDATE_INTERVAL_MINUTES, TileSyncConfig
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
from tilesync.contracts.sync import (
    CycleResult,
    ExportFile,
    ExportManifestEntry,
    ExportResult,
    SyncRecord,
    SyncStatusRequest,
    SyncStatusResponse,
    TileStrategies,
    TileSyncResult,
)
from tilesync.contracts.tiles import (
    GRID_SIZE,
    BoundingBox,
    Coordinate,
    DataClass,
    SyncOutcome,
    SyncStrategy,
    TileCoordinate,
    TileCursors,
    tile_for_coordinate,
    tiles_for_bounding_box,
)

__all__ = [
    "GRID_SIZE",
    "MIN_UPDATE_INTERVAL_MINUTES",
    "BoundingBox",
    "ConfigError",
    "Coordinate",
    "CycleResult",
    "DataClass",
    "ExportFile",
    "ExportManifestEntry",
    "ExportResult",
    "IntegrityError",
    "NegotiationError",
    "RemoteServiceError",
    "RemoteSyncService",
    "ResultSetTooLargeError",
    "StoreError",
    "SyncOutcome",
    "SyncRecord",
    "SyncStatusRequest",
    "SyncStatusResponse",
    "SyncStrategy",
    "TileCoordinate",
    "TileCursors",
    "TileStore",
    "TileStrategies",
    "TileSyncConfig",
    "TileSyncError",
    "TileSyncResult",
    "tile_for_coordinate",
    "tiles_for_bounding_box",
]
