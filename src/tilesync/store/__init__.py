"""Local tile store implementations."""

from tilesync.store.sqlite import EMPTY_VERSION, SCHEMA_VERSION, SqliteTileStore

__all__ = ["EMPTY_VERSION", "SCHEMA_VERSION", "SqliteTileStore"]
