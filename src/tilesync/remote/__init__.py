"""Remote sync service adapters."""

from tilesync.remote.http import HttpRemoteSyncService

__all__ = ["HttpRemoteSyncService"]
