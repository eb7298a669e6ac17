"""Incremental sync of one tile and data class."""

from __future__ import annotations

import asyncio
import logging

from tilesync.contracts.exceptions import RemoteServiceError, ResultSetTooLargeError, StoreError
from tilesync.contracts.remote import RemoteSyncService
from tilesync.contracts.store import TileStore
from tilesync.contracts.sync import TileSyncResult
from tilesync.contracts.tiles import DataClass, SyncOutcome, TileCoordinate

_LOG = logging.getLogger(__name__)

# Maximum records the service returns per page; a full page means more may remain.
PAGE_SIZE = 100


class TileSyncExecutor:
    """Pages through the incremental sync endpoint until the tile/data class is caught up.

    Holds no per-call state, so distinct (tile, data class) pairs may run concurrently.
    """

    def __init__(
        self,
        remote: RemoteSyncService,
        store: TileStore,
        *,
        max_pages: int = 1000,
        timeout: float | None = None,
    ) -> None:
        self._remote = remote
        self._store = store
        self._max_pages = max_pages
        self._timeout = timeout

    async def sync_class(
        self, tile: TileCoordinate, data_class: DataClass, cursor: str | None = None
    ) -> TileSyncResult:
        result = TileSyncResult(tile=tile, data_class=data_class, outcome=SyncOutcome.FAIL)
        try:
            async with asyncio.timeout(self._timeout):
                await self._sync_pages(result, cursor)
        except ResultSetTooLargeError:
            _LOG.info("Tile %s %s overflowed incremental sync; export required", tile, data_class)
            result.outcome = SyncOutcome.EXPORT_REQUIRED
        except TimeoutError:
            _LOG.warning("Tile %s %s sync timed out after %s seconds", tile, data_class, self._timeout)
            result.outcome = SyncOutcome.FAIL
            result.error = f"timed out after {self._timeout} seconds"
        except (RemoteServiceError, StoreError) as exc:
            _LOG.warning("Tile %s %s sync failed: %s", tile, data_class, exc)
            result.outcome = SyncOutcome.FAIL
            result.error = str(exc)
        return result

    async def _sync_pages(self, result: TileSyncResult, cursor: str | None) -> None:
        tile, data_class = result.tile, result.data_class
        if cursor is None:
            cursor = (await self._store.get_tile_cursors(tile)).get(data_class)
            if cursor is None:
                _LOG.warning("Tile %s %s has no cursor; it must be negotiated before syncing", tile, data_class)
                result.error = "no local cursor"
                return

        result.cursor_before = cursor
        result.cursor_after = cursor
        while True:
            records = await self._remote.sync_page(tile, data_class, cursor)
            count = await self._store.apply_sync_page(tile, data_class, records)
            next_cursor = (await self._store.get_tile_cursors(tile)).get(data_class)

            result.pages += 1
            result.records += count
            if next_cursor is not None:
                result.cursor_after = next_cursor
            _LOG.debug("Tile %s %s page %d: %d records, cursor %s", tile, data_class, result.pages, count, next_cursor)

            if count < PAGE_SIZE:
                break
            if next_cursor is None or next_cursor == cursor:
                # The service would answer the same cursor with the same page.
                _LOG.warning("Tile %s %s made no progress past cursor %s; stopping", tile, data_class, cursor)
                break
            if result.pages >= self._max_pages:
                _LOG.warning("Tile %s %s reached %d pages; resuming next cycle", tile, data_class, self._max_pages)
                break
            cursor = next_cursor

        result.outcome = SyncOutcome.SUCCESS
