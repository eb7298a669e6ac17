"""Bulk snapshot export: manifest, download, verification, install."""

from __future__ import annotations

import asyncio
import gzip
import hashlib
import logging
import zlib
from collections.abc import Collection, Iterable, Mapping

from tilesync.contracts.exceptions import IntegrityError, RemoteServiceError, StoreError
from tilesync.contracts.remote import RemoteSyncService
from tilesync.contracts.store import TileStore
from tilesync.contracts.sync import ExportFile, ExportManifestEntry, ExportResult
from tilesync.contracts.tiles import DataClass, TileCoordinate
from tilesync.engine.progress import NullSyncProgress, SyncProgress

_LOG = logging.getLogger(__name__)


def verify_snapshot(data: bytes, export_file: ExportFile) -> None:
    """Raise :class:`IntegrityError` unless *data* matches the declared size and MD5 hash."""
    if len(data) != export_file.file_size:
        raise IntegrityError(
            f"file size mismatch: expected {export_file.file_size}, got {len(data)}",
            expected=str(export_file.file_size),
            actual=str(len(data)),
        )
    actual_hash = hashlib.md5(data).hexdigest()
    if actual_hash != export_file.md5_hash.lower():
        raise IntegrityError(
            f"MD5 hash mismatch: expected {export_file.md5_hash}, got {actual_hash}",
            expected=export_file.md5_hash,
            actual=actual_hash,
        )


class ExportPipeline:
    """Downloads, verifies and installs full tile snapshots.

    Tiles are processed concurrently and independently: one tile's failure is
    reported for that tile only and never cancels its siblings.
    """

    def __init__(
        self,
        remote: RemoteSyncService,
        store: TileStore,
        *,
        batch_size: int = 100,
        timeout: float | None = None,
        progress: SyncProgress | None = None,
    ) -> None:
        self._remote = remote
        self._store = store
        self._batch_size = batch_size
        self._timeout = timeout
        self._progress: SyncProgress = progress or NullSyncProgress()

    async def export(
        self,
        tiles: Iterable[TileCoordinate],
        *,
        skip: Mapping[TileCoordinate, Collection[DataClass]] | None = None,
    ) -> dict[TileCoordinate, ExportResult]:
        """Install snapshots for *tiles*; classes listed in *skip* for a tile are not installed."""
        skip = skip or {}
        ordered = sorted(set(tiles), key=lambda tile: (tile.tile_x, tile.tile_y))
        results: dict[TileCoordinate, ExportResult] = {}
        for start in range(0, len(ordered), self._batch_size):
            chunk = ordered[start : start + self._batch_size]
            results.update(await self._export_chunk(chunk, skip))
        return results

    async def _export_chunk(
        self, tiles: list[TileCoordinate], skip: Mapping[TileCoordinate, Collection[DataClass]]
    ) -> dict[TileCoordinate, ExportResult]:
        try:
            manifest = await self._remote.get_exports(tiles)
        except RemoteServiceError as exc:
            _LOG.warning("Export manifest request failed for %d tiles: %s", len(tiles), exc)
            return {tile: self._finish(ExportResult(tile=tile, installed=False, error=str(exc))) for tile in tiles}

        entries: dict[TileCoordinate, ExportManifestEntry] = {}
        for entry in manifest:
            if entry.tile in entries or entry.tile not in tiles:
                _LOG.debug("Ignoring manifest entry for tile %s", entry.tile)
                continue
            entries[entry.tile] = entry

        results: dict[TileCoordinate, ExportResult] = {}
        tasks: dict[TileCoordinate, asyncio.Task[ExportResult]] = {}
        async with asyncio.TaskGroup() as tg:
            for tile in tiles:
                entry = entries.get(tile)
                if entry is None:
                    _LOG.warning("No export manifest entry for tile %s", tile)
                    missing = ExportResult(tile=tile, installed=False, error="missing from manifest")
                    results[tile] = self._finish(missing)
                    continue
                tasks[tile] = tg.create_task(self._export_tile(entry, skip.get(tile, ())))

        for tile, task in tasks.items():
            results[tile] = task.result()
        return results

    async def _export_tile(self, entry: ExportManifestEntry, skip: Collection[DataClass]) -> ExportResult:
        tile = entry.tile
        try:
            async with asyncio.timeout(self._timeout):
                _LOG.info("Downloading %s", entry.gzip.url)
                data = await self._remote.download(entry.gzip.url)
                verify_snapshot(data, entry.gzip)
                snapshot = gzip.decompress(data)
                _LOG.info("Installing tile %s", tile)
                await self._store.install_tile(tile, snapshot, skip=skip)
        except IntegrityError as exc:
            _LOG.warning("Rejected snapshot for tile %s: %s", tile, exc)
            return self._finish(ExportResult(tile=tile, installed=False, error=str(exc)))
        except TimeoutError:
            _LOG.warning("Export of tile %s timed out after %s seconds", tile, self._timeout)
            return self._finish(
                ExportResult(tile=tile, installed=False, error=f"timed out after {self._timeout} seconds")
            )
        except (OSError, EOFError, zlib.error) as exc:
            _LOG.warning("Failed to decompress snapshot for tile %s: %s", tile, exc)
            return self._finish(ExportResult(tile=tile, installed=False, error=f"decompress failed: {exc}"))
        except (RemoteServiceError, StoreError) as exc:
            _LOG.warning("Export of tile %s failed: %s", tile, exc)
            return self._finish(ExportResult(tile=tile, installed=False, error=str(exc)))

        return self._finish(ExportResult(tile=tile, installed=True))

    def _finish(self, result: ExportResult) -> ExportResult:
        self._progress.tile_exported(result)
        self._progress.item_done("Export")
        return result
