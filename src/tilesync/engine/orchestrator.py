"""Top-level coordinator of one synchronization cycle."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from datetime import UTC, datetime
from enum import StrEnum

from tilesync.contracts.config import TileSyncConfig
from tilesync.contracts.exceptions import NegotiationError, StoreError, TileSyncError
from tilesync.contracts.remote import RemoteSyncService
from tilesync.contracts.store import TileStore
from tilesync.contracts.sync import CycleResult, ExportResult, TileStrategies
from tilesync.contracts.tiles import BoundingBox, DataClass, SyncOutcome, SyncStrategy, TileCoordinate
from tilesync.engine.executor import TileSyncExecutor
from tilesync.engine.exporter import ExportPipeline
from tilesync.engine.negotiator import SyncStatusNegotiator
from tilesync.engine.progress import NullSyncProgress, SyncProgress

_LOG = logging.getLogger(__name__)


class CycleState(StrEnum):
    IDLE = "idle"
    NEGOTIATING = "negotiating"
    SYNCING = "syncing"
    EXPORTING = "exporting"


def _now() -> datetime:
    return datetime.now(UTC)


def _tile_key(tile: TileCoordinate) -> tuple[int, int]:
    return (tile.tile_x, tile.tile_y)


class SyncOrchestrator:
    """Runs negotiate -> fan-out sync -> aggregate export set -> export.

    Only one cycle runs at a time; a trigger arriving while a cycle is in
    flight is coalesced into a skipped result.
    """

    def __init__(
        self,
        remote: RemoteSyncService,
        store: TileStore,
        config: TileSyncConfig,
        *,
        progress: SyncProgress | None = None,
    ) -> None:
        self._store = store
        self._config = config
        self._progress: SyncProgress = progress or NullSyncProgress()
        self._bounding_boxes: list[BoundingBox] = list(config.bounding_boxes)

        self._negotiator = SyncStatusNegotiator(remote, store)
        self._executor = TileSyncExecutor(
            remote,
            store,
            max_pages=config.max_pages_per_tile,
            timeout=config.tile_timeout_seconds,
        )
        self._exporter = ExportPipeline(
            remote,
            store,
            batch_size=config.export_batch_size,
            timeout=config.tile_timeout_seconds,
            progress=self._progress,
        )

        self._state = CycleState.IDLE
        self._cycle_lock = asyncio.Lock()
        self._auto_update_task: asyncio.Task[None] | None = None

    @property
    def state(self) -> CycleState:
        return self._state

    @property
    def bounding_boxes(self) -> list[BoundingBox]:
        return list(self._bounding_boxes)

    def set_bounding_boxes(self, bounding_boxes: list[BoundingBox]) -> None:
        self._bounding_boxes = list(bounding_boxes)

    async def run_cycle(self) -> CycleResult:
        if self._cycle_lock.locked():
            _LOG.debug("Sync cycle already in progress (%s); coalescing trigger", self._state)
            now = _now()
            return CycleResult(started_at=now, finished_at=now, skipped=True)

        async with self._cycle_lock:
            try:
                return await self._run_cycle()
            finally:
                self._state = CycleState.IDLE

    async def _run_cycle(self) -> CycleResult:
        result = CycleResult(started_at=_now())
        bounding_boxes = list(self._bounding_boxes)
        if not bounding_boxes:
            _LOG.debug("No area of interest configured; nothing to sync")
            result.finished_at = _now()
            return result

        result.strategies = await self._negotiate(bounding_boxes)
        export_set, deletions = await self._sync(result)

        if export_set:
            result.export_results = await self._export(export_set, deletions)
            installed = sum(1 for export in result.export_results.values() if export.installed)
            _LOG.info("Update complete, %d of %d exports installed", installed, len(export_set))
        else:
            _LOG.info("Update complete, no exports")

        result.finished_at = _now()
        return result

    async def _negotiate(self, bounding_boxes: list[BoundingBox]) -> dict[TileCoordinate, TileStrategies]:
        self._state = CycleState.NEGOTIATING
        self._progress.phase_start("Negotiate")
        try:
            requests = await self._negotiator.build_requests(bounding_boxes)
            try:
                local_version = await self._store.get_version()
            except StoreError as exc:
                raise NegotiationError(f"failed reading local store version: {exc}") from exc
            strategies = await self._negotiator.negotiate(requests, local_version)
            self._progress.phase_done("Negotiate")
            return strategies
        except BaseException as exc:
            self._progress.phase_error("Negotiate", exc)
            raise

    async def _sync(self, result: CycleResult) -> tuple[set[TileCoordinate], dict[TileCoordinate, list[DataClass]]]:
        self._state = CycleState.SYNCING
        export_set: set[TileCoordinate] = set()
        deletions: dict[TileCoordinate, list[DataClass]] = {}
        sync_pairs: list[tuple[TileCoordinate, DataClass]] = []

        for tile in sorted(result.strategies, key=_tile_key):
            strategies = result.strategies[tile]
            for data_class in DataClass:
                strategy = strategies.get(data_class)
                if strategy is SyncStrategy.SYNC:
                    sync_pairs.append((tile, data_class))
                elif strategy is SyncStrategy.EXPORT:
                    export_set.add(tile)
                elif strategy is SyncStrategy.DELETE:
                    deletions.setdefault(tile, []).append(data_class)

        for tile, data_classes in deletions.items():
            try:
                await self._store.delete_tile(tile, data_classes)
            except StoreError as exc:
                _LOG.warning("Failed to delete %s for tile %s: %s", "/".join(data_classes), tile, exc)
                continue
            result.deleted.extend((tile, data_class) for data_class in data_classes)

        self._progress.phase_start("Sync", total=len(sync_pairs))
        try:
            async with asyncio.TaskGroup() as tg:
                for tile, data_class in sync_pairs:
                    tg.create_task(self._sync_pair(tile, data_class, result, export_set))
            self._progress.phase_done("Sync")
        except BaseException as exc:
            self._progress.phase_error("Sync", exc)
            raise

        result.sync_results.sort(key=lambda sync: (_tile_key(sync.tile), sync.data_class.value))
        return export_set, deletions

    async def _sync_pair(
        self,
        tile: TileCoordinate,
        data_class: DataClass,
        result: CycleResult,
        export_set: set[TileCoordinate],
    ) -> None:
        sync_result = await self._executor.sync_class(tile, data_class)
        result.sync_results.append(sync_result)
        if sync_result.outcome is SyncOutcome.EXPORT_REQUIRED:
            export_set.add(tile)
        self._progress.tile_synced(sync_result)
        self._progress.item_done("Sync")

    async def _export(
        self, export_set: set[TileCoordinate], deletions: dict[TileCoordinate, list[DataClass]]
    ) -> dict[TileCoordinate, ExportResult]:
        self._state = CycleState.EXPORTING
        self._progress.phase_start("Export", total=len(export_set))
        try:
            # A snapshot must not bring back a class deleted earlier in this cycle.
            results = await self._exporter.export(export_set, skip=deletions)
            self._progress.phase_done("Export")
            return results
        except BaseException as exc:
            self._progress.phase_error("Export", exc)
            raise

    # ------------------------------------------------------------------
    # Scheduled updates
    # ------------------------------------------------------------------

    @property
    def auto_update_running(self) -> bool:
        return self._auto_update_task is not None and not self._auto_update_task.done()

    def start_auto_update(self, *, run_immediately: bool = False) -> asyncio.Task[None]:
        if self._auto_update_task is None or self._auto_update_task.done():
            self._auto_update_task = asyncio.create_task(self.run_auto_update(run_immediately=run_immediately))
        return self._auto_update_task

    async def stop_auto_update(self) -> None:
        task, self._auto_update_task = self._auto_update_task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def run_auto_update(self, *, run_immediately: bool = False) -> None:
        """Run cycles every ``update_interval_minutes`` until cancelled."""
        if run_immediately:
            await self._scheduled_cycle()
        while True:
            await self._wait_interval()
            await self._scheduled_cycle()

    async def _scheduled_cycle(self) -> None:
        try:
            await self.run_cycle()
        except TileSyncError as exc:
            _LOG.warning("Failed to auto-update: %s", exc)

    async def _wait_interval(self) -> None:
        await asyncio.sleep(self._config.update_interval_minutes * 60.0)
