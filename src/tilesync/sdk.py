"""SDK composition root for tilesync."""

from __future__ import annotations

from types import TracebackType

from tilesync.contracts.config import TileSyncConfig
from tilesync.contracts.exceptions import ConfigError
from tilesync.contracts.remote import RemoteSyncService
from tilesync.contracts.store import TileStore
from tilesync.contracts.sync import CycleResult
from tilesync.contracts.tiles import BoundingBox, TileCoordinate, TileCursors
from tilesync.engine.orchestrator import SyncOrchestrator
from tilesync.engine.progress import SyncProgress
from tilesync.remote.http import HttpRemoteSyncService
from tilesync.store.sqlite import SqliteTileStore


class TileSync:
    """tilesync SDK public API.

    Owns the remote client, the local store and the orchestrator for the
    lifetime of an ``async with`` block::

        async with TileSync.from_config(config) as tile_sync:
            result = await tile_sync.sync()
    """

    def __init__(
        self,
        *,
        remote: RemoteSyncService,
        store: TileStore,
        config: TileSyncConfig,
        progress: SyncProgress | None = None,
    ) -> None:
        self._remote = remote
        self._store = store
        self._config = config
        self._orchestrator = SyncOrchestrator(remote, store, config, progress=progress)

    @classmethod
    def from_config(cls, config: TileSyncConfig, *, progress: SyncProgress | None = None) -> TileSync:
        if not config.api_key:
            raise ConfigError("api_key is required to reach the sync service")
        remote = HttpRemoteSyncService(
            base_url=config.api_base_url,
            api_key=config.api_key,
            timeout=config.request_timeout_seconds,
            max_retries=config.max_retries,
        )
        return cls(remote=remote, store=SqliteTileStore(config.data_dir), config=config, progress=progress)

    @property
    def orchestrator(self) -> SyncOrchestrator:
        return self._orchestrator

    async def __aenter__(self) -> TileSync:
        await self._store.__aenter__()
        try:
            await self._remote.__aenter__()
        except BaseException as exc:
            await self._store.__aexit__(type(exc), exc, exc.__traceback__)
            raise
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self._orchestrator.stop_auto_update()
        try:
            await self._remote.__aexit__(exc_type, exc_val, exc_tb)
        finally:
            await self._store.__aexit__(exc_type, exc_val, exc_tb)

    def set_bounding_boxes(self, bounding_boxes: list[BoundingBox]) -> None:
        self._orchestrator.set_bounding_boxes(bounding_boxes)

    async def sync(self) -> CycleResult:
        """Run one synchronization cycle."""
        return await self._orchestrator.run_cycle()

    async def watch(self) -> None:
        """Sync now, then every ``update_interval_minutes`` until cancelled."""
        await self._orchestrator.run_auto_update(run_immediately=True)

    async def known_tiles(self) -> dict[TileCoordinate, TileCursors]:
        return await self._store.known_tiles()
