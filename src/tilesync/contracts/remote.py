"""Remote sync service adapter contract."""

from __future__ import annotations

from abc import ABC, abstractmethod
from types import TracebackType

from tilesync.contracts.sync import ExportManifestEntry, SyncRecord, SyncStatusRequest, SyncStatusResponse
from tilesync.contracts.tiles import BoundingBox, DataClass, TileCoordinate


class RemoteSyncService(ABC):
    """Network surface of the authoritative service.

    Implementations raise :class:`~tilesync.contracts.exceptions.RemoteServiceError`
    on failure and :class:`~tilesync.contracts.exceptions.ResultSetTooLargeError`
    when an incremental page would overflow.
    """

    @abstractmethod
    async def __aenter__(self) -> RemoteSyncService: ...  # pragma: no cover

    @abstractmethod
    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None: ...  # pragma: no cover

    @abstractmethod
    async def get_sync_status(
        self, database_version: str, requests: list[SyncStatusRequest]
    ) -> list[SyncStatusResponse]: ...  # pragma: no cover

    @abstractmethod
    async def get_tiles(self, bounding_boxes: list[BoundingBox]) -> list[TileCoordinate]: ...  # pragma: no cover

    @abstractmethod
    async def sync_page(
        self, tile: TileCoordinate, data_class: DataClass, last_modified_after: str | None
    ) -> list[SyncRecord]: ...  # pragma: no cover

    @abstractmethod
    async def get_exports(self, tiles: list[TileCoordinate]) -> list[ExportManifestEntry]: ...  # pragma: no cover

    @abstractmethod
    async def download(self, url: str) -> bytes: ...  # pragma: no cover
