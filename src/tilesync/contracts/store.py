"""Local tile store contract."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Collection, Iterable
from types import TracebackType

from tilesync.contracts.sync import SyncRecord
from tilesync.contracts.tiles import BoundingBox, DataClass, TileCoordinate, TileCursors


class TileStore(ABC):
    """Persistent replica keyed by tile coordinate.

    Writes to the same tile are serialized by the store; reads may proceed while
    unrelated tiles are written. Failures raise
    :class:`~tilesync.contracts.exceptions.StoreError`.
    """

    @abstractmethod
    async def __aenter__(self) -> TileStore: ...  # pragma: no cover

    @abstractmethod
    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None: ...  # pragma: no cover

    @abstractmethod
    async def get_version(self) -> str: ...  # pragma: no cover

    @abstractmethod
    async def get_tile_cursors(self, tile: TileCoordinate) -> TileCursors:
        """Return the tile's cursors; both are ``None`` for an unknown tile."""
        ...  # pragma: no cover

    @abstractmethod
    async def get_tiles_by_bounding_box(self, box: BoundingBox) -> dict[TileCoordinate, TileCursors]:
        """Known tiles overlapping *box* with their cursors."""
        ...  # pragma: no cover

    @abstractmethod
    async def known_tiles(self) -> dict[TileCoordinate, TileCursors]: ...  # pragma: no cover

    @abstractmethod
    async def apply_sync_page(self, tile: TileCoordinate, data_class: DataClass, records: list[SyncRecord]) -> int:
        """Upsert one page and advance the class cursor; returns the number of records processed."""
        ...  # pragma: no cover

    @abstractmethod
    async def delete_tile(self, tile: TileCoordinate, data_classes: Iterable[DataClass]) -> None:
        """Remove the records and cursors of *data_classes* for *tile*."""
        ...  # pragma: no cover

    @abstractmethod
    async def install_tile(
        self, tile: TileCoordinate, snapshot: bytes, *, skip: Collection[DataClass] = ()
    ) -> None:
        """Replace the tile's data with a decompressed snapshot, atomically.

        Classes in *skip* are left untouched: no records are copied for them and
        their cursors are not set from the snapshot.
        """
        ...  # pragma: no cover
