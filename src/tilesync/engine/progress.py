"""Progress reporting protocol for the sync cycle.

The orchestrator emits phase lifecycle events and per-tile results; consumers
(e.g. the CLI's Rich progress bar) implement ``SyncProgress`` to render
feedback or refresh whatever shows the synchronized data.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from tilesync.contracts.sync import ExportResult, TileSyncResult


class SyncProgress(ABC):
    """Observer interface for sync cycle events."""

    @abstractmethod
    def phase_start(self, phase: str, total: int | None = None) -> None:
        """A phase is starting. *total* is ``None`` for indeterminate phases."""
        ...  # pragma: no cover

    @abstractmethod
    def item_done(self, phase: str) -> None:
        """One unit of work within *phase* has completed."""
        ...  # pragma: no cover

    @abstractmethod
    def phase_done(self, phase: str) -> None:
        """The *phase* has finished successfully."""
        ...  # pragma: no cover

    @abstractmethod
    def phase_error(self, phase: str, error: BaseException) -> None:
        """The *phase* was interrupted by *error*."""
        ...  # pragma: no cover

    def tile_synced(self, result: TileSyncResult) -> None:
        """An incremental sync of one tile/data class finished."""

    def tile_exported(self, result: ExportResult) -> None:
        """A snapshot export of one tile finished."""


class NullSyncProgress(SyncProgress):
    """No-op implementation used when no progress display is requested."""

    def phase_start(self, phase: str, total: int | None = None) -> None:
        pass

    def item_done(self, phase: str) -> None:
        pass

    def phase_done(self, phase: str) -> None:
        pass

    def phase_error(self, phase: str, error: BaseException) -> None:
        pass
