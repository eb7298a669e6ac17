"""Wire and result contracts for a synchronization cycle."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from tilesync.contracts.tiles import DataClass, SyncOutcome, SyncStrategy, TileCoordinate


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class SyncStatusRequest(_WireModel):
    tile_x: int = Field(alias="tileX")
    tile_y: int = Field(alias="tileY")
    poi_date_last_modified: str | None = Field(default=None, alias="poiDateLastModified")
    review_date_last_modified: str | None = Field(default=None, alias="reviewDateLastModified")

    @property
    def tile(self) -> TileCoordinate:
        return TileCoordinate(tile_x=self.tile_x, tile_y=self.tile_y)


class SyncStatusResponse(_WireModel):
    tile_x: int = Field(alias="tileX")
    tile_y: int = Field(alias="tileY")
    poi_update_type: SyncStrategy = Field(alias="poiUpdateType")
    review_update_type: SyncStrategy = Field(alias="reviewUpdateType")

    @property
    def tile(self) -> TileCoordinate:
        return TileCoordinate(tile_x=self.tile_x, tile_y=self.tile_y)


class TileStrategies(BaseModel):
    model_config = ConfigDict(frozen=True)

    markers: SyncStrategy = SyncStrategy.NONE
    reviews: SyncStrategy = SyncStrategy.NONE

    def get(self, data_class: DataClass) -> SyncStrategy:
        return self.markers if data_class is DataClass.MARKERS else self.reviews


class ExportFile(_WireModel):
    file_size: int = Field(alias="fileSize")
    md5_hash: str = Field(alias="md5Hash")
    url: str


class ExportManifestEntry(_WireModel):
    tile_x: int = Field(alias="tileX")
    tile_y: int = Field(alias="tileY")
    zip: ExportFile | None = None
    gzip: ExportFile

    @property
    def tile(self) -> TileCoordinate:
        return TileCoordinate(tile_x=self.tile_x, tile_y=self.tile_y)


class SyncRecord(_WireModel):
    """One marker or review from an incremental sync page.

    Fields beyond the identity and timestamp are kept as the record payload.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: int
    last_modified: str = Field(alias="lastModified")
    deleted: bool = False


class TileSyncResult(BaseModel):
    tile: TileCoordinate
    data_class: DataClass
    outcome: SyncOutcome
    pages: int = 0
    records: int = 0
    cursor_before: str | None = None
    cursor_after: str | None = None
    error: str | None = None


class ExportResult(BaseModel):
    tile: TileCoordinate
    installed: bool
    error: str | None = None


class CycleResult(BaseModel):
    started_at: datetime
    finished_at: datetime | None = None
    skipped: bool = False
    strategies: dict[TileCoordinate, TileStrategies] = Field(default_factory=dict)
    sync_results: list[TileSyncResult] = Field(default_factory=list)
    deleted: list[tuple[TileCoordinate, DataClass]] = Field(default_factory=list)
    export_results: dict[TileCoordinate, ExportResult] = Field(default_factory=dict)

    @property
    def export_set(self) -> set[TileCoordinate]:
        return set(self.export_results)

    @property
    def failed(self) -> list[TileSyncResult | ExportResult]:
        failures: list[TileSyncResult | ExportResult] = [
            result for result in self.sync_results if result.outcome is SyncOutcome.FAIL
        ]
        failures.extend(result for result in self.export_results.values() if not result.installed)
        return failures
