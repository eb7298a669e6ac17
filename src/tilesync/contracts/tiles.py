"""Tile, geography and strategy contracts."""

from __future__ import annotations

import math
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

# Tiles per axis of the global grid.
GRID_SIZE = 16


class DataClass(StrEnum):
    MARKERS = "markers"
    REVIEWS = "reviews"


class SyncStrategy(StrEnum):
    SYNC = "Sync"
    EXPORT = "Export"
    DELETE = "Delete"
    NONE = "None"


class SyncOutcome(StrEnum):
    SUCCESS = "success"
    FAIL = "fail"
    EXPORT_REQUIRED = "export_required"


class TileCoordinate(BaseModel):
    """One cell of the global tiling scheme; the unit of synchronization."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    tile_x: int = Field(alias="tileX")
    tile_y: int = Field(alias="tileY")

    def __str__(self) -> str:
        return f"({self.tile_x},{self.tile_y})"


class Coordinate(BaseModel):
    model_config = ConfigDict(frozen=True)

    latitude: float = Field(ge=-90.0, le=90.0)
    longitude: float = Field(ge=-180.0, le=180.0)


class BoundingBox(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    northeast_corner: Coordinate = Field(alias="northeastCorner")
    southwest_corner: Coordinate = Field(alias="southwestCorner")

    @property
    def north(self) -> float:
        return self.northeast_corner.latitude

    @property
    def east(self) -> float:
        return self.northeast_corner.longitude

    @property
    def south(self) -> float:
        return self.southwest_corner.latitude

    @property
    def west(self) -> float:
        return self.southwest_corner.longitude

    @classmethod
    def from_edges(cls, *, north: float, east: float, south: float, west: float) -> BoundingBox:
        return cls(
            northeast_corner=Coordinate(latitude=north, longitude=east),
            southwest_corner=Coordinate(latitude=south, longitude=west),
        )


class TileCursors(BaseModel):
    """Last-modified cursors of one tile; ``None`` means the class was never synced."""

    markers: str | None = None
    reviews: str | None = None

    def get(self, data_class: DataClass) -> str | None:
        return self.markers if data_class is DataClass.MARKERS else self.reviews


def _axis_index(value: float, low: float, span: float) -> int:
    index = math.floor((value - low) / span * GRID_SIZE)
    return min(max(index, 0), GRID_SIZE - 1)


def tile_for_coordinate(latitude: float, longitude: float) -> TileCoordinate:
    return TileCoordinate(
        tile_x=_axis_index(longitude, -180.0, 360.0),
        tile_y=_axis_index(latitude, -90.0, 180.0),
    )


def tiles_for_bounding_box(box: BoundingBox) -> set[TileCoordinate]:
    """Return every grid tile the box overlaps.

    A box whose west edge is east of its east edge crosses the antimeridian.
    """
    y_range = range(_axis_index(box.south, -90.0, 180.0), _axis_index(box.north, -90.0, 180.0) + 1)
    west_x = _axis_index(box.west, -180.0, 360.0)
    east_x = _axis_index(box.east, -180.0, 360.0)
    if box.west <= box.east:
        x_values = list(range(west_x, east_x + 1))
    else:
        x_values = list(range(west_x, GRID_SIZE)) + list(range(0, east_x + 1))
    return {TileCoordinate(tile_x=x, tile_y=y) for x in x_values for y in y_range}
