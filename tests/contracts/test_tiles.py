from __future__ import annotations

import pytest
from pydantic import ValidationError

from tilesync.contracts.tiles import (
    GRID_SIZE,
    BoundingBox,
    Coordinate,
    DataClass,
    TileCoordinate,
    TileCursors,
    tile_for_coordinate,
    tiles_for_bounding_box,
)


def test_tile_coordinate_accepts_wire_aliases_and_is_hashable() -> None:
    a = TileCoordinate.model_validate({"tileX": 3, "tileY": 4})
    b = TileCoordinate(tile_x=3, tile_y=4)

    assert a == b
    assert {a, b} == {b}
    assert str(a) == "(3,4)"
    assert a.model_dump(by_alias=True) == {"tileX": 3, "tileY": 4}


def test_tile_coordinate_is_immutable() -> None:
    coordinate = TileCoordinate(tile_x=1, tile_y=2)

    with pytest.raises(ValidationError):
        coordinate.tile_x = 5  # type: ignore[misc]


@pytest.mark.parametrize(
    ("latitude", "longitude", "expected"),
    [
        (-90.0, -180.0, (0, 0)),
        (0.0, 0.0, (8, 8)),
        (90.0, 180.0, (GRID_SIZE - 1, GRID_SIZE - 1)),
        (25.77, -80.19, (4, 10)),
    ],
)
def test_tile_for_coordinate(latitude: float, longitude: float, expected: tuple[int, int]) -> None:
    result = tile_for_coordinate(latitude, longitude)

    assert (result.tile_x, result.tile_y) == expected


def test_coordinate_rejects_out_of_range_latitude() -> None:
    with pytest.raises(ValidationError):
        Coordinate(latitude=91.0, longitude=0.0)


def test_bounding_box_edges_and_aliases() -> None:
    box = BoundingBox.model_validate(
        {
            "northeastCorner": {"latitude": 10.0, "longitude": 20.0},
            "southwestCorner": {"latitude": -5.0, "longitude": 1.0},
        }
    )

    assert (box.north, box.east, box.south, box.west) == (10.0, 20.0, -5.0, 1.0)
    assert box == BoundingBox.from_edges(north=10.0, east=20.0, south=-5.0, west=1.0)


def test_tiles_for_small_box_stays_in_one_tile() -> None:
    box = BoundingBox.from_edges(north=1.0, east=1.0, south=0.5, west=0.5)

    assert tiles_for_bounding_box(box) == {TileCoordinate(tile_x=8, tile_y=8)}


def test_tiles_for_box_spanning_several_tiles() -> None:
    box = BoundingBox.from_edges(north=12.0, east=23.0, south=-12.0, west=-1.0)

    tiles = tiles_for_bounding_box(box)

    assert {(t.tile_x, t.tile_y) for t in tiles} == {(x, y) for x in (7, 8, 9) for y in (6, 7, 8, 9)}


def test_tiles_for_box_crossing_antimeridian_wraps() -> None:
    box = BoundingBox.from_edges(north=1.0, east=-170.0, south=0.5, west=170.0)

    tiles = tiles_for_bounding_box(box)

    assert {t.tile_x for t in tiles} == {0, GRID_SIZE - 1}
    assert {t.tile_y for t in tiles} == {8}


def test_world_box_covers_entire_grid() -> None:
    box = BoundingBox.from_edges(north=90.0, east=180.0, south=-90.0, west=-180.0)

    assert len(tiles_for_bounding_box(box)) == GRID_SIZE * GRID_SIZE


def test_tile_cursors_get_by_data_class() -> None:
    cursors = TileCursors(markers="2024-01-01T00:00:00Z")

    assert cursors.get(DataClass.MARKERS) == "2024-01-01T00:00:00Z"
    assert cursors.get(DataClass.REVIEWS) is None
