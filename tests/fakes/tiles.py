"""Tile helpers shared by the tests."""

from __future__ import annotations

from tilesync.contracts.tiles import BoundingBox, TileCoordinate

WORLD = BoundingBox.from_edges(north=90.0, east=180.0, south=-90.0, west=-180.0)


def tile(x: int, y: int) -> TileCoordinate:
    return TileCoordinate(tile_x=x, tile_y=y)
