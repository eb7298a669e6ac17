"""Tiles command: list locally stored tiles."""

from __future__ import annotations

import argparse

from tilesync import TileCoordinate, TileCursors


def format_tiles(tiles: dict[TileCoordinate, TileCursors]) -> str:
    if not tiles:
        return "no tiles stored"
    lines = [f"{'tile':<10} {'markers':<28} {'reviews':<28}"]
    for tile, cursors in tiles.items():
        lines.append(f"{str(tile):<10} {cursors.markers or '-':<28} {cursors.reviews or '-':<28}")
    return "\n".join(lines)


async def run_tiles(args: argparse.Namespace) -> dict[TileCoordinate, TileCursors]:
    import tilesync.cli as cli

    config = cli.load_config(args.config)
    async with cli.TileSync.from_config(config) as tile_sync:
        tiles = await tile_sync.known_tiles()

    print(cli._format_tiles(tiles))
    return tiles


__all__ = ["format_tiles", "run_tiles"]
