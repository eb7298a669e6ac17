"""Watch command: sync on a fixed interval until interrupted."""

from __future__ import annotations

import argparse
import sys


async def run_watch(args: argparse.Namespace) -> None:
    import tilesync.cli as cli

    config = cli.load_config(args.config)
    print(
        f"tilesync - watching {len(config.bounding_boxes)} bounding box(es) "
        f"every {config.update_interval_minutes} minute(s)",
        file=sys.stderr,
    )
    async with cli.TileSync.from_config(config) as tile_sync:
        await tile_sync.watch()


__all__ = ["run_watch"]
