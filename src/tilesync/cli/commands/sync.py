"""Sync command formatting."""

from __future__ import annotations

import argparse
from collections import Counter

from tilesync import CycleResult, SyncOutcome, TileSyncConfig
from tilesync.cli.progress.rich import RichSyncProgress


def format_sync_summary(result: CycleResult, config: TileSyncConfig) -> str:
    if result.skipped:
        return "\ntilesync - cycle skipped (another cycle is in progress)\n"

    outcomes = Counter(sync_result.outcome for sync_result in result.sync_results)
    installed = sum(1 for export_result in result.export_results.values() if export_result.installed)
    failed_exports = len(result.export_results) - installed

    lines = [
        "",
        "tilesync - sync complete",
        "",
        f"  Store:     {config.data_dir}",
        f"  Tiles:     {len(result.strategies)} negotiated",
        "",
        "  Synced:    {} ok, {} failed, {} redirected to export".format(
            outcomes[SyncOutcome.SUCCESS],
            outcomes[SyncOutcome.FAIL],
            outcomes[SyncOutcome.EXPORT_REQUIRED],
        ),
    ]
    if result.deleted:
        lines.append(f"  Deleted:   {len(result.deleted)}")
    if result.export_results:
        lines.append(f"  Exported:  {installed} installed, {failed_exports} failed")
    if not result.strategies:
        lines.append("  Status:    nothing to sync")

    records = sum(sync_result.records for sync_result in result.sync_results)
    lines.append(f"  Records:   {records}")
    if result.finished_at is not None:
        lines.append(f"  Duration:  {(result.finished_at - result.started_at).total_seconds():.1f}s")
    lines.append("")
    return "\n".join(lines)


async def run_sync(args: argparse.Namespace) -> CycleResult:
    import tilesync.cli as cli

    config = cli.load_config(args.config)

    if not args.verbose:
        with RichSyncProgress() as progress:
            async with cli.TileSync.from_config(config, progress=progress) as tile_sync:
                result = await tile_sync.sync()
    else:
        async with cli.TileSync.from_config(config) as tile_sync:
            result = await tile_sync.sync()

    print(cli._format_summary(result, config))
    return result


__all__ = ["format_sync_summary", "run_sync"]
