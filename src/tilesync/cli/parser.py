"""CLI parser construction."""

from __future__ import annotations

import argparse
from importlib.metadata import PackageNotFoundError, version


def _package_version() -> str:
    try:
        return version("tilesync")
    except PackageNotFoundError:
        return "0.0.0"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tilesync")
    parser.add_argument("--version", action="version", version=f"%(prog)s {_package_version()}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    sync_parser = subparsers.add_parser("sync", help="Run one synchronization cycle")
    sync_parser.add_argument("--config", default="./tilesync.json", help="Path to tilesync.json")
    sync_parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    watch_parser = subparsers.add_parser("watch", help="Sync now and then on the configured interval")
    watch_parser.add_argument("--config", default="./tilesync.json", help="Path to tilesync.json")
    watch_parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    tiles_parser = subparsers.add_parser("tiles", help="List locally stored tiles and their cursors")
    tiles_parser.add_argument("--config", default="./tilesync.json", help="Path to tilesync.json")
    tiles_parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    return parser


__all__ = ["build_parser"]
