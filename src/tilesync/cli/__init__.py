"""Command-line interface for tilesync."""

from __future__ import annotations

import asyncio as asyncio
import logging as logging

from tilesync import TileSync as TileSync
from tilesync import load_config as load_config
from tilesync.cli.app import main as main
from tilesync.cli.commands import sync as sync_command
from tilesync.cli.commands import tiles as tiles_command
from tilesync.cli.commands import watch as watch_command
from tilesync.cli.parser import _package_version as _package_version
from tilesync.cli.parser import build_parser as build_parser

_format_summary = sync_command.format_sync_summary
_format_tiles = tiles_command.format_tiles

_run_sync = sync_command.run_sync
_run_watch = watch_command.run_watch
_run_tiles = tiles_command.run_tiles
