"""SQLite-backed tile store.

One database file holds every tile's markers, reviews and cursors. WAL mode
lets readers proceed while another tile is being written; writes to the same
tile are serialized with a per-tile lock. Snapshots are themselves SQLite
databases with ``markers`` and ``reviews`` tables and are installed in a
single transaction, so readers never observe a half-installed tile.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
import uuid
from collections.abc import Callable, Collection, Iterable
from pathlib import Path
from types import TracebackType
from typing import TypeVar

from tilesync.contracts.exceptions import StoreError
from tilesync.contracts.store import TileStore
from tilesync.contracts.sync import SyncRecord
from tilesync.contracts.tiles import BoundingBox, DataClass, TileCoordinate, TileCursors, tiles_for_bounding_box

_LOG = logging.getLogger(__name__)

T = TypeVar("T")

SCHEMA_VERSION = "2.0.0.0"
EMPTY_VERSION = "0.0.0.0"
DATABASE_NAME = "tilesync.db"

_TABLES = {DataClass.MARKERS: "markers", DataClass.REVIEWS: "reviews"}
_CURSOR_COLUMNS = {DataClass.MARKERS: "marker_last_modified", DataClass.REVIEWS: "review_last_modified"}

_SCHEMA = """
CREATE TABLE IF NOT EXISTS tiles (
    tile_x INTEGER NOT NULL,
    tile_y INTEGER NOT NULL,
    marker_last_modified TEXT,
    review_last_modified TEXT,
    PRIMARY KEY (tile_x, tile_y)
);

CREATE TABLE IF NOT EXISTS markers (
    id INTEGER PRIMARY KEY,
    tile_x INTEGER NOT NULL,
    tile_y INTEGER NOT NULL,
    last_modified TEXT NOT NULL,
    payload TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS reviews (
    id INTEGER PRIMARY KEY,
    tile_x INTEGER NOT NULL,
    tile_y INTEGER NOT NULL,
    last_modified TEXT NOT NULL,
    payload TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_markers_tile ON markers(tile_x, tile_y);
CREATE INDEX IF NOT EXISTS idx_reviews_tile ON reviews(tile_x, tile_y);
"""


class SqliteTileStore(TileStore):
    def __init__(self, data_dir: str | Path) -> None:
        self._data_dir = Path(data_dir)
        self._db_path = self._data_dir / DATABASE_NAME
        self._tile_locks: dict[TileCoordinate, asyncio.Lock] = {}

    @property
    def path(self) -> Path:
        return self._db_path

    async def __aenter__(self) -> SqliteTileStore:
        await self._run(self._init_schema)
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self._tile_locks.clear()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_version(self) -> str:
        def query(conn: sqlite3.Connection) -> str:
            row = conn.execute("SELECT EXISTS (SELECT 1 FROM tiles)").fetchone()
            return SCHEMA_VERSION if row[0] else EMPTY_VERSION

        return await self._run(query)

    async def get_tile_cursors(self, tile: TileCoordinate) -> TileCursors:
        def query(conn: sqlite3.Connection) -> TileCursors:
            row = conn.execute(
                "SELECT marker_last_modified, review_last_modified FROM tiles WHERE tile_x = ? AND tile_y = ?",
                (tile.tile_x, tile.tile_y),
            ).fetchone()
            if row is None:
                return TileCursors()
            return TileCursors(markers=row[0], reviews=row[1])

        return await self._run(query)

    async def known_tiles(self) -> dict[TileCoordinate, TileCursors]:
        def query(conn: sqlite3.Connection) -> dict[TileCoordinate, TileCursors]:
            rows = conn.execute(
                "SELECT tile_x, tile_y, marker_last_modified, review_last_modified FROM tiles ORDER BY tile_x, tile_y"
            ).fetchall()
            return {
                TileCoordinate(tile_x=x, tile_y=y): TileCursors(markers=markers, reviews=reviews)
                for x, y, markers, reviews in rows
            }

        return await self._run(query)

    async def get_tiles_by_bounding_box(self, box: BoundingBox) -> dict[TileCoordinate, TileCursors]:
        overlapping = tiles_for_bounding_box(box)
        known = await self.known_tiles()
        return {tile: cursors for tile, cursors in known.items() if tile in overlapping}

    async def record_count(self, tile: TileCoordinate, data_class: DataClass) -> int:
        table = _TABLES[data_class]

        def query(conn: sqlite3.Connection) -> int:
            row = conn.execute(
                f"SELECT COUNT(*) FROM {table} WHERE tile_x = ? AND tile_y = ?", (tile.tile_x, tile.tile_y)
            ).fetchone()
            return int(row[0])

        return await self._run(query)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def apply_sync_page(self, tile: TileCoordinate, data_class: DataClass, records: list[SyncRecord]) -> int:
        table = _TABLES[data_class]
        column = _CURSOR_COLUMNS[data_class]

        def write(conn: sqlite3.Connection) -> int:
            with conn:
                for record in records:
                    if record.deleted:
                        conn.execute(f"DELETE FROM {table} WHERE id = ?", (record.id,))
                        continue
                    conn.execute(
                        f"INSERT INTO {table} (id, tile_x, tile_y, last_modified, payload) VALUES (?, ?, ?, ?, ?) "
                        "ON CONFLICT(id) DO UPDATE SET tile_x = excluded.tile_x, tile_y = excluded.tile_y, "
                        "last_modified = excluded.last_modified, payload = excluded.payload",
                        (
                            record.id,
                            tile.tile_x,
                            tile.tile_y,
                            record.last_modified,
                            record.model_dump_json(by_alias=True),
                        ),
                    )
                if records:
                    newest = max(record.last_modified for record in records)
                    self._ensure_tile_row(conn, tile)
                    conn.execute(
                        f"UPDATE tiles SET {column} = ? "
                        f"WHERE tile_x = ? AND tile_y = ? AND ({column} IS NULL OR {column} < ?)",
                        (newest, tile.tile_x, tile.tile_y, newest),
                    )
            return len(records)

        async with self._tile_lock(tile):
            return await self._run(write)

    async def delete_tile(self, tile: TileCoordinate, data_classes: Iterable[DataClass]) -> None:
        classes = list(dict.fromkeys(data_classes))

        def write(conn: sqlite3.Connection) -> None:
            with conn:
                for data_class in classes:
                    conn.execute(
                        f"DELETE FROM {_TABLES[data_class]} WHERE tile_x = ? AND tile_y = ?",
                        (tile.tile_x, tile.tile_y),
                    )
                    conn.execute(
                        f"UPDATE tiles SET {_CURSOR_COLUMNS[data_class]} = NULL WHERE tile_x = ? AND tile_y = ?",
                        (tile.tile_x, tile.tile_y),
                    )
                conn.execute(
                    "DELETE FROM tiles WHERE tile_x = ? AND tile_y = ? "
                    "AND marker_last_modified IS NULL AND review_last_modified IS NULL",
                    (tile.tile_x, tile.tile_y),
                )

        async with self._tile_lock(tile):
            await self._run(write)
        _LOG.info("Deleted %s for tile %s", "/".join(classes), tile)

    async def install_tile(
        self, tile: TileCoordinate, snapshot: bytes, *, skip: Collection[DataClass] = ()
    ) -> None:
        installing = {data_class: table for data_class, table in _TABLES.items() if data_class not in skip}
        snapshot_path = self._data_dir / f"snapshot_{tile.tile_x}_{tile.tile_y}_{uuid.uuid4().hex}.db"

        def write(conn: sqlite3.Connection) -> None:
            conn.execute("ATTACH DATABASE ? AS snapshot", (str(snapshot_path),))
            try:
                rows = conn.execute("SELECT name FROM snapshot.sqlite_master WHERE type = 'table'").fetchall()
                tables = {row[0] for row in rows}
                missing = set(installing.values()).difference(tables)
                if missing:
                    raise StoreError(f"snapshot for tile {tile} lacks tables: {', '.join(sorted(missing))}")
                with conn:
                    self._ensure_tile_row(conn, tile)
                    for data_class, table in installing.items():
                        conn.execute(
                            f"DELETE FROM main.{table} WHERE tile_x = ? AND tile_y = ?", (tile.tile_x, tile.tile_y)
                        )
                        conn.execute(
                            f"INSERT OR REPLACE INTO main.{table} (id, tile_x, tile_y, last_modified, payload) "
                            f"SELECT id, ?, ?, last_modified, payload FROM snapshot.{table}",
                            (tile.tile_x, tile.tile_y),
                        )
                        newest = conn.execute(f"SELECT MAX(last_modified) FROM snapshot.{table}").fetchone()
                        conn.execute(
                            f"UPDATE tiles SET {_CURSOR_COLUMNS[data_class]} = ? WHERE tile_x = ? AND tile_y = ?",
                            (newest[0], tile.tile_x, tile.tile_y),
                        )
            finally:
                conn.execute("DETACH DATABASE snapshot")

        async with self._tile_lock(tile):
            try:
                await asyncio.to_thread(snapshot_path.write_bytes, snapshot)
                await self._run(write)
            except OSError as exc:
                raise StoreError(f"failed writing snapshot for tile {tile}: {exc}") from exc
            finally:
                snapshot_path.unlink(missing_ok=True)
        _LOG.info("Installed snapshot for tile %s", tile)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _tile_lock(self, tile: TileCoordinate) -> asyncio.Lock:
        return self._tile_locks.setdefault(tile, asyncio.Lock())

    @staticmethod
    def _ensure_tile_row(conn: sqlite3.Connection, tile: TileCoordinate) -> None:
        conn.execute(
            "INSERT INTO tiles (tile_x, tile_y) VALUES (?, ?) ON CONFLICT(tile_x, tile_y) DO NOTHING",
            (tile.tile_x, tile.tile_y),
        )

    def _init_schema(self, conn: sqlite3.Connection) -> None:
        conn.execute("PRAGMA journal_mode=WAL")
        conn.executescript(_SCHEMA)
        conn.commit()

    def _connect(self) -> sqlite3.Connection:
        self._data_dir.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.execute("PRAGMA synchronous=NORMAL")
        return conn

    async def _run(self, operation: Callable[[sqlite3.Connection], T]) -> T:
        def call() -> T:
            conn = self._connect()
            try:
                return operation(conn)
            finally:
                conn.close()

        try:
            return await asyncio.to_thread(call)
        except sqlite3.Error as exc:
            raise StoreError(f"tile store operation failed: {exc}") from exc
