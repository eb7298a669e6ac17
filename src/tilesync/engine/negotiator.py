"""Per-tile sync strategy negotiation."""

from __future__ import annotations

import logging

from tilesync.contracts.exceptions import NegotiationError, RemoteServiceError, StoreError
from tilesync.contracts.remote import RemoteSyncService
from tilesync.contracts.store import TileStore
from tilesync.contracts.sync import SyncStatusRequest, TileStrategies
from tilesync.contracts.tiles import BoundingBox, TileCoordinate, TileCursors

_LOG = logging.getLogger(__name__)


class SyncStatusNegotiator:
    """Asks the remote service which strategy applies to each tile and data class."""

    def __init__(self, remote: RemoteSyncService, store: TileStore) -> None:
        self._remote = remote
        self._store = store

    async def build_requests(self, bounding_boxes: list[BoundingBox]) -> list[SyncStatusRequest]:
        """Build one request per tile of interest.

        Tiles already known locally are sent with their cursors. When none is
        known yet, the remote tile discovery call supplies the tiles.
        """
        known: dict[TileCoordinate, TileCursors] = {}
        try:
            for box in bounding_boxes:
                known.update(await self._store.get_tiles_by_bounding_box(box))
        except StoreError as exc:
            raise NegotiationError(f"failed reading local tiles: {exc}") from exc

        if known:
            return [
                SyncStatusRequest(
                    tile_x=tile.tile_x,
                    tile_y=tile.tile_y,
                    poi_date_last_modified=cursors.markers,
                    review_date_last_modified=cursors.reviews,
                )
                for tile, cursors in sorted(known.items(), key=lambda pair: (pair[0].tile_x, pair[0].tile_y))
            ]

        try:
            discovered = await self._remote.get_tiles(bounding_boxes)
        except RemoteServiceError as exc:
            raise NegotiationError(f"tile discovery failed: {exc}") from exc
        _LOG.debug("No local tiles; discovered %d remote tiles", len(discovered))
        return [SyncStatusRequest(tile_x=tile.tile_x, tile_y=tile.tile_y) for tile in dict.fromkeys(discovered)]

    async def negotiate(
        self, requests: list[SyncStatusRequest], local_version: str
    ) -> dict[TileCoordinate, TileStrategies]:
        if not requests:
            return {}

        try:
            responses = await self._remote.get_sync_status(local_version, requests)
        except RemoteServiceError as exc:
            raise NegotiationError(f"sync status request failed: {exc}") from exc

        requested = {request.tile for request in requests}
        strategies: dict[TileCoordinate, TileStrategies] = {}
        for response in responses:
            tile = response.tile
            if tile not in requested:
                _LOG.warning("Ignoring sync status for unrequested tile %s", tile)
                continue
            if tile in strategies:
                _LOG.warning("Duplicate sync status for tile %s; keeping the last one", tile)
            strategies[tile] = TileStrategies(markers=response.poi_update_type, reviews=response.review_update_type)

        for tile in requested.difference(strategies):
            _LOG.warning("No sync status returned for tile %s; skipping it this cycle", tile)
            strategies[tile] = TileStrategies()

        return strategies
