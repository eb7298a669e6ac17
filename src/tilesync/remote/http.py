"""HTTP adapter for the community points-of-interest sync API."""

from __future__ import annotations

import logging
from types import TracebackType
from typing import Any, TypeVar

import httpx
from pydantic import TypeAdapter, ValidationError

from tilesync.contracts.exceptions import RemoteServiceError, ResultSetTooLargeError
from tilesync.contracts.remote import RemoteSyncService
from tilesync.contracts.sync import ExportManifestEntry, SyncRecord, SyncStatusRequest, SyncStatusResponse
from tilesync.contracts.tiles import BoundingBox, DataClass, TileCoordinate
from tilesync.remote._retrying_transport import RetryingTransport

_LOG = logging.getLogger(__name__)

T = TypeVar("T")

_SYNC_PATHS = {
    DataClass.MARKERS: "/api/v2/points-of-interest/sync",
    DataClass.REVIEWS: "/api/v2/reviews/sync",
}
_SYNC_STATUS_PATH = "/api/v2.1/points-of-interest/sync-status"
_TILES_PATH = "/api/v2/points-of-interest/tiles"
_EXPORT_PATH = "/api/v2/points-of-interest/export"

# The sync endpoints answer 303 when the delta is too large for incremental paging.
_RESULT_SET_TOO_LARGE = 303

_STATUS_ADAPTER = TypeAdapter(list[SyncStatusResponse])
_TILES_ADAPTER = TypeAdapter(list[TileCoordinate])
_RECORDS_ADAPTER = TypeAdapter(list[SyncRecord])
_EXPORTS_ADAPTER = TypeAdapter(list[ExportManifestEntry])


class HttpRemoteSyncService(RemoteSyncService):
    """Talks to the sync API over httpx.

    API calls carry the ``apikey`` header; snapshot downloads go through a
    separate plain client since their URLs point at file storage.
    """

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str,
        timeout: float = 30.0,
        max_retries: int = 3,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        self._max_retries = max_retries
        self._transport = transport

        self._client: httpx.AsyncClient | None = None
        self._download_client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> HttpRemoteSyncService:
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={"apikey": self._api_key, "Accept": "application/json"},
            timeout=self._timeout,
            follow_redirects=False,
            transport=RetryingTransport(transport=self._transport, max_retries=self._max_retries),
        )
        self._download_client = httpx.AsyncClient(
            timeout=self._timeout,
            follow_redirects=True,
            transport=RetryingTransport(transport=self._transport, max_retries=self._max_retries),
        )
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        for client in (self._client, self._download_client):
            if client is not None:
                await client.aclose()
        self._client = None
        self._download_client = None

    async def get_sync_status(
        self, database_version: str, requests: list[SyncStatusRequest]
    ) -> list[SyncStatusResponse]:
        payload = [request.model_dump(mode="json", by_alias=True) for request in requests]
        response = await self._send(
            "POST", _SYNC_STATUS_PATH, params={"databaseVersion": database_version}, json=payload
        )
        return self._decode(_STATUS_ADAPTER, response)

    async def get_tiles(self, bounding_boxes: list[BoundingBox]) -> list[TileCoordinate]:
        payload = [box.model_dump(mode="json", by_alias=True) for box in bounding_boxes]
        response = await self._send("POST", _TILES_PATH, json=payload)
        return self._decode(_TILES_ADAPTER, response)

    async def sync_page(
        self, tile: TileCoordinate, data_class: DataClass, last_modified_after: str | None
    ) -> list[SyncRecord]:
        params: dict[str, str | int] = {"tileX": tile.tile_x, "tileY": tile.tile_y}
        if last_modified_after is not None:
            params["lastModifiedAfter"] = last_modified_after
        response = await self._send("GET", _SYNC_PATHS[data_class], params=params)
        return self._decode(_RECORDS_ADAPTER, response)

    async def get_exports(self, tiles: list[TileCoordinate]) -> list[ExportManifestEntry]:
        payload = [tile.model_dump(mode="json", by_alias=True) for tile in tiles]
        response = await self._send("POST", _EXPORT_PATH, json=payload)
        return self._decode(_EXPORTS_ADAPTER, response)

    async def download(self, url: str) -> bytes:
        client = self._require_client(self._download_client)
        try:
            response = await client.get(url)
        except httpx.HTTPError as exc:
            raise RemoteServiceError(f"download failed: {url}: {exc}") from exc
        if response.is_error:
            raise RemoteServiceError(
                f"download failed: {url}: HTTP {response.status_code}", status_code=response.status_code
            )
        return response.content

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        client = self._require_client(self._client)
        _LOG.debug("%s %s", method, path)
        try:
            response = await client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise RemoteServiceError(f"{method} {path} failed: {exc}") from exc

        if response.status_code == _RESULT_SET_TOO_LARGE:
            raise ResultSetTooLargeError(f"{method} {path}: result set too large")
        if not response.is_success:
            raise RemoteServiceError(
                f"{method} {path} failed: HTTP {response.status_code}", status_code=response.status_code
            )
        return response

    @staticmethod
    def _decode(adapter: TypeAdapter[T], response: httpx.Response) -> T:
        try:
            return adapter.validate_json(response.content)
        except ValidationError as exc:
            raise RemoteServiceError(f"malformed response from {response.request.url.path}: {exc}") from exc

    @staticmethod
    def _require_client(client: httpx.AsyncClient | None) -> httpx.AsyncClient:
        if client is None:
            raise RemoteServiceError("sync service client is not open; use 'async with'")
        return client
