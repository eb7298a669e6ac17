"""httpx async transport wrapper that retries transient sync service failures."""

from __future__ import annotations

import asyncio
import logging
import random
import time
from collections.abc import Collection
from dataclasses import dataclass, field
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime

import httpx

_LOG = logging.getLogger(__name__)

TRANSIENT_STATUS_CODES = frozenset({429, 502, 503, 504})
DEFAULT_RETRY_AFTER = 1.0


@dataclass
class _HostGate:
    """Shared 429 pause for every request to one host."""

    open: asyncio.Event = field(default_factory=asyncio.Event)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    closed_until: float = 0.0

    def __post_init__(self) -> None:
        self.open.set()


def parse_retry_after(response: httpx.Response) -> float:
    """Seconds to wait according to ``Retry-After``, in either delta or HTTP-date form."""
    raw = response.headers.get("Retry-After")
    if raw is None:
        return DEFAULT_RETRY_AFTER
    try:
        return max(0.0, float(raw))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(raw)
    except (TypeError, ValueError):
        return DEFAULT_RETRY_AFTER
    if when.tzinfo is None:
        when = when.replace(tzinfo=UTC)
    return max(0.0, (when - datetime.now(UTC)).total_seconds())


class RetryingTransport(httpx.AsyncBaseTransport):
    """Retries transient failures of the wrapped transport.

    Statuses in *retry_statuses* and transport errors are retried up to
    *max_retries* times with capped exponential backoff. A 429 closes the
    gate of the request's host until ``Retry-After`` elapses, so concurrent
    tile workers hitting the same host wait together. Any other status,
    including the 303 overflow answer of the sync endpoints, is returned as is.
    """

    def __init__(
        self,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        max_retries: int = 3,
        retry_statuses: Collection[int] = TRANSIENT_STATUS_CODES,
        backoff_cap: float = 4.0,
    ) -> None:
        self._transport = transport or httpx.AsyncHTTPTransport()
        self._max_retries = max_retries
        self._retry_statuses = frozenset(retry_statuses)
        self._backoff_cap = backoff_cap
        self._gates: dict[str, _HostGate] = {}

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        gate = self._gate(request.url.host)
        attempt = 0
        while True:
            await gate.open.wait()
            last_attempt = attempt >= self._max_retries

            try:
                response = await self._transport.handle_async_request(request)
            except httpx.TransportError as exc:
                if last_attempt:
                    raise
                _LOG.debug("%s %s failed: %s", request.method, request.url.path, exc)
                await self._sleep_backoff(attempt)
                attempt += 1
                continue

            if response.status_code not in self._retry_statuses or last_attempt:
                return response

            retry_after = parse_retry_after(response)
            await response.aclose()
            if response.status_code == 429:
                await self._close_gate(gate, request.url.host, retry_after)
            elif retry_after > 0:
                await asyncio.sleep(retry_after)
            await self._sleep_backoff(attempt)
            attempt += 1

    async def aclose(self) -> None:
        await self._transport.aclose()

    def _gate(self, host: str) -> _HostGate:
        gate = self._gates.get(host)
        if gate is None:
            gate = self._gates[host] = _HostGate()
        return gate

    async def _close_gate(self, gate: _HostGate, host: str, retry_after: float) -> None:
        async with gate.lock:
            until = time.monotonic() + retry_after
            if until <= gate.closed_until:
                return
            gate.closed_until = until
            gate.open.clear()

        _LOG.warning("Rate limited by %s; pausing requests for %.1f seconds", host, retry_after)
        await asyncio.sleep(max(0.0, gate.closed_until - time.monotonic()))

        async with gate.lock:
            if time.monotonic() >= gate.closed_until:
                gate.open.set()

    async def _sleep_backoff(self, attempt: int) -> None:
        seconds = min(self._backoff_cap, float(2**attempt)) + random.uniform(0.0, 0.25)
        _LOG.warning("Retrying sync service request (attempt %d)", attempt + 1)
        await asyncio.sleep(seconds)
