"""Tests for RetryingTransport retry, backoff and rate-limit handling."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from email.utils import format_datetime
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from tilesync.remote._retrying_transport import RetryingTransport, parse_retry_after

_BACKOFF = "tilesync.remote._retrying_transport.RetryingTransport._sleep_backoff"
_CLOSE_GATE = "tilesync.remote._retrying_transport.RetryingTransport._close_gate"


def _request() -> httpx.Request:
    return httpx.Request("GET", "https://sync.example.test/api/v2/points-of-interest/sync")


def _inner(*responses: httpx.Response | Exception) -> AsyncMock:
    inner = AsyncMock(spec=httpx.AsyncBaseTransport)
    inner.handle_async_request.side_effect = list(responses)
    return inner


def test_defaults_wrap_real_transport() -> None:
    transport = RetryingTransport()

    assert transport._max_retries == 3
    assert isinstance(transport._transport, httpx.AsyncHTTPTransport)


@pytest.mark.asyncio
async def test_success_is_returned_without_retry() -> None:
    inner = _inner(httpx.Response(200))

    response = await RetryingTransport(transport=inner).handle_async_request(_request())

    assert response.status_code == 200
    assert inner.handle_async_request.await_count == 1


@pytest.mark.asyncio
@patch(_BACKOFF, new_callable=AsyncMock)
async def test_result_set_too_large_is_never_retried(mock_backoff: AsyncMock) -> None:
    inner = _inner(httpx.Response(303), httpx.Response(200))

    response = await RetryingTransport(transport=inner, max_retries=3).handle_async_request(_request())

    assert response.status_code == 303
    assert inner.handle_async_request.await_count == 1
    mock_backoff.assert_not_awaited()


@pytest.mark.asyncio
@patch(_BACKOFF, new_callable=AsyncMock)
async def test_transport_error_is_retried_then_succeeds(mock_backoff: AsyncMock) -> None:
    inner = _inner(httpx.ConnectError("connection reset"), httpx.Response(200))

    response = await RetryingTransport(transport=inner, max_retries=2).handle_async_request(_request())

    assert response.status_code == 200
    mock_backoff.assert_awaited_once_with(0)


@pytest.mark.asyncio
@patch(_BACKOFF, new_callable=AsyncMock)
async def test_transport_error_raises_when_retries_exhausted(mock_backoff: AsyncMock) -> None:
    inner = AsyncMock(spec=httpx.AsyncBaseTransport)
    inner.handle_async_request.side_effect = httpx.ReadTimeout("slow")

    with pytest.raises(httpx.ReadTimeout):
        await RetryingTransport(transport=inner, max_retries=2).handle_async_request(_request())

    assert inner.handle_async_request.await_count == 3
    assert mock_backoff.await_count == 2


@pytest.mark.asyncio
@patch("asyncio.sleep", new_callable=AsyncMock)
@patch(_BACKOFF, new_callable=AsyncMock)
async def test_server_error_is_retried_after_retry_after(mock_backoff: AsyncMock, mock_sleep: AsyncMock) -> None:
    first = httpx.Response(503, headers={"Retry-After": "3"})
    inner = _inner(first, httpx.Response(200))

    response = await RetryingTransport(transport=inner, max_retries=2).handle_async_request(_request())

    assert response.status_code == 200
    assert first.is_closed
    mock_sleep.assert_awaited_once_with(3.0)


@pytest.mark.asyncio
@patch("asyncio.sleep", new_callable=AsyncMock)
@patch(_BACKOFF, new_callable=AsyncMock)
async def test_server_error_returned_when_retries_exhausted(mock_backoff: AsyncMock, mock_sleep: AsyncMock) -> None:
    inner = _inner(httpx.Response(502), httpx.Response(504))

    response = await RetryingTransport(transport=inner, max_retries=1).handle_async_request(_request())

    assert response.status_code == 504
    assert inner.handle_async_request.await_count == 2


@pytest.mark.asyncio
@patch(_BACKOFF, new_callable=AsyncMock)
@patch(_CLOSE_GATE, new_callable=AsyncMock)
async def test_rate_limit_closes_host_gate_then_retries(mock_close: AsyncMock, mock_backoff: AsyncMock) -> None:
    limited = httpx.Response(429, headers={"Retry-After": "2"})
    inner = _inner(limited, httpx.Response(200))

    response = await RetryingTransport(transport=inner, max_retries=2).handle_async_request(_request())

    assert response.status_code == 200
    assert limited.is_closed
    _, host, retry_after = mock_close.await_args.args
    assert (host, retry_after) == ("sync.example.test", 2.0)
    mock_backoff.assert_awaited_once_with(0)


@pytest.mark.asyncio
@patch(_BACKOFF, new_callable=AsyncMock)
async def test_custom_retry_statuses_replace_defaults(mock_backoff: AsyncMock) -> None:
    inner = _inner(httpx.Response(503), httpx.Response(200))

    response = await RetryingTransport(transport=inner, retry_statuses={500}).handle_async_request(_request())

    assert response.status_code == 503
    mock_backoff.assert_not_awaited()


@pytest.mark.parametrize(
    ("headers", "expected"),
    [
        ({"Retry-After": "5"}, 5.0),
        ({}, 1.0),
        ({"Retry-After": "soon"}, 1.0),
        ({"Retry-After": "-5"}, 0.0),
        ({"Retry-After": "Wed, 21 Oct 2015 07:28:00 GMT"}, 0.0),
    ],
)
def test_parse_retry_after(headers: dict[str, str], expected: float) -> None:
    assert parse_retry_after(httpx.Response(429, headers=headers)) == expected


def test_parse_retry_after_future_http_date() -> None:
    when = datetime.now(UTC) + timedelta(seconds=120)
    response = httpx.Response(429, headers={"Retry-After": format_datetime(when, usegmt=True)})

    assert 100.0 < parse_retry_after(response) <= 120.0


@pytest.mark.asyncio
@patch("asyncio.sleep", new_callable=AsyncMock)
@patch("random.uniform", return_value=0.1)
async def test_backoff_grows_and_caps(mock_uniform: AsyncMock, mock_sleep: AsyncMock) -> None:
    transport = RetryingTransport(backoff_cap=4.0)

    await transport._sleep_backoff(1)
    mock_sleep.assert_awaited_with(2.1)

    await transport._sleep_backoff(10)
    mock_sleep.assert_awaited_with(4.1)


@pytest.mark.asyncio
@patch("asyncio.sleep", new_callable=AsyncMock)
async def test_closed_gate_reopens_after_pause(mock_sleep: AsyncMock) -> None:
    transport = RetryingTransport(max_retries=1)
    gate = transport._gate("sync.example.test")

    await transport._close_gate(gate, "sync.example.test", 0.0)

    assert gate.open.is_set()


def test_gates_are_kept_per_host() -> None:
    transport = RetryingTransport()

    api = transport._gate("sync.example.test")

    assert transport._gate("sync.example.test") is api
    assert transport._gate("files.example.test") is not api


@pytest.mark.asyncio
async def test_aclose_delegates_to_inner_transport() -> None:
    inner = AsyncMock(spec=httpx.AsyncBaseTransport)

    await RetryingTransport(transport=inner).aclose()

    inner.aclose.assert_awaited_once()
