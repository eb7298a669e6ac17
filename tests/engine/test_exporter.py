from __future__ import annotations

import hashlib
import json

import pytest

from tilesync.contracts.exceptions import IntegrityError, RemoteServiceError
from tilesync.contracts.sync import ExportFile, ExportManifestEntry, ExportResult
from tilesync.contracts.tiles import DataClass
from tilesync.engine.exporter import ExportPipeline, verify_snapshot
from tilesync.engine.progress import NullSyncProgress
from tests.fakes.remote import FakeRemoteSyncService, export_entry
from tests.fakes.store import FakeTileStore
from tests.fakes.tiles import tile


def _snapshot(marker_id: int, last_modified: str) -> bytes:
    document = {"markers": [{"id": marker_id, "lastModified": last_modified}], "reviews": []}
    return json.dumps(document).encode()


class _RecordingProgress(NullSyncProgress):
    def __init__(self) -> None:
        self.exported: list[ExportResult] = []
        self.items: list[str] = []

    def item_done(self, phase: str) -> None:
        self.items.append(phase)

    def tile_exported(self, result: ExportResult) -> None:
        self.exported.append(result)


def test_verify_snapshot_accepts_matching_file() -> None:
    data = b"snapshot-bytes"
    export_file = ExportFile(file_size=len(data), md5_hash=hashlib.md5(data).hexdigest().upper(), url="u")

    verify_snapshot(data, export_file)


def test_verify_snapshot_rejects_size_mismatch() -> None:
    export_file = ExportFile(file_size=99, md5_hash="abc123", url="u")

    with pytest.raises(IntegrityError, match="file size mismatch") as exc_info:
        verify_snapshot(b"short", export_file)

    assert exc_info.value.expected == "99"
    assert exc_info.value.actual == "5"


def test_verify_snapshot_rejects_hash_mismatch() -> None:
    data = b"snapshot-bytes"
    export_file = ExportFile(file_size=len(data), md5_hash="abc123", url="u")

    with pytest.raises(IntegrityError, match="MD5 hash mismatch") as exc_info:
        verify_snapshot(data, export_file)

    assert exc_info.value.actual == hashlib.md5(data).hexdigest()


@pytest.mark.asyncio
async def test_export_installs_verified_snapshots(remote: FakeRemoteSyncService, store: FakeTileStore) -> None:
    entry, data = export_entry(tile(3, 4), _snapshot(1, "2024-06-01T00:00:00Z"))
    remote.add_export(tile(3, 4), entry, data)

    results = await ExportPipeline(remote, store).export([tile(3, 4)])

    assert results == {tile(3, 4): ExportResult(tile=tile(3, 4), installed=True)}
    assert store.record_ids(tile(3, 4), DataClass.MARKERS) == {1}
    assert (await store.get_tile_cursors(tile(3, 4))).markers == "2024-06-01T00:00:00Z"


@pytest.mark.asyncio
async def test_export_passes_skipped_classes_per_tile(remote: FakeRemoteSyncService, store: FakeTileStore) -> None:
    for target in (tile(3, 4), tile(5, 6)):
        entry, data = export_entry(target, _snapshot(1, "2024-06-01T00:00:00Z"))
        remote.add_export(target, entry, data)

    await ExportPipeline(remote, store).export([tile(3, 4), tile(5, 6)], skip={tile(5, 6): [DataClass.MARKERS]})

    assert store.skipped == {tile(3, 4): set(), tile(5, 6): {DataClass.MARKERS}}
    assert store.record_ids(tile(3, 4), DataClass.MARKERS) == {1}
    assert store.record_ids(tile(5, 6), DataClass.MARKERS) == set()


@pytest.mark.asyncio
async def test_hash_mismatch_rejects_only_that_tile(remote: FakeRemoteSyncService, store: FakeTileStore) -> None:
    store.seed(tile(3, 4), markers="2024-01-01T00:00:00Z")
    bad_entry, bad_data = export_entry(tile(3, 4), _snapshot(1, "2024-06-01T00:00:00Z"), md5_hash="abc123")
    good_entry, good_data = export_entry(tile(5, 6), _snapshot(2, "2024-06-02T00:00:00Z"))
    remote.add_export(tile(3, 4), bad_entry, bad_data)
    remote.add_export(tile(5, 6), good_entry, good_data)
    progress = _RecordingProgress()

    results = await ExportPipeline(remote, store, progress=progress).export([tile(5, 6), tile(3, 4)])

    assert results[tile(3, 4)].installed is False
    assert "MD5 hash mismatch" in (results[tile(3, 4)].error or "")
    assert results[tile(5, 6)].installed is True
    assert tile(3, 4) not in store.installed
    assert (await store.get_tile_cursors(tile(3, 4))).markers == "2024-01-01T00:00:00Z"
    assert sorted(str(result.tile) for result in progress.exported) == ["(3,4)", "(5,6)"]
    assert progress.items == ["Export", "Export"]


@pytest.mark.asyncio
async def test_tile_missing_from_manifest_fails(remote: FakeRemoteSyncService, store: FakeTileStore) -> None:
    results = await ExportPipeline(remote, store).export([tile(7, 7)])

    assert results[tile(7, 7)] == ExportResult(tile=tile(7, 7), installed=False, error="missing from manifest")
    assert remote.download_calls == []


@pytest.mark.asyncio
async def test_unrequested_manifest_entries_are_ignored(remote: FakeRemoteSyncService, store: FakeTileStore) -> None:
    entry, data = export_entry(tile(3, 4), _snapshot(1, "2024-06-01T00:00:00Z"))
    stray, stray_data = export_entry(tile(9, 9), _snapshot(9, "2024-06-01T00:00:00Z"))
    remote.add_export(tile(3, 4), entry, data)
    remote.downloads[stray.gzip.url] = stray_data
    remote.extra_manifest = [stray]

    results = await ExportPipeline(remote, store).export([tile(3, 4)])

    assert set(results) == {tile(3, 4)}
    assert stray.gzip.url not in remote.download_calls


@pytest.mark.asyncio
async def test_manifest_failure_fails_whole_batch(remote: FakeRemoteSyncService, store: FakeTileStore) -> None:
    remote.export_error = RemoteServiceError("HTTP 500", status_code=500)

    results = await ExportPipeline(remote, store).export([tile(1, 1), tile(2, 2)])

    assert [result.installed for result in results.values()] == [False, False]
    assert {result.error for result in results.values()} == {"HTTP 500"}


@pytest.mark.asyncio
async def test_export_requests_manifest_in_batches(remote: FakeRemoteSyncService, store: FakeTileStore) -> None:
    for x in (1, 2, 3):
        entry, data = export_entry(tile(x, 0), _snapshot(x, "2024-06-01T00:00:00Z"))
        remote.add_export(tile(x, 0), entry, data)

    results = await ExportPipeline(remote, store, batch_size=2).export([tile(3, 0), tile(1, 0), tile(2, 0)])

    assert remote.export_calls == [[tile(1, 0), tile(2, 0)], [tile(3, 0)]]
    assert all(result.installed for result in results.values())


@pytest.mark.asyncio
async def test_corrupt_archive_is_rejected(remote: FakeRemoteSyncService, store: FakeTileStore) -> None:
    data = b"definitely not gzip"
    entry = ExportManifestEntry(
        tile_x=3,
        tile_y=4,
        gzip=ExportFile(file_size=len(data), md5_hash=hashlib.md5(data).hexdigest(), url="https://files.test/3_4"),
    )
    remote.add_export(tile(3, 4), entry, data)

    results = await ExportPipeline(remote, store).export([tile(3, 4)])

    assert results[tile(3, 4)].installed is False
    assert (results[tile(3, 4)].error or "").startswith("decompress failed")


@pytest.mark.asyncio
async def test_download_and_install_failures_are_per_tile(
    remote: FakeRemoteSyncService, store: FakeTileStore
) -> None:
    entry_a, _ = export_entry(tile(1, 1), _snapshot(1, "2024-06-01T00:00:00Z"))
    entry_b, data_b = export_entry(tile(2, 2), _snapshot(2, "2024-06-01T00:00:00Z"))
    remote.add_export(tile(1, 1), entry_a, RemoteServiceError("download failed: HTTP 404", status_code=404))
    remote.add_export(tile(2, 2), entry_b, data_b)
    store.fail_install.add(tile(2, 2))

    results = await ExportPipeline(remote, store).export([tile(1, 1), tile(2, 2)])

    assert results[tile(1, 1)].error == "download failed: HTTP 404"
    assert results[tile(2, 2)].error == "install failed for (2,2)"
