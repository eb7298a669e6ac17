"""Shared test fixtures for tilesync tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from tilesync.contracts.config import TileSyncConfig
from tests.fakes.remote import FakeRemoteSyncService
from tests.fakes.store import FakeTileStore
from tests.fakes.tiles import WORLD


@pytest.fixture
def remote() -> FakeRemoteSyncService:
    return FakeRemoteSyncService()


@pytest.fixture
def store() -> FakeTileStore:
    return FakeTileStore()


@pytest.fixture
def config(tmp_path: Path) -> TileSyncConfig:
    """A config covering the whole world with a fixed API key."""
    return TileSyncConfig(api_key="test-key", data_dir=tmp_path / "data", bounding_boxes=[WORLD])
