"""
Shared test fixtures and helpers.
"""
from __future__ import annotations

import json
from typing import Generator

import httpx
import pytest

from app.services.mapping import MappingTable
from app.services.stats import StatsCollector, stats_collector
from app.state import AppState, app_state


SAMPLE_MAPPING = {
    "messenger": {
        "123": "http://downstream.test/messenger/main",
        "456": "http://downstream.test/messenger/other",
    },
    "instagram": {
        "789": "http://downstream.test/instagram/brand",
        "default": "http://downstream.test/instagram/catch-all",
    },
}


def meta_payload(entry_id=None, **extra) -> dict:
    """Create a Meta webhook body with entry[0].id set (or no entry at all)."""
    body = {"object": "page", **extra}
    if entry_id is not None:
        body["entry"] = [{"id": entry_id, "time": 1700000000000, "messaging": []}]
    return body


def json_bytes(body: dict) -> bytes:
    return json.dumps(body).encode()


@pytest.fixture
def sample_table() -> MappingTable:
    """Sample mapping table for testing."""
    return MappingTable.from_dict(SAMPLE_MAPPING, source="test")


@pytest.fixture
def temp_mapping_file(tmp_path) -> str:
    """Create a temporary mapping file for testing."""
    mapping_path = tmp_path / "mapping.json"
    mapping_path.write_text(json.dumps(SAMPLE_MAPPING))
    return str(mapping_path)


@pytest.fixture
def fresh_stats_collector() -> StatsCollector:
    """Create a fresh StatsCollector instance for testing."""
    return StatsCollector()


@pytest.fixture(autouse=True)
def reset_stats():
    """Keep the global stats collector empty between tests."""
    stats_collector._stats.clear()
    yield
    stats_collector._stats.clear()


@pytest.fixture
def mock_app_state(sample_table) -> Generator[AppState, None, None]:
    """
    Set up app_state with test values and reset after test.
    """
    # Store original values
    original_mapping = app_state.mapping
    original_client = app_state.http_client

    # Set test values
    app_state.mapping = sample_table
    app_state.http_client = httpx.AsyncClient()

    yield app_state

    # Restore original values
    app_state.mapping = original_mapping
    app_state.http_client = original_client


@pytest.fixture
def mock_env(temp_mapping_file, monkeypatch):
    """Set up environment variables for testing."""
    monkeypatch.setenv("MAPPING_PATH", temp_mapping_file)
    monkeypatch.setenv("FORWARD_TIMEOUT_MS", "1000")
    # Clear the cached config
    from app.config import get_config
    get_config.cache_clear()
    yield
    get_config.cache_clear()
