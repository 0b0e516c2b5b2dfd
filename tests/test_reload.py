"""
Tests for mapping reload and the application lifespan.
"""
import json

import pytest
from fastapi.testclient import TestClient

from app.config import get_config
from app.main import _on_sighup, app
from app.services.mapping import MappingTable
from app.services.reload import reload_mapping
from app.state import app_state


@pytest.fixture
def preserved_state():
    """Restore the global app state after the test."""
    original_mapping = app_state.mapping
    original_client = app_state.http_client
    yield
    app_state.mapping = original_mapping
    app_state.http_client = original_client


class TestReloadMapping:
    """Tests for reload_mapping function."""

    def test_loads_configured_path(self, mock_env, preserved_state, temp_mapping_file):
        table = reload_mapping()

        assert app_state.mapping is table
        assert table.source == temp_mapping_file

    def test_explicit_path(self, preserved_state, tmp_path):
        path = tmp_path / "other.json"
        path.write_text(json.dumps({"messenger": {"1": "http://d/one"}}))

        table = reload_mapping(str(path))

        assert app_state.mapping is table
        assert table.entry_count == 1

    def test_failure_keeps_previous_table(self, preserved_state):
        previous = MappingTable.from_dict({"messenger": {"1": "http://d/x"}})
        app_state.mapping = previous

        with pytest.raises(ValueError, match="Mapping file not found"):
            reload_mapping("/nonexistent/mapping.json")

        assert app_state.mapping is previous

    def test_readers_keep_their_snapshot(self, preserved_state, tmp_path):
        """A reference taken before a reload still sees the old table."""
        app_state.mapping = MappingTable.from_dict({"messenger": {"1": "http://d/old"}})
        snapshot = app_state.mapping

        path = tmp_path / "new.json"
        path.write_text(json.dumps({"messenger": {"1": "http://d/new"}}))
        reload_mapping(str(path))

        assert snapshot.get("messenger")["1"] == "http://d/old"
        assert app_state.mapping.get("messenger")["1"] == "http://d/new"


class TestSighupReload:
    """Tests for the SIGHUP reload callback."""

    def test_failed_reload_keeps_table(self, preserved_state, monkeypatch, tmp_path):
        """A failing reload from the signal handler is contained."""
        previous = MappingTable.from_dict({"messenger": {"1": "http://d/x"}})
        app_state.mapping = previous
        monkeypatch.setenv("MAPPING_PATH", str(tmp_path))
        get_config.cache_clear()

        try:
            _on_sighup()
        finally:
            get_config.cache_clear()

        assert app_state.mapping is previous

    def test_reload_swaps_table(self, mock_env, preserved_state):
        app_state.mapping = None

        _on_sighup()

        assert app_state.mapping.platform_count == 2


class TestLifespan:
    """Tests for application startup and shutdown."""

    def test_startup_loads_mapping_and_client(self, mock_env, preserved_state):
        with TestClient(app) as client:
            assert app_state.mapping is not None
            assert app_state.mapping.platform_count == 2
            assert app_state.http_client is not None

            assert client.get("/health").json() == {"status": "ok"}

        assert app_state.http_client is None

    def test_startup_fails_without_mapping(self, monkeypatch, preserved_state):
        """A missing mapping file at startup is fatal."""
        monkeypatch.setenv("MAPPING_PATH", "/nonexistent/mapping.json")
        get_config.cache_clear()

        try:
            with pytest.raises(RuntimeError, match="Cannot start without a mapping table"):
                with TestClient(app):
                    pass
        finally:
            get_config.cache_clear()
