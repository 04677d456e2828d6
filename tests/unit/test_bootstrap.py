"""
Unit tests for core/bootstrap.py

Coverage plan
─────────────
open_connection → bootstrap on/off, disconnect when the table cannot be made
build_session   → first connection wins, store choice, fatal startup errors
"""

import pytest

import core.bootstrap as bootstrap
from config import AppConfig, save_connections
from core.errors import ConfigError, DatabaseConnectionError
from core.persistence import DatabaseScriptStore, FileScriptStore


class FakeManager:
    instances = []
    refuse = set()
    table_fails = False

    def __init__(self, name):
        self.name = name
        self.url = None
        self.table_ready = False
        self.disconnected = False
        FakeManager.instances.append(self)

    def connect(self, url):
        if self.name in FakeManager.refuse:
            raise DatabaseConnectionError(f"Failed to connect to '{self.name}': refused")
        self.url = url
        return self

    def init_script_table(self):
        if FakeManager.table_fails:
            raise DatabaseConnectionError(f"Connected to '{self.name}', but failed to init table: denied")
        self.table_ready = True

    def fetch_all(self, sql, params=()):
        return []

    def disconnect(self):
        self.disconnected = True


@pytest.fixture(autouse=True)
def fake_manager(monkeypatch):
    FakeManager.instances = []
    FakeManager.refuse = set()
    FakeManager.table_fails = False
    monkeypatch.setattr(bootstrap, "PostgresManager", FakeManager)
    return FakeManager


@pytest.fixture
def config(tmp_path):
    return AppConfig(
        config_dir=tmp_path / "cfg",
        script_directory=str(tmp_path / "scripts"),
        database_url="postgresql://localhost/dev",
    )


# ─────────────────────────────────────────────────────────────────────────────
# 1. open_connection
# ─────────────────────────────────────────────────────────────────────────────

class TestOpenConnection:

    def test_bootstraps_table(self):
        manager = bootstrap.open_connection("db", "postgresql://x")
        assert manager.url == "postgresql://x"
        assert manager.table_ready is True

    def test_without_bootstrap(self):
        manager = bootstrap.open_connection("db", "postgresql://x", bootstrap=False)
        assert manager.table_ready is False

    def test_table_failure_closes_connection(self, fake_manager):
        fake_manager.table_fails = True
        with pytest.raises(DatabaseConnectionError, match="failed to init table"):
            bootstrap.open_connection("db", "postgresql://x")
        assert fake_manager.instances[0].disconnected is True


# ─────────────────────────────────────────────────────────────────────────────
# 2. build_session
# ─────────────────────────────────────────────────────────────────────────────

class TestBuildSession:

    def test_first_connection_in_file_order(self, config):
        save_connections(config, {"second": "postgresql://b", "first": "postgresql://a"})
        machine = bootstrap.build_session(config)
        assert machine.active_connection == "second"
        assert machine.connection.url == "postgresql://b"
        assert isinstance(machine.catalog.store, DatabaseScriptStore)

    def test_file_storage_skips_table(self, config):
        config.storage = "files"
        machine = bootstrap.build_session(config)
        assert isinstance(machine.catalog.store, FileScriptStore)
        assert machine.connection.table_ready is False
        assert machine.store_factory is None

    def test_no_connections_is_fatal(self, config):
        save_connections(config, {})
        with pytest.raises(ConfigError):
            bootstrap.build_session(config)

    def test_unreachable_initial_connection_is_fatal(self, config, fake_manager):
        fake_manager.refuse = {"default"}
        with pytest.raises(DatabaseConnectionError):
            bootstrap.build_session(config)

    def test_options_reach_the_session(self, config):
        config.report_affected_rows = True
        config.edit_on_create = True
        machine = bootstrap.build_session(config)
        assert machine.executor.report_affected_rows is True
        assert machine.edit_on_create is True
