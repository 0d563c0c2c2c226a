"""Shared fixtures for fleetsync tests."""

import pytest

from fleetsync.common.config import Configuration, RelaySettings
from fleetsync.hub.services import ConfigCache, ConfigStore, SQLiteRepository
from fleetsync.hub.settings import HubSettings


@pytest.fixture
def repository(tmp_path):
    """SQLite repository in a temporary directory."""
    repo = SQLiteRepository(str(tmp_path / "hub.db"))
    repo.connect()
    return repo


@pytest.fixture
def cache():
    return ConfigCache(ttl_seconds=60)


@pytest.fixture
def store(repository, cache):
    return ConfigStore(repository, cache)


@pytest.fixture
def hub_settings(tmp_path):
    """Hub settings independent of the environment."""
    return HubSettings(
        _env_file=None,
        storage_backend="sqlite",
        sqlite_path=str(tmp_path / "hub.db"),
        signing_secret="signing-secret",
        registration_secret="registration-secret",
        admin_key="admin-key",
        cache_ttl_seconds=60,
    )


@pytest.fixture
def relay_settings(tmp_path):
    return RelaySettings(
        hub_url="http://hub.test",
        registration_token="reg-token",
        leaf_url="http://leaf.test",
        leaf_key="leaf-key",
        state_dir=str(tmp_path / "relay"),
        initial_retry_seconds=0.01,
    )


def make_config(version: int = 1, interval: int = 30, target: str = "http://target.test/ping"):
    return Configuration(
        id=f"cfg-{version}",
        version=version,
        target=target,
        interval=interval,
        created_at="2026-01-01T00:00:00+00:00",
    )


@pytest.fixture(name="make_config")
def make_config_fixture():
    """Factory for Configuration objects."""
    return make_config
