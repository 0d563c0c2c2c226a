"""Tests for the hub store, cache and SQLite repository."""

import sqlite3
from unittest.mock import MagicMock

import pytest

from fleetsync.common.config import RelayIdentity
from fleetsync.common.exceptions import (
    CacheError,
    NotFoundError,
    ValidationFailedError,
)
from fleetsync.hub.services import ConfigCache, ConfigStore
from fleetsync.hub.services.cache import LATEST_CONFIG_KEY


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def store_raw_entry(cache, payload):
    """Put a payload the cache cannot decode under the config key."""
    cache._entries[LATEST_CONFIG_KEY] = (payload, cache._clock())


class TestSQLiteRepository:
    """Tests for SQLite schema and row mapping."""

    def test_connect_creates_tables(self, repository):
        conn = sqlite3.connect(str(repository.db_path))
        tables = {
            row[0]
            for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
        }
        conn.close()

        assert {"configs", "relays"} <= tables

    def test_connect_is_idempotent(self, repository):
        repository.connect()
        repository.connect()

        assert repository.get_latest_config() is None

    def test_latest_is_highest_version(self, repository, make_config):
        repository.insert_config(make_config(1))
        repository.insert_config(make_config(3))
        repository.insert_config(make_config(2))

        assert repository.get_latest_config().version == 3

    def test_update_config(self, repository, make_config):
        repository.insert_config(make_config(1))

        repository.update_config(make_config(1).with_changes(interval=90))

        assert repository.get_latest_config().interval == 90

    def test_relays(self, repository):
        identity = RelayIdentity()
        repository.insert_relay(identity)

        assert repository.get_relay(identity.id) == identity
        assert repository.get_relay("missing") is None


class TestConfigCache:
    """Tests for the TTL cache."""

    def test_miss_returns_none(self):
        assert ConfigCache().get_config() is None

    def test_set_then_get(self, make_config):
        cache = ConfigCache()
        cache.set_config(make_config(4))

        assert cache.get_config() == make_config(4)

    def test_entry_expires(self, make_config):
        clock = FakeClock()
        cache = ConfigCache(ttl_seconds=10, clock=clock)
        cache.set_config(make_config(1))

        clock.now += 10

        assert cache.get_config() is None

    def test_undecodable_entry_raises(self):
        cache = ConfigCache()
        store_raw_entry(cache, "{not json")

        with pytest.raises(CacheError):
            cache.get_config()

    def test_invalidate(self, make_config):
        cache = ConfigCache()
        cache.set_config(make_config(1))
        cache.invalidate()

        assert cache.get_config() is None


class TestConfigStoreCreate:
    """Tests for ConfigStore.create()."""

    def test_first_version_is_one(self, store):
        config = store.create("http://example.com", 30)

        assert config.version == 1
        assert config.id
        assert config.created_at

    def test_versions_strictly_increase(self, store):
        versions = [store.create("http://example.com", 30).version for _ in range(4)]

        assert versions == [1, 2, 3, 4]
        assert store.get_latest().version == 4

    def test_interval_floor(self, store):
        with pytest.raises(ValidationFailedError):
            store.create("http://example.com", 29)

        assert store.create("http://example.com", 30).interval == 30

    def test_empty_target_rejected(self, store):
        with pytest.raises(ValidationFailedError):
            store.create("  ", 60)

    def test_create_sets_cache(self, store, cache):
        config = store.create("http://example.com", 45)

        assert cache.get_config() == config


class TestConfigStoreRead:
    """Tests for ConfigStore.get_latest()."""

    def test_not_found_when_empty(self, store):
        with pytest.raises(NotFoundError):
            store.get_latest()

    def test_cache_hit_skips_repository(self, make_config):
        repository = MagicMock()
        cache = ConfigCache()
        cache.set_config(make_config(7))

        config = ConfigStore(repository, cache).get_latest()

        assert config.version == 7
        repository.get_latest_config.assert_not_called()

    def test_cache_miss_repopulates(self, store, cache):
        created = store.create("http://example.com", 30)
        cache.invalidate()

        assert store.get_latest() == created
        assert cache.get_config() == created

    def test_cache_error_falls_through(self, store, cache):
        created = store.create("http://example.com", 30)
        store_raw_entry(cache, "garbage")

        assert store.get_latest() == created
        assert cache.get_config() == created

    def test_failed_repopulate_is_not_raised(self, repository, make_config):
        repository.insert_config(make_config(2))
        cache = MagicMock()
        cache.get_config.return_value = None
        cache.set_config.side_effect = RuntimeError("cache down")

        assert ConfigStore(repository, cache).get_latest().version == 2

    def test_current_version(self, store):
        store.create("http://example.com", 30)
        store.create("http://example.com", 30)

        assert store.current_version() == 2


class TestConfigStoreUpdate:
    """Tests for ConfigStore.update()."""

    def test_update_without_config_is_not_found(self, store):
        with pytest.raises(NotFoundError):
            store.update(target="http://example.com")

    def test_update_keeps_version_and_identity(self, store):
        created = store.create("http://a.example.com", 30)

        updated = store.update(target="http://b.example.com", interval=60)

        assert updated.version == created.version
        assert updated.id == created.id
        assert updated.created_at == created.created_at
        assert updated.target == "http://b.example.com"
        assert updated.interval == 60
        assert store.get_latest() == updated

    def test_empty_target_and_negative_interval_ignored(self, store):
        created = store.create("http://a.example.com", 45)

        updated = store.update(target="", interval=-1)

        assert updated == created

    def test_update_interval_floor(self, store):
        store.create("http://a.example.com", 45)

        with pytest.raises(ValidationFailedError):
            store.update(interval=10)

        assert store.get_latest().interval == 45

    def test_update_then_create_continues_versions(self, store):
        store.create("http://a.example.com", 30)
        store.update(interval=90)

        assert store.create("http://a.example.com", 30).version == 2
