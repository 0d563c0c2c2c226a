"""Tests for YAML settings, the Configuration model and structured logging."""

import asyncio
import json
import logging

import pytest

from fleetsync.common.config import (
    MIN_INTERVAL_SECONDS,
    Configuration,
    LeafSettings,
    RelaySettings,
    find_config_path,
    load_yaml,
)
from fleetsync.common.exceptions import ValidationFailedError
from fleetsync.common.logging_setup import JsonFormatter, get_service_logger, log_scope


class TestConfiguration:
    def test_from_dict_requires_fields(self):
        with pytest.raises(ValidationFailedError) as exc_info:
            Configuration.from_dict({"id": "a", "version": 1, "target": "http://x"})

        assert exc_info.value.field == "interval"

    def test_from_dict_rejects_bool_version(self):
        with pytest.raises(ValidationFailedError):
            Configuration.from_dict(
                {"id": "a", "version": True, "target": "http://x", "interval": 30}
            )

    def test_push_payload_shape(self, make_config):
        assert make_config(3).push_payload() == {
            "target": "http://target.test/ping",
            "interval": 30,
            "version": 3,
            "id": "cfg-3",
        }


class TestRelaySettings:
    def test_yaml_sections(self, tmp_path):
        path = tmp_path / "relay.yaml"
        path.write_text(
            "hub:\n"
            "  url: http://hub.example\n"
            "  registration_token: tok\n"
            "leaf:\n"
            "  url: http://leaf.example\n"
            "  key: k\n"
            "sync:\n"
            "  check_interval: 90\n"
            "  heartbeat_threshold: 5\n"
            f"state_dir: {tmp_path}\n"
        )

        settings = RelaySettings.load(str(path))

        assert settings.hub_url == "http://hub.example"
        assert settings.registration_token == "tok"
        assert settings.leaf_key == "k"
        assert settings.check_interval == 90
        assert settings.heartbeat_threshold == 5

    def test_check_interval_raised_to_floor(self):
        settings = RelaySettings.from_dict({"sync": {"check_interval": 5}})

        assert settings.check_interval == MIN_INTERVAL_SECONDS

    def test_env_fallback(self, monkeypatch):
        monkeypatch.setenv("FLEETSYNC_HUB_URL", "http://env-hub")
        monkeypatch.setenv("FLEETSYNC_LEAF_KEY", "env-key")

        settings = RelaySettings.from_dict({})

        assert settings.hub_url == "http://env-hub"
        assert settings.leaf_key == "env-key"

    def test_config_path_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("FLEETSYNC_CONFIG", str(tmp_path / "custom.yaml"))

        assert find_config_path("relay") == tmp_path / "custom.yaml"

    def test_missing_file_is_empty(self, tmp_path):
        assert load_yaml(tmp_path / "absent.yaml") == {}

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("hub: [unclosed\n")

        with pytest.raises(ValidationFailedError):
            load_yaml(path)


class TestLeafSettings:
    def test_defaults_and_overrides(self, monkeypatch):
        monkeypatch.delenv("FLEETSYNC_LEAF_KEY", raising=False)
        monkeypatch.delenv("FLEETSYNC_LEAF_PORT", raising=False)

        settings = LeafSettings.from_dict({"server": {"port": 9100}, "key": "k"})

        assert settings.port == 9100
        assert settings.key == "k"
        assert settings.host == "0.0.0.0"


class TestLogging:
    def test_json_formatter_includes_extras(self):
        record = logging.LogRecord("fleetsync.test", logging.INFO, __file__, 1, "hello", None, None)
        record.service = "relay.engine"
        record.version = 3

        data = json.loads(JsonFormatter().format(record))

        assert data["message"] == "hello"
        assert data["service"] == "relay.engine"
        assert data["version"] == 3

    def test_log_scope_adds_fields(self, caplog):
        adapter = get_service_logger("test.scope")
        adapter.logger.propagate = True

        with caplog.at_level(logging.INFO, logger="fleetsync.test.scope"):
            with log_scope(cycle=7):
                adapter.info("inside", extra={"version": 2})
            adapter.info("outside")

        inside, outside = caplog.records
        assert inside.cycle == 7
        assert inside.version == 2
        assert inside.service == "test.scope"
        assert not hasattr(outside, "cycle")

    @pytest.mark.asyncio
    async def test_log_scope_stays_in_its_task(self, caplog):
        """A scope opened by one task is not seen by records from another."""
        adapter = get_service_logger("test.tasks")
        adapter.logger.propagate = True
        entered = asyncio.Event()
        release = asyncio.Event()

        async def scoped():
            with log_scope(cycle=3):
                entered.set()
                await release.wait()
                adapter.info("scoped")

        async def other():
            await entered.wait()
            adapter.info("other")
            release.set()

        with caplog.at_level(logging.INFO, logger="fleetsync.test.tasks"):
            await asyncio.gather(scoped(), other())

        by_message = {record.getMessage(): record for record in caplog.records}
        assert by_message["scoped"].cycle == 3
        assert not hasattr(by_message["other"], "cycle")

    def test_service_logger_name(self):
        adapter = get_service_logger("hub.store")

        assert adapter.logger.name == "fleetsync.hub.store"
        assert adapter.extra == {"service": "hub.store"}
