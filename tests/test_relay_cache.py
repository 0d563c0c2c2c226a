"""Tests for the relay's on-disk credential and config snapshots."""

import json

from fleetsync.relay.cache import RelayCache


class TestCredential:
    def test_missing_credential(self, tmp_path):
        assert RelayCache(tmp_path).load_credential() is None

    def test_save_and_load(self, tmp_path):
        cache = RelayCache(tmp_path / "state")
        cache.save_credential("id.sig")

        assert RelayCache(tmp_path / "state").load_credential() == "id.sig"
        assert json.loads((tmp_path / "state" / "credential.json").read_text()) == {
            "credential_key": "id.sig"
        }

    def test_corrupt_credential(self, tmp_path):
        (tmp_path / "credential.json").write_text("{broken")

        assert RelayCache(tmp_path).load_credential() is None

    def test_clear_credential(self, tmp_path):
        cache = RelayCache(tmp_path)
        cache.save_credential("id.sig")
        cache.clear_credential()
        cache.clear_credential()

        assert cache.load_credential() is None


class TestConfigSnapshot:
    def test_roundtrip(self, tmp_path, make_config):
        cache = RelayCache(tmp_path)
        cache.save_config(make_config(version=4, interval=90))

        assert cache.load_config() == make_config(version=4, interval=90)

    def test_no_temp_files_left(self, tmp_path, make_config):
        cache = RelayCache(tmp_path)
        cache.save_config(make_config(1))
        cache.save_config(make_config(2))

        assert sorted(p.name for p in tmp_path.iterdir()) == ["config.json"]

    def test_invalid_snapshot_ignored(self, tmp_path):
        (tmp_path / "config.json").write_text(json.dumps({"version": "one"}))

        assert RelayCache(tmp_path).load_config() is None

    def test_non_object_snapshot_ignored(self, tmp_path):
        (tmp_path / "config.json").write_text("[1, 2]")

        assert RelayCache(tmp_path).load_config() is None
