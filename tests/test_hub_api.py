"""Tests for the hub HTTP API."""

import pytest
from fastapi.testclient import TestClient

from fleetsync.common import signing
from fleetsync.hub.main import create_app
from fleetsync.hub.services import SQLiteRepository


@pytest.fixture
def client(hub_settings):
    repository = SQLiteRepository(hub_settings.sqlite_path)
    repository.connect()
    with TestClient(create_app(hub_settings, repository)) as test_client:
        yield test_client


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


ADMIN = bearer("admin-key")


@pytest.fixture
def relay_token(client):
    """Register a relay and return its identity token."""
    registration = client.get("/agent/admin", headers=ADMIN).json()["data"]
    response = client.post("/agent/register", headers=bearer(registration))
    return response.json()["data"]


class TestHealth:
    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["status"] == "success"

    def test_health(self, client):
        assert client.get("/health").json()["data"]["status"] == "healthy"


class TestAdminConfig:
    """Tests for /config/admin."""

    def test_requires_admin_key(self, client):
        response = client.post("/config/admin", json={"target": "http://x.test", "interval": 30})

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "ERR_UNAUTHORIZED"
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_wrong_admin_key(self, client):
        response = client.get("/config/admin", headers=bearer("nope"))

        assert response.status_code == 401

    def test_get_before_create_is_not_found(self, client):
        response = client.get("/config/admin", headers=ADMIN)

        assert response.status_code == 404
        assert response.json() == {
            "status": "error",
            "error": {"code": "ERR_NOT_FOUND", "message": "config not found"},
        }

    def test_create_and_read(self, client):
        created = client.post(
            "/config/admin", headers=ADMIN, json={"target": "http://x.test", "interval": 30}
        )

        assert created.status_code == 201
        assert created.json()["data"]["version"] == 1

        current = client.get("/config/admin", headers=ADMIN).json()["data"]
        assert current["target"] == "http://x.test"

    def test_interval_below_floor(self, client):
        response = client.post(
            "/config/admin", headers=ADMIN, json={"target": "http://x.test", "interval": 29}
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "ERR_VALIDATION"

    def test_missing_field_is_validation_error(self, client):
        response = client.post("/config/admin", headers=ADMIN, json={"target": "http://x.test"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "ERR_VALIDATION"

    def test_update_keeps_version(self, client):
        client.post("/config/admin", headers=ADMIN, json={"target": "http://x.test", "interval": 30})

        response = client.put("/config/admin", headers=ADMIN, json={"interval": 60})

        assert response.status_code == 200
        assert response.json()["data"]["version"] == 1
        assert response.json()["data"]["interval"] == 60


class TestRegistration:
    """Tests for /agent/register and /agent/admin."""

    def test_registration_token_from_admin(self, client):
        token = client.get("/agent/admin", headers=ADMIN).json()["data"]

        assert signing.check_registration_token(token, "registration-secret")

    def test_register_returns_identity_token(self, client, relay_token):
        valid, relay_id = signing.verify(relay_token, "signing-secret")

        assert valid
        assert relay_id

    def test_register_rejects_bad_token(self, client):
        response = client.post("/agent/register", headers=bearer("garbage"))

        assert response.status_code == 401

    def test_register_requires_token(self, client):
        assert client.post("/agent/register").status_code == 401


class TestRelayConfig:
    """Tests for /config/agent and /config/version."""

    def test_not_found_before_create(self, client, relay_token):
        response = client.get("/config/agent", headers=bearer(relay_token))

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "ERR_NOT_FOUND"

    def test_relay_reads_latest(self, client, relay_token):
        client.post("/config/admin", headers=ADMIN, json={"target": "http://x.test", "interval": 30})
        client.post("/config/admin", headers=ADMIN, json={"target": "http://y.test", "interval": 60})

        data = client.get("/config/agent", headers=bearer(relay_token)).json()["data"]

        assert data["version"] == 2
        assert data["target"] == "http://y.test"
        assert data["interval"] == 60

    def test_version_endpoint(self, client, relay_token):
        client.post("/config/admin", headers=ADMIN, json={"target": "http://x.test", "interval": 30})

        response = client.get("/config/version", headers=bearer(relay_token))

        assert response.json() == {"status": "success", "data": {"version": 1}}

    def test_malformed_token(self, client):
        response = client.get("/config/agent", headers=bearer("not-a-token"))

        assert response.status_code == 401

    def test_non_ascii_token(self, client):
        headers = {"Authorization": "Bearer é.YQ==".encode("latin-1")}

        response = client.get("/config/agent", headers=headers)

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "ERR_UNAUTHORIZED"

    def test_token_signed_with_other_secret(self, client):
        token = signing.issue("relay-x", "other-secret")

        assert client.get("/config/agent", headers=bearer(token)).status_code == 401

    def test_unknown_relay_rejected(self, client):
        token = signing.issue("never-registered", "signing-secret")

        assert client.get("/config/agent", headers=bearer(token)).status_code == 401

    def test_admin_key_is_not_a_relay_token(self, client):
        assert client.get("/config/agent", headers=ADMIN).status_code == 401
