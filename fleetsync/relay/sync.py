"""
Hub and Leaf HTTP Clients

HubClient pulls the configuration and registers the relay.
LeafClient pushes configurations to the leaf.

Both reuse one httpx.AsyncClient and map every failure onto the
fleetsync exception hierarchy.
"""

from typing import Any

import httpx

from fleetsync.common.config import Configuration
from fleetsync.common.exceptions import (
    NotFoundError,
    TransientError,
    UnauthorizedError,
    ValidationFailedError,
)
from fleetsync.common.logging_setup import get_service_logger

logger = get_service_logger("relay.sync")

FETCH_TIMEOUT = 30.0
PUSH_TIMEOUT = 10.0


class _BaseClient:
    """Lazily created, reusable httpx client"""

    def __init__(
        self,
        base_url: str,
        timeout: float,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        # Reusable HTTP client - avoids connection overhead per request
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client"""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None


def _envelope_data(response: httpx.Response, operation: str) -> Any:
    """Extract "data" from a success envelope."""
    try:
        body = response.json()
    except ValueError as e:
        raise TransientError(f"Invalid JSON from hub: {e}", operation) from e

    if not isinstance(body, dict) or body.get("status") != "success" or "data" not in body:
        raise TransientError("Unexpected response envelope from hub", operation)
    return body["data"]


def _raise_for_hub_status(response: httpx.Response, operation: str) -> None:
    if response.status_code == 404:
        raise NotFoundError("config")
    if response.status_code in (401, 403):
        raise UnauthorizedError(f"Hub rejected credential ({response.status_code})")
    if response.status_code >= 300:
        raise TransientError(f"Hub returned HTTP {response.status_code}", operation)


class HubClient(_BaseClient):
    """Client for the hub's relay-facing API"""

    def __init__(
        self,
        base_url: str,
        timeout: float = FETCH_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(base_url, timeout, transport)

    async def fetch_config(self, credential: str) -> Configuration:
        """
        Fetch the current configuration.

        Raises:
            NotFoundError: hub has no configuration yet
            UnauthorizedError: credential rejected
            TransientError: network error, timeout, other status or bad body
        """
        operation = "fetch_config"
        client = await self._get_client()
        try:
            response = await client.get(
                f"{self.base_url}/config/agent",
                headers={"Authorization": f"Bearer {credential}"},
            )
        except httpx.HTTPError as e:
            raise TransientError(f"HTTP error fetching config: {e}", operation) from e

        _raise_for_hub_status(response, operation)
        data = _envelope_data(response, operation)

        try:
            return Configuration.from_dict(data)
        except ValidationFailedError as e:
            raise TransientError(f"Malformed configuration from hub: {e.message}", operation) from e

    async def register(self, registration_token: str) -> str:
        """
        Self-register with the hub.

        Returns:
            The signed identity token (credential)
        """
        operation = "register"
        client = await self._get_client()
        try:
            response = await client.post(
                f"{self.base_url}/agent/register",
                headers={"Authorization": f"Bearer {registration_token}"},
            )
        except httpx.HTTPError as e:
            raise TransientError(f"HTTP error registering: {e}", operation) from e

        if response.status_code in (401, 403):
            raise UnauthorizedError("Hub rejected registration token")
        if response.status_code >= 300:
            raise TransientError(f"Hub returned HTTP {response.status_code}", operation)

        credential = _envelope_data(response, operation)
        if not isinstance(credential, str) or not credential:
            raise TransientError("Hub returned an empty credential", operation)
        return credential


class LeafClient(_BaseClient):
    """Client for the leaf's config endpoint"""

    def __init__(
        self,
        base_url: str,
        key: str,
        timeout: float = PUSH_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(base_url, timeout, transport)
        self.key = key

    async def push(self, configuration: Configuration) -> None:
        """
        Push a configuration to the leaf.

        Raises:
            TransientError: network error, timeout or non-2xx response
        """
        operation = "push"
        client = await self._get_client()
        try:
            response = await client.post(
                f"{self.base_url}/config",
                json=configuration.push_payload(),
                headers={"Authorization": f"Bearer {self.key}"},
            )
        except httpx.HTTPError as e:
            raise TransientError(f"HTTP error pushing config: {e}", operation) from e

        if not response.is_success:
            raise TransientError(
                f"Leaf returned HTTP {response.status_code}: {response.text[:200]}",
                operation,
            )

        logger.debug(
            f"Leaf accepted config v{configuration.version}",
            extra={"version": configuration.version},
        )
