"""
Leaf Config Holder

Holds the configuration most recently pushed by the relay and runs the
leaf's task against its target.

apply() is last-write-wins: pushes are not compared by version, so an
out-of-order push replaces a newer configuration with an older one.
"""

import json
import threading
from dataclasses import dataclass
from typing import Any, Union

import httpx

from fleetsync.common.config import Configuration
from fleetsync.common.exceptions import NotFoundError, TransientError
from fleetsync.common.logging_setup import get_service_logger, log_config_event

logger = get_service_logger("leaf.holder")

TASK_HEADERS = {
    "User-Agent": "curl/7.81.0",
    "Accept": "text/plain",
}


@dataclass(frozen=True)
class RawText:
    body: str
    kind: str = "text"


@dataclass(frozen=True)
class ParsedJSON:
    value: Any
    kind: str = "json"


TaskResult = Union[RawText, ParsedJSON]


class ConfigHolder:
    """Current configuration of the leaf, guarded by a lock"""

    def __init__(self):
        self._config: Configuration | None = None
        self._lock = threading.Lock()

    def apply(self, candidate: Configuration) -> bool:
        """Replace the current configuration wholesale."""
        with self._lock:
            previous = self._config
            self._config = candidate

        if previous is not None and candidate.version < previous.version:
            logger.warning(
                f"Applied older config v{candidate.version} over v{previous.version}",
                extra={"version": candidate.version, "previous_version": previous.version},
            )
        log_config_event(logger, "Config applied", candidate)
        return True

    def read(self) -> Configuration:
        """
        Raises:
            NotFoundError: nothing has been applied yet
        """
        with self._lock:
            config = self._config
        if config is None:
            raise NotFoundError("config")
        return config

    async def execute_task(self, client: httpx.AsyncClient) -> TaskResult:
        """
        GET the configured target.

        Returns:
            ParsedJSON when the body decodes as JSON, otherwise RawText

        Raises:
            NotFoundError: no configuration applied
            TransientError: request failed
        """
        target = self.read().target

        try:
            response = await client.get(target, headers=TASK_HEADERS)
        except httpx.HTTPError as e:
            raise TransientError(f"Task request to {target} failed: {e}", "execute_task") from e

        if not response.is_success:
            logger.warning(
                f"Target {target} returned HTTP {response.status_code}",
                extra={"status_code": response.status_code},
            )

        body = response.text
        try:
            return ParsedJSON(json.loads(body))
        except ValueError:
            return RawText(body)
