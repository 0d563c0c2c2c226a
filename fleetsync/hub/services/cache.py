"""
Configuration Cache

In-process read-through cache in front of the repository.
Values are held as JSON strings under a fixed key with a TTL.
"""

import json
import threading
import time
from typing import Callable

from fleetsync.common.config import Configuration
from fleetsync.common.exceptions import CacheError, ValidationFailedError
from fleetsync.common.logging_setup import get_service_logger

logger = get_service_logger("hub.cache")

LATEST_CONFIG_KEY = "config:latest"


class ConfigCache:
    """
    TTL cache for the latest configuration.

    get_config() returns None on miss or expiry and raises CacheError when
    the stored payload cannot be decoded back into a Configuration.
    """

    def __init__(
        self,
        ttl_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[str, float]] = {}
        self._lock = threading.Lock()

    def get_config(self) -> Configuration | None:
        with self._lock:
            entry = self._entries.get(LATEST_CONFIG_KEY)
            if entry is None:
                return None

            payload, stored_at = entry
            if self._clock() - stored_at >= self.ttl_seconds:
                del self._entries[LATEST_CONFIG_KEY]
                logger.debug("Cached config expired")
                return None

        try:
            return Configuration.from_dict(json.loads(payload))
        except (json.JSONDecodeError, ValidationFailedError) as e:
            raise CacheError(f"undecodable entry for {LATEST_CONFIG_KEY}: {e}") from e

    def set_config(self, config: Configuration) -> None:
        payload = json.dumps(config.to_dict())
        with self._lock:
            self._entries[LATEST_CONFIG_KEY] = (payload, self._clock())

    def invalidate(self) -> None:
        with self._lock:
            self._entries.pop(LATEST_CONFIG_KEY, None)
