"""
Version-Authoritative Store

Holds the single current configuration. Reads go through the cache and
fall back to the repository; writes go to the repository first and then
refresh the cache.

Versions strictly increase on create() and never change on update().
"""

import threading

from fleetsync.common.config import MIN_INTERVAL_SECONDS, Configuration
from fleetsync.common.exceptions import (
    CacheError,
    NotFoundError,
    ValidationFailedError,
)
from fleetsync.common.logging_setup import get_service_logger, log_config_event

from .cache import ConfigCache
from .repository import ConfigRepository

logger = get_service_logger("hub.store")


class ConfigStore:
    """
    Configuration store for the hub.

    create() and update() are serialized within one process. Across hub
    processes a single writer is assumed.
    """

    def __init__(
        self,
        repository: ConfigRepository,
        cache: ConfigCache,
        min_interval: int = MIN_INTERVAL_SECONDS,
    ):
        self.repository = repository
        self.cache = cache
        self.min_interval = min_interval
        self._write_lock = threading.Lock()

    def get_latest(self) -> Configuration:
        """
        Current configuration.

        Raises:
            NotFoundError: if no configuration has ever been created
        """
        try:
            cached = self.cache.get_config()
        except CacheError as e:
            logger.warning(f"Cache read failed, using repository: {e}")
            cached = None

        if cached is not None:
            return cached

        config = self.repository.get_latest_config()
        if config is None:
            raise NotFoundError("config")

        self._refresh_cache(config)
        return config

    def current_version(self) -> int:
        return self.get_latest().version

    def create(self, target: str, interval: int) -> Configuration:
        """
        Create a new configuration with version = previous max + 1 (or 1).

        Raises:
            ValidationFailedError: empty target or interval below the floor
        """
        self._validate_target(target)
        self._validate_interval(interval)

        with self._write_lock:
            previous = self.repository.get_latest_config()
            version = previous.version + 1 if previous else 1

            config = Configuration.new(version=version, target=target, interval=interval)
            self.repository.insert_config(config)
            self._refresh_cache(config)

        log_config_event(logger, "Config created", config)
        return config

    def update(
        self,
        target: str | None = None,
        interval: int | None = None,
    ) -> Configuration:
        """
        Modify target and/or interval of the current configuration in place.

        An empty target is ignored; a negative interval is ignored.
        Version, id and created_at are preserved.

        Raises:
            NotFoundError: if no configuration exists
            ValidationFailedError: interval below the floor
        """
        with self._write_lock:
            current = self.repository.get_latest_config()
            if current is None:
                raise NotFoundError("config")

            changes = {}
            if target and target.strip():
                changes["target"] = target
            if interval is not None and interval >= 0:
                self._validate_interval(interval)
                changes["interval"] = interval

            updated = current.with_changes(**changes)
            self.repository.update_config(updated)
            self._refresh_cache(updated)

        log_config_event(logger, "Config updated", updated)
        return updated

    def _refresh_cache(self, config: Configuration) -> None:
        try:
            self.cache.set_config(config)
        except Exception as e:
            logger.error(f"Failed to repopulate cache: {e}", exc_info=True)

    def _validate_target(self, target: str) -> None:
        if not target or not target.strip():
            raise ValidationFailedError("target cannot be empty", field="target")

    def _validate_interval(self, interval: int) -> None:
        if interval < self.min_interval:
            raise ValidationFailedError(
                f"interval must be at least {self.min_interval} seconds",
                field="interval",
            )
