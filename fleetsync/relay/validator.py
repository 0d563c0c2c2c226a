"""
Configuration Validator

Checks a fetched configuration before it is pushed to the leaf.
"""

from urllib.parse import urlparse

from fleetsync.common.config import MIN_INTERVAL_SECONDS, Configuration
from fleetsync.common.logging_setup import get_service_logger

logger = get_service_logger("relay.validator")


class ConfigValidator:
    """Validates configurations received from the hub"""

    def __init__(self, min_interval: int = MIN_INTERVAL_SECONDS):
        self.min_interval = min_interval

    def validate(self, config: Configuration) -> tuple[bool, list[str]]:
        """
        Validate configuration.

        Returns:
            Tuple of (is_valid, list of error messages)
        """
        errors: list[str] = []

        if config.version < 1:
            errors.append(f"Invalid version: {config.version}")

        parsed = urlparse(config.target)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            errors.append(f"Target is not an http(s) URL: {config.target!r}")

        if config.interval < self.min_interval:
            errors.append(
                f"Interval {config.interval}s below minimum {self.min_interval}s"
            )

        if errors:
            logger.warning(
                f"Config v{config.version} failed validation: {'; '.join(errors)}",
                extra={"version": config.version, "errors": errors},
            )

        return len(errors) == 0, errors
