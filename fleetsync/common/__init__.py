"""
Common Utilities

Shared modules used by hub, relay and leaf:
- config.py - Configuration dataclasses and process settings
- exceptions.py - Custom exception classes
- logging_setup.py - Structured logging setup
- signing.py - Signed-identity tokens and registration tokens
- state.py - Atomic JSON snapshots on disk
"""

from .state import JsonSnapshot
from .config import (
    Configuration,
    RelayIdentity,
    RelaySettings,
    LeafSettings,
    MIN_INTERVAL_SECONDS,
    DEFAULT_HEARTBEAT_THRESHOLD,
)
from .exceptions import (
    FleetSyncError,
    NotFoundError,
    UnauthorizedError,
    MalformedTokenError,
    ValidationFailedError,
    TransientError,
    InternalError,
    CacheError,
)
from .logging_setup import (
    setup_logging,
    get_service_logger,
    set_log_level,
    log_config_event,
    log_scope,
)

__all__ = [
    # State
    "JsonSnapshot",
    # Config
    "Configuration",
    "RelayIdentity",
    "RelaySettings",
    "LeafSettings",
    "MIN_INTERVAL_SECONDS",
    "DEFAULT_HEARTBEAT_THRESHOLD",
    # Exceptions
    "FleetSyncError",
    "NotFoundError",
    "UnauthorizedError",
    "MalformedTokenError",
    "ValidationFailedError",
    "TransientError",
    "InternalError",
    "CacheError",
    # Logging
    "setup_logging",
    "get_service_logger",
    "set_log_level",
    "log_config_event",
    "log_scope",
]
