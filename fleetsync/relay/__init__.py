"""
Relay

Polls the hub and pushes configuration changes to the leaf:
- engine.py - Sync engine (registration, initial sync, polling)
- sync.py - Hub and leaf HTTP clients
- cache.py - Credential and config snapshots on disk
- validator.py - Checks fetched configurations
- service.py - Process wrapper with health server
"""

from .cache import RelayCache
from .engine import PollOutcome, RelayPhase, RelayState, SyncEngine
from .sync import HubClient, LeafClient
from .validator import ConfigValidator

__all__ = [
    "ConfigValidator",
    "HubClient",
    "LeafClient",
    "PollOutcome",
    "RelayCache",
    "RelayPhase",
    "RelayState",
    "SyncEngine",
]
