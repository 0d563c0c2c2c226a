from .auth import (
    get_registry,
    get_store,
    require_admin,
    require_registration,
    require_relay,
)

__all__ = [
    "get_registry",
    "get_store",
    "require_admin",
    "require_registration",
    "require_relay",
]
