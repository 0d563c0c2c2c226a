from . import config, relays

__all__ = ["config", "relays"]
