"""
Authentication Dependencies

Three bearer schemes, each guarding a different set of routes:
- relay identity token (signed) - /config/agent, /config/version
- registration token (slow hash) - /agent/register
- static admin key - /config/admin, /agent/admin

Usage:
    @router.get("/agent")
    def get_config(relay_id: str = Depends(require_relay)):
        ...
"""

import hmac
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from fleetsync.common.exceptions import UnauthorizedError
from fleetsync.hub.services import ConfigStore, RelayRegistry
from fleetsync.hub.settings import HubSettings

# Looks for "Authorization: Bearer <token>"; missing headers are handled below
security = HTTPBearer(auto_error=False)


# ============================================
# SERVICE ACCESS
# ============================================

def get_store(request: Request) -> ConfigStore:
    return request.app.state.store


def get_registry(request: Request) -> RelayRegistry:
    return request.app.state.registry


def get_hub_settings(request: Request) -> HubSettings:
    return request.app.state.settings


def _bearer(credentials: Optional[HTTPAuthorizationCredentials]) -> str:
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError("Not authenticated")
    return credentials.credentials


# ============================================
# AUTH DEPENDENCIES
# ============================================

def require_relay(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    registry: RelayRegistry = Depends(get_registry),
) -> str:
    """Authenticate a relay; returns its id."""
    return registry.authenticate(_bearer(credentials))


def require_registration(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    registry: RelayRegistry = Depends(get_registry),
) -> None:
    registry.check_registration(_bearer(credentials))


def require_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    settings: HubSettings = Depends(get_hub_settings),
) -> None:
    """Static admin key check; an unset admin key locks the admin routes."""
    token = _bearer(credentials)
    if not settings.admin_key or not hmac.compare_digest(
        token.encode("utf-8"), settings.admin_key.encode("utf-8")
    ):
        raise UnauthorizedError("Invalid admin key")
