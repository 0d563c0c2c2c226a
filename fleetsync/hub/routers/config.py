"""
Config Router

Configuration access for relays and administrators:
- GET /config/agent - current configuration (relay identity token)
- GET /config/version - current version only (relay identity token)
- GET/POST/PUT /config/admin - read, create and update (admin key)
"""

from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from fleetsync.common.logging_setup import get_service_logger
from fleetsync.hub.dependencies.auth import get_store, require_admin, require_relay
from fleetsync.hub.responses import success
from fleetsync.hub.services import ConfigStore

logger = get_service_logger("hub.routers.config")

router = APIRouter()


# ============================================
# SCHEMAS
# ============================================

class ConfigCreate(BaseModel):
    """Create configuration request."""
    target: str = Field(..., description="URL the leaf calls on each task run")
    interval: int = Field(..., description="Poll interval in seconds (minimum 30)")


class ConfigUpdate(BaseModel):
    """Update configuration request. Omitted fields stay unchanged."""
    target: Optional[str] = None
    interval: Optional[int] = None


# ============================================
# RELAY ENDPOINTS
# ============================================

@router.get("/agent")
def get_config_for_relay(
    relay_id: str = Depends(require_relay),
    store: ConfigStore = Depends(get_store),
):
    """Current configuration for an authenticated relay."""
    config = store.get_latest()
    logger.debug(
        f"Config v{config.version} served to relay {relay_id}",
        extra={"relay_id": relay_id, "version": config.version},
    )
    return success(config.to_dict())


@router.get("/version")
def get_config_version(
    relay_id: str = Depends(require_relay),
    store: ConfigStore = Depends(get_store),
):
    """Version of the current configuration (cheap change check)."""
    return success({"version": store.current_version()})


# ============================================
# ADMIN ENDPOINTS
# ============================================

@router.get("/admin", dependencies=[Depends(require_admin)])
def get_config_for_admin(store: ConfigStore = Depends(get_store)):
    return success(store.get_latest().to_dict())


@router.post(
    "/admin",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
def create_config(body: ConfigCreate, store: ConfigStore = Depends(get_store)):
    """Create a new configuration revision (version = previous + 1)."""
    config = store.create(target=body.target, interval=body.interval)
    return success(config.to_dict())


@router.put("/admin", dependencies=[Depends(require_admin)])
def update_config(body: ConfigUpdate, store: ConfigStore = Depends(get_store)):
    """Modify the current configuration in place (version unchanged)."""
    config = store.update(target=body.target, interval=body.interval)
    return success(config.to_dict())
