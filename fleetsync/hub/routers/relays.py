"""
Relays Router

- POST /agent/register - self-registration (registration token)
- GET /agent/admin - issue a registration token (admin key)
"""

from fastapi import APIRouter, Depends, status

from fleetsync.hub.dependencies.auth import (
    get_registry,
    require_admin,
    require_registration,
)
from fleetsync.hub.responses import success
from fleetsync.hub.services import RelayRegistry

router = APIRouter()


@router.post(
    "/register",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_registration)],
)
def register_relay(registry: RelayRegistry = Depends(get_registry)):
    """Register a new relay and return its identity token."""
    return success(registry.register())


@router.get("/admin", dependencies=[Depends(require_admin)])
def issue_registration_token(registry: RelayRegistry = Depends(get_registry)):
    """Registration token to hand to a relay operator."""
    return success(registry.registration_token())
