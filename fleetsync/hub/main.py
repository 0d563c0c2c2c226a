"""
fleetsync Hub - Configuration API

FastAPI application that provides:
- The current configuration to registered relays
- Relay self-registration with signed identity tokens
- Admin endpoints to create and update the configuration

Storage is SQLite or Supabase, fronted by an in-process read-through cache.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from fleetsync import __version__
from fleetsync.common.logging_setup import get_service_logger
from fleetsync.hub.responses import install_error_handlers, success
from fleetsync.hub.routers import config, relays
from fleetsync.hub.services import (
    ConfigCache,
    ConfigRepository,
    ConfigStore,
    RelayRegistry,
    build_repository,
)
from fleetsync.hub.settings import HubSettings, get_settings

logger = get_service_logger("hub")


# ============================================
# APPLICATION LIFESPAN
# ============================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup: log the effective storage backend and origins.
    Shutdown: log the stop.
    """
    settings: HubSettings = app.state.settings
    logger.info(
        f"Starting fleetsync hub (storage={settings.storage_backend}, "
        f"cache_ttl={settings.cache_ttl_seconds}s)",
        extra={"origins": settings.origins},
    )
    if not settings.signing_secret or not settings.registration_secret:
        logger.warning("Signing or registration secret is empty; relays cannot authenticate")

    yield

    logger.info("Shutting down hub")


# ============================================
# CREATE APPLICATION
# ============================================

def create_app(
    settings: HubSettings | None = None,
    repository: ConfigRepository | None = None,
) -> FastAPI:
    """
    Build the hub application.

    Args:
        settings: Hub settings (defaults to the cached environment settings)
        repository: Storage backend (defaults to the one named in settings)
    """
    settings = settings or get_settings()
    repository = repository or build_repository(settings)

    app = FastAPI(
        title="fleetsync Hub",
        description="Version-authoritative configuration store for relays.",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.store = ConfigStore(
        repository,
        ConfigCache(ttl_seconds=settings.cache_ttl_seconds),
    )
    app.state.registry = RelayRegistry(
        repository,
        signing_secret=settings.signing_secret,
        registration_secret=settings.registration_secret,
    )

    # ============================================
    # CORS MIDDLEWARE
    # ============================================

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    install_error_handlers(app)

    # ============================================
    # INCLUDE ROUTERS
    # ============================================

    app.include_router(config.router, prefix="/config", tags=["Config"])
    app.include_router(relays.router, prefix="/agent", tags=["Relays"])

    # ============================================
    # ROOT ENDPOINTS
    # ============================================

    @app.get("/", tags=["Health"])
    async def root():
        """Basic API information."""
        return success({
            "name": "fleetsync-hub",
            "version": __version__,
        })

    @app.get("/health", tags=["Health"])
    async def health_check():
        return success({"status": "healthy"})

    return app
