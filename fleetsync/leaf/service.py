"""
Leaf HTTP Service

aiohttp application exposing:
- POST /config - accept a configuration from the relay (shared bearer key)
- GET /config - current configuration
- GET /hit - run the task against the configured target
- GET /health
"""

import asyncio
import hmac
import signal
from datetime import datetime, timezone

import httpx
from aiohttp import web
from pydantic import BaseModel, Field, ValidationError

from fleetsync.common.config import MIN_INTERVAL_SECONDS, Configuration, LeafSettings
from fleetsync.common.exceptions import (
    FleetSyncError,
    UnauthorizedError,
    ValidationFailedError,
)
from fleetsync.common.logging_setup import get_service_logger

from .holder import ConfigHolder

logger = get_service_logger("leaf.service")

HOLDER_KEY = web.AppKey("holder", ConfigHolder)
SETTINGS_KEY = web.AppKey("settings", LeafSettings)
CLIENT_KEY = web.AppKey("http_client", httpx.AsyncClient)


class ConfigPush(BaseModel):
    """Relay -> leaf push body."""
    target: str = Field(..., min_length=1)
    interval: int = Field(..., ge=MIN_INTERVAL_SECONDS)
    version: int = Field(..., ge=1)
    id: str = Field(..., min_length=1)


def _error(error: FleetSyncError) -> web.Response:
    return web.json_response(
        {"status": "error", "error": error.to_dict()},
        status=error.http_status,
    )


def _check_bearer(request: web.Request, key: str) -> None:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token or not key:
        raise UnauthorizedError("Missing or invalid bearer token")
    if not hmac.compare_digest(token.encode("utf-8"), key.encode("utf-8")):
        raise UnauthorizedError("Invalid bearer token")


# ============================================
# HANDLERS
# ============================================

async def handle_post_config(request: web.Request) -> web.Response:
    try:
        _check_bearer(request, request.app[SETTINGS_KEY].key)
    except UnauthorizedError as e:
        logger.warning(f"Rejected config push: {e.message}")
        return _error(e)

    try:
        body = await request.json()
        push = ConfigPush.model_validate(body)
    except ValidationError as e:
        message = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        return _error(ValidationFailedError(message))
    except ValueError as e:
        return _error(ValidationFailedError(f"Invalid JSON body: {e}"))

    config = Configuration(
        id=push.id,
        version=push.version,
        target=push.target,
        interval=push.interval,
    )
    request.app[HOLDER_KEY].apply(config)

    return web.json_response({
        "status": "success",
        "data": {"message": "config applied", "version": config.version},
    })


async def handle_get_config(request: web.Request) -> web.Response:
    try:
        config = request.app[HOLDER_KEY].read()
    except FleetSyncError as e:
        return _error(e)
    return web.json_response({"status": "success", "data": config.to_dict()})


async def handle_hit(request: web.Request) -> web.Response:
    try:
        result = await request.app[HOLDER_KEY].execute_task(request.app[CLIENT_KEY])
    except FleetSyncError as e:
        return _error(e)

    body = result.body if result.kind == "text" else result.value
    return web.json_response({
        "status": "success",
        "data": {"kind": result.kind, "body": body},
    })


async def handle_health(request: web.Request) -> web.Response:
    try:
        version = request.app[HOLDER_KEY].read().version
    except FleetSyncError:
        version = None
    return web.json_response({
        "status": "healthy",
        "service": "leaf",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "config_version": version,
    })


# ============================================
# APPLICATION
# ============================================

def create_app(
    settings: LeafSettings,
    holder: ConfigHolder | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> web.Application:
    app = web.Application()
    app[SETTINGS_KEY] = settings
    app[HOLDER_KEY] = holder or ConfigHolder()
    app[CLIENT_KEY] = http_client or httpx.AsyncClient(timeout=settings.task_timeout)

    async def close_client(app: web.Application) -> None:
        await app[CLIENT_KEY].aclose()

    app.on_cleanup.append(close_client)

    app.router.add_post("/config", handle_post_config)
    app.router.add_get("/config", handle_get_config)
    app.router.add_get("/hit", handle_hit)
    app.router.add_get("/health", handle_health)
    return app


async def serve(settings: LeafSettings) -> None:
    """Run the leaf until SIGTERM/SIGINT."""
    if not settings.key:
        logger.warning("Leaf key is empty; every config push will be rejected")

    runner = web.AppRunner(create_app(settings))
    await runner.setup()
    site = web.TCPSite(runner, settings.host, settings.port)
    await site.start()
    logger.info(f"Leaf listening on {settings.host}:{settings.port}")

    shutdown_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, shutdown_event.set)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            signal.signal(sig, lambda s, f: shutdown_event.set())

    try:
        await shutdown_event.wait()
    finally:
        logger.info("Stopping leaf")
        await runner.cleanup()
