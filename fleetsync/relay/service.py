"""
Relay Service

Process wrapper around the sync engine:
- Loads relay settings from YAML
- Runs the engine until SIGTERM/SIGINT
- Serves GET /health and POST /sync on localhost
- Closes HTTP clients on exit
"""

import asyncio
import signal
from datetime import datetime, timezone

from aiohttp import web

from fleetsync.common.config import RelaySettings
from fleetsync.common.exceptions import FleetSyncError, UnauthorizedError
from fleetsync.common.logging_setup import get_service_logger

from .cache import RelayCache
from .engine import RelayPhase, SyncEngine
from .sync import HubClient, LeafClient

logger = get_service_logger("relay.service")


class RelayService:
    """
    Relay process.

    Args:
        settings: Relay settings
        engine: Prebuilt engine (built from settings when omitted)
    """

    def __init__(self, settings: RelaySettings, engine: SyncEngine | None = None):
        self.settings = settings

        if engine is None:
            engine = SyncEngine(
                hub=HubClient(settings.hub_url, timeout=settings.fetch_timeout),
                leaf=LeafClient(
                    settings.leaf_url, settings.leaf_key, timeout=settings.push_timeout
                ),
                cache=RelayCache(settings.state_dir),
                settings=settings,
            )
        self.engine = engine

        self._start_time = datetime.now(timezone.utc)
        self._health_runner: web.AppRunner | None = None
        self._engine_task: asyncio.Task | None = None
        self._shutdown_event = asyncio.Event()

    async def start(self) -> None:
        """Run until a shutdown signal or until the engine exits."""
        logger.info(
            f"Starting relay (hub: {self.settings.hub_url}, leaf: {self.settings.leaf_url})"
        )

        await self._start_health_server()
        self._setup_signal_handlers()

        self._engine_task = asyncio.create_task(self.engine.run(self._shutdown_event))
        shutdown_task = asyncio.create_task(self._shutdown_event.wait())

        await asyncio.wait(
            {self._engine_task, shutdown_task},
            return_when=asyncio.FIRST_COMPLETED,
        )
        self._shutdown_event.set()
        shutdown_task.cancel()

        # Let an in-flight fetch/push finish; surfaces startup failures
        await self._engine_task

    async def stop(self) -> None:
        """Stop health server and close clients"""
        logger.info("Stopping relay")

        self._shutdown_event.set()
        if self._engine_task and not self._engine_task.done():
            self._engine_task.cancel()
            try:
                await self._engine_task
            except asyncio.CancelledError:
                pass

        await self._stop_health_server()
        await self.engine.hub.close()
        await self.engine.leaf.close()

        logger.info("Relay stopped")

    def request_shutdown(self) -> None:
        """Handle shutdown signal"""
        logger.info("Received shutdown signal")
        self._shutdown_event.set()

    def _setup_signal_handlers(self) -> None:
        """Setup graceful shutdown signal handlers"""
        loop = asyncio.get_running_loop()

        for sig in (signal.SIGTERM, signal.SIGINT):
            try:
                loop.add_signal_handler(sig, self.request_shutdown)
            except NotImplementedError:
                # Windows doesn't support add_signal_handler
                signal.signal(sig, lambda s, f: self.request_shutdown())

    # =========================================================================
    # Health server
    # =========================================================================

    def create_health_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/health", self._health_handler)
        app.router.add_post("/sync", self._sync_handler)
        return app

    async def _start_health_server(self) -> None:
        """Start the health check HTTP server"""
        self._health_runner = web.AppRunner(self.create_health_app())
        await self._health_runner.setup()

        site = web.TCPSite(
            self._health_runner, self.settings.health_host, self.settings.health_port
        )
        await site.start()

        logger.info(f"Health server started on port {self.settings.health_port}")

    async def _stop_health_server(self) -> None:
        if self._health_runner:
            await self._health_runner.cleanup()
            self._health_runner = None

    async def _health_handler(self, request: web.Request) -> web.Response:
        uptime = (datetime.now(timezone.utc) - self._start_time).total_seconds()
        snapshot = await self.engine.snapshot()
        healthy = (
            self.engine.phase in (RelayPhase.INITIAL_SYNC, RelayPhase.POLLING)
            and snapshot["registered"]
        )

        return web.json_response({
            "status": "healthy" if healthy else "unhealthy",
            "service": "relay",
            "uptime": int(uptime),
            "timestamp": datetime.now(timezone.utc).isoformat(),
            **snapshot,
        })

    async def _sync_handler(self, request: web.Request) -> web.Response:
        """Handle force sync requests"""
        if self.engine.phase != RelayPhase.POLLING:
            return web.json_response(
                {"success": False, "error": f"relay is {self.engine.phase.value}"},
                status=409,
            )

        try:
            outcome = await self.engine.force_sync()
        except UnauthorizedError as e:
            # The engine has already cleared the credential and is stopping
            return web.json_response(
                {"success": False, "error": e.message}, status=e.http_status
            )

        snapshot = await self.engine.snapshot()
        return web.json_response({
            "success": True,
            "outcome": outcome.value,
            "last_applied_version": snapshot["last_applied_version"],
        })


async def run_relay(settings: RelaySettings) -> None:
    service = RelayService(settings)
    try:
        await service.start()
    except FleetSyncError as e:
        logger.error(f"Relay failed: {e.message}")
        raise
    finally:
        await service.stop()
