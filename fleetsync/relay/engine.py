"""
Relay Sync Engine

Drives the pipeline between hub and leaf:
1. Register with the hub unless a credential is cached
2. Initial sync: fetch (retrying with a fixed backoff) and push
3. Poll every current_interval seconds; push when the version moved
   forward, or as a heartbeat after too many unchanged polls

State lives in RelayState and is only read or mutated under an
asyncio.Lock that is never held across a fetch or a push. A rejected
credential is cleared and stops the loop.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any

from fleetsync.common.config import (
    MIN_INTERVAL_SECONDS,
    Configuration,
    RelaySettings,
)
from fleetsync.common.exceptions import (
    NotFoundError,
    TransientError,
    UnauthorizedError,
)
from fleetsync.common.logging_setup import (
    get_service_logger,
    log_config_event,
    log_scope,
)

from .cache import RelayCache
from .sync import HubClient, LeafClient
from .validator import ConfigValidator

logger = get_service_logger("relay.engine")


class RelayPhase(str, Enum):
    """Lifecycle of the relay"""
    UNREGISTERED = "unregistered"
    REGISTERING = "registering"
    INITIAL_SYNC = "initial_sync"
    POLLING = "polling"
    SHUTTING_DOWN = "shutting_down"


class PollOutcome(str, Enum):
    """Result of one polling cycle"""
    FETCH_FAILED = "fetch_failed"
    UNCHANGED = "unchanged"
    PUSH_FAILED = "push_failed"
    PUSHED = "pushed"
    HEARTBEAT = "heartbeat"


@dataclass
class RelayState:
    last_seen_version: int = 0
    last_applied: Configuration | None = None
    current_interval: int = MIN_INTERVAL_SECONDS
    unchanged_polls: int = 0
    credential: str | None = None


class SyncEngine:
    """
    Poll/detect/push loop of one relay.

    Args:
        hub: Client for the hub API
        leaf: Client for the leaf config endpoint
        cache: Durable credential and config snapshots
        settings: Relay settings (intervals, thresholds, registration token)
    """

    def __init__(
        self,
        hub: HubClient,
        leaf: LeafClient,
        cache: RelayCache,
        settings: RelaySettings,
        validator: ConfigValidator | None = None,
    ):
        self.hub = hub
        self.leaf = leaf
        self.cache = cache
        self.settings = settings
        self.validator = validator or ConfigValidator()

        self.phase = RelayPhase.UNREGISTERED
        self.state = RelayState(current_interval=settings.check_interval)
        self._lock = asyncio.Lock()
        # Serializes whole cycles so a forced sync never overlaps a tick
        self._cycle_lock = asyncio.Lock()
        self._interval_events: asyncio.Queue[int] = asyncio.Queue()
        self._stop_event = asyncio.Event()
        self._rejected: UnauthorizedError | None = None
        self._cycles = 0

        previous = cache.load_config()
        if previous is not None:
            self.state.last_seen_version = previous.version
            logger.info(
                f"Last fetched config on disk: v{previous.version}",
                extra={"version": previous.version},
            )

    # =========================================================================
    # Registration
    # =========================================================================

    async def ensure_registered(self) -> str:
        """
        Load the cached credential or register with the hub.

        Raises:
            UnauthorizedError, TransientError: registration failed
        """
        self.phase = RelayPhase.REGISTERING

        credential = self.cache.load_credential()
        if credential:
            logger.info("Using cached credential, skipping registration")
        else:
            logger.info(f"Registering with hub at {self.hub.base_url}")
            credential = await self.hub.register(self.settings.registration_token)
            self.cache.save_credential(credential)
            logger.info("Registration complete")

        async with self._lock:
            self.state.credential = credential
        return credential

    # =========================================================================
    # Initial sync
    # =========================================================================

    async def initial_sync(self) -> Configuration | None:
        """
        Fetch the configuration until it succeeds, then push it once.

        Returns:
            The fetched configuration, or None if stopped while retrying

        Raises:
            UnauthorizedError: credential rejected (cached credential is cleared)
        """
        self.phase = RelayPhase.INITIAL_SYNC
        retry_seconds = self.settings.initial_retry_seconds
        attempt = 0

        while not self._stop_event.is_set():
            attempt += 1
            try:
                fetched = await self._fetch()
                break
            except UnauthorizedError as e:
                logger.error("Hub rejected credential during initial sync")
                await self._reject_credential(e)
                raise
            except (NotFoundError, TransientError) as e:
                logger.warning(
                    f"Initial fetch failed (attempt {attempt}): {e.message}; "
                    f"retrying in {retry_seconds}s",
                    extra={"attempt": attempt},
                )
            if await self._wait_for_stop(retry_seconds):
                return None
        else:
            return None

        async with self._lock:
            self.state.current_interval = fetched.interval
            self._record_fetched(fetched)

        try:
            await self.leaf.push(fetched)
        except TransientError as e:
            logger.error(f"Initial push failed: {e.message}")
        else:
            async with self._lock:
                self._record_applied(fetched)
            log_config_event(logger, "Initial config pushed", fetched)

        return fetched

    # =========================================================================
    # Polling
    # =========================================================================

    async def poll_once(self) -> PollOutcome:
        """
        Run one fetch/compare/push cycle.

        Raises:
            UnauthorizedError: credential rejected; the credential is cleared
                and the run loop stops
        """
        async with self._cycle_lock:
            self._cycles += 1
            with log_scope(cycle=self._cycles):
                return await self._poll_cycle()

    async def _poll_cycle(self) -> PollOutcome:
        try:
            fetched = await self._fetch()
        except UnauthorizedError as e:
            logger.error("Hub rejected credential while polling")
            await self._reject_credential(e)
            raise
        except (NotFoundError, TransientError) as e:
            logger.warning(f"Poll fetch failed: {e.message}")
            return PollOutcome.FETCH_FAILED

        async with self._lock:
            self._record_fetched(fetched)
            self.state.unchanged_polls += 1
            last_applied = self.state.last_applied
            is_new = last_applied is None or fetched.version > last_applied.version
            should_push = (
                is_new
                or self.state.unchanged_polls > self.settings.heartbeat_threshold
            )
            unchanged_polls = self.state.unchanged_polls

        if not should_push:
            logger.debug(
                f"Config v{fetched.version} unchanged ({unchanged_polls} polls)",
                extra={"version": fetched.version, "unchanged_polls": unchanged_polls},
            )
            return PollOutcome.UNCHANGED

        try:
            await self.leaf.push(fetched)
        except TransientError as e:
            logger.error(f"Push of v{fetched.version} failed: {e.message}")
            return PollOutcome.PUSH_FAILED

        async with self._lock:
            self._record_applied(fetched)
            if fetched.interval != self.state.current_interval:
                logger.info(
                    f"Poll interval changed: {self.state.current_interval}s -> "
                    f"{fetched.interval}s"
                )
                self.state.current_interval = fetched.interval
                self._interval_events.put_nowait(fetched.interval)

        outcome = PollOutcome.PUSHED if is_new else PollOutcome.HEARTBEAT
        log_config_event(logger, f"Config {outcome.value}", fetched, outcome=outcome.value)
        return outcome

    async def force_sync(self) -> PollOutcome:
        """Run one cycle now, outside the regular schedule."""
        logger.info("Manual sync requested")
        return await self.poll_once()

    async def run(self, stop_event: asyncio.Event) -> None:
        """
        Registration, initial sync, then polling until stop_event is set.

        Raises:
            UnauthorizedError: the hub rejected the credential, including
                during a forced sync from another task
        """
        self._stop_event = stop_event
        try:
            await self.ensure_registered()
            if await self.initial_sync() is None:
                return

            self.phase = RelayPhase.POLLING
            async with self._lock:
                interval = self.state.current_interval
            logger.info(f"Polling every {interval}s", extra={"interval": interval})

            while not stop_event.is_set():
                if await self._wait_for_tick():
                    await self.poll_once()

            if self._rejected is not None:
                raise self._rejected
        finally:
            self.phase = RelayPhase.SHUTTING_DOWN
            logger.info("Sync engine stopped")

    async def snapshot(self) -> dict[str, Any]:
        """Read-only view for the health endpoint"""
        async with self._lock:
            last_applied = self.state.last_applied
            return {
                "phase": self.phase.value,
                "registered": self.state.credential is not None,
                "last_seen_version": self.state.last_seen_version,
                "last_applied_version": last_applied.version if last_applied else None,
                "current_interval": self.state.current_interval,
                "unchanged_polls": self.state.unchanged_polls,
                "cycles": self._cycles,
            }

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _fetch(self) -> Configuration:
        async with self._lock:
            credential = self.state.credential
        if not credential:
            raise TransientError("Relay is not registered", "fetch_config")

        fetched = await self.hub.fetch_config(credential)

        valid, errors = self.validator.validate(fetched)
        if not valid:
            raise TransientError(f"Invalid config from hub: {'; '.join(errors)}", "validate")
        return fetched

    def _record_fetched(self, config: Configuration) -> None:
        """Caller holds self._lock. Snapshots configs newer than any seen."""
        if self.state.last_seen_version and config.version <= self.state.last_seen_version:
            return
        self.state.last_seen_version = config.version
        self._save_snapshot(config)

    def _record_applied(self, config: Configuration) -> None:
        """Caller holds self._lock."""
        self.state.last_applied = config
        self.state.last_seen_version = config.version
        self.state.unchanged_polls = 0
        self._save_snapshot(config)

    def _save_snapshot(self, config: Configuration) -> None:
        try:
            self.cache.save_config(config)
        except OSError as e:
            logger.error(f"Failed to write config snapshot: {e}")

    async def _reject_credential(self, error: UnauthorizedError) -> None:
        """Clear the credential and stop the run loop with the error."""
        self.cache.clear_credential()
        async with self._lock:
            self.state.credential = None
        self._rejected = error
        self._stop_event.set()

    async def _wait_for_stop(self, timeout: float) -> bool:
        """Sleep up to timeout; True if stop was requested meanwhile."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True

    async def _wait_for_tick(self) -> bool:
        """
        Wait for the next poll.

        Returns True on timeout (poll now). Returns False when stopped or
        when an interval-change event restarted the wait.
        """
        async with self._lock:
            interval = self.state.current_interval

        event_task = asyncio.ensure_future(self._interval_events.get())
        stop_task = asyncio.ensure_future(self._stop_event.wait())

        done, pending = await asyncio.wait(
            {event_task, stop_task},
            timeout=interval,
            return_when=asyncio.FIRST_COMPLETED,
        )
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

        if stop_task in done:
            return False
        if event_task in done:
            logger.debug(f"Wait reset to {event_task.result()}s")
            return False
        return True
