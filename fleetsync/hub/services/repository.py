"""
Configuration Repository

Durable storage for configurations and registered relays.

Two backends:
- SQLiteRepository - single-file database on the hub host
- SupabaseRepository - Supabase (PostgreSQL) tables through the supabase client

The hub picks one through HubSettings.storage_backend.
"""

import sqlite3
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from supabase import Client, create_client

from fleetsync.common.config import Configuration, RelayIdentity
from fleetsync.common.exceptions import InternalError, TransientError
from fleetsync.common.logging_setup import get_service_logger

logger = get_service_logger("hub.repository")


class ConfigRepository(ABC):
    """Storage operations the store and registry depend on"""

    def connect(self) -> None:
        """Prepare the backend (create schema, open client)"""

    @abstractmethod
    def get_latest_config(self) -> Configuration | None:
        """Row with the highest version, or None if the table is empty"""

    @abstractmethod
    def insert_config(self, config: Configuration) -> None:
        ...

    @abstractmethod
    def update_config(self, config: Configuration) -> None:
        """Overwrite target and interval of the row with config.id"""

    @abstractmethod
    def insert_relay(self, identity: RelayIdentity) -> None:
        ...

    @abstractmethod
    def get_relay(self, relay_id: str) -> RelayIdentity | None:
        ...


# =============================================================================
# SQLITE
# =============================================================================

class SQLiteRepository(ConfigRepository):
    """
    SQLite-backed repository.

    One short-lived connection per operation, so the repository can be
    shared by FastAPI's worker threads.
    """

    def __init__(self, db_path: str):
        self.db_path = Path(db_path)

    @contextmanager
    def _get_connection(self) -> Iterator[sqlite3.Connection]:
        """Connection with row factory; commits on success, always closes."""
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def connect(self) -> None:
        """Create database tables if they don't exist."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        with self._get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS configs (
                    id TEXT PRIMARY KEY,
                    version INTEGER NOT NULL UNIQUE,
                    target TEXT NOT NULL,
                    interval INTEGER NOT NULL,
                    created_at TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS relays (
                    id TEXT PRIMARY KEY,
                    created_at TEXT NOT NULL
                )
            """)

        logger.info(f"SQLite repository ready at {self.db_path}")

    def get_latest_config(self) -> Configuration | None:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT id, version, target, interval, created_at "
                "FROM configs ORDER BY version DESC LIMIT 1"
            ).fetchone()

        if row is None:
            return None
        return Configuration.from_dict(dict(row))

    def insert_config(self, config: Configuration) -> None:
        try:
            with self._get_connection() as conn:
                conn.execute(
                    "INSERT INTO configs (id, version, target, interval, created_at) "
                    "VALUES (?, ?, ?, ?, ?)",
                    (config.id, config.version, config.target,
                     config.interval, config.created_at),
                )
        except sqlite3.IntegrityError as e:
            raise InternalError(f"Version {config.version} already stored: {e}") from e

    def update_config(self, config: Configuration) -> None:
        with self._get_connection() as conn:
            conn.execute(
                "UPDATE configs SET target = ?, interval = ? WHERE id = ?",
                (config.target, config.interval, config.id),
            )

    def insert_relay(self, identity: RelayIdentity) -> None:
        with self._get_connection() as conn:
            conn.execute(
                "INSERT INTO relays (id, created_at) VALUES (?, ?)",
                (identity.id, identity.created_at),
            )

    def get_relay(self, relay_id: str) -> RelayIdentity | None:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT id, created_at FROM relays WHERE id = ?", (relay_id,)
            ).fetchone()

        if row is None:
            return None
        return RelayIdentity.from_dict(dict(row))


# =============================================================================
# SUPABASE
# =============================================================================

class SupabaseRepository(ConfigRepository):
    """
    Supabase-backed repository using tables ``configs`` and ``relays``.

    Any client failure surfaces as TransientError.
    """

    CONFIGS_TABLE = "configs"
    RELAYS_TABLE = "relays"

    def __init__(self, client: Client):
        self.client = client

    @classmethod
    def from_credentials(cls, url: str, key: str) -> "SupabaseRepository":
        if not url or not key:
            raise InternalError(
                "Supabase credentials not configured. Set "
                "FLEETSYNC_HUB_SUPABASE_URL and FLEETSYNC_HUB_SUPABASE_SERVICE_KEY."
            )
        return cls(create_client(url, key))

    def get_latest_config(self) -> Configuration | None:
        try:
            result = (
                self.client.table(self.CONFIGS_TABLE)
                .select("*")
                .order("version", desc=True)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise TransientError(f"Supabase query failed: {e}", "get_latest_config") from e

        if not result.data:
            return None
        return Configuration.from_dict(result.data[0])

    def insert_config(self, config: Configuration) -> None:
        try:
            self.client.table(self.CONFIGS_TABLE).insert(config.to_dict()).execute()
        except Exception as e:
            raise TransientError(f"Supabase insert failed: {e}", "insert_config") from e

    def update_config(self, config: Configuration) -> None:
        try:
            (
                self.client.table(self.CONFIGS_TABLE)
                .update({"target": config.target, "interval": config.interval})
                .eq("id", config.id)
                .execute()
            )
        except Exception as e:
            raise TransientError(f"Supabase update failed: {e}", "update_config") from e

    def insert_relay(self, identity: RelayIdentity) -> None:
        try:
            self.client.table(self.RELAYS_TABLE).insert(identity.to_dict()).execute()
        except Exception as e:
            raise TransientError(f"Supabase insert failed: {e}", "insert_relay") from e

    def get_relay(self, relay_id: str) -> RelayIdentity | None:
        try:
            result = (
                self.client.table(self.RELAYS_TABLE)
                .select("id, created_at")
                .eq("id", relay_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise TransientError(f"Supabase query failed: {e}", "get_relay") from e

        if not result.data:
            return None
        return RelayIdentity.from_dict(result.data[0])


def build_repository(settings) -> ConfigRepository:
    """Repository for the configured storage backend, already connected."""
    backend = settings.storage_backend.lower()
    if backend == "sqlite":
        repository = SQLiteRepository(settings.sqlite_path)
    elif backend == "supabase":
        repository = SupabaseRepository.from_credentials(
            settings.supabase_url, settings.supabase_service_key
        )
    else:
        raise InternalError(f"Unknown storage backend: {settings.storage_backend}")

    repository.connect()
    return repository
