"""
Configuration Dataclasses

Type-safe structures for the distributed configuration, the relay
identity and the relay/leaf process settings, plus the shared constants
every role agrees on.
"""

import os
import uuid
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import yaml

from .exceptions import ValidationFailedError
from .logging_setup import get_service_logger

logger = get_service_logger("config")


# Minimum poll interval in seconds, enforced by hub writes and leaf pushes
MIN_INTERVAL_SECONDS = 30

# Unchanged polls tolerated before the relay forces a heartbeat push
DEFAULT_HEARTBEAT_THRESHOLD = 3


def utc_now_iso() -> str:
    """Current UTC time as ISO-8601 string"""
    return datetime.now(timezone.utc).isoformat()


def _require(data: dict[str, Any], key: str, kind: type) -> Any:
    value = data.get(key)
    # bool is an int subclass; never accept it as a version or interval
    if value is None or isinstance(value, bool) or not isinstance(value, kind):
        raise ValidationFailedError(
            f"Field '{key}' is required and must be {kind.__name__}",
            field=key,
        )
    return value


@dataclass(frozen=True)
class Configuration:
    """The distributed unit of truth (one current row at the hub)"""
    id: str
    version: int
    target: str
    interval: int
    created_at: str = ""

    @classmethod
    def new(cls, version: int, target: str, interval: int) -> "Configuration":
        """Build a fresh configuration with a generated id and timestamp"""
        return cls(
            id=str(uuid.uuid4()),
            version=version,
            target=target,
            interval=interval,
            created_at=utc_now_iso(),
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Configuration":
        """
        Load a Configuration from its flat JSON shape.

        Raises:
            ValidationFailedError: if a required field is missing or mistyped
        """
        if not isinstance(data, dict):
            raise ValidationFailedError("Configuration must be a JSON object")

        return cls(
            id=_require(data, "id", str),
            version=_require(data, "version", int),
            target=_require(data, "target", str),
            interval=_require(data, "interval", int),
            created_at=data.get("created_at") or "",
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def push_payload(self) -> dict[str, Any]:
        """Body sent from relay to leaf"""
        return {
            "target": self.target,
            "interval": self.interval,
            "version": self.version,
            "id": self.id,
        }

    def with_changes(self, **changes: Any) -> "Configuration":
        return replace(self, **changes)


@dataclass(frozen=True)
class RelayIdentity:
    """Credential subject proving a relay has registered"""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: str = field(default_factory=utc_now_iso)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RelayIdentity":
        return cls(id=str(data["id"]), created_at=data.get("created_at") or "")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# =============================================================================
# PROCESS SETTINGS (relay and leaf, loaded from YAML)
# =============================================================================

DEFAULT_CONFIG_DIRS = ("/etc/fleetsync", "/opt/fleetsync")


def find_config_path(role: str, explicit: str | None = None) -> Path | None:
    """
    Locate the YAML settings file for a role.

    Order: explicit path, FLEETSYNC_CONFIG, /etc/fleetsync/<role>.yaml,
    /opt/fleetsync/<role>.yaml, ./<role>.yaml.
    """
    if explicit:
        return Path(explicit)

    env_path = os.environ.get("FLEETSYNC_CONFIG")
    if env_path:
        return Path(env_path)

    possible_paths = [Path(d) / f"{role}.yaml" for d in DEFAULT_CONFIG_DIRS]
    possible_paths.append(Path.cwd() / f"{role}.yaml")

    for path in possible_paths:
        if path.exists():
            return path
    return None


def load_yaml(path: Path | None) -> dict[str, Any]:
    """Load a YAML mapping; missing files yield an empty dict"""
    if path is None:
        return {}

    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.warning(f"Config file not found: {path}")
        return {}
    except yaml.YAMLError as e:
        raise ValidationFailedError(f"Error parsing config {path}: {e}") from e

    if not isinstance(data, dict):
        raise ValidationFailedError(f"Config {path} must be a YAML mapping")
    return data


@dataclass
class RelaySettings:
    """Relay process settings"""
    hub_url: str = "http://127.0.0.1:8000"
    registration_token: str = ""
    leaf_url: str = "http://127.0.0.1:8090"
    leaf_key: str = ""
    state_dir: str = "/var/lib/fleetsync/relay"
    check_interval: int = MIN_INTERVAL_SECONDS
    initial_retry_seconds: float = 30.0
    heartbeat_threshold: int = DEFAULT_HEARTBEAT_THRESHOLD
    fetch_timeout: float = 30.0
    push_timeout: float = 10.0
    health_host: str = "127.0.0.1"
    health_port: int = 8085

    def __post_init__(self):
        if self.check_interval < MIN_INTERVAL_SECONDS:
            logger.warning(
                f"check_interval {self.check_interval}s below floor, "
                f"using {MIN_INTERVAL_SECONDS}s"
            )
            self.check_interval = MIN_INTERVAL_SECONDS

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RelaySettings":
        hub = data.get("hub", {}) or {}
        leaf = data.get("leaf", {}) or {}
        sync = data.get("sync", {}) or {}
        health = data.get("health", {}) or {}

        return cls(
            hub_url=hub.get("url") or os.environ.get("FLEETSYNC_HUB_URL", cls.hub_url),
            registration_token=(
                hub.get("registration_token")
                or os.environ.get("FLEETSYNC_REGISTRATION_TOKEN", "")
            ),
            leaf_url=leaf.get("url") or os.environ.get("FLEETSYNC_LEAF_URL", cls.leaf_url),
            leaf_key=leaf.get("key") or os.environ.get("FLEETSYNC_LEAF_KEY", ""),
            state_dir=(
                data.get("state_dir")
                or os.environ.get("FLEETSYNC_STATE_DIR", cls.state_dir)
            ),
            check_interval=int(sync.get("check_interval", MIN_INTERVAL_SECONDS)),
            initial_retry_seconds=float(sync.get("initial_retry_seconds", 30.0)),
            heartbeat_threshold=int(
                sync.get("heartbeat_threshold", DEFAULT_HEARTBEAT_THRESHOLD)
            ),
            fetch_timeout=float(sync.get("fetch_timeout", 30.0)),
            push_timeout=float(sync.get("push_timeout", 10.0)),
            health_host=health.get("host", cls.health_host),
            health_port=int(health.get("port", cls.health_port)),
        )

    @classmethod
    def load(cls, explicit_path: str | None = None) -> "RelaySettings":
        return cls.from_dict(load_yaml(find_config_path("relay", explicit_path)))


@dataclass
class LeafSettings:
    """Leaf process settings"""
    host: str = "0.0.0.0"
    port: int = 8090
    key: str = ""
    task_timeout: float = 10.0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LeafSettings":
        server = data.get("server", {}) or {}
        port = server.get("port") or os.environ.get("FLEETSYNC_LEAF_PORT") or cls.port

        return cls(
            host=server.get("host", cls.host),
            port=int(port),
            key=data.get("key") or os.environ.get("FLEETSYNC_LEAF_KEY", ""),
            task_timeout=float(data.get("task_timeout", cls.task_timeout)),
        )

    @classmethod
    def load(cls, explicit_path: str | None = None) -> "LeafSettings":
        return cls.from_dict(load_yaml(find_config_path("leaf", explicit_path)))
