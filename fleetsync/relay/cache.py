"""
Relay Local Cache

Durable relay state under state_dir:
- credential.json - {"credential_key": "<identity token>"}
- config.json - newest configuration fetched from the hub (or last pushed)
"""

from pathlib import Path

from fleetsync.common.config import Configuration
from fleetsync.common.exceptions import ValidationFailedError
from fleetsync.common.logging_setup import get_service_logger
from fleetsync.common.state import JsonSnapshot

logger = get_service_logger("relay.cache")


class RelayCache:
    """Credential and configuration snapshots"""

    def __init__(self, state_dir: Path | str):
        self.state_dir = Path(state_dir)
        self._credential = JsonSnapshot(self.state_dir, "credential")
        self._config = JsonSnapshot(self.state_dir, "config")

    def load_credential(self) -> str | None:
        data = self._credential.read()
        if not data:
            return None
        credential = data.get("credential_key")
        if not isinstance(credential, str) or not credential:
            logger.warning("credential.json has no credential_key")
            return None
        return credential

    def save_credential(self, credential: str) -> None:
        self._credential.write({"credential_key": credential})
        logger.info("Credential saved")

    def clear_credential(self) -> None:
        if self._credential.delete():
            logger.info("Credential cleared")

    def load_config(self) -> Configuration | None:
        data = self._config.read()
        if data is None:
            return None
        try:
            return Configuration.from_dict(data)
        except ValidationFailedError as e:
            logger.warning(f"Ignoring invalid config snapshot: {e.message}")
            return None

    def save_config(self, config: Configuration) -> None:
        self._config.write(config.to_dict())
