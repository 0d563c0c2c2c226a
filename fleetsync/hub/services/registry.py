"""
Relay Registry

Self-registration of relays and authentication of their identity tokens.
"""

from fleetsync.common import signing
from fleetsync.common.config import RelayIdentity
from fleetsync.common.exceptions import UnauthorizedError
from fleetsync.common.logging_setup import get_service_logger

from .repository import ConfigRepository

logger = get_service_logger("hub.registry")


class RelayRegistry:
    """Issues and checks relay credentials"""

    def __init__(
        self,
        repository: ConfigRepository,
        signing_secret: str,
        registration_secret: str,
    ):
        self.repository = repository
        self.signing_secret = signing_secret
        self.registration_secret = registration_secret

    def register(self) -> str:
        """Create and persist a relay identity; return its signed token."""
        identity = RelayIdentity()
        self.repository.insert_relay(identity)
        logger.info(f"Relay registered: {identity.id}", extra={"relay_id": identity.id})
        return signing.issue(identity.id, self.signing_secret)

    def registration_token(self) -> str:
        return signing.hash_registration_secret(self.registration_secret)

    def check_registration(self, token: str) -> None:
        if not token or not signing.check_registration_token(token, self.registration_secret):
            raise UnauthorizedError("Invalid registration token")

    def authenticate(self, token: str) -> str:
        """
        Verify a relay identity token.

        Returns:
            The relay id

        Raises:
            UnauthorizedError: malformed token, bad signature or unknown relay
        """
        valid, relay_id = signing.verify(token, self.signing_secret)
        if not valid:
            raise UnauthorizedError("Invalid identity token signature")

        if self.repository.get_relay(relay_id) is None:
            logger.warning(f"Token for unknown relay: {relay_id}")
            raise UnauthorizedError("Unknown relay")

        return relay_id
