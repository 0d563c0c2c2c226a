"""
Signed-Identity Protocol

Stateless relay credentials: a token binds an identity value to a shared
secret with HMAC-SHA256, so the hub can authenticate recurring requests
without a session table.

Token format:
    base64(identity) + "." + base64(HMAC-SHA256(secret, identity))

A separate registration bearer token is a salted, slow PBKDF2 hash of the
shared registration secret. It only authorizes self-registration.
"""

import base64
import binascii
import hashlib
import hmac
import secrets

from .exceptions import MalformedTokenError, ValidationFailedError

DELIMITER = "."

REGISTRATION_SCHEME = "pbkdf2_sha256"
DEFAULT_REGISTRATION_ROUNDS = 200_000


def _sign(identity_value: str, secret: str) -> bytes:
    return hmac.new(
        secret.encode("utf-8"), identity_value.encode("utf-8"), hashlib.sha256
    ).digest()


def issue(identity_value: str, secret: str) -> str:
    """
    Issue a signed token for an identity.

    Raises:
        ValidationFailedError: if identity_value or secret is empty
    """
    if not identity_value or not secret:
        raise ValidationFailedError("identity value and secret cannot be empty")

    encoded_identity = base64.b64encode(identity_value.encode("utf-8")).decode("ascii")
    encoded_signature = base64.b64encode(_sign(identity_value, secret)).decode("ascii")
    return f"{encoded_identity}{DELIMITER}{encoded_signature}"


def verify(token: str, secret: str) -> tuple[bool, str]:
    """
    Verify a signed token.

    Returns:
        (True, identity_value) when the signature matches,
        (False, "") when it does not

    Raises:
        MalformedTokenError: wrong number of parts or invalid base64 (including non-ASCII input)
    """
    parts = token.split(DELIMITER)
    if len(parts) != 2:
        raise MalformedTokenError()

    try:
        identity_value = base64.b64decode(parts[0], validate=True).decode("utf-8")
        presented_signature = base64.b64decode(parts[1], validate=True)
    except ValueError as e:
        raise MalformedTokenError(f"Invalid signed token encoding: {e}") from e

    expected_signature = _sign(identity_value, secret)
    if not hmac.compare_digest(presented_signature, expected_signature):
        return False, ""

    return True, identity_value


def _pbkdf2(secret: str, salt: bytes, rounds: int) -> bytes:
    return hashlib.pbkdf2_hmac("sha256", secret.encode("utf-8"), salt, rounds)


def hash_registration_secret(
    secret: str,
    rounds: int = DEFAULT_REGISTRATION_ROUNDS,
    salt: bytes | None = None,
) -> str:
    """
    Produce a registration bearer token from the shared registration secret.

    Args:
        secret: Raw registration secret configured on the hub
        rounds: PBKDF2 iteration count (cost parameter)
        salt: Optional fixed salt; random 16 bytes by default

    Returns:
        "pbkdf2_sha256$<rounds>$<salt_b64>$<hash_b64>"
    """
    if not secret:
        raise ValidationFailedError("registration secret cannot be empty")
    if rounds < 1:
        raise ValidationFailedError("rounds must be positive", field="rounds")

    salt = salt if salt is not None else secrets.token_bytes(16)
    digest = _pbkdf2(secret, salt, rounds)
    return "$".join((
        REGISTRATION_SCHEME,
        str(rounds),
        base64.b64encode(salt).decode("ascii"),
        base64.b64encode(digest).decode("ascii"),
    ))


def check_registration_token(token: str, secret: str) -> bool:
    """
    Check that a registration bearer token was derived from ``secret``.

    Malformed tokens are simply not valid.
    """
    parts = token.split("$")
    if len(parts) != 4 or parts[0] != REGISTRATION_SCHEME:
        return False

    try:
        rounds = int(parts[1])
        salt = base64.b64decode(parts[2], validate=True)
        expected = base64.b64decode(parts[3], validate=True)
    except (ValueError, binascii.Error):
        return False

    if rounds < 1:
        return False

    return hmac.compare_digest(_pbkdf2(secret, salt, rounds), expected)
