"""Tests for signed identity tokens and registration tokens."""

import base64

import pytest

from fleetsync.common import signing
from fleetsync.common.exceptions import (
    MalformedTokenError,
    UnauthorizedError,
    ValidationFailedError,
)


class TestIssueVerify:
    """Tests for issue() and verify()."""

    def test_issued_token_verifies(self):
        token = signing.issue("relay-1", "secret")

        assert signing.verify(token, "secret") == (True, "relay-1")

    def test_wrong_secret_fails(self):
        token = signing.issue("relay-1", "secret")

        valid, identity = signing.verify(token, "other-secret")

        assert valid is False
        assert identity == ""

    def test_token_shape(self):
        """Identity part is plain base64 of the identity value."""
        token = signing.issue("relay-1", "secret")
        encoded_identity, encoded_signature = token.split(".")

        assert base64.b64decode(encoded_identity) == b"relay-1"
        assert len(base64.b64decode(encoded_signature)) == 32

    def test_issue_is_deterministic(self):
        assert signing.issue("relay-1", "secret") == signing.issue("relay-1", "secret")

    def test_tampered_identity_fails(self):
        token = signing.issue("relay-1", "secret")
        _, signature = token.split(".")
        forged = base64.b64encode(b"relay-2").decode() + "." + signature

        assert signing.verify(forged, "secret")[0] is False

    @pytest.mark.parametrize("token", ["", "abc", "a.b.c", "!!!.???", "é.YQ==", "YQ==.é"])
    def test_malformed_tokens_raise(self, token):
        with pytest.raises(MalformedTokenError):
            signing.verify(token, "secret")

    def test_malformed_is_unauthorized(self):
        with pytest.raises(UnauthorizedError):
            signing.verify("no-delimiter", "secret")

    @pytest.mark.parametrize("identity,secret", [("", "secret"), ("relay-1", "")])
    def test_empty_input_rejected(self, identity, secret):
        with pytest.raises(ValidationFailedError):
            signing.issue(identity, secret)


class TestRegistrationToken:
    """Tests for the slow-hash registration token."""

    def test_token_checks_against_secret(self):
        token = signing.hash_registration_secret("reg-secret", rounds=1000)

        assert signing.check_registration_token(token, "reg-secret") is True
        assert signing.check_registration_token(token, "wrong") is False

    def test_token_format(self):
        token = signing.hash_registration_secret("reg-secret", rounds=1000)
        scheme, rounds, salt, digest = token.split("$")

        assert scheme == "pbkdf2_sha256"
        assert rounds == "1000"
        assert len(base64.b64decode(salt)) == 16
        assert len(base64.b64decode(digest)) == 32

    def test_tokens_are_salted(self):
        first = signing.hash_registration_secret("reg-secret", rounds=1000)
        second = signing.hash_registration_secret("reg-secret", rounds=1000)

        assert first != second

    @pytest.mark.parametrize("token", [
        "",
        "pbkdf2_sha256$1000$abc",
        "md5$1000$c2FsdA==$ZGlnZXN0",
        "pbkdf2_sha256$many$c2FsdA==$ZGlnZXN0",
        "pbkdf2_sha256$0$c2FsdA==$ZGlnZXN0",
        "pbkdf2_sha256$1000$!!!$ZGlnZXN0",
    ])
    def test_malformed_tokens_are_invalid(self, token):
        assert signing.check_registration_token(token, "reg-secret") is False

    def test_identity_token_is_not_a_registration_token(self):
        token = signing.issue("relay-1", "reg-secret")

        assert signing.check_registration_token(token, "reg-secret") is False
