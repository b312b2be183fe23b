"""
Unit tests for password hashing and token signing.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import jwt
import pytest

from library_api.exceptions import AuthError
from library_api.security import PasswordHasher, TokenService

SECRET = "unit-test-secret-key-that-is-long-enough-0123456789"


@pytest.fixture
def hasher():
    return PasswordHasher(rounds=4)


@pytest.fixture
def tokens():
    return TokenService(secret=SECRET, algorithm="HS256", expires_minutes=5)


class TestPasswordHasher:
    """Test cases for PasswordHasher."""

    def test_hash_is_not_plaintext(self, hasher):
        password_hash = hasher.hash("P@ssw0rd!")
        assert password_hash != "P@ssw0rd!"
        assert password_hash.startswith("$2")

    def test_hash_is_salted(self, hasher):
        assert hasher.hash("P@ssw0rd!") != hasher.hash("P@ssw0rd!")

    def test_verify(self, hasher):
        password_hash = hasher.hash("P@ssw0rd!")
        assert hasher.verify("P@ssw0rd!", password_hash)
        assert not hasher.verify("p@ssw0rd!", password_hash)

    def test_verify_garbage_hash(self, hasher):
        assert not hasher.verify("P@ssw0rd!", "not-a-bcrypt-hash")

    def test_verify_dummy_is_always_false(self, hasher):
        assert hasher.verify_dummy("P@ssw0rd!") is False
        assert hasher.verify_dummy("anything") is False

    def test_verify_dummy_does_not_hash(self, hasher):
        with patch.object(hasher, "hash") as mock_hash, patch.object(hasher, "verify") as mock_verify:
            assert hasher.verify_dummy("P@ssw0rd!") is False
        mock_hash.assert_not_called()
        mock_verify.assert_called_once()


class TestTokenService:
    """Test cases for TokenService."""

    def test_issue_and_verify(self, tokens):
        claims = tokens.verify(tokens.issue("670507e5a85e8b4542098ab9"))
        assert claims.sub == "670507e5a85e8b4542098ab9"
        assert claims.exp > claims.iat

    def test_default_lifetime(self, tokens):
        claims = tokens.verify(tokens.issue("user-1"))
        assert claims.exp - claims.iat == 5 * 60

    def test_repeated_issues_differ(self, tokens):
        assert tokens.issue("user-1") != tokens.issue("user-1")

    def test_expired_token_rejected(self, tokens):
        token = tokens.issue("user-1", expires_delta=timedelta(seconds=-1))
        with pytest.raises(AuthError) as exc_info:
            tokens.verify(token)
        assert exc_info.value.status_code == 401

    def test_foreign_secret_rejected(self, tokens):
        other = TokenService(secret="some-other-secret-that-is-long-enough-9876543210")
        with pytest.raises(AuthError):
            tokens.verify(other.issue("user-1"))

    def test_tampered_token_rejected(self, tokens):
        header, payload, signature = tokens.issue("user-1").split(".")
        tampered = ".".join([header, payload, signature[::-1]])
        with pytest.raises(AuthError):
            tokens.verify(tampered)

    def test_garbage_rejected(self, tokens):
        with pytest.raises(AuthError):
            tokens.verify("not-a-token")

    def test_missing_subject_rejected(self, tokens):
        now = datetime.now(timezone.utc)
        token = jwt.encode({"iat": now, "exp": now + timedelta(minutes=1)}, SECRET, algorithm="HS256")
        with pytest.raises(AuthError):
            tokens.verify(token)

    def test_missing_expiry_rejected(self, tokens):
        token = jwt.encode({"sub": "user-1", "iat": datetime.now(timezone.utc)}, SECRET, algorithm="HS256")
        with pytest.raises(AuthError):
            tokens.verify(token)

    def test_other_algorithm_rejected(self, tokens):
        now = datetime.now(timezone.utc)
        token = jwt.encode(
            {"sub": "user-1", "iat": now, "exp": now + timedelta(minutes=1)},
            SECRET,
            algorithm="HS512"
        )
        with pytest.raises(AuthError):
            tokens.verify(token)

    def test_rejections_share_one_message(self, tokens):
        expired = tokens.issue("user-1", expires_delta=timedelta(seconds=-1))
        forged = TokenService(secret="some-other-secret-that-is-long-enough-9876543210").issue("user-1")
        messages = set()
        for token in (expired, forged, "garbage"):
            with pytest.raises(AuthError) as exc_info:
                tokens.verify(token)
            messages.add(exc_info.value.message)
        assert messages == {"Invalid or expired token"}
