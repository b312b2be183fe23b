"""
Password hashing and access token signing.

Passwords are hashed with bcrypt (salted, configurable work factor).
Access tokens are JWTs signed with a symmetric secret via PyJWT. Both
helpers take their settings through the constructor and hold no other
state, so a single instance can be shared by all requests.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
import structlog

from library_api.exceptions import AuthError
from library_api.models import TokenClaims

logger = structlog.get_logger(__name__)

INVALID_TOKEN_MESSAGE = "Invalid or expired token"


class PasswordHasher:
    """One-way bcrypt hashing for plaintext passwords."""

    def __init__(self, rounds: int = 12):
        self.rounds = rounds
        # Built up front so an unknown-email login costs one bcrypt check, like a wrong password
        self._dummy_hash = self.hash(uuid.uuid4().hex)

    def hash(self, password: str) -> str:
        """Hash a password with a fresh salt."""
        return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, password: str, password_hash: str) -> bool:
        """Constant-time comparison against a bcrypt hash."""
        try:
            return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
        except (ValueError, TypeError):
            return False

    def verify_dummy(self, password: str) -> bool:
        """Run a full bcrypt check against a throwaway hash; always False."""
        self.verify(password, self._dummy_hash)
        return False


class TokenService:
    """
    Issues and verifies signed, time-limited bearer tokens.

    Args:
        secret: Signing secret
        algorithm: HMAC algorithm name (HS256, HS384, HS512)
        expires_minutes: Default token lifetime
    """

    def __init__(self, secret: str, algorithm: str = "HS256", expires_minutes: int = 60):
        self._secret = secret
        self.algorithm = algorithm
        self.expires_delta = timedelta(minutes=expires_minutes)

    def issue(self, subject: str, expires_delta: Optional[timedelta] = None) -> str:
        """
        Create a signed token for ``subject``.

        Args:
            subject: User identifier stored in the ``sub`` claim
            expires_delta: Lifetime override, defaults to the configured one

        Returns:
            Encoded JWT string
        """
        now = datetime.now(timezone.utc)
        payload = {
            "sub": subject,
            "iat": now,
            "exp": now + (expires_delta if expires_delta is not None else self.expires_delta),
            "jti": uuid.uuid4().hex,
        }
        return jwt.encode(payload, self._secret, algorithm=self.algorithm)

    def verify(self, token: str) -> TokenClaims:
        """
        Decode and validate a token.

        Raises:
            AuthError: For every kind of rejection (bad signature, malformed,
                expired, missing claims); the cause is only logged.
        """
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                options={"require": ["sub", "exp", "iat"]},
            )
            return TokenClaims(**payload)
        except jwt.InvalidTokenError as e:
            logger.info("Token rejected", reason=type(e).__name__)
            raise AuthError(INVALID_TOKEN_MESSAGE)
        except ValueError as e:
            # Claims decoded but do not fit TokenClaims
            logger.info("Token rejected", reason=type(e).__name__)
            raise AuthError(INVALID_TOKEN_MESSAGE)
