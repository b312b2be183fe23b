"""
Authentication service: registration, login and current-user lookup.

The service is stateless; user records live in the database and tokens
are never stored. bcrypt work runs in the threadpool so it does not block
the event loop.
"""

from typing import Any, Dict

import structlog
from starlette.concurrency import run_in_threadpool

from library_api.database import APIDatabaseService
from library_api.exceptions import AuthError
from library_api.models import LoginRequest, LoginResponse, RegisterRequest, UserResponse
from library_api.security import INVALID_TOKEN_MESSAGE, PasswordHasher, TokenService

logger = structlog.get_logger(__name__)

INVALID_CREDENTIALS_MESSAGE = "Invalid email or password"


def public_user(user_doc: Dict[str, Any]) -> UserResponse:
    """Strip a stored user document down to its public fields."""
    return UserResponse(
        id=user_doc["id"],
        firstname=user_doc["firstname"],
        lastname=user_doc["lastname"],
        email=user_doc["email"],
    )


class AuthService:
    """Orchestrates the password hasher, token service and user store."""

    def __init__(
        self,
        db_service: APIDatabaseService,
        password_hasher: PasswordHasher,
        token_service: TokenService
    ):
        self.db_service = db_service
        self.password_hasher = password_hasher
        self.token_service = token_service

    async def register(self, payload: RegisterRequest) -> UserResponse:
        """
        Create a user account.

        Args:
            payload: Validated registration data

        Returns:
            Public fields of the new user

        Raises:
            ConflictError: If the email is already registered
        """
        password_hash = await run_in_threadpool(self.password_hasher.hash, payload.password)
        user_doc = await self.db_service.create_user(
            firstname=payload.firstname,
            lastname=payload.lastname,
            email=payload.email,
            password_hash=password_hash,
        )
        logger.info("User registered", user_id=user_doc["id"])
        return public_user(user_doc)

    async def login(self, payload: LoginRequest) -> LoginResponse:
        """
        Check credentials and issue an access token.

        Unknown email and wrong password raise the same ``AuthError``.
        """
        user_doc = await self.db_service.get_user_by_email(payload.email)

        if user_doc is None:
            # Spend the same bcrypt time as a real check
            await run_in_threadpool(self.password_hasher.verify_dummy, payload.password)
            logger.info("Login failed")
            raise AuthError(INVALID_CREDENTIALS_MESSAGE)

        password_ok = await run_in_threadpool(
            self.password_hasher.verify, payload.password, user_doc["password_hash"]
        )
        if not password_ok:
            logger.info("Login failed")
            raise AuthError(INVALID_CREDENTIALS_MESSAGE)

        token = self.token_service.issue(user_doc["id"])
        logger.info("User logged in", user_id=user_doc["id"])
        return LoginResponse(token=token, user=public_user(user_doc))

    async def get_current_user(self, user_id: str) -> UserResponse:
        """
        Resolve a token subject to the stored user.

        Raises:
            AuthError: If the user no longer exists
        """
        user_doc = await self.db_service.get_user_by_id(user_id)
        if user_doc is None:
            logger.warning("Token subject has no user", user_id=user_id)
            raise AuthError(INVALID_TOKEN_MESSAGE)
        return public_user(user_doc)

