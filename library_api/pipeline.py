"""
Request pipeline for protected routes.

A pipeline is an ordered list of stages run before a route handler. A
stage either returns, letting the next stage run, optionally after
attaching context to ``request.state``, or raises a ``LibraryAPIError``,
which short-circuits the request so the handler is never called.
Pipelines are plain callables and plug into FastAPI as dependencies.
"""

from abc import ABC, abstractmethod

import structlog
from fastapi import Request
from fastapi.security import HTTPBearer
from starlette.datastructures import State

from library_api.exceptions import AuthError
from library_api.security import INVALID_TOKEN_MESSAGE, TokenService

logger = structlog.get_logger(__name__)

# Declares the bearer scheme in the OpenAPI docs only; BearerTokenStage does the checking
bearer_scheme = HTTPBearer(auto_error=False, description="JWT from /api/auth/login")


class RequestStage(ABC):
    """A single gate in a request pipeline."""

    @abstractmethod
    async def process(self, request: Request) -> None:
        """Inspect the request; raise to reject it."""


class BearerTokenStage(RequestStage):
    """Rejects requests without a valid ``Authorization: Bearer`` token."""

    scheme = "bearer"

    def __init__(self, token_service: TokenService):
        self.token_service = token_service

    async def process(self, request: Request) -> None:
        authorization = request.headers.get("Authorization")
        if not authorization:
            logger.info("Missing authorization header", path=request.url.path)
            raise AuthError(INVALID_TOKEN_MESSAGE)

        scheme, _, token = authorization.partition(" ")
        token = token.strip()
        if scheme.lower() != self.scheme or not token:
            logger.info("Malformed authorization header", path=request.url.path)
            raise AuthError(INVALID_TOKEN_MESSAGE)

        claims = self.token_service.verify(token)
        request.state.user_id = claims.sub
        request.state.token_claims = claims


class RequestPipeline:
    """Runs stages in order; usable as ``Depends(pipeline)``."""

    def __init__(self, *stages: RequestStage):
        self.stages = stages

    async def __call__(self, request: Request) -> State:
        for stage in self.stages:
            await stage.process(request)
        return request.state
