"""
Domain errors raised by the service and database layers.

Each error carries the HTTP status it maps to; the exception handlers in
``library_api.main`` render them as ``ErrorResponse`` bodies.
"""

from typing import Dict, Optional

from fastapi import status


class LibraryAPIError(Exception):
    """Base class for errors that map to an HTTP response."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    headers: Optional[Dict[str, str]] = None

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail


class ValidationError(LibraryAPIError):
    """Missing or malformed input."""
    status_code = status.HTTP_400_BAD_REQUEST


class ConflictError(LibraryAPIError):
    """A unique key (e.g. user email) already exists."""
    status_code = status.HTTP_400_BAD_REQUEST


class AuthError(LibraryAPIError):
    """Bad credentials or a rejected bearer token."""
    status_code = status.HTTP_401_UNAUTHORIZED
    headers = {"WWW-Authenticate": "Bearer"}


class NotFoundError(LibraryAPIError):
    """No resource with the requested identifier."""
    status_code = status.HTTP_404_NOT_FOUND


class InternalError(LibraryAPIError):
    """Store or infrastructure failure."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
