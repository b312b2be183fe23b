"""
Pytest configuration and shared fixtures.
"""

import os

# Settings are read once at import; keep bcrypt cheap and the secret long enough for HS256
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("JWT_SECRET", "test-secret-key-for-unit-tests-0123456789abcdef")
os.environ.setdefault("PROTECT_BOOK_MUTATIONS", "true")

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from unittest.mock import patch

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from library_api.exceptions import ConflictError
from library_api.main import app
from library_api.models import BookCreate, BookResponse, BookUpdate


class InMemoryDatabaseService:
    """Dict-backed stand-in for APIDatabaseService with the same contract."""

    def __init__(self):
        self.users: Dict[str, Dict[str, Any]] = {}
        self.books: Dict[str, Dict[str, Any]] = {}

    async def create_user(self, firstname: str, lastname: str, email: str, password_hash: str) -> Dict[str, Any]:
        if any(user["email"] == email for user in self.users.values()):
            raise ConflictError("A user with this email already exists")
        user_id = str(ObjectId())
        self.users[user_id] = {
            "id": user_id,
            "firstname": firstname,
            "lastname": lastname,
            "email": email,
            "password_hash": password_hash,
            "created_at": datetime.now(timezone.utc),
        }
        return dict(self.users[user_id])

    async def get_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        for user in self.users.values():
            if user["email"] == email:
                return dict(user)
        return None

    async def get_user_by_id(self, user_id: str) -> Optional[Dict[str, Any]]:
        user = self.users.get(user_id)
        return dict(user) if user else None

    async def create_book(self, book: BookCreate) -> BookResponse:
        book_id = str(ObjectId())
        now = datetime.now(timezone.utc)
        self.books[book_id] = {"id": book_id, **book.model_dump(), "created_at": now, "updated_at": now}
        return BookResponse(**self.books[book_id])

    async def get_books(self) -> List[BookResponse]:
        return [BookResponse(**book) for book in self.books.values()]

    async def get_book_by_id(self, book_id: str) -> Optional[BookResponse]:
        book = self.books.get(book_id)
        return BookResponse(**book) if book else None

    async def update_book(self, book_id: str, changes: BookUpdate) -> Optional[BookResponse]:
        book = self.books.get(book_id)
        if not book:
            return None
        book.update(changes.model_dump(exclude_none=True))
        book["updated_at"] = datetime.now(timezone.utc)
        return BookResponse(**book)

    async def delete_book(self, book_id: str) -> bool:
        return self.books.pop(book_id, None) is not None

    async def health_check(self) -> Dict:
        return {"status": "healthy", "users_count": len(self.users), "books_count": len(self.books)}


@pytest.fixture
def client():
    """Create test client."""
    return TestClient(app)


@pytest.fixture
def fake_db():
    """Patch the application's database service with an in-memory one."""
    db = InMemoryDatabaseService()
    with patch('library_api.main.db_service', db):
        yield db


@pytest.fixture
def john():
    """Registration payload for the sample user."""
    return {
        "firstname": "John",
        "lastname": "Doe",
        "email": "john@example.com",
        "password": "P@ssw0rd!"
    }


@pytest.fixture
def registered_user(client, fake_db, john):
    """Register the sample user and return the response body."""
    response = client.post("/api/auth/register", json=john)
    assert response.status_code == 201
    return response.json()


@pytest.fixture
def auth_headers(client, registered_user, john):
    """Authorization header for the sample user."""
    response = client.post(
        "/api/auth/login",
        json={"email": john["email"], "password": john["password"]}
    )
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['token']}"}


@pytest.fixture
def sample_book():
    """Create sample book data for testing."""
    return {
        "label": "un autre book",
        "description": "un book avec un auteur",
        "author": "6704ebd29dae53d040668ed0"
    }
