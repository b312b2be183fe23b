"""
Database service layer for the FastAPI application.

Owns the ``users`` and ``books`` collections. Uniqueness of user emails
is enforced by a unique index, so concurrent duplicate registrations
surface here as ``ConflictError``.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import structlog
from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from library_api.exceptions import ConflictError
from library_api.models import BookCreate, BookResponse, BookUpdate

logger = structlog.get_logger(__name__)


def _object_id(value: str) -> Optional[ObjectId]:
    """Parse an identifier; None when it is not a valid ObjectId."""
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def _with_string_id(doc: Dict[str, Any]) -> Dict[str, Any]:
    doc["id"] = str(doc["_id"])
    del doc["_id"]
    return doc


class APIDatabaseService:
    """Database service for API operations."""

    def __init__(self, database: AsyncIOMotorDatabase):
        self.database = database
        self.users_collection = database.users
        self.books_collection = database.books

    async def create_indexes(self) -> None:
        """Create the indexes the service relies on."""
        try:
            # Email is the login key and must be unique
            await self.users_collection.create_index("email", unique=True)
            await self.books_collection.create_index("author")
            logger.info("Successfully created MongoDB indexes")
        except Exception as e:
            logger.error("Failed to create indexes", error=str(e))
            raise

    # Users

    async def create_user(
        self,
        firstname: str,
        lastname: str,
        email: str,
        password_hash: str
    ) -> Dict[str, Any]:
        """
        Insert a new user record.

        Args:
            firstname: User first name
            lastname: User last name
            email: Normalized email
            password_hash: bcrypt hash, never the plaintext

        Returns:
            Stored user document with a string ``id``

        Raises:
            ConflictError: If the email is already registered
        """
        user_doc = {
            "firstname": firstname,
            "lastname": lastname,
            "email": email,
            "password_hash": password_hash,
            "created_at": datetime.now(timezone.utc),
        }
        try:
            result = await self.users_collection.insert_one(user_doc)
        except DuplicateKeyError:
            logger.warning("User already exists")
            raise ConflictError("A user with this email already exists")
        except Exception as e:
            logger.error("Failed to create user", error=str(e))
            raise

        user_doc["_id"] = result.inserted_id
        logger.info("User created", user_id=str(result.inserted_id))
        return _with_string_id(user_doc)

    async def get_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        """Get a user document by email, hash included."""
        try:
            user_doc = await self.users_collection.find_one({"email": email})
            return _with_string_id(user_doc) if user_doc else None
        except Exception as e:
            logger.error("Failed to get user by email", error=str(e))
            raise

    async def get_user_by_id(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Get a user document by identifier, hash included."""
        object_id = _object_id(user_id)
        if object_id is None:
            return None
        try:
            user_doc = await self.users_collection.find_one({"_id": object_id})
            return _with_string_id(user_doc) if user_doc else None
        except Exception as e:
            logger.error("Failed to get user by ID", user_id=user_id, error=str(e))
            raise

    # Books

    async def create_book(self, book: BookCreate) -> BookResponse:
        """Insert a book and return it."""
        now = datetime.now(timezone.utc)
        book_doc = book.model_dump()
        book_doc["created_at"] = now
        book_doc["updated_at"] = now
        try:
            result = await self.books_collection.insert_one(book_doc)
        except Exception as e:
            logger.error("Failed to create book", error=str(e))
            raise

        book_doc["_id"] = result.inserted_id
        logger.info("Book created", book_id=str(result.inserted_id))
        return BookResponse(**_with_string_id(book_doc))

    async def get_books(self) -> List[BookResponse]:
        """Get all books ordered by creation time."""
        try:
            cursor = self.books_collection.find({}).sort("created_at", 1)
            books_docs = await cursor.to_list(length=None)
            return [BookResponse(**_with_string_id(book_doc)) for book_doc in books_docs]
        except Exception as e:
            logger.error("Failed to get books", error=str(e))
            raise

    async def get_book_by_id(self, book_id: str) -> Optional[BookResponse]:
        """
        Get a single book by ID.

        Args:
            book_id: Book identifier

        Returns:
            BookResponse if found, None otherwise
        """
        object_id = _object_id(book_id)
        if object_id is None:
            return None
        try:
            book_doc = await self.books_collection.find_one({"_id": object_id})
            return BookResponse(**_with_string_id(book_doc)) if book_doc else None
        except Exception as e:
            logger.error("Failed to get book by ID", book_id=book_id, error=str(e))
            raise

    async def update_book(self, book_id: str, changes: BookUpdate) -> Optional[BookResponse]:
        """
        Apply a partial update.

        Returns:
            The updated book, or None when no book has this ID (nothing is written)
        """
        object_id = _object_id(book_id)
        if object_id is None:
            return None
        update_fields = changes.model_dump(exclude_none=True)
        update_fields["updated_at"] = datetime.now(timezone.utc)
        try:
            book_doc = await self.books_collection.find_one_and_update(
                {"_id": object_id},
                {"$set": update_fields},
                return_document=ReturnDocument.AFTER,
            )
        except Exception as e:
            logger.error("Failed to update book", book_id=book_id, error=str(e))
            raise

        if not book_doc:
            return None
        logger.info("Book updated", book_id=book_id, fields=sorted(update_fields))
        return BookResponse(**_with_string_id(book_doc))

    async def delete_book(self, book_id: str) -> bool:
        """Delete a book; False when no book has this ID."""
        object_id = _object_id(book_id)
        if object_id is None:
            return False
        try:
            result = await self.books_collection.delete_one({"_id": object_id})
        except Exception as e:
            logger.error("Failed to delete book", book_id=book_id, error=str(e))
            raise

        deleted = result.deleted_count == 1
        if deleted:
            logger.info("Book deleted", book_id=book_id)
        return deleted

    async def health_check(self) -> Dict:
        """
        Perform database health check.

        Returns:
            Dictionary with health status
        """
        try:
            await self.database.command("ping")

            users_count = await self.users_collection.count_documents({})
            books_count = await self.books_collection.count_documents({})

            return {
                "status": "healthy",
                "users_count": users_count,
                "books_count": books_count
            }
        except Exception as e:
            logger.error("Database health check failed", error=str(e))
            return {
                "status": "unhealthy",
                "error": str(e)
            }
