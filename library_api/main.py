"""
FastAPI main application for the Library API.
"""

import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import List

import structlog
from fastapi import APIRouter, Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from motor.motor_asyncio import AsyncIOMotorClient
from starlette.datastructures import State
from starlette.exceptions import HTTPException as StarletteHTTPException

from library_api.auth import AuthService
from library_api.config import DEFAULT_JWT_SECRET, APIConfig, config
from library_api.database import APIDatabaseService
from library_api.exceptions import InternalError, LibraryAPIError, NotFoundError, ValidationError
from library_api.models import (
    BookCreate, BookResponse, BookUpdate, DeleteResponse,
    ErrorResponse, HealthResponse,
    LoginRequest, LoginResponse, RegisterRequest, UserResponse
)
from library_api.pipeline import BearerTokenStage, RequestPipeline, bearer_scheme
from library_api.security import PasswordHasher, TokenService
from utilities.logger import bind_request_context, clear_request_context, setup_logging

# Setup logging
logger = structlog.get_logger(__name__)

# Global database service
db_service: APIDatabaseService = None

# Read-only collaborators built once from configuration
token_service = TokenService(
    secret=config.jwt_secret,
    algorithm=config.jwt_algorithm,
    expires_minutes=config.access_token_expire_minutes
)
password_hasher = PasswordHasher(rounds=config.bcrypt_rounds)

require_token = RequestPipeline(BearerTokenStage(token_service))
token_docs = [Depends(bearer_scheme)]


def warn_on_insecure_settings(settings: APIConfig) -> bool:
    """Log a warning when a non-debug deployment signs tokens with the default secret."""
    if settings.jwt_secret == DEFAULT_JWT_SECRET and not settings.debug:
        logger.warning("JWT_SECRET is the built-in default; tokens can be forged until it is changed")
        return True
    return False


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.log_file,
        debug=config.debug
    )
    logger.info("Starting Library API")
    warn_on_insecure_settings(config)

    global db_service
    try:
        client = AsyncIOMotorClient(config.mongodb_url)
        database = client[config.mongodb_database]

        # Test connection
        await database.command("ping")
        logger.info("Database connection established")

        db_service = APIDatabaseService(database)
        await db_service.create_indexes()

    except Exception as e:
        logger.error("Failed to connect to database", error=str(e))
        raise

    yield

    # Shutdown
    logger.info("Shutting down Library API")
    db_service = None
    client.close()


# Create FastAPI application
app = FastAPI(
    title=config.api_title,
    description="""
    REST API for books and users.

    ## Authentication

    Register with `POST /api/auth/register`, then obtain a token with
    `POST /api/auth/login`. Protected routes expect the token in the
    Authorization header:

    ```
    Authorization: Bearer <token>
    ```
    """,
    version=config.api_version,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origins,
    allow_credentials=config.cors_allow_credentials,
    allow_methods=config.cors_allow_methods,
    allow_headers=config.cors_allow_headers,
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Bind request context for logging and echo the request id."""
    request_id = bind_request_context(
        method=request.method,
        path=request.url.path,
        request_id=request.headers.get("X-Request-ID")
    )
    started = time.perf_counter()
    try:
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        logger.info(
            "Request completed",
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 2)
        )
        return response
    finally:
        clear_request_context()


# Exception handlers
@app.exception_handler(LibraryAPIError)
async def library_api_exception_handler(request: Request, exc: LibraryAPIError):
    """Render domain errors."""
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=exc.message,
            detail=exc.detail,
            status_code=exc.status_code
        ).model_dump(),
        headers=exc.headers
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Reject malformed bodies with 400, naming the field but not echoing input."""
    errors = exc.errors()
    detail = None
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        detail = f"{location}: {first.get('msg')}" if location else first.get("msg")
    return await library_api_exception_handler(request, ValidationError("Invalid request", detail=detail))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=str(exc.detail),
            status_code=exc.status_code
        ).model_dump(),
        headers=exc.headers
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions."""
    logger.error("Unhandled exception", error=str(exc), path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            error="Internal server error",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
        ).model_dump()
    )


# Dependencies
def get_db_service() -> APIDatabaseService:
    """Current database service; 500 when the database is not connected."""
    if not db_service:
        raise InternalError("Database service not available")
    return db_service


def get_auth_service(db: APIDatabaseService = Depends(get_db_service)) -> AuthService:
    return AuthService(db, password_hasher, token_service)


# Health check endpoint (no authentication required)
@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Health check endpoint."""
    db_status = "unavailable"
    if db_service:
        health_info = await db_service.health_check()
        db_status = health_info.get("status", "unknown")

    return HealthResponse(
        status="healthy" if db_status == "healthy" else "degraded",
        timestamp=datetime.now(timezone.utc),
        version=config.api_version,
        database_status=db_status
    )


# Authentication endpoints
@app.post(
    "/api/auth/register",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Authentication"],
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}}
)
async def register(payload: RegisterRequest, auth_service: AuthService = Depends(get_auth_service)):
    """
    Register a new user.

    - **firstname**, **lastname**: non-empty names
    - **email**: unique, valid email address
    - **password**: stored only as a bcrypt hash
    """
    try:
        return await auth_service.register(payload)
    except LibraryAPIError:
        raise
    except Exception as e:
        logger.error("Failed to register user", error=str(e))
        raise InternalError("Failed to register user")


@app.post(
    "/api/auth/login",
    response_model=LoginResponse,
    tags=["Authentication"],
    responses={401: {"model": ErrorResponse}, 500: {"model": ErrorResponse}}
)
async def login(payload: LoginRequest, auth_service: AuthService = Depends(get_auth_service)):
    """Authenticate and return a JWT for protected routes."""
    try:
        return await auth_service.login(payload)
    except LibraryAPIError:
        raise
    except Exception as e:
        logger.error("Failed to log in user", error=str(e))
        raise InternalError("Failed to log in")


# User endpoints
@app.post(
    "/api/user/me",
    response_model=UserResponse,
    tags=["User"],
    dependencies=token_docs,
    responses={401: {"model": ErrorResponse}, 500: {"model": ErrorResponse}}
)
async def get_my_info(
    context: State = Depends(require_token),
    auth_service: AuthService = Depends(get_auth_service)
):
    """Get the current user's information from the bearer token."""
    try:
        return await auth_service.get_current_user(context.user_id)
    except LibraryAPIError:
        raise
    except Exception as e:
        logger.error("Failed to get current user", user_id=context.user_id, error=str(e))
        raise InternalError("Failed to retrieve user")


# Books endpoints
def book_mutation_guard(protect: bool):
    """Pipeline and OpenAPI dependencies gating book update/delete."""
    if protect:
        return require_token, token_docs
    return RequestPipeline(), []


def create_books_router(protect_mutations: bool = True) -> APIRouter:
    """
    Build the books routes.

    Args:
        protect_mutations: Require a bearer token on update and delete
    """
    router = APIRouter(tags=["Books"])
    guard, guard_docs = book_mutation_guard(protect_mutations)

    @router.post(
        "/api/books",
        response_model=BookResponse,
        status_code=status.HTTP_201_CREATED,
        dependencies=token_docs,
        responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}, 500: {"model": ErrorResponse}}
    )
    async def create_book(
        book: BookCreate,
        context: State = Depends(require_token),
        db: APIDatabaseService = Depends(get_db_service)
    ):
        """
        Create a new book.

        - **label**: name of the book
        - **description**: short description
        - **author**: author identifier

        A body that is not valid JSON is rejected with 400 before the token
        is checked; nothing is stored either way.
        """
        try:
            return await db.create_book(book)
        except Exception as e:
            logger.error("Failed to create book", user_id=context.user_id, error=str(e))
            raise InternalError("Failed to create book")

    @router.get(
        "/api/books",
        response_model=List[BookResponse],
        responses={500: {"model": ErrorResponse}}
    )
    async def get_books(db: APIDatabaseService = Depends(get_db_service)):
        """Get all books."""
        try:
            return await db.get_books()
        except Exception as e:
            logger.error("Failed to get books", error=str(e))
            raise InternalError("Failed to retrieve books")

    @router.get(
        "/api/books/{book_id}",
        response_model=BookResponse,
        responses={404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}}
    )
    async def get_book(book_id: str, db: APIDatabaseService = Depends(get_db_service)):
        """
        Get a single book by ID.

        - **book_id**: Book identifier (MongoDB ObjectId)
        """
        try:
            book = await db.get_book_by_id(book_id)
        except Exception as e:
            logger.error("Failed to get book", book_id=book_id, error=str(e))
            raise InternalError("Failed to retrieve book")

        if not book:
            raise NotFoundError(f"Book with ID '{book_id}' not found")
        return book

    @router.put(
        "/api/books/{book_id}",
        response_model=BookResponse,
        dependencies=guard_docs,
        responses={
            400: {"model": ErrorResponse}, 401: {"model": ErrorResponse},
            404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}
        }
    )
    async def update_book(
        book_id: str,
        changes: BookUpdate,
        _: State = Depends(guard),
        db: APIDatabaseService = Depends(get_db_service)
    ):
        """
        Update an existing book.

        Any subset of **label** (or **name**), **description** and **author**.
        """
        try:
            book = await db.update_book(book_id, changes)
        except Exception as e:
            logger.error("Failed to update book", book_id=book_id, error=str(e))
            raise InternalError("Failed to update book")

        if not book:
            raise NotFoundError(f"Book with ID '{book_id}' not found")
        return book

    @router.delete(
        "/api/books/{book_id}",
        response_model=DeleteResponse,
        dependencies=guard_docs,
        responses={401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}}
    )
    async def delete_book(
        book_id: str,
        _: State = Depends(guard),
        db: APIDatabaseService = Depends(get_db_service)
    ):
        """Delete a book by ID."""
        try:
            deleted = await db.delete_book(book_id)
        except Exception as e:
            logger.error("Failed to delete book", book_id=book_id, error=str(e))
            raise InternalError("Failed to delete book")

        if not deleted:
            raise NotFoundError(f"Book with ID '{book_id}' not found")
        return DeleteResponse(message="Book deleted successfully", id=book_id)

    return router


app.include_router(create_books_router(protect_mutations=config.protect_book_mutations))


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "library_api.main:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level=config.log_level.lower()
    )
