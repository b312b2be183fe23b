"""
API configuration settings.
"""

from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings

# Shipped placeholder; deployments must override JWT_SECRET
DEFAULT_JWT_SECRET = "change-me-in-production-this-secret-is-not-safe"


class APIConfig(BaseSettings):
    """API configuration settings, loaded once at startup and then read-only."""

    # API Settings
    api_title: str = "Library API"
    api_version: str = "1.0.0"
    api_description: str = "REST API for books and users with JWT authentication"

    # Server Settings
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False

    # Database Settings
    mongodb_url: str = "mongodb://localhost:27017"
    mongodb_database: str = "library"

    # Security Settings
    jwt_secret: str = DEFAULT_JWT_SECRET
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60
    bcrypt_rounds: int = 12

    # Book update/delete require a bearer token when enabled
    protect_book_mutations: bool = True

    # CORS Settings
    cors_origins: list = ["*"]
    cors_allow_credentials: bool = True
    cors_allow_methods: list = ["*"]
    cors_allow_headers: list = ["*"]

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"
    log_file: Optional[str] = None

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
        "frozen": True,
    }

    @field_validator('jwt_algorithm')
    @classmethod
    def validate_jwt_algorithm(cls, v):
        """Only symmetric HMAC algorithms are supported."""
        valid_algorithms = ['HS256', 'HS384', 'HS512']
        if v.upper() not in valid_algorithms:
            raise ValueError(f'jwt_algorithm must be one of: {valid_algorithms}')
        return v.upper()

    @field_validator('access_token_expire_minutes')
    @classmethod
    def validate_expiry(cls, v):
        """Ensure token lifetime is positive."""
        if v < 1:
            raise ValueError('access_token_expire_minutes must be at least 1')
        return v

    @field_validator('bcrypt_rounds')
    @classmethod
    def validate_bcrypt_rounds(cls, v):
        """Ensure the bcrypt work factor is within the supported range."""
        if v < 4 or v > 16:
            raise ValueError('bcrypt_rounds must be between 4 and 16')
        return v

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        """Ensure log level is valid."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f'log_level must be one of: {valid_levels}')
        return v.upper()

    @field_validator('log_format')
    @classmethod
    def validate_log_format(cls, v):
        """Ensure log format is valid."""
        valid_formats = ['json', 'console']
        if v.lower() not in valid_formats:
            raise ValueError(f'log_format must be one of: {valid_formats}')
        return v.lower()


# Global config instance
config = APIConfig()
