"""
API models and schemas for the FastAPI application.
"""

from datetime import datetime
from typing import Optional

from pydantic import AliasChoices, BaseModel, EmailStr, Field, field_validator, model_validator

# bcrypt only looks at the first 72 bytes of a password
MAX_PASSWORD_BYTES = 72


def _strip_required(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError('must not be blank')
    return v


class RegisterRequest(BaseModel):
    """Registration payload."""
    firstname: str = Field(..., min_length=1, description="User first name", examples=["John"])
    lastname: str = Field(..., min_length=1, description="User last name", examples=["Doe"])
    email: EmailStr = Field(..., description="User email, used as login key", examples=["john.doe@example.com"])
    password: str = Field(..., min_length=1, description="Plaintext password", examples=["P@ssw0rd!"])

    @field_validator('firstname', 'lastname')
    @classmethod
    def validate_names(cls, v):
        return _strip_required(v)

    @field_validator('email', mode='before')
    @classmethod
    def reject_display_name(cls, v):
        """Only a bare address is accepted, not ``Name <address>``."""
        if isinstance(v, str) and ('<' in v or '>' in v):
            raise ValueError('must be a bare email address')
        return v

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v):
        """Emails are compared case-insensitively."""
        return v.lower()

    @field_validator('password')
    @classmethod
    def validate_password_length(cls, v):
        if len(v.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValueError(f'password must be at most {MAX_PASSWORD_BYTES} bytes')
        return v


class LoginRequest(BaseModel):
    """Login payload."""
    email: str = Field(..., min_length=1, description="User email", examples=["john.doe@example.com"])
    password: str = Field(..., min_length=1, description="Plaintext password", examples=["P@ssw0rd!"])

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower()


class UserResponse(BaseModel):
    """Public user fields. The password hash is never part of a response."""
    id: str = Field(..., description="Unique user identifier")
    firstname: str = Field(..., description="User first name")
    lastname: str = Field(..., description="User last name")
    email: str = Field(..., description="User email")


class LoginResponse(BaseModel):
    """Successful login."""
    token: str = Field(..., description="JWT bearer token for protected routes")
    user: UserResponse


class TokenClaims(BaseModel):
    """Decoded claim set of an access token."""
    sub: str = Field(..., description="User identifier")
    exp: int = Field(..., description="Expiry (unix seconds)")
    iat: int = Field(..., description="Issued at (unix seconds)")
    jti: Optional[str] = Field(None, description="Token identifier")


class BookCreate(BaseModel):
    """Book creation payload."""
    label: str = Field(..., min_length=1, description="Name of the book", examples=["un autre book"])
    description: str = Field(..., min_length=1, description="Short description", examples=["un book avec un auteur"])
    author: str = Field(..., min_length=1, description="Author identifier", examples=["6704ebd29dae53d040668ed0"])

    @field_validator('label', 'description', 'author')
    @classmethod
    def validate_required(cls, v):
        return _strip_required(v)


class BookUpdate(BaseModel):
    """Partial book update; ``name`` is accepted as an alias of ``label``."""
    label: Optional[str] = Field(
        None,
        min_length=1,
        validation_alias=AliasChoices("label", "name"),
        description="Name of the book",
    )
    description: Optional[str] = Field(None, min_length=1, description="Short description")
    author: Optional[str] = Field(None, min_length=1, description="Author identifier")

    @field_validator('label', 'description', 'author')
    @classmethod
    def validate_not_blank(cls, v):
        if v is None:
            return v
        return _strip_required(v)

    @model_validator(mode='after')
    def validate_not_empty(self):
        if not self.model_dump(exclude_none=True):
            raise ValueError('at least one of label, description, author is required')
        return self


class BookResponse(BaseModel):
    """Book response model for API."""
    id: str = Field(..., description="Unique book identifier")
    label: str = Field(..., description="Name of the book")
    description: str = Field(..., description="Short description")
    author: str = Field(..., description="Author identifier")
    created_at: Optional[datetime] = Field(None, description="Creation timestamp")
    updated_at: Optional[datetime] = Field(None, description="Last update timestamp")


class DeleteResponse(BaseModel):
    """Acknowledgement of a deletion."""
    message: str = Field(..., description="Outcome")
    id: str = Field(..., description="Identifier of the deleted resource")


class ErrorResponse(BaseModel):
    """Error response model."""
    error: str = Field(..., description="Error message")
    detail: Optional[str] = Field(None, description="Additional error details")
    status_code: int = Field(..., description="HTTP status code")


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(..., description="Current timestamp")
    version: str = Field(..., description="API version")
    database_status: str = Field(..., description="Database connection status")
