"""
Pydantic schemas for account API requests and responses.
"""

from pydantic import BaseModel, EmailStr, Field, field_validator

# bcrypt rejects input longer than this
MAX_PASSWORD_BYTES = 72


def validate_password_bytes(password: str) -> str:
    """Reject passwords bcrypt cannot hash (limit is on UTF-8 bytes, not characters)."""
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes when UTF-8 encoded")
    return password


# =============================================================================
# Signup / Login
# =============================================================================


class SignupRequest(BaseModel):
    """Request to create an account."""

    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=MAX_PASSWORD_BYTES)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return validate_password_bytes(v)


class LoginRequest(BaseModel):
    """Request to login with email and password."""

    email: EmailStr
    password: str = Field(..., min_length=1, max_length=MAX_PASSWORD_BYTES)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return validate_password_bytes(v)


# =============================================================================
# Responses
# =============================================================================


class UserResponse(BaseModel):
    """Returned by signup, login, auth-status and logout."""

    message: str = "OK"
    name: str
    email: str


class UserSummary(BaseModel):
    id: str
    name: str
    email: str


class UserListResponse(BaseModel):
    message: str = "OK"
    users: list[UserSummary]


class ErrorResponse(BaseModel):
    """Error envelope used by every non-validation error."""

    message: str = "ERROR"
    cause: str
