"""
Structured error types for request handlers.

Every failure a handler can surface is a ChatRelayError subclass carrying:
- kind: what went wrong (maps 1:1 to an HTTP status)
- cause: a message that is always safe to show the client
- detail: the underlying error text, shown only when EXPOSE_ERROR_DETAILS is on

The exception handler registered in app.main renders these as
``{"message": "ERROR", "cause": ...}``.
"""

from enum import Enum
from typing import Any

from fastapi import status


class ErrorKind(str, Enum):
    AUTHENTICATION_FAILURE = "authentication_failure"
    CREDENTIAL_MISMATCH = "credential_mismatch"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    UPSTREAM_FAILURE = "upstream_failure"


STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.AUTHENTICATION_FAILURE: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.CREDENTIAL_MISMATCH: status.HTTP_403_FORBIDDEN,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.UPSTREAM_FAILURE: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class ChatRelayError(Exception):
    """Base class for errors that are rendered as the JSON error envelope."""

    kind: ErrorKind = ErrorKind.UPSTREAM_FAILURE

    def __init__(self, cause: str, detail: str | None = None):
        super().__init__(cause)
        self.cause = cause
        self.detail = detail

    @property
    def status_code(self) -> int:
        return STATUS_BY_KIND[self.kind]

    def display_message(self, expose_details: bool = False) -> str:
        """Message for the client; internal detail only when explicitly allowed."""
        if expose_details and self.detail:
            return self.detail
        return self.cause

    def to_payload(self, expose_details: bool = False) -> dict[str, Any]:
        return {"message": "ERROR", "cause": self.display_message(expose_details)}


class AuthenticationFailure(ChatRelayError):
    """Missing, invalid or expired session, or the session's user is gone."""

    kind = ErrorKind.AUTHENTICATION_FAILURE


class CredentialMismatch(ChatRelayError):
    """Email exists but the password does not match."""

    kind = ErrorKind.CREDENTIAL_MISMATCH


class NotFound(ChatRelayError):
    kind = ErrorKind.NOT_FOUND


class Conflict(ChatRelayError):
    """Duplicate signup, unknown account on login, or a concurrent document write."""

    kind = ErrorKind.CONFLICT


class UpstreamFailure(ChatRelayError):
    """Database or OpenAI API failure."""

    kind = ErrorKind.UPSTREAM_FAILURE
