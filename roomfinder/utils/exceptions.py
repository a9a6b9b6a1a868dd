"""
Custom exception classes for the RoomFinder application.
Provides structured error handling with appropriate HTTP status codes.
"""

from typing import Any, Dict, Optional, List
from fastapi import HTTPException, status


class APIException(HTTPException):
    """Base API exception class."""

    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: Optional[str] = None,
        headers: Optional[Dict[str, Any]] = None
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code

    def __str__(self) -> str:
        return self.detail


class ValidationError(APIException):
    """Validation error exception."""

    def __init__(
        self,
        detail: str,
        field_errors: Optional[List[Dict[str, str]]] = None
    ):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=detail,
            error_code="VALIDATION_ERROR"
        )
        self.field_errors = field_errors or []


class NotFound(APIException):
    """Resource not found, or not visible to the caller."""

    def __init__(self, resource: str, resource_id: Optional[str] = None):
        detail = f"{resource} not found"
        if resource_id:
            detail += f" with ID: {resource_id}"

        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
            error_code="NOT_FOUND"
        )


class ForbiddenError(APIException):
    """Access forbidden exception."""

    def __init__(self, detail: str = "Access forbidden"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
            error_code="FORBIDDEN"
        )


class InsufficientPermissionsError(ForbiddenError):
    """Insufficient permissions exception."""

    def __init__(self, action: str):
        super().__init__(f"Insufficient permissions to {action}")


# Authentication and session exceptions
class AuthError(APIException):
    """Bad credentials or identity creation failure."""

    def __init__(self, detail: str = "Invalid email or password"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            error_code="AUTH_ERROR",
            headers={"WWW-Authenticate": "Bearer"}
        )


class AuthRequired(APIException):
    """A signed-in user is required for this action."""

    def __init__(self, detail: str = "Please login to continue"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            error_code="AUTH_REQUIRED",
            headers={"WWW-Authenticate": "Bearer"}
        )


class InvalidTokenError(AuthRequired):
    """Session token invalid, expired or no longer registered."""

    def __init__(self, detail: str = "Invalid or expired session token"):
        super().__init__(detail)


class ProfileWriteError(APIException):
    """
    Identity was created but its profile row could not be written.

    The identity is left in place; the session stays in the
    profile-incomplete state until the profile is completed.
    """

    def __init__(self, user_id: str, reason: str):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Failed to create profile: {reason}",
            error_code="PROFILE_WRITE_ERROR"
        )
        self.user_id = user_id


# Listing and conversation exceptions
class SelfContactRejected(APIException):
    """An owner tried to contact themselves about their own listing."""

    def __init__(self, detail: str = "You cannot contact yourself"):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            error_code="SELF_CONTACT_REJECTED"
        )


class ListingNotFound(NotFound):
    """Listing not found exception."""

    def __init__(self, listing_id: str):
        super().__init__("Listing", listing_id)


# Backend exceptions
class BackendError(APIException):
    """Any other failed call into the managed backend."""

    def __init__(self, operation: str, reason: Optional[str] = None):
        detail = f"Backend operation failed: {operation}"
        if reason:
            detail += f" ({reason})"
        super().__init__(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=detail,
            error_code="BACKEND_ERROR"
        )
        self.operation = operation
        self.reason = reason


# File upload exceptions
class UnsupportedFileTypeError(ValidationError):
    """Unsupported file type exception."""

    def __init__(self, file_type: str, supported_types: List[str]):
        supported = ", ".join(supported_types)
        super().__init__(f"Unsupported file type '{file_type}'. Supported types: {supported}")


class FileSizeExceededError(ValidationError):
    """File size exceeded exception."""

    def __init__(self, size: int, max_size: int):
        super().__init__(f"File size {size} bytes exceeds maximum allowed size {max_size} bytes")
