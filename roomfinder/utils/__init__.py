"""
Utility modules for the RoomFinder API.
"""

from .auth import (
    create_session_token,
    verify_session_token,
    TokenPayload
)

from .exceptions import (
    APIException,
    ValidationError,
    NotFound,
    ForbiddenError,
    InsufficientPermissionsError,
    AuthError,
    AuthRequired,
    InvalidTokenError,
    ProfileWriteError,
    SelfContactRejected,
    ListingNotFound,
    BackendError
)

from .scope import ScopeCancelled, ViewScope

# Dependencies are imported directly where needed to avoid circular imports

__all__ = [
    # Session token utilities
    "create_session_token",
    "verify_session_token",
    "TokenPayload",

    # Exceptions
    "APIException",
    "ValidationError",
    "NotFound",
    "ForbiddenError",
    "InsufficientPermissionsError",
    "AuthError",
    "AuthRequired",
    "InvalidTokenError",
    "ProfileWriteError",
    "SelfContactRejected",
    "ListingNotFound",
    "BackendError",

    # Cancellation
    "ScopeCancelled",
    "ViewScope",
]
