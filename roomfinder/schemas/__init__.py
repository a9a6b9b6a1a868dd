"""
Pydantic schemas for request/response validation.
"""

# Authentication schemas
from .auth import (
    LoginRequest,
    SessionResponse,
    CurrentUserResponse,
    MessageResponse
)

# User schemas
from .user import (
    UserRole,
    UserProfile,
    ProfileFields,
    SignUpRequest
)

# Listing schemas
from .listing import (
    FACILITIES,
    OwnerContact,
    ListingBase,
    ListingForm,
    ListingResponse,
    ListingFilters,
    ListingListResponse,
    ListingEditResponse,
    DashboardStats,
    DashboardResponse,
    NavigationResponse,
    ImagePreview,
    ImageDraftResponse
)

# Message schemas
from .message import (
    MessageRecord,
    ChatRoom,
    ChatRoomListResponse,
    ThreadResponse,
    SendMessageRequest,
    SendMessageResponse
)

__all__ = [
    # Authentication
    "LoginRequest",
    "SessionResponse",
    "CurrentUserResponse",
    "MessageResponse",

    # User
    "UserRole",
    "UserProfile",
    "ProfileFields",
    "SignUpRequest",

    # Listing
    "FACILITIES",
    "OwnerContact",
    "ListingBase",
    "ListingForm",
    "ListingResponse",
    "ListingFilters",
    "ListingListResponse",
    "ListingEditResponse",
    "DashboardStats",
    "DashboardResponse",
    "NavigationResponse",
    "ImagePreview",
    "ImageDraftResponse",

    # Message
    "MessageRecord",
    "ChatRoom",
    "ChatRoomListResponse",
    "ThreadResponse",
    "SendMessageRequest",
    "SendMessageResponse"
]
