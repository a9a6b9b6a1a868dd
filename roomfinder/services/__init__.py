"""
Service layer for business logic implementation.
Contains the session provider and one service per view, plus error handling.
"""

from .session import SessionProvider, SessionRegistry
from .browse import ListingBrowser
from .listing_detail import ListingDetailService
from .listing_editor import ListingEditor
from .dashboard import OwnerDashboard
from .conversation import ConversationService, ThreadView
from .realtime import MessageFeed
from .error_handler import ErrorHandlerService

__all__ = [
    "SessionProvider",
    "SessionRegistry",
    "ListingBrowser",
    "ListingDetailService",
    "ListingEditor",
    "OwnerDashboard",
    "ConversationService",
    "ThreadView",
    "MessageFeed",
    "ErrorHandlerService"
]
