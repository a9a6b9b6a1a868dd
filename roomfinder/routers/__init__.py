"""
API route handlers for the RoomFinder API.
Also holds the view route table served to the front-end shell.
"""

from .auth import router as auth_router
from .listings import router as listings_router
from .dashboard import router as dashboard_router
from .conversations import router as conversations_router

# View path -> access level ("public", "authenticated" or a required role)
ROUTE_TABLE = [
    {"path": "/", "view": "browse", "access": "public"},
    {"path": "/login", "view": "login", "access": "public"},
    {"path": "/signup", "view": "signup", "access": "public"},
    {"path": "/listings/:id", "view": "listing_detail", "access": "public"},
    {"path": "/dashboard", "view": "owner_dashboard", "access": "owner"},
    {"path": "/add-listing", "view": "listing_editor", "access": "owner"},
    {"path": "/edit-listing/:id", "view": "listing_editor", "access": "owner"},
    {"path": "/chat", "view": "conversations", "access": "authenticated"},
]

__all__ = [
    "auth_router",
    "listings_router",
    "dashboard_router",
    "conversations_router",
    "ROUTE_TABLE",
]
