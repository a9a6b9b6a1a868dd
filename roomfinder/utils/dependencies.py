"""
FastAPI dependency injection utilities for sessions and services.
Resolves bearer tokens to registered sessions and builds per-request services.
"""

from typing import Optional
import logging

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError
from supabase import AsyncClient

from roomfinder.backend import create_backend_client, get_backend
from roomfinder.schemas.user import UserProfile
from roomfinder.services.browse import ListingBrowser
from roomfinder.services.conversation import ConversationService
from roomfinder.services.dashboard import OwnerDashboard
from roomfinder.services.listing_detail import ListingDetailService
from roomfinder.services.listing_editor import ListingEditor
from roomfinder.services.session import SessionProvider, SessionRegistry
from roomfinder.utils.auth import verify_session_token
from roomfinder.utils.exceptions import (
    AuthRequired,
    InvalidTokenError,
    InsufficientPermissionsError,
)

logger = logging.getLogger(__name__)

# HTTP Bearer token security scheme
security = HTTPBearer(auto_error=False)

_registry: Optional[SessionRegistry] = None


class CurrentSession:
    """A resolved bearer token: registry key plus its provider."""

    def __init__(self, session_id: str, provider: SessionProvider):
        self.session_id = session_id
        self.provider = provider

    @property
    def client(self) -> AsyncClient:
        return self.provider.client


def get_session_registry() -> SessionRegistry:
    """
    Get the process-wide session registry.

    Returns:
        SessionRegistry creating one backend client per session
    """
    global _registry
    if _registry is None:
        _registry = SessionRegistry(create_backend_client)
    return _registry


def resolve_session(token: str, registry: SessionRegistry) -> CurrentSession:
    """
    Map a session token to its live session.

    Raises:
        InvalidTokenError: If the token does not verify or the session is gone
    """
    try:
        payload = verify_session_token(token)
    except JWTError as e:
        logger.debug(f"Rejected session token: {e}")
        raise InvalidTokenError()

    provider = registry.get(payload.session_id)
    if provider is None:
        raise InvalidTokenError("Session expired, please login again")
    return CurrentSession(payload.session_id, provider)


async def get_current_session(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    registry: SessionRegistry = Depends(get_session_registry)
) -> CurrentSession:
    """
    Get the caller's session from the bearer token.

    Raises:
        AuthRequired: If no token was sent
        InvalidTokenError: If the token is invalid or expired
    """
    if not credentials:
        raise AuthRequired()
    return resolve_session(credentials.credentials, registry)


async def get_optional_session(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    registry: SessionRegistry = Depends(get_session_registry)
) -> Optional[CurrentSession]:
    """Like get_current_session, but anonymous or stale callers get None."""
    if not credentials:
        return None
    try:
        return resolve_session(credentials.credentials, registry)
    except InvalidTokenError:
        return None


async def get_optional_user(
    session: Optional[CurrentSession] = Depends(get_optional_session)
) -> Optional[UserProfile]:
    return session.provider.user if session else None


async def get_current_user(
    session: CurrentSession = Depends(get_current_session)
) -> UserProfile:
    """
    Get the signed-in user's profile.

    Raises:
        AuthRequired: If the session has no user (signed out or profile incomplete)
    """
    return session.provider.require_user()


async def require_owner(
    current_user: UserProfile = Depends(get_current_user)
) -> UserProfile:
    """
    Gate for owner-only routes.

    Raises:
        InsufficientPermissionsError: If the user is a tenant
    """
    if not current_user.is_owner:
        raise InsufficientPermissionsError("manage listings")
    return current_user


async def get_listing_browser(client: AsyncClient = Depends(get_backend)) -> ListingBrowser:
    return ListingBrowser(client)


async def get_listing_detail_service(
    session: Optional[CurrentSession] = Depends(get_optional_session),
    client: AsyncClient = Depends(get_backend)
) -> ListingDetailService:
    """Uses the caller's own client when signed in so writes carry their identity."""
    return ListingDetailService(session.client if session else client)


async def get_listing_editor(
    owner: UserProfile = Depends(require_owner),
    session: CurrentSession = Depends(get_current_session)
) -> ListingEditor:
    return ListingEditor(session.client, owner)


async def get_owner_dashboard(
    owner: UserProfile = Depends(require_owner),
    session: CurrentSession = Depends(get_current_session)
) -> OwnerDashboard:
    return OwnerDashboard(session.client, owner)


async def get_conversation_service(
    current_user: UserProfile = Depends(get_current_user),
    session: CurrentSession = Depends(get_current_session)
) -> ConversationService:
    return ConversationService(session.client, current_user)
