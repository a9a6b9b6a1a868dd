"""
Session service wrapping the backend auth client.
Holds current-user state per browser session and implements sign-in, sign-up and sign-out.
"""

import asyncio
import secrets
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Dict, Optional, Set, Tuple
import logging

from supabase import AsyncClient

from roomfinder.backend import test_backend_connection
from roomfinder.config import settings
from roomfinder.repositories.user import UserRepository
from roomfinder.schemas.user import ProfileFields, UserProfile
from roomfinder.utils.exceptions import (
    AuthError,
    AuthRequired,
    BackendError,
    ProfileWriteError,
)

logger = logging.getLogger(__name__)

ClientFactory = Callable[[], Awaitable[AsyncClient]]


class SessionProvider:
    """
    Current-user state for one browser session.

    Call `initialize()` once before use and `close()` when the session
    ends. While initialized, every backend session-change notification
    re-fetches the profile of the now-current identity or clears it.
    """

    def __init__(self, client: AsyncClient):
        self.client = client
        self.user_repo = UserRepository(client)

        self.user: Optional[UserProfile] = None
        self.identity_id: Optional[str] = None
        self.identity_email: Optional[str] = None
        self.profile_incomplete = False
        self.loading = True

        self._subscription = None
        self._initialized = False
        self._pending: Set[asyncio.Task] = set()

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    async def initialize(self) -> None:
        """Probe the backend, subscribe to session changes and load the current identity."""
        if self._initialized:
            return
        self._initialized = True

        await test_backend_connection(self.client)

        self._subscription = self.client.auth.on_auth_state_change(self._on_auth_change)

        try:
            response = await self.client.auth.get_user()
            identity = getattr(response, "user", None) if response else None
            if identity:
                await self._load_profile(identity.id, identity.email)
        except Exception as e:
            logger.info(f"No active backend identity on session start: {e}")
        finally:
            self.loading = False

    def _on_auth_change(self, event, session) -> None:
        identity = getattr(session, "user", None) if session else None
        logger.debug(f"Session change notification: {event}")

        if identity:
            coro = self._load_profile(identity.id, identity.email)
        else:
            coro = self._clear()

        try:
            task = asyncio.get_running_loop().create_task(coro)
        except RuntimeError:
            coro.close()
            logger.warning(f"Session change {event} arrived outside an event loop")
            return
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _settle(self) -> None:
        """Wait for profile refreshes triggered by session-change notifications."""
        while True:
            pending = [task for task in self._pending if not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def _load_profile(self, user_id: str, email: Optional[str]) -> None:
        self.identity_id = user_id
        self.identity_email = email
        try:
            profile = await self.user_repo.get_profile(user_id)
        except BackendError as e:
            logger.error(f"Error fetching user profile for {user_id}: {e.detail}")
            return

        self.user = profile
        self.profile_incomplete = profile is None
        if profile is None:
            logger.warning(f"Identity {user_id} has no profile row")

    async def _clear(self) -> None:
        self.user = None
        self.identity_id = None
        self.identity_email = None
        self.profile_incomplete = False

    async def sign_in(self, email: str, password: str) -> Optional[UserProfile]:
        """
        Verify credentials with the backend and load the profile.

        Returns:
            Profile of the signed-in user (None when the profile row is missing)

        Raises:
            AuthError: If the credentials are rejected
        """
        try:
            response = await self.client.auth.sign_in_with_password(
                {"email": email, "password": password}
            )
        except Exception as e:
            logger.warning(f"Failed sign-in attempt for {email}: {e}")
            raise AuthError(str(e) or "Invalid email or password")

        identity = getattr(response, "user", None)
        if identity is None:
            logger.warning(f"Sign-in for {email} returned no identity")
            raise AuthError()

        await self._settle()
        if self.identity_id != identity.id:
            await self._load_profile(identity.id, identity.email)

        logger.info(f"User signed in: {identity.id}")
        return self.user

    async def sign_up(self, email: str, password: str, fields: ProfileFields) -> UserProfile:
        """
        Create a backend identity, then insert its profile row.

        Args:
            email: Account email
            password: Account password
            fields: Name, phone and role (role defaults to tenant)

        Returns:
            Created profile

        Raises:
            AuthError: If identity creation fails
            ProfileWriteError: If the identity exists but the profile insert failed;
                the session is left in the profile-incomplete state
        """
        try:
            response = await self.client.auth.sign_up({"email": email, "password": password})
        except Exception as e:
            logger.error(f"Auth signup error for {email}: {e}")
            raise AuthError(str(e) or "Failed to create account")

        identity = getattr(response, "user", None)
        if identity is None:
            raise AuthError("Failed to create auth user")

        await self._settle()
        self.identity_id = identity.id
        self.identity_email = identity.email or email

        return await self._write_profile(fields)

    async def complete_profile(self, fields: ProfileFields) -> UserProfile:
        """
        Insert the missing profile row for an identity left behind by a failed sign-up.

        Raises:
            AuthRequired: If there is no identity on this session
            ProfileWriteError: If the insert fails again
        """
        if self.identity_id is None:
            raise AuthRequired()
        if self.user is not None:
            return self.user
        return await self._write_profile(fields)

    async def _write_profile(self, fields: ProfileFields) -> UserProfile:
        try:
            profile = await self.user_repo.create_profile(
                self.identity_id, self.identity_email or "", fields
            )
        except BackendError as e:
            self.user = None
            self.profile_incomplete = True
            logger.error(f"Profile insertion error for {self.identity_id}: {e.detail}")
            raise ProfileWriteError(self.identity_id, e.detail)

        self.user = profile
        self.profile_incomplete = False
        logger.info(f"Signup and profile creation successful for {self.identity_id}")
        return profile

    async def sign_out(self) -> None:
        """
        Invalidate the backend session and clear local user state.

        Raises:
            BackendError: If the backend refuses the sign-out
        """
        try:
            await self.client.auth.sign_out()
        except Exception as e:
            logger.error(f"Error signing out {self.identity_id}: {e}")
            raise BackendError("sign out", str(e))
        finally:
            await self._settle()
        await self._clear()
        logger.info("User signed out")

    def require_user(self) -> UserProfile:
        """
        Raises:
            AuthRequired: If nobody with a profile is signed in
        """
        if self.user is None:
            raise AuthRequired()
        return self.user

    async def close(self) -> None:
        """Unsubscribe from session changes and drop pending refreshes."""
        if self._subscription is not None:
            try:
                self._subscription.unsubscribe()
            except Exception as e:
                logger.debug(f"Ignoring unsubscribe failure: {e}")
            self._subscription = None
        for task in list(self._pending):
            task.cancel()
        self._pending.clear()
        self._initialized = False


class SessionRegistry:
    """
    Live SessionProviders keyed by session id.

    Each provider owns its own backend client because the client carries
    the auth session.
    """

    def __init__(self, client_factory: ClientFactory, ttl: Optional[timedelta] = None):
        self.client_factory = client_factory
        self.ttl = ttl or timedelta(minutes=settings.session_expire_minutes)
        self._sessions: Dict[str, Tuple[SessionProvider, datetime]] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    async def open(self) -> Tuple[str, SessionProvider]:
        """Create and initialize a new session."""
        await self.prune()
        client = await self.client_factory()
        provider = SessionProvider(client)
        await provider.initialize()

        session_id = secrets.token_urlsafe(24)
        self._sessions[session_id] = (provider, datetime.now(timezone.utc) + self.ttl)
        logger.debug(f"Opened session ({len(self._sessions)} live)")
        return session_id, provider

    def get(self, session_id: str) -> Optional[SessionProvider]:
        entry = self._sessions.get(session_id)
        if entry is None:
            return None
        provider, expires_at = entry
        if expires_at < datetime.now(timezone.utc):
            return None
        return provider

    async def close(self, session_id: str) -> None:
        entry = self._sessions.pop(session_id, None)
        if entry is not None:
            await entry[0].close()

    async def prune(self) -> None:
        now = datetime.now(timezone.utc)
        expired = [sid for sid, (_, expires_at) in self._sessions.items() if expires_at < now]
        for session_id in expired:
            await self.close(session_id)
        if expired:
            logger.info(f"Pruned {len(expired)} expired session(s)")

    async def close_all(self) -> None:
        for session_id in list(self._sessions):
            await self.close(session_id)
