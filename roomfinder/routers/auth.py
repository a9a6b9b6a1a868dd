"""
Authentication API endpoints for sign-in, sign-up, sign-out and profile completion.
Each sign-in opens a server-side session and returns a bearer token pointing at it.
"""

import logging

from fastapi import APIRouter, Depends, status

from roomfinder.config import settings
from roomfinder.schemas.auth import (
    CurrentUserResponse,
    LoginRequest,
    MessageResponse,
    SessionResponse,
)
from roomfinder.schemas.user import ProfileFields, SignUpRequest
from roomfinder.services.error_handler import error_responses
from roomfinder.services.session import SessionProvider, SessionRegistry
from roomfinder.utils.auth import create_session_token
from roomfinder.utils.dependencies import (
    CurrentSession,
    get_current_session,
    get_session_registry,
)
from roomfinder.utils.exceptions import APIException, ProfileWriteError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"], responses=error_responses(401, 409, 422, 502))


def _session_response(session_id: str, provider: SessionProvider, message: str) -> SessionResponse:
    return SessionResponse(
        access_token=create_session_token(session_id, provider.identity_id),
        expires_in=settings.session_expire_minutes * 60,
        user=provider.user,
        profile_incomplete=provider.profile_incomplete,
        message=message,
    )


@router.post(
    "/login",
    response_model=SessionResponse,
    status_code=status.HTTP_200_OK,
    summary="Sign in",
    description="Verify credentials with the backend and open a session"
)
async def login(
    login_data: LoginRequest,
    registry: SessionRegistry = Depends(get_session_registry)
) -> SessionResponse:
    """
    Raises:
        AuthError: If the backend rejects the credentials
    """
    session_id, provider = await registry.open()
    try:
        await provider.sign_in(login_data.email, login_data.password)
    except APIException:
        await registry.close(session_id)
        raise

    message = "Logged in successfully!"
    if provider.profile_incomplete:
        message = "Logged in. Please complete your profile to continue."
    return _session_response(session_id, provider, message)


@router.post(
    "/signup",
    response_model=SessionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create account",
    description="Create a backend identity and its profile (role defaults to tenant)"
)
async def signup(
    signup_data: SignUpRequest,
    registry: SessionRegistry = Depends(get_session_registry)
) -> SessionResponse:
    """
    Create an account and open a session for it.

    If the identity is created but the profile insert fails, the session is
    still returned with `profile_incomplete` set so the caller can retry
    through POST /auth/profile.

    Raises:
        AuthError: If identity creation fails
    """
    session_id, provider = await registry.open()
    try:
        await provider.sign_up(
            signup_data.email,
            signup_data.password,
            signup_data.profile_fields()
        )
    except ProfileWriteError as e:
        logger.warning(f"Sign-up for {signup_data.email} left without profile: {e.detail}")
        return _session_response(
            session_id,
            provider,
            "Account created, but your profile could not be saved. Please complete your profile."
        )
    except APIException:
        await registry.close(session_id)
        raise

    return _session_response(session_id, provider, "Account created successfully!")


@router.post(
    "/profile",
    response_model=CurrentUserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Complete profile",
    description="Insert the missing profile row after a partially failed sign-up"
)
async def complete_profile(
    fields: ProfileFields,
    session: CurrentSession = Depends(get_current_session)
) -> CurrentUserResponse:
    """
    Raises:
        ProfileWriteError: If the insert fails again
    """
    user = await session.provider.complete_profile(fields)
    return CurrentUserResponse(user=user, profile_incomplete=False)


@router.post(
    "/logout",
    response_model=MessageResponse,
    status_code=status.HTTP_200_OK,
    summary="Sign out",
    description="Invalidate the backend session and close the server-side session"
)
async def logout(
    session: CurrentSession = Depends(get_current_session),
    registry: SessionRegistry = Depends(get_session_registry)
) -> MessageResponse:
    try:
        await session.provider.sign_out()
    finally:
        await registry.close(session.session_id)
    return MessageResponse(message="Logged out successfully")


@router.get(
    "/me",
    response_model=CurrentUserResponse,
    summary="Current user",
    description="Profile of the signed-in user, or the profile-incomplete state"
)
async def get_current_user_info(
    session: CurrentSession = Depends(get_current_session)
) -> CurrentUserResponse:
    return CurrentUserResponse(
        user=session.provider.user,
        profile_incomplete=session.provider.profile_incomplete
    )
