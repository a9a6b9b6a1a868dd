"""
Session token utilities.
Issues and verifies the application's bearer tokens that point at a registered browser session.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from jose import JWTError, jwt
from roomfinder.config import settings


class TokenPayload:
    """Session token payload structure."""

    def __init__(self, session_id: str, user_id: str, exp: datetime):
        self.session_id = session_id
        self.user_id = user_id
        self.exp = exp

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TokenPayload":
        """Create TokenPayload from dictionary."""
        return cls(
            session_id=data["sid"],
            user_id=data["sub"],
            exp=datetime.fromtimestamp(data["exp"], tz=timezone.utc)
        )


def create_session_token(
    session_id: str,
    user_id: str,
    expires_delta: Optional[timedelta] = None
) -> str:
    """
    Create a signed session token.

    Args:
        session_id: Registry key of the browser session
        user_id: Backend identity id
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token string
    """
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.session_expire_minutes))

    to_encode = {
        "sub": user_id,
        "sid": session_id,
        "exp": expire,
        "iat": now,
        "type": "session"
    }

    return jwt.encode(
        to_encode,
        settings.session_secret_key,
        algorithm=settings.session_algorithm
    )


def verify_session_token(token: str) -> TokenPayload:
    """
    Verify and decode a session token.

    Args:
        token: JWT token string

    Returns:
        Decoded TokenPayload

    Raises:
        JWTError: If token is invalid, expired or of the wrong type
    """
    try:
        payload = jwt.decode(
            token,
            settings.session_secret_key,
            algorithms=[settings.session_algorithm]
        )
    except JWTError:
        raise
    except Exception as e:
        raise JWTError(f"Token validation error: {str(e)}")

    if payload.get("type") != "session":
        raise JWTError("Invalid token type")

    if not payload.get("sub") or not payload.get("sid"):
        raise JWTError("Invalid token payload")

    return TokenPayload.from_dict(payload)
