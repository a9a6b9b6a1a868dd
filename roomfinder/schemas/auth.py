"""
Pydantic schemas for authentication requests and responses.
Handles login, session tokens, and current-user data.
"""

from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional
from roomfinder.schemas.user import UserProfile


class LoginRequest(BaseModel):
    """Login request schema."""

    email: EmailStr = Field(
        ...,
        description="User's email address",
        examples=["tenant@example.com"]
    )
    password: str = Field(
        ...,
        min_length=1,
        max_length=128,
        description="User's password",
    )

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v):
        """Normalize email to lowercase."""
        return v.lower().strip()


class SessionResponse(BaseModel):
    """Issued after a successful sign-in or sign-up."""

    access_token: str = Field(..., description="Application session token (JWT)")
    token_type: str = Field(default="bearer", description="Token type")
    expires_in: int = Field(..., description="Token lifetime in seconds", examples=[86400])
    user: Optional[UserProfile] = Field(None, description="Profile of the signed-in user")
    profile_incomplete: bool = Field(
        False,
        description="Identity exists but its profile row is missing"
    )
    message: str = Field("", description="User-facing notification text")


class CurrentUserResponse(BaseModel):
    """Current session state."""

    user: Optional[UserProfile] = None
    profile_incomplete: bool = False


class MessageResponse(BaseModel):
    """Plain acknowledgement with user-facing notification text."""

    message: str
