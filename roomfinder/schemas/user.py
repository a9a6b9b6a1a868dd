"""
Pydantic schemas for user profiles.
Profile rows live in the backend `users` relation, keyed by the identity id.
"""

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from typing import Optional
from datetime import datetime
import enum


class UserRole(str, enum.Enum):
    """User role enumeration; gates owner-only routes."""
    OWNER = "owner"
    TENANT = "tenant"


class UserProfile(BaseModel):
    """Profile row as stored in the backend."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., description="Identity id issued by the backend")
    name: str = Field("", description="Display name", examples=["Sita Sharma"])
    email: str = Field(..., description="Email address", examples=["sita@example.com"])
    phone: str = Field("", description="Contact phone", examples=["9800000000"])
    role: UserRole = Field(UserRole.TENANT, description="owner or tenant")
    created_at: Optional[datetime] = Field(None, description="Profile creation timestamp")

    @property
    def is_owner(self) -> bool:
        return self.role == UserRole.OWNER


class ProfileFields(BaseModel):
    """Profile fields collected at sign-up."""

    name: str = Field("", max_length=255, description="Display name")
    phone: str = Field("", max_length=32, description="Contact phone")
    role: Optional[UserRole] = Field(None, description="owner or tenant (default: tenant)")

    @field_validator("name", "phone")
    @classmethod
    def strip_text(cls, v):
        return (v or "").strip()


class SignUpRequest(ProfileFields):
    """Sign-up request schema."""

    email: EmailStr = Field(..., description="User's email address", examples=["owner@example.com"])
    password: str = Field(
        ...,
        min_length=6,
        max_length=128,
        description="User's password (minimum 6 characters)",
    )

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v):
        """Normalize email to lowercase."""
        return v.lower().strip()

    def profile_fields(self) -> ProfileFields:
        return ProfileFields(name=self.name, phone=self.phone, role=self.role)
