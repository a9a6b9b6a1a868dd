"""
User repository for profile rows in the backend `users` relation.
"""

from typing import Optional
import logging

from supabase import AsyncClient

from roomfinder.repositories.base import BaseRepository
from roomfinder.schemas.user import ProfileFields, UserProfile, UserRole

logger = logging.getLogger(__name__)


class UserRepository(BaseRepository[UserProfile]):
    """Profile lookups and the one-time profile insert at sign-up."""

    table_name = "users"

    def __init__(self, client: AsyncClient):
        super().__init__(UserProfile, client)

    async def create_profile(self, user_id: str, email: str, fields: ProfileFields) -> UserProfile:
        """
        Insert the profile row for a freshly created identity.

        Args:
            user_id: Identity id issued by the backend
            email: Identity email
            fields: Name, phone and role from the sign-up form

        Returns:
            Created profile (re-read if the insert did not echo it)
        """
        row = {
            "id": user_id,
            "email": email,
            "name": fields.name or "",
            "phone": fields.phone or "",
            "role": (fields.role or UserRole.TENANT).value,
        }
        profile = await self.create(row)
        if profile is None:
            profile = await self.get_by_id(user_id)
        if profile is None:
            profile = UserProfile.model_validate(row)
        logger.info(f"Profile created for user {user_id} with role {row['role']}")
        return profile

    async def get_profile(self, user_id: str) -> Optional[UserProfile]:
        return await self.get_by_id(user_id)
