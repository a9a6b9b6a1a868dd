"""
Listing detail service: single-listing view and the contact-owner flow.
"""

from typing import Optional, Tuple
import logging

from supabase import AsyncClient

from roomfinder.repositories.listing import ListingRepository
from roomfinder.repositories.message import MessageRepository
from roomfinder.schemas.listing import ListingResponse
from roomfinder.schemas.user import UserProfile
from roomfinder.utils.exceptions import AuthRequired, ListingNotFound, SelfContactRejected

logger = logging.getLogger(__name__)

CONVERSATION_ROUTE = "/chat"


def greeting_for(listing: ListingResponse) -> str:
    return f"Hi, I'm interested in your room: {listing.title}"


class ListingDetailService:
    """
    Loads one listing with its owner's contact details and starts conversations.

    Args:
        client: Backend client; a session-bound client is needed for `contact_owner`
    """

    def __init__(self, client: AsyncClient):
        self.listing_repo = ListingRepository(client)
        self.message_repo = MessageRepository(client)

    async def load(self, listing_id: str) -> ListingResponse:
        """
        Raises:
            ListingNotFound: If no such listing exists
        """
        listing = await self.listing_repo.get_with_owner(listing_id)
        if listing is None:
            raise ListingNotFound(listing_id)
        return listing

    async def contact_owner(
        self,
        listing: ListingResponse,
        current_user: Optional[UserProfile]
    ) -> Tuple[bool, str]:
        """
        Open a conversation with the listing's owner.

        A greeting is inserted only when the user has not written on this
        listing before, so repeating the call creates nothing new.

        Args:
            listing: Listing being viewed
            current_user: Signed-in user, if any

        Returns:
            Tuple of (message_created, route of the conversation view)

        Raises:
            AuthRequired: If nobody is signed in
            SelfContactRejected: If the user owns the listing
        """
        if current_user is None:
            raise AuthRequired("Please login to contact the owner")

        if current_user.id == listing.owner_id:
            logger.warning(f"User {current_user.id} tried to contact themselves on {listing.id}")
            raise SelfContactRejected()

        existing = await self.message_repo.find_from_sender(listing.id, current_user.id)
        if existing is not None:
            return False, CONVERSATION_ROUTE

        await self.message_repo.create_message(
            listing_id=listing.id,
            sender_id=current_user.id,
            receiver_id=listing.owner_id,
            body=greeting_for(listing),
        )
        return True, CONVERSATION_ROUTE
