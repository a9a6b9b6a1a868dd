"""
Message repository: append-only rows in the backend `messages` relation.
"""

from typing import List, Optional
import logging

from supabase import AsyncClient

from roomfinder.repositories.base import BaseRepository
from roomfinder.schemas.message import MessageRecord

logger = logging.getLogger(__name__)

PROFILE_COLUMNS = "id, name, email, phone, role, created_at"

# Messages with both participants' profiles embedded
MESSAGE_WITH_PARTICIPANTS = (
    f"*, sender:users!sender_id({PROFILE_COLUMNS}), "
    f"receiver:users!receiver_id({PROFILE_COLUMNS})"
)


def involving(user_id: str) -> str:
    """PostgREST `or` filter matching rows where the user is either party."""
    return f"sender_id.eq.{user_id},receiver_id.eq.{user_id}"


class MessageRepository(BaseRepository[MessageRecord]):
    """Data access for the `messages` relation. There is no update or delete."""

    table_name = "messages"

    def __init__(self, client: AsyncClient):
        super().__init__(MessageRecord, client)

    async def list_for_user(self, user_id: str) -> List[MessageRecord]:
        """Every message sent or received by the user, newest first."""
        rows = await self.execute(
            self.query()
            .select(MESSAGE_WITH_PARTICIPANTS)
            .or_(involving(user_id))
            .order("created_at", desc=True),
            f"list messages of user {user_id}"
        )
        return [self.parse(row) for row in rows]

    async def list_thread(
        self,
        listing_id: str,
        user_id: str,
        counterpart_id: str
    ) -> List[MessageRecord]:
        """
        History between two participants on one listing, oldest first.

        Both `or` filters must hold; since sender and receiver always differ
        this restricts the rows to the pair.
        """
        rows = await self.execute(
            self.query()
            .select(MESSAGE_WITH_PARTICIPANTS)
            .eq("listing_id", listing_id)
            .or_(involving(user_id))
            .or_(involving(counterpart_id))
            .order("created_at", desc=False),
            f"list thread on listing {listing_id}"
        )
        return [self.parse(row) for row in rows]

    async def get_with_participants(self, message_id: str) -> Optional[MessageRecord]:
        return await self.get_by_id(message_id, columns=MESSAGE_WITH_PARTICIPANTS)

    async def find_from_sender(self, listing_id: str, sender_id: str) -> Optional[MessageRecord]:
        """Any message the sender has already written on this listing."""
        return await self.first(
            self.query().select("*").eq("listing_id", listing_id).eq("sender_id", sender_id),
            f"find message from {sender_id} on listing {listing_id}"
        )

    async def create_message(
        self,
        listing_id: str,
        sender_id: str,
        receiver_id: str,
        body: str
    ) -> Optional[MessageRecord]:
        message = await self.create({
            "listing_id": listing_id,
            "sender_id": sender_id,
            "receiver_id": receiver_id,
            "message": body,
        })
        logger.info(f"Message sent on listing {listing_id} from {sender_id} to {receiver_id}")
        return message
