"""
Conversation service: thread list, thread history with live updates, and sending.
"""

import asyncio
from collections import OrderedDict
from typing import Any, Dict, List, Optional, Tuple
import logging

from supabase import AsyncClient

from roomfinder.config import settings
from roomfinder.repositories.message import MessageRepository
from roomfinder.schemas.message import ChatRoom, MessageRecord
from roomfinder.schemas.user import UserProfile
from roomfinder.services.realtime import MessageFeed
from roomfinder.utils.exceptions import BackendError, SelfContactRejected
from roomfinder.utils.scope import ScopeCancelled, ViewScope

logger = logging.getLogger(__name__)


def counterpart_of(message: MessageRecord, user_id: str) -> Tuple[str, Optional[UserProfile]]:
    """The other participant's id and (embedded) profile."""
    if message.sender_id == user_id:
        return message.receiver_id, message.receiver
    return message.sender_id, message.sender


def group_threads(messages: List[MessageRecord], user_id: str) -> List[ChatRoom]:
    """
    Group messages into one thread per (listing, counterpart).

    Args:
        messages: User's messages, newest first
        user_id: Current user

    Returns:
        Threads in first-seen order, each previewing its newest message
    """
    rooms: "OrderedDict[Tuple[str, str], ChatRoom]" = OrderedDict()
    for message in messages:
        other_id, other_profile = counterpart_of(message, user_id)
        key = (message.listing_id, other_id)
        if key in rooms:
            continue
        rooms[key] = ChatRoom(
            listing_id=message.listing_id,
            other_user=other_profile or UserProfile(id=other_id, email=""),
            last_message=message,
        )
    return list(rooms.values())


class ThreadView:
    """
    Live view of one conversation.

    Holds at most `buffer_size` messages, oldest first, unique by id.
    Fetches run inside a ViewScope so nothing lands after `close()`.
    """

    def __init__(
        self,
        client: AsyncClient,
        user: UserProfile,
        listing_id: str,
        counterpart_id: str,
        buffer_size: Optional[int] = None
    ):
        if counterpart_id == user.id:
            raise SelfContactRejected()
        self.client = client
        self.user = user
        self.listing_id = listing_id
        self.counterpart_id = counterpart_id
        self.buffer_size = buffer_size or settings.thread_buffer_size

        self.message_repo = MessageRepository(client)
        self.scope = ViewScope(f"thread:{listing_id}:{counterpart_id}")
        self.updates: asyncio.Queue = asyncio.Queue()

        self._buffer: "OrderedDict[str, MessageRecord]" = OrderedDict()
        self._feed: Optional[MessageFeed] = None
        self._listener: Optional[asyncio.Task] = None

    @property
    def messages(self) -> List[MessageRecord]:
        return list(self._buffer.values())

    @property
    def is_live(self) -> bool:
        return self._listener is not None and not self._listener.done()

    def in_pair(self, sender_id: Optional[str], receiver_id: Optional[str]) -> bool:
        return {sender_id, receiver_id} == {self.user.id, self.counterpart_id}

    def merge(self, message: MessageRecord) -> bool:
        """
        Append a message unless its id is already buffered.

        Returns:
            True if the message was added
        """
        if message.id in self._buffer:
            return False
        self._buffer[message.id] = message
        while len(self._buffer) > self.buffer_size:
            self._buffer.popitem(last=False)
        return True

    async def load(self) -> List[MessageRecord]:
        """
        Fetch the full history of this pair on the listing.

        Messages that arrived live while the history was in flight are kept
        after it, and pending updates are dropped since they are now part of
        the returned messages.
        """
        history = await self.scope.run_or_none(
            self.message_repo.list_thread(self.listing_id, self.user.id, self.counterpart_id)
        )
        if history is None:
            return self.messages

        live = list(self._buffer.values())
        self._buffer.clear()
        for message in history + live:
            self.merge(message)

        while not self.updates.empty():
            self.updates.get_nowait()
        return self.messages

    async def start(self) -> None:
        """Subscribe to insert notifications for the listing and start consuming them."""
        if self._feed is not None:
            return
        self._feed = MessageFeed(self.client, self.listing_id)
        await self._feed.subscribe()
        self._listener = asyncio.get_running_loop().create_task(self._listen(self._feed))

    async def _listen(self, feed: MessageFeed) -> None:
        async for record in feed:
            try:
                await self.handle_notification(record)
            except Exception as e:
                logger.error(
                    f"Dropped notification {record.get('id')} on listing {self.listing_id}: {e}",
                    exc_info=e
                )

    async def handle_notification(self, record: Dict[str, Any]) -> Optional[MessageRecord]:
        """
        Fetch the complete row behind a notification and merge it.

        Returns:
            The merged message, or None if ignored
        """
        if "sender_id" in record and not self.in_pair(record.get("sender_id"), record.get("receiver_id")):
            return None

        try:
            message = await self.scope.run(self.message_repo.get_with_participants(record["id"]))
        except ScopeCancelled:
            return None
        except BackendError as e:
            logger.error(f"Failed to fetch notified message {record['id']}: {e.detail}")
            return None

        if message is None or message.listing_id != self.listing_id:
            return None
        if not self.in_pair(message.sender_id, message.receiver_id):
            return None

        if self.merge(message):
            self.updates.put_nowait(message)
            return message
        return None

    async def send(self, body: str) -> Optional[MessageRecord]:
        """
        Insert a message to the counterpart. Blank bodies are ignored.

        The buffer is not touched; the message shows up through its notification.
        """
        text = (body or "").strip()
        if not text:
            return None
        return await self.message_repo.create_message(
            listing_id=self.listing_id,
            sender_id=self.user.id,
            receiver_id=self.counterpart_id,
            body=text,
        )

    async def close(self) -> None:
        self.scope.cancel()
        if self._feed is not None:
            await self._feed.close()
        if self._listener is not None:
            self._listener.cancel()
            try:
                await self._listener
            except asyncio.CancelledError:
                pass
            self._listener = None
        self._feed = None


class ConversationService:
    """Thread list and the currently open thread for one user."""

    def __init__(self, client: AsyncClient, user: UserProfile):
        self.client = client
        self.user = user
        self.message_repo = MessageRepository(client)
        self.current: Optional[ThreadView] = None

    async def load_threads(self) -> List[ChatRoom]:
        messages = await self.message_repo.list_for_user(self.user.id)
        rooms = group_threads(messages, self.user.id)
        logger.debug(f"User {self.user.id} has {len(rooms)} conversation(s)")
        return rooms

    async def open_thread(
        self,
        listing_id: str,
        counterpart_id: str,
        live: bool = True,
        load: bool = True
    ) -> ThreadView:
        """
        Load a thread and, when `live`, subscribe to its new messages.
        Any previously open thread is closed first.

        The subscription is made before the history fetch so nothing sent
        in between is missed.

        Raises:
            SelfContactRejected: If the counterpart is the current user
        """
        if counterpart_id == self.user.id:
            logger.warning(f"User {self.user.id} tried to open a conversation with themselves")
            raise SelfContactRejected()

        await self.close()
        thread = ThreadView(self.client, self.user, listing_id, counterpart_id)
        self.current = thread
        if live:
            await thread.start()
        if load:
            await thread.load()
        return thread

    async def send(self, body: str) -> Optional[MessageRecord]:
        """No-op when no thread is open or the body is blank."""
        if self.current is None:
            return None
        return await self.current.send(body)

    async def close(self) -> None:
        if self.current is not None:
            await self.current.close()
            self.current = None
