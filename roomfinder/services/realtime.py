"""
Realtime insert notifications for messages, delivered through an asyncio queue.
"""

import asyncio
from typing import Any, AsyncIterator, Dict, Optional
import logging

from supabase import AsyncClient

from roomfinder.utils.exceptions import BackendError

logger = logging.getLogger(__name__)

_CLOSED = object()


def extract_record(payload: Any) -> Optional[Dict[str, Any]]:
    """
    Pull the inserted row out of a postgres_changes payload.

    The SDK has shipped the row under `data.record`, `record` and `new`
    depending on version.
    """
    if not isinstance(payload, dict):
        return None
    data = payload.get("data") or {}
    record = data.get("record") if isinstance(data, dict) else None
    record = record or payload.get("record") or payload.get("new")
    if not isinstance(record, dict) or not record.get("id"):
        return None
    return record


class MessageFeed:
    """
    Insert notifications on the `messages` relation for one listing.

    Usage:
        feed = MessageFeed(client, listing_id)
        await feed.subscribe()
        async for record in feed:
            ...
        await feed.close()
    """

    def __init__(self, client: AsyncClient, listing_id: str):
        self.client = client
        self.listing_id = listing_id
        self.queue: asyncio.Queue = asyncio.Queue()
        self._channel = None
        self._closed = False

    @property
    def channel_name(self) -> str:
        return f"messages:{self.listing_id}"

    async def subscribe(self) -> None:
        """
        Raises:
            BackendError: If the channel cannot be joined
        """
        try:
            channel = self.client.channel(self.channel_name)
            channel.on_postgres_changes(
                "INSERT",
                schema="public",
                table="messages",
                filter=f"listing_id=eq.{self.listing_id}",
                callback=self._on_insert,
            )
            await channel.subscribe()
        except Exception as e:
            logger.error(f"Failed to subscribe to {self.channel_name}: {e}")
            raise BackendError("subscribe to messages", str(e))

        self._channel = channel
        logger.debug(f"Subscribed to {self.channel_name}")

    def _on_insert(self, payload: Dict[str, Any]) -> None:
        if self._closed:
            return
        record = extract_record(payload)
        if record is None:
            logger.warning(f"Ignoring malformed notification on {self.channel_name}")
            return
        self.queue.put_nowait(record)

    async def close(self) -> None:
        """Leave the channel and end iteration."""
        if self._closed:
            return
        self._closed = True
        if self._channel is not None:
            try:
                await self.client.remove_channel(self._channel)
            except Exception as e:
                logger.warning(f"Error leaving {self.channel_name}: {e}")
            self._channel = None
        self.queue.put_nowait(_CLOSED)

    def __aiter__(self) -> AsyncIterator[Dict[str, Any]]:
        return self

    async def __anext__(self) -> Dict[str, Any]:
        item = await self.queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item
