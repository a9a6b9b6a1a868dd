"""
Pydantic schemas for messages and derived conversation threads.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List
from datetime import datetime
from roomfinder.schemas.user import UserProfile


class MessageRecord(BaseModel):
    """Message row with optional sender/receiver profiles."""

    model_config = ConfigDict(extra="ignore")

    id: str
    listing_id: str
    sender_id: str
    receiver_id: str
    message: str
    created_at: Optional[datetime] = None
    sender: Optional[UserProfile] = None
    receiver: Optional[UserProfile] = None


class ChatRoom(BaseModel):
    """Derived, never persisted: one (listing, counterpart) conversation."""

    listing_id: str
    other_user: UserProfile
    last_message: Optional[MessageRecord] = None
    unread_count: int = 0

    @property
    def key(self) -> tuple:
        return (self.listing_id, self.other_user.id)


class ChatRoomListResponse(BaseModel):
    rooms: List[ChatRoom]


class ThreadResponse(BaseModel):
    """Full history of one conversation, oldest first."""

    listing_id: str
    counterpart_id: str
    messages: List[MessageRecord]


class SendMessageRequest(BaseModel):
    body: str = Field("", max_length=5000, description="Message text")


class SendMessageResponse(BaseModel):
    sent: bool
    message: str = ""
