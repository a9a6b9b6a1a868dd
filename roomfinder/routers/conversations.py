"""
Conversation endpoints: thread list, thread history, sending, and a live WebSocket feed.
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status

from roomfinder.schemas.message import (
    ChatRoomListResponse,
    SendMessageRequest,
    SendMessageResponse,
    ThreadResponse,
)
from roomfinder.services.conversation import ConversationService, ThreadView
from roomfinder.services.error_handler import error_responses
from roomfinder.services.session import SessionRegistry
from roomfinder.utils.dependencies import (
    get_conversation_service,
    get_session_registry,
    resolve_session,
)
from roomfinder.utils.exceptions import APIException

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/conversations", tags=["Conversations"], responses=error_responses(400, 401, 502))

# Application close code for a rejected WebSocket session
WS_UNAUTHORIZED = 4401
# Close code for a conversation that cannot be opened
WS_REJECTED = 4400


@router.get(
    "",
    response_model=ChatRoomListResponse,
    status_code=status.HTTP_200_OK,
    summary="List conversations",
    description="One entry per (listing, counterpart), previewing the newest message"
)
async def list_conversations(
    conversations: ConversationService = Depends(get_conversation_service)
) -> ChatRoomListResponse:
    return ChatRoomListResponse(rooms=await conversations.load_threads())


@router.get(
    "/{listing_id}/{counterpart_id}",
    response_model=ThreadResponse,
    summary="Conversation history",
    description="All messages between the caller and the counterpart on a listing, oldest first"
)
async def get_thread(
    listing_id: str,
    counterpart_id: str,
    conversations: ConversationService = Depends(get_conversation_service)
) -> ThreadResponse:
    thread = await conversations.open_thread(listing_id, counterpart_id, live=False)
    try:
        return ThreadResponse(
            listing_id=listing_id,
            counterpart_id=counterpart_id,
            messages=thread.messages
        )
    finally:
        await conversations.close()


@router.post(
    "/{listing_id}/{counterpart_id}/messages",
    response_model=SendMessageResponse,
    summary="Send message",
    description="Send a message to the counterpart; blank messages are ignored"
)
async def send_message(
    listing_id: str,
    counterpart_id: str,
    request: SendMessageRequest,
    conversations: ConversationService = Depends(get_conversation_service)
) -> SendMessageResponse:
    await conversations.open_thread(listing_id, counterpart_id, live=False, load=False)
    try:
        message = await conversations.send(request.body)
    finally:
        await conversations.close()

    if message is None:
        return SendMessageResponse(sent=False)
    return SendMessageResponse(sent=True, message=message.message)


async def _push_updates(websocket: WebSocket, thread: ThreadView) -> None:
    while True:
        message = await thread.updates.get()
        await websocket.send_json({"type": "message", "message": message.model_dump(mode="json")})


@router.websocket("/{listing_id}/{counterpart_id}/ws")
async def conversation_socket(
    websocket: WebSocket,
    listing_id: str,
    counterpart_id: str,
    token: str = Query(..., description="Session token"),
    registry: SessionRegistry = Depends(get_session_registry)
):
    """
    Live conversation.

    Sends {"type": "history", "messages": [...]} once, then
    {"type": "message", "message": {...}} for every new message in the pair.
    Clients send {"body": "..."} to post a message.
    """
    try:
        session = resolve_session(token, registry)
        user = session.provider.require_user()
    except APIException as e:
        logger.info(f"Rejected conversation socket: {e.detail}")
        await websocket.close(code=WS_UNAUTHORIZED)
        return

    conversations = ConversationService(session.client, user)
    try:
        thread = await conversations.open_thread(listing_id, counterpart_id)
        history = [message.model_dump(mode="json") for message in thread.messages]
    except APIException as e:
        logger.info(f"Rejected conversation socket for user {user.id}: {e.detail}")
        await conversations.close()
        await websocket.close(code=WS_REJECTED)
        return

    await websocket.accept()
    pusher = asyncio.get_running_loop().create_task(_push_updates(websocket, thread))

    try:
        await websocket.send_json({
            "type": "history",
            "messages": history
        })
        while True:
            try:
                data = await websocket.receive_json()
            except ValueError:
                logger.debug(f"Ignoring non-JSON frame from user {user.id}")
                continue
            await conversations.send(str(data.get("body", "")) if isinstance(data, dict) else "")
    except WebSocketDisconnect:
        logger.debug(f"Conversation socket closed for user {user.id}")
    finally:
        pusher.cancel()
        try:
            await pusher
        except (asyncio.CancelledError, WebSocketDisconnect):
            pass
        await conversations.close()
