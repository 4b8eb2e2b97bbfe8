"""
Realtime WebSocket endpoints

Browsers cannot set an Authorization header on a WebSocket handshake, so the
access token travels in the `token` query parameter. Each endpoint builds a
channel scoped to what the caller may see and streams matching change events
as JSON until either side disconnects.
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from sqlalchemy.orm import Session

from ..auth import authenticate_token
from ..database import get_db
from ..domain.chat.service import ChatService
from ..errors import NotFoundError, PermissionDeniedError
from ..models import Exhibition, Profile
from ..shared.permissions import is_manager
from .broker import Channel, Subscription, broker

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/realtime", tags=["Realtime"])

# Close codes in the 4000 range are application defined
CLOSE_UNAUTHORIZED = 4401
CLOSE_FORBIDDEN = 4403
CLOSE_NOT_FOUND = 4404


# ============================================================================
# CHANNEL SCOPES
# ============================================================================


def application_channel(db: Session, user: Profile) -> Channel:
    """Applications and stall instances visible to the user"""
    channel = Channel(f"applications:{user.id}")
    if is_manager(user):
        return channel.on("stall_applications").on("stall_instances")
    if user.role == "brand":
        return channel.on("stall_applications", brand_id=user.id)

    exhibition_ids = tuple(
        row.id for row in db.query(Exhibition.id).filter(Exhibition.organiser_id == user.id).all()
    )
    return channel.on("stall_applications", exhibition_id=exhibition_ids).on(
        "stall_instances", exhibition_id=exhibition_ids
    )


def notification_channel(user: Profile) -> Channel:
    return Channel(f"notifications:{user.id}").on("notifications", user_id=user.id)


def conversation_channel(conversation_id: str) -> Channel:
    return (
        Channel(f"conversation:{conversation_id}")
        .on("messages", conversation_id=conversation_id)
        .on("conversations", "UPDATE", id=conversation_id)
    )


def ticket_channel(ticket_id: str) -> Channel:
    return (
        Channel(f"ticket:{ticket_id}")
        .on("chat_messages", ticket_id=ticket_id)
        .on("support_tickets", "UPDATE", id=ticket_id)
    )


# ============================================================================
# STREAMING
# ============================================================================


async def _forward_events(websocket: WebSocket, subscription: Subscription) -> None:
    async for event in subscription:
        await websocket.send_json(event.to_dict())


async def _receive_client(websocket: WebSocket, user: Profile, channel: Channel, allow_typing: bool) -> None:
    """Read client frames; typing frames are re-broadcast to the channel"""
    while True:
        message = await websocket.receive_json()
        if allow_typing and isinstance(message, dict) and message.get("type") == "typing":
            broker.broadcast(
                channel.name,
                {"type": "typing", "user_id": user.id, "is_typing": bool(message.get("is_typing", True))},
            )
        elif isinstance(message, dict) and message.get("type") == "ping":
            await websocket.send_json({"type": "pong"})


async def stream_channel(websocket: WebSocket, user: Profile, channel: Channel, allow_typing: bool = False) -> None:
    await websocket.accept()
    async with broker.subscribe(channel) as subscription:
        await websocket.send_json({"type": "subscribed", "channel": channel.name})
        tasks = [
            asyncio.create_task(_forward_events(websocket, subscription)),
            asyncio.create_task(_receive_client(websocket, user, channel, allow_typing)),
        ]
        try:
            done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
            for task in done:
                exc = task.exception()
                if exc and not isinstance(exc, WebSocketDisconnect):
                    logger.error(f"❌ Realtime stream {channel.name} failed: {exc}")
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)


async def _authenticate(websocket: WebSocket, db: Session, token: Optional[str]) -> Optional[Profile]:
    user = authenticate_token(db, token)
    if not user:
        logger.warning("⚠️ Realtime connection rejected: missing or invalid token")
        await websocket.close(code=CLOSE_UNAUTHORIZED)
    return user


# ============================================================================
# ENDPOINTS
# ============================================================================


@router.websocket("/applications")
async def applications_feed(websocket: WebSocket, token: Optional[str] = Query(None), db: Session = Depends(get_db)):
    user = await _authenticate(websocket, db, token)
    if not user:
        return
    await stream_channel(websocket, user, application_channel(db, user))


@router.websocket("/notifications")
async def notifications_feed(websocket: WebSocket, token: Optional[str] = Query(None), db: Session = Depends(get_db)):
    user = await _authenticate(websocket, db, token)
    if not user:
        return
    await stream_channel(websocket, user, notification_channel(user))


@router.websocket("/conversations/{conversation_id}")
async def conversation_feed(
    websocket: WebSocket,
    conversation_id: str,
    token: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    user = await _authenticate(websocket, db, token)
    if not user:
        return
    try:
        ChatService(db).get_conversation(conversation_id, user)
    except NotFoundError:
        await websocket.close(code=CLOSE_NOT_FOUND)
        return
    except PermissionDeniedError:
        await websocket.close(code=CLOSE_FORBIDDEN)
        return
    await stream_channel(websocket, user, conversation_channel(conversation_id), allow_typing=True)


@router.websocket("/tickets/{ticket_id}")
async def ticket_feed(
    websocket: WebSocket,
    ticket_id: str,
    token: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    user = await _authenticate(websocket, db, token)
    if not user:
        return
    try:
        ChatService(db).get_ticket(ticket_id, user)
    except NotFoundError:
        await websocket.close(code=CLOSE_NOT_FOUND)
        return
    except PermissionDeniedError:
        await websocket.close(code=CLOSE_FORBIDDEN)
        return
    await stream_channel(websocket, user, ticket_channel(ticket_id), allow_typing=True)
