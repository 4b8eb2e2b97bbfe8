"""Chat router - conversations and support tickets"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import Profile
from .schemas import (
    ChatMessageCreate,
    ChatMessageResponse,
    ConversationCreate,
    ConversationResponse,
    MessageCreate,
    MessageResponse,
    TicketAssign,
    TicketCreate,
    TicketResponse,
    TicketStatusUpdate,
    TicketUpdate,
)
from .service import ChatService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Chat"])


def get_chat_service(db: Session = Depends(get_db)) -> ChatService:
    """Dependency injection for ChatService"""
    return ChatService(db)


# ============================================================================
# CONVERSATIONS
# ============================================================================


@router.get("/conversations", response_model=list[ConversationResponse])
async def list_conversations(
    current_user: Profile = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    results = []
    for conversation, unread in service.list_conversations(current_user):
        response = ConversationResponse.model_validate(conversation)
        response.unread_count = unread
        results.append(response)
    return results


@router.post("/conversations", response_model=ConversationResponse)
async def open_conversation(
    data: ConversationCreate,
    current_user: Profile = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    return service.open_conversation(current_user, data.participant_id, data.exhibition_id)


@router.get("/conversations/{conversation_id}/messages", response_model=list[MessageResponse])
async def list_messages(
    conversation_id: str,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    current_user: Profile = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    return service.list_messages(conversation_id, current_user, limit, offset)


@router.post("/conversations/{conversation_id}/messages", response_model=MessageResponse, status_code=201)
async def send_message(
    conversation_id: str,
    data: MessageCreate,
    current_user: Profile = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    return service.send_message(conversation_id, current_user, data.content)


@router.post("/conversations/{conversation_id}/read")
async def mark_conversation_read(
    conversation_id: str,
    current_user: Profile = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    return {"updated": service.mark_conversation_read(conversation_id, current_user)}


# ============================================================================
# SUPPORT TICKETS
# ============================================================================


@router.get("/support/tickets", response_model=list[TicketResponse])
async def list_tickets(
    status: Optional[str] = Query(None),
    priority: Optional[str] = Query(None),
    assigned_to_me: bool = Query(False),
    current_user: Profile = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    return service.list_tickets(current_user, status, priority, assigned_to_me)


@router.post("/support/tickets", response_model=TicketResponse, status_code=201)
async def create_ticket(
    data: TicketCreate,
    current_user: Profile = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    return service.create_ticket(current_user, data)


@router.get("/support/tickets/{ticket_id}", response_model=TicketResponse)
async def get_ticket(
    ticket_id: str,
    current_user: Profile = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    return service.get_ticket(ticket_id, current_user)


@router.patch("/support/tickets/{ticket_id}", response_model=TicketResponse)
async def update_ticket(
    ticket_id: str,
    data: TicketUpdate,
    current_user: Profile = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    return service.update_ticket(ticket_id, data, current_user)


@router.patch("/support/tickets/{ticket_id}/status", response_model=TicketResponse)
async def change_ticket_status(
    ticket_id: str,
    data: TicketStatusUpdate,
    current_user: Profile = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    return service.change_ticket_status(ticket_id, data.status, current_user)


@router.post("/support/tickets/{ticket_id}/assign", response_model=TicketResponse)
async def assign_ticket(
    ticket_id: str,
    data: TicketAssign,
    current_user: Profile = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    return service.assign_ticket(ticket_id, data.assigned_to, current_user)


@router.get("/support/tickets/{ticket_id}/messages", response_model=list[ChatMessageResponse])
async def list_ticket_messages(
    ticket_id: str,
    current_user: Profile = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    return service.list_ticket_messages(ticket_id, current_user)


@router.post("/support/tickets/{ticket_id}/messages", response_model=ChatMessageResponse, status_code=201)
async def send_ticket_message(
    ticket_id: str,
    data: ChatMessageCreate,
    current_user: Profile = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    return service.send_ticket_message(ticket_id, current_user, data.content, data.attachments)


@router.post("/support/tickets/{ticket_id}/read")
async def mark_ticket_read(
    ticket_id: str,
    current_user: Profile = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    return {"updated": service.mark_ticket_read(ticket_id, current_user)}
