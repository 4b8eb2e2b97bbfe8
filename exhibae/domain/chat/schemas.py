"""Chat domain schemas - conversations, messages and support tickets"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from ...shared.validators import validate_choice
from ...utils.sanitization import clean_message

TICKET_STATUSES = {"open", "in_progress", "resolved", "closed"}
TICKET_PRIORITIES = {"low", "medium", "high", "urgent"}


class ConversationCreate(BaseModel):
    """Open (or reuse) a conversation with the other party"""

    participant_id: str
    exhibition_id: Optional[str] = None


class ConversationResponse(BaseModel):
    id: str
    brand_id: str
    organiser_id: str
    exhibition_id: Optional[str] = None
    last_message: Optional[str] = None
    last_message_at: Optional[datetime] = None
    unread_count: int = 0
    version: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class MessageCreate(BaseModel):
    content: str = Field(..., min_length=1)

    @field_validator("content")
    @classmethod
    def validate_content(cls, v):
        v = clean_message(v)
        if not v:
            raise ValueError("Message cannot be empty")
        return v


class MessageResponse(BaseModel):
    id: str
    conversation_id: str
    sender_id: str
    content: str
    status: str
    is_read: bool
    read_at: Optional[datetime] = None
    version: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TicketCreate(BaseModel):
    subject: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = None
    priority: str = "medium"

    @field_validator("priority")
    @classmethod
    def validate_priority(cls, v):
        return validate_choice(v, TICKET_PRIORITIES, "priority")

    @field_validator("description")
    @classmethod
    def validate_description(cls, v):
        return clean_message(v)


class TicketUpdate(BaseModel):
    subject: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = None
    priority: Optional[str] = None

    @field_validator("priority")
    @classmethod
    def validate_priority(cls, v):
        return validate_choice(v, TICKET_PRIORITIES, "priority")


class TicketStatusUpdate(BaseModel):
    status: str

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return validate_choice(v, TICKET_STATUSES, "ticket status")


class TicketAssign(BaseModel):
    assigned_to: str


class TicketResponse(BaseModel):
    id: str
    category: Optional[str] = None
    created_by: str
    assigned_to: Optional[str] = None
    user_role: Optional[str] = None
    status: str
    priority: str
    subject: str
    description: Optional[str] = None
    closed_at: Optional[datetime] = None
    version: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ChatMessageCreate(MessageCreate):
    attachments: Optional[list[dict[str, Any]]] = None


class ChatMessageResponse(BaseModel):
    id: str
    ticket_id: str
    sender_id: str
    content: str
    attachments: Optional[list[dict[str, Any]]] = None
    read: bool
    version: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
