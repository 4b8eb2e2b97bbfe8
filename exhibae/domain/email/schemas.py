"""Email microservice schemas"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel


class SendEmailRequest(BaseModel):
    # Optional here so missing fields get the service's own 400 messages
    to: Optional[str] = None
    subject: Optional[str] = None
    html: Optional[str] = None
    text: Optional[str] = None
    from_address: Optional[str] = None
    recipient_name: Optional[str] = None
    email_type: str = "custom"


class TemplateEmailRequest(BaseModel):
    to: Optional[str] = None
    templateId: Optional[str] = None
    data: dict[str, Any] = {}
    subject: Optional[str] = None
    recipient_name: Optional[str] = None


class QueueEmailRequest(SendEmailRequest):
    templateId: Optional[str] = None
    data: dict[str, Any] = {}
    sendAt: Optional[datetime] = None


class TestEmailRequest(BaseModel):
    to: Optional[str] = None
    templateId: Optional[str] = None


class EmailLogResponse(BaseModel):
    id: str
    email_type: str
    template_id: Optional[str] = None
    recipient_email: str
    recipient_name: Optional[str] = None
    subject: str
    status: str
    attempts: int
    send_at: Optional[datetime] = None
    message_id: Optional[str] = None
    error_message: Optional[str] = None
    sent_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class EmailLogPage(BaseModel):
    logs: list[EmailLogResponse]
    total: int
    limit: int
    offset: int


class EmailStats(BaseModel):
    total: int
    by_status: dict[str, int]
    by_type: dict[str, int]
    success_rate: float
