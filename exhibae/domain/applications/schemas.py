"""Application domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from ...shared.validators import validate_choice
from ...utils.sanitization import clean_message
from .lifecycle import APPLICATION_STATUSES


class ApplicationCreate(BaseModel):
    stall_instance_id: str
    message: Optional[str] = None

    @field_validator("message")
    @classmethod
    def validate_message(cls, v):
        return clean_message(v, max_length=2000)


class ApplicationStatusUpdate(BaseModel):
    status: str
    comments: Optional[str] = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return validate_choice(v, APPLICATION_STATUSES, "application status")

    @field_validator("comments")
    @classmethod
    def validate_comments(cls, v):
        return clean_message(v, max_length=2000)


class ApplicationResponse(BaseModel):
    id: str
    stall_id: str
    stall_instance_id: str
    exhibition_id: str
    brand_id: str
    status: str
    message: Optional[str] = None
    organiser_comments: Optional[str] = None
    booking_confirmed: bool
    version: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ApplicationMutationResponse(BaseModel):
    """A committed change plus any soft warnings from the notification side channel"""

    application: ApplicationResponse
    warnings: list[str] = []


class ApplicationStats(BaseModel):
    total: int
    by_status: dict[str, int]
