"""Exhibition domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ...shared.validators import to_money, validate_choice

EXHIBITION_STATUSES = {"draft", "published", "cancelled", "completed"}
INSTANCE_STATUSES = {"available", "pending", "booked", "under_maintenance"}
MAINTENANCE_STATUSES = {"scheduled", "in_progress", "completed", "cancelled"}


class ExhibitionCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    postal_code: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None


class ExhibitionUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    postal_code: Optional[str] = None
    status: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return validate_choice(v, EXHIBITION_STATUSES, "exhibition status")


class ExhibitionResponse(BaseModel):
    id: str
    organiser_id: str
    title: str
    description: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    status: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class StallCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    width: Optional[float] = None
    length: Optional[float] = None
    price: Decimal
    quantity: int = Field(1, ge=1, le=500)

    @field_validator("price")
    @classmethod
    def validate_price(cls, v):
        v = to_money(v)
        if v < 0:
            raise ValueError("Price cannot be negative")
        return v


class StallResponse(BaseModel):
    id: str
    exhibition_id: str
    name: str
    description: Optional[str] = None
    width: Optional[float] = None
    length: Optional[float] = None
    price: Decimal
    quantity: int
    status: str
    display_status: Optional[str] = None

    class Config:
        from_attributes = True


class StallInstanceResponse(BaseModel):
    id: str
    stall_id: str
    exhibition_id: str
    instance_number: int
    position_x: float
    position_y: float
    rotation_angle: float
    status: str
    price: Optional[Decimal] = None
    last_maintenance_date: Optional[datetime] = None
    next_maintenance_date: Optional[datetime] = None
    version: int

    class Config:
        from_attributes = True


class InstancePriceUpdate(BaseModel):
    price: Decimal

    @field_validator("price")
    @classmethod
    def validate_price(cls, v):
        v = to_money(v)
        if v < 0:
            raise ValueError("Price cannot be negative")
        return v


class InstanceStatusUpdate(BaseModel):
    status: str

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return validate_choice(v, INSTANCE_STATUSES, "stall status")


class InstancePositionUpdate(BaseModel):
    position_x: float
    position_y: float
    rotation_angle: float = 0


class MaintenanceCreate(BaseModel):
    maintenance_type: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    performed_by: Optional[str] = None
    next_maintenance_date: Optional[datetime] = None


class MaintenanceUpdate(BaseModel):
    status: Optional[str] = None
    description: Optional[str] = None
    performed_by: Optional[str] = None
    next_maintenance_date: Optional[datetime] = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return validate_choice(v, MAINTENANCE_STATUSES, "maintenance status")


class MaintenanceResponse(BaseModel):
    id: str
    stall_instance_id: str
    maintenance_type: str
    description: Optional[str] = None
    performed_by: Optional[str] = None
    performed_at: Optional[datetime] = None
    next_maintenance_date: Optional[datetime] = None
    status: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
