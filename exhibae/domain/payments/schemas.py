"""Payment domain schemas - Pydantic models for validation"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ...shared.validators import validate_choice, validate_positive_amount

PAYMENT_STATUSES = {"processing", "completed", "refunded", "failed"}
PAYMENT_METHODS = {"bank_transfer", "card", "upi", "cash", "cheque", "other"}


class PaymentCreate(BaseModel):
    amount: Decimal
    payment_method: str
    reference_number: Optional[str] = Field(None, max_length=255)
    coupon_code: Optional[str] = None

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v):
        return validate_positive_amount(v)

    @field_validator("payment_method")
    @classmethod
    def validate_method(cls, v):
        return validate_choice(v, PAYMENT_METHODS, "payment method")


class PaymentStatusUpdate(BaseModel):
    status: str

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return validate_choice(v, PAYMENT_STATUSES, "payment status")


class PaymentResponse(BaseModel):
    id: str
    application_id: str
    amount: Decimal
    payment_method: str
    reference_number: Optional[str] = None
    status: str
    coupon_id: Optional[str] = None
    discount_amount: Decimal
    transaction_date: Optional[datetime] = None

    class Config:
        from_attributes = True


class PaymentMutationResponse(BaseModel):
    payment: PaymentResponse
    warnings: list[str] = []
