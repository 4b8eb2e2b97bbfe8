"""Coupon domain schemas - Pydantic models for validation"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ...shared.validators import to_money, validate_choice

COUPON_TYPES = {"percentage", "fixed"}
COUPON_SCOPES = {"all_exhibitions", "specific_exhibition", "all_brands", "specific_brand"}


def _normalize_code(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    v = v.strip().upper()
    if not v:
        raise ValueError("Coupon code is required")
    return v


class CouponBase(BaseModel):
    description: Optional[str] = None
    exhibition_id: Optional[str] = None
    brand_id: Optional[str] = None
    min_booking_amount: Optional[Decimal] = None
    max_discount_amount: Optional[Decimal] = None
    usage_limit: Optional[int] = Field(None, ge=1)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    @field_validator("min_booking_amount", "max_discount_amount")
    @classmethod
    def validate_amounts(cls, v):
        if v is None:
            return v
        v = to_money(v)
        if v < 0:
            raise ValueError("Amounts cannot be negative")
        return v


class CouponCreate(CouponBase):
    code: str = Field(..., max_length=50)
    type: str
    value: Decimal
    scope: str = "all_exhibitions"
    is_active: bool = True

    @field_validator("code")
    @classmethod
    def validate_code(cls, v):
        return _normalize_code(v)

    @field_validator("type")
    @classmethod
    def validate_type(cls, v):
        return validate_choice(v, COUPON_TYPES, "coupon type")

    @field_validator("scope")
    @classmethod
    def validate_scope(cls, v):
        return validate_choice(v, COUPON_SCOPES, "coupon scope")

    @model_validator(mode="after")
    def validate_rules(self):
        self.value = to_money(self.value)
        if self.value <= 0:
            raise ValueError("Coupon value must be greater than zero")
        if self.type == "percentage" and self.value > 100:
            raise ValueError("Percentage discount cannot exceed 100")
        if self.scope == "specific_exhibition" and not self.exhibition_id:
            raise ValueError("An exhibition is required for exhibition-specific coupons")
        if self.scope == "specific_brand" and not self.brand_id:
            raise ValueError("A brand is required for brand-specific coupons")
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("End date must be after the start date")
        return self


class CouponUpdate(CouponBase):
    code: Optional[str] = Field(None, max_length=50)
    value: Optional[Decimal] = None
    is_active: Optional[bool] = None

    @field_validator("code")
    @classmethod
    def validate_code(cls, v):
        return _normalize_code(v)


class CouponResponse(BaseModel):
    id: str
    organiser_id: str
    code: str
    description: Optional[str] = None
    type: str
    value: Decimal
    scope: str
    exhibition_id: Optional[str] = None
    brand_id: Optional[str] = None
    min_booking_amount: Optional[Decimal] = None
    max_discount_amount: Optional[Decimal] = None
    usage_limit: Optional[int] = None
    times_used: int
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    is_active: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CouponValidateRequest(BaseModel):
    code: str
    exhibition_id: Optional[str] = None
    amount: Decimal


class CouponValidateResponse(BaseModel):
    valid: bool
    coupon_id: Optional[str] = None
    discount_amount: Decimal = Decimal("0.00")
    final_amount: Decimal
    error: Optional[str] = None
