"""Coupon rules: eligibility checks and discount arithmetic, free of storage access"""

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from ...errors import CouponValidationError
from ...models import Coupon
from ...shared.validators import CENTS, to_money


def calculate_discount(
    coupon_type: str,
    value: Decimal,
    amount: Decimal,
    max_discount_amount: Optional[Decimal] = None,
) -> Decimal:
    """
    Discount for a booking amount.

    Percentage coupons take value% of the amount; fixed coupons take value.
    The result is capped by max_discount_amount and by the amount itself, so
    the discounted total never goes below zero.
    """
    amount = to_money(amount)
    value = to_money(value)
    if amount <= 0 or value <= 0:
        return Decimal("0.00")

    if coupon_type == "percentage":
        discount = (amount * value / Decimal("100")).quantize(CENTS, rounding=ROUND_HALF_UP)
    else:
        discount = value

    if max_discount_amount is not None:
        discount = min(discount, to_money(max_discount_amount))
    return min(discount, amount)


def discount_for(coupon: Coupon, amount) -> Decimal:
    return calculate_discount(coupon.type, coupon.value, amount, coupon.max_discount_amount)


def check_coupon(
    coupon: Optional[Coupon],
    amount,
    now: datetime,
    exhibition_id: Optional[str] = None,
    exhibition_organiser_id: Optional[str] = None,
    brand_id: Optional[str] = None,
) -> None:
    """Raise CouponValidationError with a user-facing reason when the coupon cannot be used"""
    if coupon is None or not coupon.is_active:
        raise CouponValidationError("Invalid coupon code")

    if coupon.scope == "specific_exhibition" and coupon.exhibition_id != exhibition_id:
        raise CouponValidationError("This coupon is not valid for this exhibition")
    if exhibition_organiser_id and exhibition_organiser_id != coupon.organiser_id:
        raise CouponValidationError("This coupon is not valid for this exhibition")

    if coupon.scope == "specific_brand" and coupon.brand_id != brand_id:
        raise CouponValidationError("This coupon is not valid for your brand")

    if coupon.usage_limit is not None and coupon.times_used >= coupon.usage_limit:
        raise CouponValidationError("This coupon has reached its usage limit")

    if coupon.min_booking_amount is not None and to_money(amount) < to_money(coupon.min_booking_amount):
        raise CouponValidationError(f"Minimum booking amount of ${to_money(coupon.min_booking_amount)} required")

    if coupon.start_date and now < coupon.start_date:
        raise CouponValidationError("This coupon is not yet active")

    if coupon.end_date and now > coupon.end_date:
        raise CouponValidationError("This coupon has expired")
