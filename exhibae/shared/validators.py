"""Shared validation utilities"""

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional, Union

CENTS = Decimal("0.01")


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate email format.

    Args:
        email: Email address string

    Returns:
        Lowercase email address

    Raises:
        ValueError: If email format is invalid
    """
    if not email:
        return email

    email = email.strip().lower()

    # Basic email validation pattern
    email_pattern = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"

    if not re.match(email_pattern, email):
        raise ValueError("Invalid email format")

    return email


def to_money(value: Union[Decimal, int, float, str, None]) -> Decimal:
    """Normalize an amount to a two-decimal Decimal"""
    if value is None:
        return Decimal("0.00")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(f"Invalid amount: {value}") from e
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def validate_positive_amount(value) -> Decimal:
    amount = to_money(value)
    if amount <= 0:
        raise ValueError("Amount must be greater than zero")
    return amount


def validate_choice(value: Optional[str], choices: set[str], field: str) -> Optional[str]:
    """Check a value against an allowed set, with a readable error"""
    if value is None:
        return value
    if value not in choices:
        raise ValueError(f"Invalid {field} '{value}'. Must be one of: {', '.join(sorted(choices))}")
    return value
