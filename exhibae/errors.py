"""Domain errors shared by every ExhiBae service.

Each error carries a machine-readable code and the HTTP status the API layer
answers with. Services raise these; `main.py` turns them into JSON responses.
"""

from enum import Enum
from typing import Optional


class ErrorCode(Enum):
    """Domain error codes."""

    VALIDATION_FAILED = "VALIDATION_FAILED"
    COUPON_INVALID = "COUPON_INVALID"
    NOT_FOUND = "NOT_FOUND"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    ALREADY_PENDING = "ALREADY_PENDING"
    NOT_AVAILABLE = "NOT_AVAILABLE"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    DUPLICATE_COUPON_CODE = "DUPLICATE_COUPON_CODE"


class ExhibaeError(Exception):
    """Base domain error with code, HTTP status and user-safe message."""

    code = ErrorCode.VALIDATION_FAILED
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class ValidationFailedError(ExhibaeError):
    """Raised when input fails a business rule."""


class CouponValidationError(ExhibaeError):
    """Raised when a coupon cannot be applied to a booking."""

    code = ErrorCode.COUPON_INVALID


class NotFoundError(ExhibaeError):
    code = ErrorCode.NOT_FOUND
    status_code = 404

    def __init__(self, entity: str, entity_id: Optional[str] = None):
        super().__init__(f"{entity} not found")
        self.entity = entity
        self.entity_id = entity_id


class PermissionDeniedError(ExhibaeError):
    code = ErrorCode.PERMISSION_DENIED
    status_code = 403


class AlreadyPendingError(ExhibaeError):
    """Raised when a stall instance already has a pending application."""

    code = ErrorCode.ALREADY_PENDING
    status_code = 409

    def __init__(self, stall_instance_id: str):
        super().__init__("This stall already has a pending application")
        self.stall_instance_id = stall_instance_id


class NotAvailableError(ExhibaeError):
    """Raised when a stall instance is not open for applications."""

    code = ErrorCode.NOT_AVAILABLE
    status_code = 409

    def __init__(self, stall_instance_id: str, status: Optional[str] = None):
        super().__init__("Stall is not available")
        self.stall_instance_id = stall_instance_id
        self.status = status


class InvalidTransitionError(ExhibaeError):
    """Raised when a status change is not in the allowed transition table."""

    code = ErrorCode.INVALID_TRANSITION
    status_code = 409

    def __init__(self, current: str, requested: str, entity: str = "application"):
        super().__init__(f"Cannot change {entity} status from '{current}' to '{requested}'")
        self.current = current
        self.requested = requested


class DuplicateCouponCodeError(ExhibaeError):
    code = ErrorCode.DUPLICATE_COUPON_CODE
    status_code = 409

    def __init__(self, code: str):
        super().__init__(f"Coupon code '{code}' already exists")
        self.coupon_code = code
