"""
Payment service - records stall payments

Payments are bookkeeping records next to an application. Creating or changing
one never moves the application's status; the organiser confirms the booking
explicitly through the application lifecycle.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ...errors import NotFoundError, PermissionDeniedError, ValidationFailedError
from ...models import PaymentTransaction, Profile, StallApplication
from ...shared.permissions import can_manage_exhibition, ensure_can_manage_exhibition
from ..applications.repository import ApplicationRepository
from ..applications.service import notification_payload
from ..coupons.service import CouponService
from ..notifications.dispatcher import EmailDispatcher
from ..notifications.service import NotificationService
from .repository import PaymentRepository
from .schemas import PaymentCreate

logger = logging.getLogger(__name__)

PAYABLE_APPLICATION_STATUSES = {"approved", "payment_pending"}


class PaymentService:
    """Service layer for payment transactions"""

    def __init__(self, db: Session, dispatcher: Optional[EmailDispatcher] = None):
        self.db = db
        self.repo = PaymentRepository()
        self.applications = ApplicationRepository()
        self.coupons = CouponService(db)
        self.notifications = NotificationService(db, dispatcher)

    def _get_application(self, application_id: str, user: Profile) -> StallApplication:
        application = self.applications.get_application(self.db, application_id)
        if not application:
            raise NotFoundError("Application", application_id)
        if application.brand_id != user.id and not can_manage_exhibition(user, application.exhibition):
            raise PermissionDeniedError("You cannot access payments for this application")
        return application

    def _get_managed_payment(self, transaction_id: str, user: Profile) -> PaymentTransaction:
        payment = self.repo.get_payment(self.db, transaction_id)
        if not payment:
            raise NotFoundError("Payment", transaction_id)
        ensure_can_manage_exhibition(user, payment.application.exhibition)
        return payment

    def list_payments(self, application_id: str, user: Profile) -> list[PaymentTransaction]:
        application = self._get_application(application_id, user)
        return self.repo.get_payments_for_application(self.db, application.id)

    async def create_payment(
        self, application_id: str, data: PaymentCreate, user: Profile
    ) -> tuple[PaymentTransaction, list[str]]:
        """Record a processing payment; the application status is left untouched"""
        application = self._get_application(application_id, user)
        if application.brand_id != user.id:
            raise PermissionDeniedError("Only the applying brand can submit a payment")
        if application.status not in PAYABLE_APPLICATION_STATUSES:
            raise ValidationFailedError("Payments can only be made for approved applications")

        coupon = None
        discount = 0
        amount = data.amount
        if data.coupon_code:
            coupon, discount = self.coupons.validate_coupon(
                data.coupon_code, amount, brand_id=user.id, exhibition_id=application.exhibition_id
            )
            amount = amount - discount

        payment = self.repo.add_payment(
            self.db,
            application_id=application.id,
            amount=amount,
            payment_method=data.payment_method,
            reference_number=data.reference_number,
            status="processing",
            coupon_id=coupon.id if coupon else None,
            discount_amount=discount,
        )
        if coupon:
            self.coupons.redeem(coupon)
        self.db.commit()
        self.db.refresh(payment)
        logger.info(f"💳 Payment {payment.id} of {payment.amount} recorded for application {application.id}")

        payload = {
            **notification_payload(application),
            "amount": str(payment.amount),
            "reference_number": payment.reference_number or "",
        }
        recipients = self.notifications.recipients_for(
            "payment_submitted", application.exhibition.organiser, application.brand
        )
        result = await self.notifications.fan_out("payment_submitted", recipients, payload)
        return payment, result.warnings

    def update_payment_status(self, transaction_id: str, status: str, user: Profile) -> PaymentTransaction:
        """Overwrite the status with any allowed value"""
        payment = self._get_managed_payment(transaction_id, user)
        previous = payment.status
        payment = self.repo.set_status(self.db, payment, status)
        logger.info(f"💳 Payment {payment.id} status: {previous} → {status}")
        return payment

    def refund_payment(self, transaction_id: str, user: Profile) -> PaymentTransaction:
        payment = self._get_managed_payment(transaction_id, user)
        payment = self.repo.set_status(self.db, payment, "refunded")
        logger.info(f"↩️ Payment {payment.id} refunded")
        return payment
