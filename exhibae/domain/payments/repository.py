"""Payment repository - Database operations for payment transactions"""

from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...models import PaymentTransaction, StallApplication


class PaymentRepository:
    """Repository for payment transaction database operations"""

    @staticmethod
    def get_payments_for_application(db: Session, application_id: str) -> list[PaymentTransaction]:
        return (
            db.query(PaymentTransaction)
            .filter(PaymentTransaction.application_id == application_id)
            .order_by(PaymentTransaction.transaction_date.desc())
            .all()
        )

    @staticmethod
    def get_payment(db: Session, transaction_id: str) -> Optional[PaymentTransaction]:
        return (
            db.query(PaymentTransaction)
            .options(joinedload(PaymentTransaction.application).joinedload(StallApplication.exhibition))
            .filter(PaymentTransaction.id == transaction_id)
            .first()
        )

    @staticmethod
    def add_payment(db: Session, **data) -> PaymentTransaction:
        """Stage a payment; the caller commits"""
        payment = PaymentTransaction(**data)
        db.add(payment)
        return payment

    @staticmethod
    def set_status(db: Session, payment: PaymentTransaction, status: str) -> PaymentTransaction:
        payment.status = status
        db.commit()
        db.refresh(payment)
        return payment
