"""Coupon repository - Database operations for coupons"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import Coupon


class CouponRepository:
    """Repository for coupon database operations"""

    @staticmethod
    def get_coupons(db: Session, organiser_id: Optional[str] = None) -> list[Coupon]:
        query = db.query(Coupon)
        if organiser_id:
            query = query.filter(Coupon.organiser_id == organiser_id)
        return query.order_by(Coupon.created_at.desc()).all()

    @staticmethod
    def get_coupon(db: Session, coupon_id: str) -> Optional[Coupon]:
        return db.query(Coupon).filter(Coupon.id == coupon_id).first()

    @staticmethod
    def get_by_code(db: Session, code: str) -> Optional[Coupon]:
        return db.query(Coupon).filter(Coupon.code == code.strip().upper()).first()

    @staticmethod
    def code_exists(db: Session, code: str, exclude_id: Optional[str] = None) -> bool:
        query = db.query(Coupon.id).filter(Coupon.code == code)
        if exclude_id:
            query = query.filter(Coupon.id != exclude_id)
        return query.first() is not None

    @staticmethod
    def create_coupon(db: Session, organiser_id: str, **data) -> Coupon:
        coupon = Coupon(organiser_id=organiser_id, times_used=0, **data)
        db.add(coupon)
        db.commit()
        db.refresh(coupon)
        return coupon

    @staticmethod
    def update_coupon(db: Session, coupon: Coupon, **updates) -> Coupon:
        for key, value in updates.items():
            if hasattr(coupon, key):
                setattr(coupon, key, value)
        db.commit()
        db.refresh(coupon)
        return coupon

    @staticmethod
    def delete_coupon(db: Session, coupon: Coupon) -> None:
        db.delete(coupon)
        db.commit()

    @staticmethod
    def increment_usage(db: Session, coupon: Coupon) -> None:
        """Atomic increment; caller commits with the payment that redeemed it"""
        db.query(Coupon).filter(Coupon.id == coupon.id).update(
            {Coupon.times_used: Coupon.times_used + 1}, synchronize_session="fetch"
        )
