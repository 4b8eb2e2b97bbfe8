"""Coupon service - Business logic for coupon management and redemption"""

import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...errors import CouponValidationError, DuplicateCouponCodeError, NotFoundError, PermissionDeniedError
from ...models import Coupon, Exhibition, Profile, utcnow
from ...shared.permissions import ensure_role, is_manager
from ...shared.validators import to_money
from .repository import CouponRepository
from .rules import check_coupon, discount_for
from .schemas import CouponCreate, CouponUpdate

logger = logging.getLogger(__name__)


class CouponService:
    """Service layer for coupons"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = CouponRepository()

    def list_coupons(self, user: Profile) -> list[Coupon]:
        ensure_role(user, "organiser", "manager")
        return self.repo.get_coupons(self.db, None if is_manager(user) else user.id)

    def get_coupon(self, coupon_id: str, user: Profile) -> Coupon:
        coupon = self.repo.get_coupon(self.db, coupon_id)
        if not coupon:
            raise NotFoundError("Coupon", coupon_id)
        if coupon.organiser_id != user.id and not is_manager(user):
            raise PermissionDeniedError("You do not own this coupon")
        return coupon

    def create_coupon(self, data: CouponCreate, user: Profile) -> Coupon:
        ensure_role(user, "organiser", "manager")
        if self.repo.code_exists(self.db, data.code):
            raise DuplicateCouponCodeError(data.code)
        try:
            coupon = self.repo.create_coupon(self.db, user.id, **data.model_dump())
        except IntegrityError as e:
            self.db.rollback()
            raise DuplicateCouponCodeError(data.code) from e
        logger.info(f"🏷️ Coupon {coupon.code} created by {user.id}")
        return coupon

    def update_coupon(self, coupon_id: str, data: CouponUpdate, user: Profile) -> Coupon:
        coupon = self.get_coupon(coupon_id, user)
        updates = data.model_dump(exclude_unset=True)
        if updates.get("code") and self.repo.code_exists(self.db, updates["code"], exclude_id=coupon.id):
            raise DuplicateCouponCodeError(updates["code"])
        if coupon.type == "percentage" and updates.get("value") is not None and to_money(updates["value"]) > 100:
            raise CouponValidationError("Percentage discount cannot exceed 100")
        return self.repo.update_coupon(self.db, coupon, **updates)

    def delete_coupon(self, coupon_id: str, user: Profile) -> None:
        """Unused coupons are removed; redeemed ones are deactivated to keep payment history intact"""
        coupon = self.get_coupon(coupon_id, user)
        if coupon.times_used:
            self.repo.update_coupon(self.db, coupon, is_active=False)
            logger.info(f"🏷️ Coupon {coupon.code} deactivated (used {coupon.times_used} times)")
            return
        self.repo.delete_coupon(self.db, coupon)

    def validate_coupon(
        self,
        code: str,
        amount,
        brand_id: Optional[str] = None,
        exhibition_id: Optional[str] = None,
    ) -> tuple[Coupon, Decimal]:
        """Check a code for a booking; returns the coupon and the discount it gives"""
        coupon = self.repo.get_by_code(self.db, code)
        organiser_id = None
        # Platform coupons created by managers apply to every organiser's exhibitions
        if exhibition_id and coupon and not self._is_platform_coupon(coupon):
            exhibition = self.db.query(Exhibition).filter(Exhibition.id == exhibition_id).first()
            organiser_id = exhibition.organiser_id if exhibition else None
        check_coupon(
            coupon,
            amount,
            utcnow(),
            exhibition_id=exhibition_id,
            exhibition_organiser_id=organiser_id,
            brand_id=brand_id,
        )
        return coupon, discount_for(coupon, amount)

    def _is_platform_coupon(self, coupon: Coupon) -> bool:
        owner = self.db.get(Profile, coupon.organiser_id)
        return owner is not None and is_manager(owner)

    def redeem(self, coupon: Coupon) -> None:
        self.repo.increment_usage(self.db, coupon)
