"""Coupon router - FastAPI endpoints for coupon management"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...errors import CouponValidationError
from ...models import Profile
from ...shared.validators import to_money
from .schemas import (
    CouponCreate,
    CouponResponse,
    CouponUpdate,
    CouponValidateRequest,
    CouponValidateResponse,
)
from .service import CouponService

router = APIRouter(prefix="/coupons", tags=["Coupons"])


def get_coupon_service(db: Session = Depends(get_db)) -> CouponService:
    return CouponService(db)


@router.get("", response_model=list[CouponResponse])
async def list_coupons(
    current_user: Profile = Depends(get_current_user),
    service: CouponService = Depends(get_coupon_service),
):
    return service.list_coupons(current_user)


@router.post("", response_model=CouponResponse, status_code=201)
async def create_coupon(
    data: CouponCreate,
    current_user: Profile = Depends(get_current_user),
    service: CouponService = Depends(get_coupon_service),
):
    return service.create_coupon(data, current_user)


@router.post("/validate", response_model=CouponValidateResponse)
async def validate_coupon(
    data: CouponValidateRequest,
    current_user: Profile = Depends(get_current_user),
    service: CouponService = Depends(get_coupon_service),
):
    """Preview a coupon against a booking amount without redeeming it"""
    amount = to_money(data.amount)
    try:
        coupon, discount = service.validate_coupon(data.code, amount, current_user.id, data.exhibition_id)
    except CouponValidationError as e:
        return CouponValidateResponse(valid=False, final_amount=amount, error=e.message)
    return CouponValidateResponse(
        valid=True, coupon_id=coupon.id, discount_amount=discount, final_amount=amount - discount
    )


@router.get("/{coupon_id}", response_model=CouponResponse)
async def get_coupon(
    coupon_id: str,
    current_user: Profile = Depends(get_current_user),
    service: CouponService = Depends(get_coupon_service),
):
    return service.get_coupon(coupon_id, current_user)


@router.patch("/{coupon_id}", response_model=CouponResponse)
async def update_coupon(
    coupon_id: str,
    data: CouponUpdate,
    current_user: Profile = Depends(get_current_user),
    service: CouponService = Depends(get_coupon_service),
):
    return service.update_coupon(coupon_id, data, current_user)


@router.delete("/{coupon_id}")
async def delete_coupon(
    coupon_id: str,
    current_user: Profile = Depends(get_current_user),
    service: CouponService = Depends(get_coupon_service),
):
    service.delete_coupon(coupon_id, current_user)
    return {"success": True}
