"""Payment router - FastAPI endpoints for stall payments"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import Profile
from ..notifications.dispatcher import EmailDispatcher, get_email_dispatcher
from .schemas import PaymentCreate, PaymentMutationResponse, PaymentResponse, PaymentStatusUpdate
from .service import PaymentService

router = APIRouter(tags=["Payments"])


def get_payment_service(
    db: Session = Depends(get_db),
    dispatcher: EmailDispatcher = Depends(get_email_dispatcher),
) -> PaymentService:
    return PaymentService(db, dispatcher)


@router.get("/applications/{application_id}/payments", response_model=list[PaymentResponse])
async def list_payments(
    application_id: str,
    current_user: Profile = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    """Payments for an application, newest first"""
    return service.list_payments(application_id, current_user)


@router.post(
    "/applications/{application_id}/payments", response_model=PaymentMutationResponse, status_code=201
)
async def create_payment(
    application_id: str,
    data: PaymentCreate,
    current_user: Profile = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    payment, warnings = await service.create_payment(application_id, data, current_user)
    return PaymentMutationResponse(payment=PaymentResponse.model_validate(payment), warnings=warnings)


@router.patch("/payments/{transaction_id}/status", response_model=PaymentResponse)
async def update_payment_status(
    transaction_id: str,
    data: PaymentStatusUpdate,
    current_user: Profile = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    return service.update_payment_status(transaction_id, data.status, current_user)


@router.post("/payments/{transaction_id}/refund", response_model=PaymentResponse)
async def refund_payment(
    transaction_id: str,
    current_user: Profile = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    return service.refund_payment(transaction_id, current_user)
