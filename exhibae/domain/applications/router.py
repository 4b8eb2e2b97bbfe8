"""Application router - FastAPI endpoints for stall applications"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import Profile
from ..notifications.dispatcher import EmailDispatcher, get_email_dispatcher
from .schemas import (
    ApplicationCreate,
    ApplicationMutationResponse,
    ApplicationResponse,
    ApplicationStats,
    ApplicationStatusUpdate,
)
from .service import ApplicationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/applications", tags=["Applications"])


def get_application_service(
    db: Session = Depends(get_db),
    dispatcher: EmailDispatcher = Depends(get_email_dispatcher),
) -> ApplicationService:
    """Dependency injection for ApplicationService"""
    return ApplicationService(db, dispatcher)


@router.get("", response_model=list[ApplicationResponse])
async def list_applications(
    exhibition_id: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    current_user: Profile = Depends(get_current_user),
    service: ApplicationService = Depends(get_application_service),
):
    """Applications visible to the caller, newest first"""
    return service.list_applications(current_user, exhibition_id, status, search)


@router.get("/stats/summary", response_model=ApplicationStats)
async def application_stats(
    exhibition_id: Optional[str] = Query(None),
    current_user: Profile = Depends(get_current_user),
    service: ApplicationService = Depends(get_application_service),
):
    return service.get_application_stats(current_user, exhibition_id)


@router.post("", response_model=ApplicationMutationResponse, status_code=201)
async def submit_application(
    data: ApplicationCreate,
    current_user: Profile = Depends(get_current_user),
    service: ApplicationService = Depends(get_application_service),
):
    application, warnings = await service.submit_application(data.stall_instance_id, current_user, data.message)
    return ApplicationMutationResponse(
        application=ApplicationResponse.model_validate(application), warnings=warnings
    )


@router.get("/{application_id}", response_model=ApplicationResponse)
async def get_application(
    application_id: str,
    current_user: Profile = Depends(get_current_user),
    service: ApplicationService = Depends(get_application_service),
):
    return service.get_application(application_id, current_user)


@router.patch("/{application_id}/status", response_model=ApplicationMutationResponse)
async def update_application_status(
    application_id: str,
    data: ApplicationStatusUpdate,
    current_user: Profile = Depends(get_current_user),
    service: ApplicationService = Depends(get_application_service),
):
    application, warnings = await service.update_application_status(
        application_id, data.status, current_user, data.comments
    )
    return ApplicationMutationResponse(
        application=ApplicationResponse.model_validate(application), warnings=warnings
    )


@router.delete("/{application_id}")
async def delete_application(
    application_id: str,
    current_user: Profile = Depends(get_current_user),
    service: ApplicationService = Depends(get_application_service),
):
    service.delete_application(application_id, current_user)
    return {"success": True}
