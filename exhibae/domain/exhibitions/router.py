"""Exhibition router - FastAPI endpoints for exhibitions, stalls and instances"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import Profile
from .schemas import (
    ExhibitionCreate,
    ExhibitionResponse,
    ExhibitionUpdate,
    InstancePositionUpdate,
    InstancePriceUpdate,
    InstanceStatusUpdate,
    MaintenanceCreate,
    MaintenanceResponse,
    MaintenanceUpdate,
    StallCreate,
    StallInstanceResponse,
    StallResponse,
)
from .service import ExhibitionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/exhibitions", tags=["Exhibitions"])


def get_exhibition_service(db: Session = Depends(get_db)) -> ExhibitionService:
    """Dependency injection for ExhibitionService"""
    return ExhibitionService(db)


# ============================================================================
# EXHIBITIONS
# ============================================================================


@router.get("", response_model=list[ExhibitionResponse])
async def list_exhibitions(
    status: Optional[str] = Query(None),
    mine: bool = Query(False),
    current_user: Profile = Depends(get_current_user),
    service: ExhibitionService = Depends(get_exhibition_service),
):
    """List exhibitions; `mine=true` restricts to the caller's own"""
    organiser_id = current_user.id if mine else None
    return service.list_exhibitions(organiser_id=organiser_id, status=status)


@router.post("", response_model=ExhibitionResponse, status_code=201)
async def create_exhibition(
    data: ExhibitionCreate,
    current_user: Profile = Depends(get_current_user),
    service: ExhibitionService = Depends(get_exhibition_service),
):
    return service.create_exhibition(data, current_user)


@router.get("/{exhibition_id}", response_model=ExhibitionResponse)
async def get_exhibition(
    exhibition_id: str,
    current_user: Profile = Depends(get_current_user),
    service: ExhibitionService = Depends(get_exhibition_service),
):
    return service.get_exhibition(exhibition_id)


@router.patch("/{exhibition_id}", response_model=ExhibitionResponse)
async def update_exhibition(
    exhibition_id: str,
    data: ExhibitionUpdate,
    current_user: Profile = Depends(get_current_user),
    service: ExhibitionService = Depends(get_exhibition_service),
):
    return service.update_exhibition(exhibition_id, data, current_user)


# ============================================================================
# STALLS
# ============================================================================


@router.post("/{exhibition_id}/stalls", response_model=StallResponse, status_code=201)
async def create_stall(
    exhibition_id: str,
    data: StallCreate,
    current_user: Profile = Depends(get_current_user),
    service: ExhibitionService = Depends(get_exhibition_service),
):
    """Create a stall type and its bookable instances"""
    stall = service.create_stall(exhibition_id, data, current_user)
    response = StallResponse.model_validate(stall)
    response.display_status = stall.status
    return response


@router.get("/{exhibition_id}/stalls", response_model=list[StallResponse])
async def list_stalls(
    exhibition_id: str,
    current_user: Profile = Depends(get_current_user),
    service: ExhibitionService = Depends(get_exhibition_service),
):
    results = []
    for stall, display_status in service.list_stalls(exhibition_id):
        response = StallResponse.model_validate(stall)
        response.display_status = display_status
        results.append(response)
    return results


@router.get("/{exhibition_id}/instances", response_model=list[StallInstanceResponse])
async def list_instances(
    exhibition_id: str,
    stall_id: Optional[str] = Query(None),
    current_user: Profile = Depends(get_current_user),
    service: ExhibitionService = Depends(get_exhibition_service),
):
    return service.list_instances(exhibition_id, stall_id)


# ============================================================================
# STALL INSTANCES
# ============================================================================


@router.patch("/instances/{instance_id}/price", response_model=StallInstanceResponse)
async def update_instance_price(
    instance_id: str,
    data: InstancePriceUpdate,
    current_user: Profile = Depends(get_current_user),
    service: ExhibitionService = Depends(get_exhibition_service),
):
    return service.update_instance_price(instance_id, data.price, current_user)


@router.patch("/instances/{instance_id}/position", response_model=StallInstanceResponse)
async def update_instance_position(
    instance_id: str,
    data: InstancePositionUpdate,
    current_user: Profile = Depends(get_current_user),
    service: ExhibitionService = Depends(get_exhibition_service),
):
    return service.update_instance_position(instance_id, data, current_user)


@router.patch("/instances/{instance_id}/status", response_model=StallInstanceResponse)
async def update_instance_status(
    instance_id: str,
    data: InstanceStatusUpdate,
    current_user: Profile = Depends(get_current_user),
    service: ExhibitionService = Depends(get_exhibition_service),
):
    return service.update_instance_status(instance_id, data.status, current_user)


@router.delete("/instances/{instance_id}")
async def delete_instance(
    instance_id: str,
    current_user: Profile = Depends(get_current_user),
    service: ExhibitionService = Depends(get_exhibition_service),
):
    service.delete_instance(instance_id, current_user)
    return {"success": True}


# ============================================================================
# MAINTENANCE
# ============================================================================


@router.get("/instances/{instance_id}/maintenance", response_model=list[MaintenanceResponse])
async def list_maintenance(
    instance_id: str,
    current_user: Profile = Depends(get_current_user),
    service: ExhibitionService = Depends(get_exhibition_service),
):
    return service.list_maintenance(instance_id, current_user)


@router.post("/instances/{instance_id}/maintenance", response_model=MaintenanceResponse, status_code=201)
async def schedule_maintenance(
    instance_id: str,
    data: MaintenanceCreate,
    current_user: Profile = Depends(get_current_user),
    service: ExhibitionService = Depends(get_exhibition_service),
):
    return service.schedule_maintenance(instance_id, data, current_user)


@router.patch("/maintenance/{log_id}", response_model=MaintenanceResponse)
async def update_maintenance(
    log_id: str,
    data: MaintenanceUpdate,
    current_user: Profile = Depends(get_current_user),
    service: ExhibitionService = Depends(get_exhibition_service),
):
    return service.update_maintenance(log_id, data, current_user)


@router.delete("/maintenance/{log_id}")
async def delete_maintenance(
    log_id: str,
    current_user: Profile = Depends(get_current_user),
    service: ExhibitionService = Depends(get_exhibition_service),
):
    service.delete_maintenance(log_id, current_user)
    return {"success": True}
