"""Exhibition service - Business logic for exhibitions, stall layout and maintenance"""

import logging
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from ...errors import InvalidTransitionError, NotFoundError, ValidationFailedError
from ...models import Exhibition, MaintenanceLog, Profile, Stall, StallInstance, utcnow
from ...shared.permissions import ensure_can_manage_exhibition, ensure_role
from .repository import ExhibitionRepository
from .schemas import (
    ExhibitionCreate,
    ExhibitionUpdate,
    InstancePositionUpdate,
    MaintenanceCreate,
    MaintenanceUpdate,
    StallCreate,
)

logger = logging.getLogger(__name__)

# Statuses an organiser may set by hand; pending/booked follow the applications
MANUAL_INSTANCE_STATUSES = {"available", "under_maintenance"}
OPEN_MAINTENANCE_STATUSES = {"scheduled", "in_progress"}


def derive_display_status(base_status: str, applications: Iterable[tuple[str, bool]]) -> str:
    """
    Status shown for a stall given its applications.

    A pending application wins over a confirmed booking, which wins over the
    stored status.
    """
    applications = list(applications)
    if any(status == "pending" for status, _ in applications):
        return "pending"
    if any(
        status == "booking_confirmed" or (status == "approved" and booking_confirmed)
        for status, booking_confirmed in applications
    ):
        return "booked"
    return base_status


class ExhibitionService:
    """Service layer for exhibitions and their stall layout"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = ExhibitionRepository()

    # ------------------------------------------------------------------
    # Exhibitions
    # ------------------------------------------------------------------

    def list_exhibitions(self, organiser_id: Optional[str] = None, status: Optional[str] = None) -> list[Exhibition]:
        return self.repo.get_exhibitions(self.db, organiser_id=organiser_id, status=status)

    def get_exhibition(self, exhibition_id: str) -> Exhibition:
        exhibition = self.repo.get_exhibition(self.db, exhibition_id)
        if not exhibition:
            raise NotFoundError("Exhibition", exhibition_id)
        return exhibition

    def create_exhibition(self, data: ExhibitionCreate, user: Profile) -> Exhibition:
        ensure_role(user, "organiser", "manager")
        if data.start_date and data.end_date and data.end_date < data.start_date:
            raise ValidationFailedError("End date must be on or after the start date")
        exhibition = self.repo.create_exhibition(self.db, user.id, **data.model_dump())
        logger.info(f"✅ Exhibition {exhibition.id} created by {user.id}")
        return exhibition

    def update_exhibition(self, exhibition_id: str, data: ExhibitionUpdate, user: Profile) -> Exhibition:
        exhibition = self.get_exhibition(exhibition_id)
        ensure_can_manage_exhibition(user, exhibition)
        exhibition = self.repo.update(self.db, exhibition, **data.model_dump(exclude_unset=True))
        logger.info(f"✅ Exhibition {exhibition.id} updated")
        return exhibition

    # ------------------------------------------------------------------
    # Stalls
    # ------------------------------------------------------------------

    def create_stall(self, exhibition_id: str, data: StallCreate, user: Profile) -> Stall:
        exhibition = self.get_exhibition(exhibition_id)
        ensure_can_manage_exhibition(user, exhibition)
        payload = data.model_dump()
        quantity = payload.pop("quantity")
        stall = self.repo.create_stall_with_instances(self.db, exhibition.id, quantity, **payload)
        logger.info(f"✅ Stall {stall.id} created with {quantity} instance(s) for exhibition {exhibition.id}")
        return stall

    def list_stalls(self, exhibition_id: str) -> list[tuple[Stall, str]]:
        """Stalls paired with their derived display status"""
        self.get_exhibition(exhibition_id)
        stalls = self.repo.get_stalls(self.db, exhibition_id)
        applications = self.repo.get_application_statuses_by_stall(self.db, exhibition_id)
        return [(stall, derive_display_status(stall.status, applications.get(stall.id, []))) for stall in stalls]

    # ------------------------------------------------------------------
    # Instances
    # ------------------------------------------------------------------

    def list_instances(self, exhibition_id: str, stall_id: Optional[str] = None) -> list[StallInstance]:
        self.get_exhibition(exhibition_id)
        return self.repo.get_instances(self.db, exhibition_id, stall_id)

    def get_instance(self, instance_id: str) -> StallInstance:
        instance = self.repo.get_instance(self.db, instance_id)
        if not instance:
            raise NotFoundError("Stall instance", instance_id)
        return instance

    def _get_managed_instance(self, instance_id: str, user: Profile) -> StallInstance:
        instance = self.get_instance(instance_id)
        ensure_can_manage_exhibition(user, self.get_exhibition(instance.exhibition_id))
        return instance

    def update_instance_price(self, instance_id: str, price, user: Profile) -> StallInstance:
        instance = self._get_managed_instance(instance_id, user)
        instance = self.repo.update(self.db, instance, price=price)
        logger.info(f"💲 Stall instance {instance.id} price set to {price}")
        return instance

    def update_instance_position(self, instance_id: str, data: InstancePositionUpdate, user: Profile) -> StallInstance:
        instance = self._get_managed_instance(instance_id, user)
        return self.repo.update(self.db, instance, **data.model_dump())

    def update_instance_status(self, instance_id: str, status: str, user: Profile) -> StallInstance:
        instance = self._get_managed_instance(instance_id, user)
        if status not in MANUAL_INSTANCE_STATUSES or instance.status not in MANUAL_INSTANCE_STATUSES:
            raise InvalidTransitionError(instance.status, status, entity="stall")
        instance = self.repo.update(self.db, instance, status=status)
        logger.info(f"✅ Stall instance {instance.id} status set to {status}")
        return instance

    def delete_instance(self, instance_id: str, user: Profile) -> None:
        instance = self._get_managed_instance(instance_id, user)
        if instance.status != "available":
            raise ValidationFailedError("Cannot delete a stall that is not available")
        if self.repo.count_applications_for_instance(self.db, instance.id):
            raise ValidationFailedError("Cannot delete a stall with application history")
        self.repo.delete_instance(self.db, instance)
        logger.info(f"🗑️ Stall instance {instance_id} deleted")

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def list_maintenance(self, instance_id: str, user: Profile) -> list[MaintenanceLog]:
        instance = self._get_managed_instance(instance_id, user)
        return self.repo.get_maintenance_logs(self.db, instance.id)

    def schedule_maintenance(self, instance_id: str, data: MaintenanceCreate, user: Profile) -> MaintenanceLog:
        """Log maintenance and take the instance out of circulation"""
        instance = self._get_managed_instance(instance_id, user)
        if instance.status not in MANUAL_INSTANCE_STATUSES:
            raise ValidationFailedError("Cannot schedule maintenance on a stall with an active application")

        log = MaintenanceLog(stall_instance_id=instance.id, status="scheduled", **data.model_dump())
        self.db.add(log)
        instance.status = "under_maintenance"
        if data.next_maintenance_date:
            instance.next_maintenance_date = data.next_maintenance_date
        self.db.commit()
        self.db.refresh(log)
        logger.info(f"🔧 Maintenance {log.id} scheduled for stall instance {instance.id}")
        return log

    def update_maintenance(self, log_id: str, data: MaintenanceUpdate, user: Profile) -> MaintenanceLog:
        log = self.repo.get_maintenance_log(self.db, log_id)
        if not log:
            raise NotFoundError("Maintenance log", log_id)
        instance = self._get_managed_instance(log.stall_instance_id, user)

        updates = data.model_dump(exclude_unset=True)
        for key, value in updates.items():
            setattr(log, key, value)

        if data.status == "completed":
            now = utcnow()
            log.performed_at = log.performed_at or now
            instance.last_maintenance_date = now
            if log.next_maintenance_date:
                instance.next_maintenance_date = log.next_maintenance_date
            self._release_if_no_open_maintenance(instance, log)
        elif data.status == "cancelled":
            self._release_if_no_open_maintenance(instance, log)

        self.db.commit()
        self.db.refresh(log)
        logger.info(f"🔧 Maintenance {log.id} updated: status={log.status}")
        return log

    def delete_maintenance(self, log_id: str, user: Profile) -> None:
        log = self.repo.get_maintenance_log(self.db, log_id)
        if not log:
            raise NotFoundError("Maintenance log", log_id)
        instance = self._get_managed_instance(log.stall_instance_id, user)
        if log.status in OPEN_MAINTENANCE_STATUSES:
            self._release_if_no_open_maintenance(instance, log)
        self.repo.delete_maintenance_log(self.db, log)

    def _release_if_no_open_maintenance(self, instance: StallInstance, closing_log: MaintenanceLog) -> None:
        still_open = [
            other
            for other in self.repo.get_maintenance_logs(self.db, instance.id)
            if other.id != closing_log.id and other.status in OPEN_MAINTENANCE_STATUSES
        ]
        if not still_open and instance.status == "under_maintenance":
            instance.status = "available"
