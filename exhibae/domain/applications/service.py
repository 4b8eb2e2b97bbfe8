"""Application service - stall application state manager"""

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...errors import (
    AlreadyPendingError,
    InvalidTransitionError,
    NotAvailableError,
    NotFoundError,
    PermissionDeniedError,
)
from ...models import Profile, StallApplication
from ...realtime.capture import record_change, refresh_for_change
from ...realtime.events import UPDATE, row_snapshot
from ...shared.permissions import can_manage_exhibition, ensure_can_manage_exhibition, is_manager
from ..exhibitions.repository import ExhibitionRepository
from ..notifications.dispatcher import EmailDispatcher
from ..notifications.service import NotificationService
from .lifecycle import plan_submission, plan_transition
from .repository import ApplicationRepository

logger = logging.getLogger(__name__)


def display_name(profile: Optional[Profile]) -> str:
    if profile is None:
        return ""
    return profile.company_name or profile.full_name or profile.email


def notification_payload(application: StallApplication) -> dict:
    stall = application.stall
    instance = application.stall_instance
    stall_name = stall.name if stall else "Stall"
    if instance is not None:
        stall_name = f"{stall_name} #{instance.instance_number}"
    return {
        "application_id": application.id,
        "exhibition_id": application.exhibition_id,
        "stall_id": application.stall_id,
        "stall_name": stall_name,
        "exhibition_title": application.exhibition.title if application.exhibition else "",
        "brand_name": display_name(application.brand),
        "message": application.message or "",
        "comments": application.organiser_comments or "",
    }


class ApplicationService:
    """Service layer for stall applications"""

    def __init__(self, db: Session, dispatcher: Optional[EmailDispatcher] = None):
        self.db = db
        self.repo = ApplicationRepository()
        self.exhibitions = ExhibitionRepository()
        self.notifications = NotificationService(db, dispatcher)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_application(self, application_id: str, user: Profile) -> StallApplication:
        application = self.repo.get_application(self.db, application_id)
        if not application:
            raise NotFoundError("Application", application_id)
        if application.brand_id != user.id and not can_manage_exhibition(user, application.exhibition):
            raise PermissionDeniedError("You cannot access this application")
        return application

    def _scope(self, user: Profile) -> dict:
        """Query scope for the caller: own applications, own exhibitions, or everything"""
        if is_manager(user):
            return {}
        if user.role == "organiser":
            return {"exhibition_ids": self.exhibitions.get_exhibition_ids_for_organiser(self.db, user.id)}
        if user.role == "brand":
            return {"brand_id": user.id}
        raise PermissionDeniedError("Your role cannot view stall applications")

    def list_applications(
        self,
        user: Profile,
        exhibition_id: Optional[str] = None,
        status: Optional[str] = None,
        search: Optional[str] = None,
    ) -> list[StallApplication]:
        return self.repo.list_applications(
            self.db, exhibition_id=exhibition_id, status=status, search=search, **self._scope(user)
        )

    def get_application_stats(self, user: Profile, exhibition_id: Optional[str] = None) -> dict:
        scope = self._scope(user)
        if exhibition_id:
            allowed = scope.get("exhibition_ids")
            if allowed is not None and exhibition_id not in allowed:
                raise PermissionDeniedError("You do not manage this exhibition")
            scope["exhibition_ids"] = [exhibition_id]
        by_status = self.repo.count_by_status(self.db, **scope)
        return {"total": sum(by_status.values()), "by_status": by_status}

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def submit_application(
        self, stall_instance_id: str, brand: Profile, message: Optional[str] = None
    ) -> tuple[StallApplication, list[str]]:
        """Apply for a stall instance; at most one pending application may exist per instance"""
        if brand.role != "brand":
            raise PermissionDeniedError("Only brands can apply for stalls")

        instance = self.repo.get_instance(self.db, stall_instance_id)
        if not instance:
            raise NotFoundError("Stall instance", stall_instance_id)
        if instance.status != "available":
            raise NotAvailableError(instance.id, instance.status)
        if self.repo.get_pending_for_instance(self.db, instance.id):
            raise AlreadyPendingError(instance.id)

        plan = plan_submission()
        application = StallApplication(
            stall_id=instance.stall_id,
            stall_instance_id=instance.id,
            exhibition_id=instance.exhibition_id,
            brand_id=brand.id,
            status=plan.next_status,
            message=message,
        )
        self.db.add(application)
        try:
            self.db.flush()
        except IntegrityError as e:
            # The partial unique index is the authoritative conflict signal
            self.db.rollback()
            logger.warning(f"⚠️ Concurrent pending application rejected for instance {stall_instance_id}")
            raise AlreadyPendingError(stall_instance_id) from e

        old_instance = row_snapshot(instance)
        if not self.repo.claim_instance(self.db, instance.id):
            self.db.rollback()
            raise NotAvailableError(stall_instance_id)
        refresh_for_change(self.db, instance)
        record_change(self.db, UPDATE, instance, old=old_instance)

        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise AlreadyPendingError(stall_instance_id) from e

        logger.info(f"✅ Application {application.id} submitted by brand {brand.id} for instance {instance.id}")

        application = self.repo.get_application(self.db, application.id)
        warnings = await self._notify(plan.events, application)
        return application, warnings

    async def update_application_status(
        self, application_id: str, new_status: str, user: Profile, comments: Optional[str] = None
    ) -> tuple[StallApplication, list[str]]:
        application = self.repo.get_application(self.db, application_id)
        if not application:
            raise NotFoundError("Application", application_id)
        ensure_can_manage_exhibition(user, application.exhibition)

        plan = plan_transition(application.status, new_status)

        application.status = plan.next_status
        if comments:
            application.organiser_comments = comments
        if plan.confirms_booking:
            application.booking_confirmed = True
        instance = application.stall_instance
        if plan.instance_status and instance is not None and instance.status != plan.instance_status:
            instance.status = plan.instance_status
        self.db.commit()
        logger.info(
            f"✅ Application {application.id} transitioned: {plan.current_status} → {plan.next_status}"
        )

        warnings = await self._notify(plan.events, application)
        return application, warnings

    def delete_application(self, application_id: str, user: Profile) -> None:
        """Withdraw a pending application and release its stall instance"""
        application = self.repo.get_application(self.db, application_id)
        if not application:
            raise NotFoundError("Application", application_id)
        if application.brand_id != user.id and not can_manage_exhibition(user, application.exhibition):
            raise PermissionDeniedError("You cannot delete this application")
        if application.status != "pending":
            raise InvalidTransitionError(application.status, "deleted")

        instance = application.stall_instance
        self.db.delete(application)
        if instance is not None and instance.status == "pending":
            instance.status = "available"
        self.db.commit()
        logger.info(f"🗑️ Application {application_id} deleted; instance released")

    async def _notify(self, events: tuple, application: StallApplication) -> list[str]:
        warnings: list[str] = []
        payload = notification_payload(application)
        organiser = application.exhibition.organiser if application.exhibition else None
        for event_type in events:
            recipients = self.notifications.recipients_for(event_type, organiser, application.brand)
            result = await self.notifications.fan_out(event_type, recipients, payload)
            warnings.extend(result.warnings)
        return warnings
