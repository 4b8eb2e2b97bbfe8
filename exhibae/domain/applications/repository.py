"""Application repository - Database operations for stall applications"""

from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, joinedload

from ...models import Profile, StallApplication, StallInstance, utcnow


class ApplicationRepository:
    """Repository for stall application database operations"""

    @staticmethod
    def get_application(db: Session, application_id: str) -> Optional[StallApplication]:
        return (
            db.query(StallApplication)
            .options(
                joinedload(StallApplication.stall),
                joinedload(StallApplication.stall_instance),
                joinedload(StallApplication.exhibition),
                joinedload(StallApplication.brand),
            )
            .filter(StallApplication.id == application_id)
            .first()
        )

    @staticmethod
    def get_pending_for_instance(db: Session, instance_id: str) -> Optional[StallApplication]:
        return (
            db.query(StallApplication)
            .filter(StallApplication.stall_instance_id == instance_id, StallApplication.status == "pending")
            .first()
        )

    @staticmethod
    def get_instance(db: Session, instance_id: str) -> Optional[StallInstance]:
        return (
            db.query(StallInstance)
            .options(joinedload(StallInstance.stall))
            .filter(StallInstance.id == instance_id)
            .first()
        )

    @staticmethod
    def claim_instance(db: Session, instance_id: str) -> bool:
        """Conditional available -> pending update; False when someone else changed it first"""
        updated = (
            db.query(StallInstance)
            .filter(StallInstance.id == instance_id, StallInstance.status == "available")
            .update(
                {
                    StallInstance.status: "pending",
                    StallInstance.version: StallInstance.version + 1,
                    StallInstance.updated_at: utcnow(),
                },
                synchronize_session="fetch",
            )
        )
        return updated == 1

    @staticmethod
    def list_applications(
        db: Session,
        brand_id: Optional[str] = None,
        exhibition_ids: Optional[list[str]] = None,
        exhibition_id: Optional[str] = None,
        status: Optional[str] = None,
        search: Optional[str] = None,
    ) -> list[StallApplication]:
        query = db.query(StallApplication).options(
            joinedload(StallApplication.stall),
            joinedload(StallApplication.stall_instance),
            joinedload(StallApplication.brand),
        )
        if brand_id:
            query = query.filter(StallApplication.brand_id == brand_id)
        if exhibition_ids is not None:
            query = query.filter(StallApplication.exhibition_id.in_(exhibition_ids))
        if exhibition_id:
            query = query.filter(StallApplication.exhibition_id == exhibition_id)
        if status:
            query = query.filter(StallApplication.status == status)
        if search:
            pattern = f"%{search.lower()}%"
            query = query.join(Profile, StallApplication.brand_id == Profile.id).filter(
                or_(
                    func.lower(Profile.company_name).like(pattern),
                    func.lower(Profile.full_name).like(pattern),
                    func.lower(Profile.email).like(pattern),
                )
            )
        return query.order_by(StallApplication.created_at.desc()).all()

    @staticmethod
    def count_by_status(
        db: Session, exhibition_ids: Optional[list[str]] = None, brand_id: Optional[str] = None
    ) -> dict[str, int]:
        query = db.query(StallApplication.status, func.count(StallApplication.id))
        if exhibition_ids is not None:
            query = query.filter(StallApplication.exhibition_id.in_(exhibition_ids))
        if brand_id:
            query = query.filter(StallApplication.brand_id == brand_id)
        return {status: count for status, count in query.group_by(StallApplication.status).all()}
