"""Exhibition repository - Database operations for exhibitions, stalls and instances"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import Exhibition, MaintenanceLog, Stall, StallApplication, StallInstance


class ExhibitionRepository:
    """Repository for exhibition and stall layout database operations"""

    @staticmethod
    def get_exhibitions(
        db: Session, organiser_id: Optional[str] = None, status: Optional[str] = None
    ) -> list[Exhibition]:
        query = db.query(Exhibition)
        if organiser_id:
            query = query.filter(Exhibition.organiser_id == organiser_id)
        if status:
            query = query.filter(Exhibition.status == status)
        return query.order_by(Exhibition.start_date.desc(), Exhibition.created_at.desc()).all()

    @staticmethod
    def get_exhibition(db: Session, exhibition_id: str) -> Optional[Exhibition]:
        return db.query(Exhibition).filter(Exhibition.id == exhibition_id).first()

    @staticmethod
    def get_exhibition_ids_for_organiser(db: Session, organiser_id: str) -> list[str]:
        rows = db.query(Exhibition.id).filter(Exhibition.organiser_id == organiser_id).all()
        return [row[0] for row in rows]

    @staticmethod
    def create_exhibition(db: Session, organiser_id: str, **data) -> Exhibition:
        exhibition = Exhibition(organiser_id=organiser_id, **data)
        db.add(exhibition)
        db.commit()
        db.refresh(exhibition)
        return exhibition

    @staticmethod
    def update(db: Session, obj, **updates):
        """Apply non-None updates to any row and commit"""
        for key, value in updates.items():
            if value is not None and hasattr(obj, key):
                setattr(obj, key, value)
        db.commit()
        db.refresh(obj)
        return obj

    # ------------------------------------------------------------------
    # Stalls
    # ------------------------------------------------------------------

    @staticmethod
    def create_stall_with_instances(db: Session, exhibition_id: str, quantity: int, **data) -> Stall:
        """Create a stall type and its numbered instances in one transaction"""
        stall = Stall(exhibition_id=exhibition_id, quantity=quantity, **data)
        db.add(stall)
        db.flush()
        for number in range(1, quantity + 1):
            db.add(
                StallInstance(
                    stall_id=stall.id,
                    exhibition_id=exhibition_id,
                    instance_number=number,
                    status="available",
                )
            )
        db.commit()
        db.refresh(stall)
        return stall

    @staticmethod
    def get_stalls(db: Session, exhibition_id: str) -> list[Stall]:
        return db.query(Stall).filter(Stall.exhibition_id == exhibition_id).order_by(Stall.created_at).all()

    @staticmethod
    def get_application_statuses_by_stall(db: Session, exhibition_id: str) -> dict[str, list[tuple[str, bool]]]:
        """(status, booking_confirmed) pairs for every application, grouped by stall"""
        rows = (
            db.query(StallApplication.stall_id, StallApplication.status, StallApplication.booking_confirmed)
            .filter(StallApplication.exhibition_id == exhibition_id)
            .all()
        )
        grouped: dict[str, list[tuple[str, bool]]] = {}
        for stall_id, status, booking_confirmed in rows:
            grouped.setdefault(stall_id, []).append((status, booking_confirmed))
        return grouped

    # ------------------------------------------------------------------
    # Instances
    # ------------------------------------------------------------------

    @staticmethod
    def get_instances(db: Session, exhibition_id: str, stall_id: Optional[str] = None) -> list[StallInstance]:
        query = db.query(StallInstance).filter(StallInstance.exhibition_id == exhibition_id)
        if stall_id:
            query = query.filter(StallInstance.stall_id == stall_id)
        return query.order_by(StallInstance.stall_id, StallInstance.instance_number).all()

    @staticmethod
    def get_instance(db: Session, instance_id: str) -> Optional[StallInstance]:
        return db.query(StallInstance).filter(StallInstance.id == instance_id).first()

    @staticmethod
    def count_applications_for_instance(db: Session, instance_id: str) -> int:
        return db.query(StallApplication).filter(StallApplication.stall_instance_id == instance_id).count()

    @staticmethod
    def delete_instance(db: Session, instance: StallInstance) -> None:
        stall = instance.stall
        db.delete(instance)
        if stall is not None and stall.quantity > 0:
            stall.quantity -= 1
        db.commit()

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    @staticmethod
    def get_maintenance_logs(db: Session, instance_id: str) -> list[MaintenanceLog]:
        return (
            db.query(MaintenanceLog)
            .filter(MaintenanceLog.stall_instance_id == instance_id)
            .order_by(MaintenanceLog.created_at.desc())
            .all()
        )

    @staticmethod
    def get_maintenance_log(db: Session, log_id: str) -> Optional[MaintenanceLog]:
        return db.query(MaintenanceLog).filter(MaintenanceLog.id == log_id).first()

    @staticmethod
    def delete_maintenance_log(db: Session, log: MaintenanceLog) -> None:
        db.delete(log)
        db.commit()
