"""Email log repository"""

from datetime import datetime
from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ...models import EmailLog


class EmailLogRepository:
    """Repository for email log database operations"""

    @staticmethod
    def create_log(db: Session, **data) -> EmailLog:
        log = EmailLog(**data)
        db.add(log)
        db.commit()
        db.refresh(log)
        return log

    @staticmethod
    def get_due(db: Session, now: datetime, max_attempts: int, limit: int = 50) -> list[EmailLog]:
        return (
            db.query(EmailLog)
            .filter(
                EmailLog.status == "queued",
                EmailLog.attempts < max_attempts,
                or_(EmailLog.send_at.is_(None), EmailLog.send_at <= now),
            )
            .order_by(EmailLog.created_at.asc())
            .limit(limit)
            .all()
        )

    @staticmethod
    def claim(db: Session, log_id: str) -> bool:
        """Move a queued row to sending; False when another processor claimed it first"""
        claimed = (
            db.query(EmailLog)
            .filter(EmailLog.id == log_id, EmailLog.status == "queued")
            .update({"status": "sending"}, synchronize_session=False)
        )
        db.commit()
        return claimed == 1

    @staticmethod
    def get_logs(
        db: Session,
        limit: int = 50,
        offset: int = 0,
        status: Optional[str] = None,
        email_type: Optional[str] = None,
        to_email: Optional[str] = None,
        template_id: Optional[str] = None,
    ) -> tuple[list[EmailLog], int]:
        query = db.query(EmailLog)
        if status:
            query = query.filter(EmailLog.status == status)
        if email_type:
            query = query.filter(EmailLog.email_type == email_type)
        if to_email:
            query = query.filter(func.lower(EmailLog.recipient_email) == to_email.strip().lower())
        if template_id:
            query = query.filter(EmailLog.template_id == template_id)
        total = query.count()
        logs = query.order_by(EmailLog.created_at.desc()).offset(offset).limit(limit).all()
        return logs, total

    @staticmethod
    def count_by(db: Session, column) -> dict[str, int]:
        rows = db.query(column, func.count(EmailLog.id)).group_by(column).all()
        return {key: count for key, count in rows}
