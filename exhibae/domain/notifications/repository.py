"""Notification repository - Database operations for in-app notifications"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import Notification, Profile


class NotificationRepository:
    """Repository for notification database operations"""

    @staticmethod
    def add_notifications(db: Session, rows: list[dict]) -> list[Notification]:
        """Insert all rows in one transaction"""
        notifications = [Notification(**row) for row in rows]
        db.add_all(notifications)
        db.commit()
        for notification in notifications:
            db.refresh(notification)
        return notifications

    @staticmethod
    def get_notifications(
        db: Session, user_id: str, unread_only: bool = False, limit: int = 50, offset: int = 0
    ) -> list[Notification]:
        query = db.query(Notification).filter(Notification.user_id == user_id)
        if unread_only:
            query = query.filter(Notification.is_read.is_(False))
        return query.order_by(Notification.created_at.desc()).offset(offset).limit(limit).all()

    @staticmethod
    def count_unread(db: Session, user_id: str) -> int:
        return (
            db.query(Notification)
            .filter(Notification.user_id == user_id, Notification.is_read.is_(False))
            .count()
        )

    @staticmethod
    def get_notification(db: Session, notification_id: str, user_id: str) -> Optional[Notification]:
        return (
            db.query(Notification)
            .filter(Notification.id == notification_id, Notification.user_id == user_id)
            .first()
        )

    @staticmethod
    def mark_read(db: Session, notification: Notification) -> Notification:
        notification.is_read = True
        db.commit()
        db.refresh(notification)
        return notification

    @staticmethod
    def mark_all_read(db: Session, user_id: str) -> int:
        """Mark through the ORM so every row change reaches the change feed"""
        unread = (
            db.query(Notification)
            .filter(Notification.user_id == user_id, Notification.is_read.is_(False))
            .all()
        )
        for notification in unread:
            notification.is_read = True
        db.commit()
        return len(unread)

    @staticmethod
    def get_managers(db: Session) -> list[Profile]:
        return db.query(Profile).filter(Profile.role == "manager").order_by(Profile.created_at).all()
