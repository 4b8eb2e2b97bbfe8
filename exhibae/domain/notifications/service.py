"""
Notification fan-out

A state transition becomes one persisted notification row per recipient plus at
most one email per distinct recipient. Rows are the source of truth; email is
advisory, so delivery problems come back as warnings instead of errors.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...email_service import EmailTransportError, compile_mjml_to_html
from ...email_templates import render_template
from ...errors import NotFoundError
from ...models import Notification, Profile
from .dispatcher import EmailDispatcher
from .events import NOTIFICATION_EVENTS
from .repository import NotificationRepository

logger = logging.getLogger(__name__)


@dataclass
class FanOutResult:
    notifications: list[Notification] = field(default_factory=list)
    emails_sent: int = 0
    warnings: list[str] = field(default_factory=list)


def distinct_recipients(recipients: Iterable[Profile]) -> list[Profile]:
    """Drop repeated profiles, keeping first-seen order"""
    seen: set[str] = set()
    unique = []
    for profile in recipients:
        if profile is None or profile.id in seen:
            continue
        seen.add(profile.id)
        unique.append(profile)
    return unique


class NotificationService:
    """Service layer for notifications and their email side channel"""

    def __init__(self, db: Session, dispatcher: Optional[EmailDispatcher] = None):
        self.db = db
        self.repo = NotificationRepository()
        self.dispatcher = dispatcher

    # ------------------------------------------------------------------
    # Fan-out
    # ------------------------------------------------------------------

    def managers(self) -> list[Profile]:
        return self.repo.get_managers(self.db)

    def recipients_for(self, event_type: str, organiser: Optional[Profile], brand: Optional[Profile]) -> list[Profile]:
        """The event's primary party followed by every manager"""
        primary = organiser if NOTIFICATION_EVENTS[event_type].audience == "organiser" else brand
        return distinct_recipients([primary, *self.managers()])

    async def fan_out(self, event_type: str, recipients: Iterable[Profile], payload: dict) -> FanOutResult:
        event = NOTIFICATION_EVENTS[event_type]
        recipients = distinct_recipients(recipients)
        result = FanOutResult()
        if not recipients:
            return result

        message = event.render_message(payload)
        rows = [
            {
                "user_id": profile.id,
                "title": event.title,
                "message": message,
                "type": event_type,
                "link": event.link_for(profile.role, payload),
                "is_read": False,
            }
            for profile in recipients
        ]
        try:
            result.notifications = self.repo.add_notifications(self.db, rows)
            logger.info(f"🔔 {event_type}: {len(rows)} notification(s) written")
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to write {event_type} notifications: {e}")
            result.warnings.append("In-app notifications could not be saved")

        if self.dispatcher is None:
            return result

        emailed: set[str] = set()
        for profile in recipients:
            address = (profile.email or "").strip().lower()
            if not address or address in emailed:
                continue
            emailed.add(address)
            try:
                await self._send_email(event_type, profile, payload)
                result.emails_sent += 1
            except Exception as e:
                logger.warning(f"⚠️ {event_type} email to {address} failed: {e}")
                result.warnings.append(f"Email notification to {address} could not be sent")

        return result

    async def _send_email(self, event_type: str, profile: Profile, payload: dict) -> None:
        event = NOTIFICATION_EVENTS[event_type]
        data = {
            **payload,
            "name": profile.full_name or profile.company_name or profile.email,
            "status": event.status,
            "link": event.link_for(profile.role, payload),
        }
        subject, mjml_content = render_template(event.template_id, data)
        text = f"{event.render_message(payload)}\n\n{data['link']}"
        try:
            html = compile_mjml_to_html(mjml_content)
        except EmailTransportError as e:
            logger.warning(f"⚠️ Sending {event_type} as plain text: {e}")
            html = None
        await self.dispatcher.send(profile.email, subject, html=html, text=text)

    # ------------------------------------------------------------------
    # Inbox
    # ------------------------------------------------------------------

    def list_notifications(self, user: Profile, unread_only: bool = False, limit: int = 50, offset: int = 0):
        return self.repo.get_notifications(self.db, user.id, unread_only, limit, offset)

    def unread_count(self, user: Profile) -> int:
        return self.repo.count_unread(self.db, user.id)

    def mark_read(self, notification_id: str, user: Profile) -> Notification:
        notification = self.repo.get_notification(self.db, notification_id, user.id)
        if not notification:
            raise NotFoundError("Notification", notification_id)
        return self.repo.mark_read(self.db, notification)

    def mark_all_read(self, user: Profile) -> int:
        count = self.repo.mark_all_read(self.db, user.id)
        logger.info(f"✅ Marked {count} notification(s) read for {user.id}")
        return count
