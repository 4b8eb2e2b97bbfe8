"""
Email microservice - logged sends, templates and a retry queue

Every accepted email gets an EmailLog row. A send that fails is left queued
and retried by `process_queue` until EMAIL_MAX_ATTEMPTS is reached.
"""

import logging
from datetime import datetime
from typing import Awaitable, Callable, Optional

from sqlalchemy.orm import Session

from ...config import EMAIL_MAX_ATTEMPTS
from ...email_service import compile_mjml_to_html, transport_status, verify_smtp_connection
from ...email_templates import TEMPLATE_TEST_DATA, TEMPLATES, default_subject, render_template
from ...errors import NotFoundError
from ...models import EmailLog, utcnow
from .repository import EmailLogRepository

logger = logging.getLogger(__name__)

Transport = Callable[..., Awaitable[dict]]


class EmailService:
    """Service layer for the email microservice"""

    def __init__(self, db: Session, transport: Transport, max_attempts: int = EMAIL_MAX_ATTEMPTS):
        self.db = db
        self.repo = EmailLogRepository()
        self.transport = transport
        self.max_attempts = max_attempts

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    async def _attempt(self, log: EmailLog) -> bool:
        log.attempts += 1
        try:
            response = await self.transport(
                to=log.recipient_email,
                subject=log.subject,
                html_content=log.html,
                text_content=log.text,
                from_address=log.from_address,
            )
            log.status = "sent"
            log.message_id = response.get("id")
            log.sent_at = utcnow()
            log.error_message = None
            logger.info(f"✅ Email {log.id} sent to {log.recipient_email} (attempt {log.attempts})")
            return True
        except Exception as e:
            log.error_message = str(e)
            log.status = "queued" if log.attempts < self.max_attempts else "failed"
            logger.warning(
                f"⚠️ Email {log.id} to {log.recipient_email} failed (attempt {log.attempts}/{self.max_attempts}): {e}"
            )
            return False
        finally:
            self.db.commit()

    async def send(
        self,
        to: str,
        subject: str,
        html: Optional[str] = None,
        text: Optional[str] = None,
        from_address: Optional[str] = None,
        email_type: str = "custom",
        template_id: Optional[str] = None,
        recipient_name: Optional[str] = None,
    ) -> dict:
        log = self.repo.create_log(
            self.db,
            email_type=email_type,
            template_id=template_id,
            recipient_email=to,
            recipient_name=recipient_name,
            from_address=from_address,
            subject=subject,
            html=html,
            text=text,
            status="pending",
            attempts=0,
        )
        if await self._attempt(log):
            return {"success": True, "messageId": log.message_id, "logId": log.id}
        return {"success": False, "error": log.error_message, "queued": log.status == "queued", "logId": log.id}

    def render(self, template_id: str, data: Optional[dict] = None, subject: Optional[str] = None) -> tuple[str, str]:
        """Render a template to (subject, html); unknown ids are NotFoundError"""
        if template_id not in TEMPLATES:
            raise NotFoundError("Template", template_id)
        rendered_subject, mjml_content = render_template(template_id, data or {})
        return subject or rendered_subject or default_subject(template_id), compile_mjml_to_html(mjml_content)

    async def send_template(
        self,
        to: str,
        template_id: str,
        data: Optional[dict] = None,
        subject: Optional[str] = None,
        recipient_name: Optional[str] = None,
    ) -> dict:
        subject, html = self.render(template_id, data, subject)
        return await self.send(
            to,
            subject,
            html=html,
            email_type="template",
            template_id=template_id,
            recipient_name=recipient_name,
        )

    def queue(
        self,
        to: str,
        subject: Optional[str] = None,
        html: Optional[str] = None,
        text: Optional[str] = None,
        send_at: Optional[datetime] = None,
        template_id: Optional[str] = None,
        data: Optional[dict] = None,
        email_type: str = "custom",
        from_address: Optional[str] = None,
    ) -> EmailLog:
        """Store an email for the queue processor; templates are rendered now"""
        if template_id:
            subject, html = self.render(template_id, data, subject)
            email_type = "template"
        log = self.repo.create_log(
            self.db,
            email_type=email_type,
            template_id=template_id,
            recipient_email=to,
            from_address=from_address,
            subject=subject,
            html=html,
            text=text,
            status="queued",
            attempts=0,
            send_at=send_at,
        )
        logger.info(f"📥 Email {log.id} queued for {to} (send_at={send_at})")
        return log

    async def process_queue(self, limit: int = 50) -> dict:
        due = self.repo.get_due(self.db, utcnow(), self.max_attempts, limit)
        summary = {"processed": 0, "sent": 0, "failed": 0}
        for log in due:
            if not self.repo.claim(self.db, log.id):
                continue
            self.db.refresh(log)
            summary["processed"] += 1
            if await self._attempt(log):
                summary["sent"] += 1
            else:
                summary["failed"] += 1
        if summary["processed"]:
            logger.info(f"📊 Email queue processed: {summary}")
        return summary

    # ------------------------------------------------------------------
    # Templates, diagnostics and reporting
    # ------------------------------------------------------------------

    def list_templates(self) -> list[dict]:
        templates = []
        for template_id in TEMPLATES:
            subject, _ = render_template(template_id, TEMPLATE_TEST_DATA.get(template_id, {}))
            templates.append(
                {
                    "id": template_id,
                    "name": default_subject(template_id),
                    "subject": subject,
                    "sampleData": TEMPLATE_TEST_DATA.get(template_id, {}),
                }
            )
        return templates

    def preview_template(self, template_id: str, data: Optional[dict] = None) -> dict:
        sample = data or TEMPLATE_TEST_DATA.get(template_id, {})
        subject, html = self.render(template_id, sample)
        return {"id": template_id, "subject": subject, "html": html}

    def verify(self) -> dict:
        return {**transport_status(), "connection": verify_smtp_connection()}

    async def send_test(self, to: str, template_id: Optional[str] = None) -> dict:
        template_id = template_id or "test"
        data = dict(TEMPLATE_TEST_DATA.get(template_id, {}))
        if template_id == "test":
            data["sent_at"] = utcnow().isoformat()
        return await self.send_template(to, template_id, data)

    def get_logs(self, limit: int = 50, offset: int = 0, **filters) -> dict:
        logs, total = self.repo.get_logs(self.db, limit=limit, offset=offset, **filters)
        return {"logs": logs, "total": total, "limit": limit, "offset": offset}

    def get_stats(self) -> dict:
        by_status = self.repo.count_by(self.db, EmailLog.status)
        by_type = self.repo.count_by(self.db, EmailLog.email_type)
        sent = by_status.get("sent", 0)
        finished = sent + by_status.get("failed", 0)
        return {
            "total": sum(by_status.values()),
            "by_status": by_status,
            "by_type": by_type,
            "success_rate": round(sent / finished * 100, 2) if finished else 0.0,
        }
