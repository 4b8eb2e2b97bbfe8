"""Tests for the /api/email microservice."""

import asyncio
from datetime import timedelta

import pytest
from sqlalchemy.orm import sessionmaker

from exhibae import config
from exhibae.domain.email.repository import EmailLogRepository
from exhibae.domain.email.router import get_email_transport
from exhibae.domain.email.service import EmailService
from exhibae.email_service import EmailTransportError
from exhibae.main import app
from exhibae.models import EmailLog, utcnow

pytestmark = pytest.mark.anyio


class FakeTransport:
    def __init__(self):
        self.sent = []
        self.failing = set()

    async def __call__(self, to, subject, html_content=None, text_content=None, from_address=None):
        await asyncio.sleep(0)
        if to in self.failing:
            raise EmailTransportError("Failed to send email: mailbox unavailable")
        self.sent.append({"to": to, "subject": subject, "html": html_content, "text": text_content})
        return {"id": f"re_{len(self.sent)}", "success": True, "provider": "fake"}


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def email_client(client, transport):
    app.dependency_overrides[get_email_transport] = lambda: transport
    return client


# ============================================================================
# SENDING
# ============================================================================


def test_send_requires_recipient_and_content(email_client):
    response = email_client.post("/api/email/send", json={"subject": "Hi", "text": "Hello"})
    assert response.status_code == 400
    assert response.json()["detail"] == "Recipient email is required"

    response = email_client.post("/api/email/send", json={"to": "bea@brand.example", "subject": "Hi"})
    assert response.status_code == 400
    assert response.json()["detail"] == "Subject and content (html or text) are required"


def test_send_logs_the_email(db, email_client, transport):
    response = email_client.post(
        "/api/email/send",
        json={"to": "Bea@Brand.example", "subject": "Your stall", "text": "See you there"},
    )

    assert response.status_code == 200
    assert response.json() == {"success": True, "messageId": "re_1"}
    assert transport.sent[0]["to"] == "bea@brand.example"
    log = db.query(EmailLog).one()
    assert (log.status, log.attempts, log.message_id) == ("sent", 1, "re_1")
    assert log.sent_at is not None


def test_failed_send_is_queued_for_retry(db, email_client, transport):
    transport.failing.add("bea@brand.example")

    response = email_client.post(
        "/api/email/send", json={"to": "bea@brand.example", "subject": "Hi", "html": "<p>Hi</p>"}
    )

    assert response.status_code == 502
    assert response.json()["queued"] is True
    assert "mailbox unavailable" in response.json()["error"]
    assert db.query(EmailLog).one().status == "queued"


def test_unknown_template_is_not_found(email_client):
    response = email_client.post("/api/email/template", json={"to": "bea@brand.example", "templateId": "nope"})

    assert response.status_code == 404
    assert response.json()["code"] == "NOT_FOUND"


def test_template_send_renders_html(db, email_client, transport):
    response = email_client.post(
        "/api/email/template",
        json={"to": "bea@brand.example", "templateId": "welcome", "data": {"name": "Bea", "role": "brand"}},
    )

    assert response.json()["success"] is True
    assert "<html" in transport.sent[0]["html"].lower()
    log = db.query(EmailLog).one()
    assert (log.email_type, log.template_id) == ("template", "welcome")


# ============================================================================
# QUEUE
# ============================================================================


async def test_queue_retries_until_max_attempts(db, transport):
    service = EmailService(db, transport, max_attempts=2)
    transport.failing.add("max@makers.example")
    service.queue("max@makers.example", subject="Reminder", text="Fair starts soon")
    service.queue("bea@brand.example", subject="Reminder", text="Fair starts soon")

    assert await service.process_queue() == {"processed": 2, "sent": 1, "failed": 1}
    assert await service.process_queue() == {"processed": 1, "sent": 0, "failed": 1}
    assert await service.process_queue() == {"processed": 0, "sent": 0, "failed": 0}

    failed = db.query(EmailLog).filter(EmailLog.recipient_email == "max@makers.example").one()
    assert (failed.status, failed.attempts) == ("failed", 2)


async def test_scheduled_emails_wait_for_send_at(db, transport):
    service = EmailService(db, transport)
    service.queue("bea@brand.example", subject="Later", text="Later", send_at=utcnow() + timedelta(hours=1))

    assert (await service.process_queue())["processed"] == 0
    assert transport.sent == []


async def test_queued_email_is_claimed_once(db, engine, transport):
    log = EmailService(db, transport).queue("bea@brand.example", subject="Reminder", text="Fair starts soon")
    other_db = sessionmaker(bind=engine)()
    try:
        summaries = await asyncio.gather(
            EmailService(db, transport).process_queue(),
            EmailService(other_db, transport).process_queue(),
        )

        assert [email["to"] for email in transport.sent] == ["bea@brand.example"]
        assert sum(summary["sent"] for summary in summaries) == 1
        assert EmailLogRepository.claim(other_db, log.id) is False
    finally:
        other_db.close()

    db.refresh(log)
    assert (log.status, log.attempts) == ("sent", 1)


def test_queue_endpoint_accepts_templates(email_client):
    response = email_client.post(
        "/api/email/queue",
        json={"to": "bea@brand.example", "templateId": "exhibition-reminder", "data": {"days_until": 3}},
    )

    assert response.status_code == 202
    assert response.json()["queued"] is True
    assert response.json()["id"]


# ============================================================================
# TEMPLATES AND REPORTING
# ============================================================================


def test_templates_listed_with_sample_data(email_client):
    templates = email_client.get("/api/email/templates").json()["templates"]

    ids = {template["id"] for template in templates}
    assert {"welcome", "exhibition-reminder", "stall-status", "test"} <= ids
    reminder = next(t for t in templates if t["id"] == "exhibition-reminder")
    assert reminder["sampleData"]["exhibition_title"] == "Spring Craft Fair"


def test_template_preview(email_client):
    response = email_client.get("/api/email/template/stall-status")

    assert response.status_code == 200
    assert response.json()["id"] == "stall-status"
    assert "Corner Stall A1" in response.json()["html"]


def test_stats_and_log_filters(email_client, transport):
    transport.failing.add("max@makers.example")
    email_client.post("/api/email/send", json={"to": "bea@brand.example", "subject": "A", "text": "a"})
    email_client.post("/api/email/send", json={"to": "max@makers.example", "subject": "B", "text": "b"})
    email_client.post("/api/email/test", json={"to": "mona@exhibae.example"})

    stats = email_client.get("/api/email/stats").json()
    assert stats["total"] == 3
    assert stats["by_status"] == {"sent": 2, "queued": 1}
    assert stats["by_type"] == {"custom": 2, "template": 1}
    assert stats["success_rate"] == 100.0

    page = email_client.get("/api/email/logs", params={"to": "MAX@makers.example"}).json()
    assert page["total"] == 1
    assert page["logs"][0]["status"] == "queued"

    page = email_client.get("/api/email/logs", params={"templateId": "test"}).json()
    assert [log["recipient_email"] for log in page["logs"]] == ["mona@exhibae.example"]


def test_service_key_required_when_configured(email_client, monkeypatch):
    monkeypatch.setattr(config, "EMAIL_SERVICE_API_KEY", "s3cret")

    assert email_client.get("/api/email/templates").status_code == 401
    response = email_client.get("/api/email/templates", headers={"X-Email-Service-Key": "s3cret"})
    assert response.status_code == 200
