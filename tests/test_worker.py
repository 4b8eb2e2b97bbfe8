"""Tests for the reminder and email queue jobs."""

from datetime import date

import pytest

from exhibae import worker
from exhibae.domain.email.service import EmailService
from exhibae.models import EmailLog, StallApplication

from .conftest import make_profile

pytestmark = pytest.mark.anyio

TODAY = date(2026, 3, 29)


def _book(db, instance, brand, status="booking_confirmed"):
    db.add(
        StallApplication(
            stall_id=instance.stall_id,
            stall_instance_id=instance.id,
            exhibition_id=instance.exhibition_id,
            brand_id=brand.id,
            status=status,
            booking_confirmed=status == "booking_confirmed",
        )
    )
    db.commit()


@pytest.fixture
def starts_in_three_days(db, exhibition):
    exhibition.start_date = date(2026, 4, 1)
    exhibition.address = "Exhibition Centre"
    db.commit()
    return exhibition


def test_reminders_queued_once_per_confirmed_brand(db, starts_in_three_days, stall, brand, other_brand):
    db.refresh(stall)
    first, second = sorted(stall.instances, key=lambda i: i.instance_number)
    _book(db, first, brand)
    _book(db, second, brand)
    _book(db, second, other_brand, status="rejected")

    summary = worker.queue_exhibition_reminders(db, today=TODAY, days=[7, 3, 1])

    assert summary == {"exhibitions": 1, "queued": 1}
    log = db.query(EmailLog).one()
    assert log.recipient_email == brand.email
    assert log.template_id == "exhibition-reminder"
    assert log.status == "queued"
    assert "Spring Craft Fair" in log.subject
    assert f"/dashboard/brand/exhibitions/{starts_in_three_days.id}" in log.html


def test_cancelled_exhibitions_get_no_reminders(db, starts_in_three_days, instance, brand):
    _book(db, instance, brand)
    starts_in_three_days.status = "cancelled"
    db.commit()

    assert worker.queue_exhibition_reminders(db, today=TODAY, days=[3]) == {"exhibitions": 0, "queued": 0}


async def test_queued_reminders_are_delivered(db, starts_in_three_days, instance, brand):
    _book(db, instance, brand)
    worker.queue_exhibition_reminders(db, today=TODAY, days=[3])
    delivered = []

    async def transport(to, subject, html_content=None, text_content=None, from_address=None):
        delivered.append(to)
        return {"id": "re_1"}

    summary = await EmailService(db, transport).process_queue()

    assert summary == {"processed": 1, "sent": 1, "failed": 0}
    assert delivered == [brand.email]


def test_brand_without_email_is_skipped(db, starts_in_three_days, instance):
    silent = make_profile(db, "brand", "")
    _book(db, instance, silent)

    assert worker.queue_exhibition_reminders(db, today=TODAY, days=[3])["queued"] == 0
