"""Tests for the stall application state manager."""

import asyncio
import threading
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from exhibae.database import Base
from exhibae.domain.applications.lifecycle import is_valid_transition, plan_submission, plan_transition
from exhibae.domain.applications.repository import ApplicationRepository
from exhibae.domain.applications.service import ApplicationService
from exhibae.domain.exhibitions.schemas import ExhibitionCreate, StallCreate
from exhibae.domain.exhibitions.service import ExhibitionService
from exhibae.errors import (
    AlreadyPendingError,
    InvalidTransitionError,
    NotAvailableError,
    PermissionDeniedError,
)
from exhibae.models import Notification, StallApplication, StallInstance

from .conftest import make_profile

pytestmark = pytest.mark.anyio


def _notifications(db, user_id, kind=None):
    query = db.query(Notification).filter(Notification.user_id == user_id)
    if kind:
        query = query.filter(Notification.type == kind)
    return query.all()


# ============================================================================
# LIFECYCLE PLANNING
# ============================================================================


@pytest.mark.parametrize(
    "current,requested",
    [
        ("pending", "approved"),
        ("pending", "rejected"),
        ("approved", "payment_pending"),
        ("payment_pending", "booking_confirmed"),
    ],
)
def test_allowed_transitions(current, requested):
    assert is_valid_transition(current, requested)
    plan = plan_transition(current, requested)
    assert plan.next_status == requested


@pytest.mark.parametrize(
    "current,requested",
    [
        ("booking_confirmed", "pending"),
        ("rejected", "approved"),
        ("pending", "booking_confirmed"),
        ("approved", "approved"),
        ("payment_pending", "rejected"),
    ],
)
def test_illegal_transitions_raise(current, requested):
    with pytest.raises(InvalidTransitionError):
        plan_transition(current, requested)


def test_transition_effects():
    assert plan_transition("pending", "rejected").instance_status == "available"
    assert plan_transition("pending", "approved").instance_status is None
    confirmed = plan_transition("payment_pending", "booking_confirmed")
    assert confirmed.instance_status == "booked"
    assert confirmed.confirms_booking
    assert confirmed.events == ("booking_confirmed",)
    assert plan_submission().events == ("application_received",)


# ============================================================================
# SUBMISSION
# ============================================================================


async def test_submit_reserves_instance_and_notifies(db, dispatcher, organiser, brand, manager, instance):
    service = ApplicationService(db, dispatcher)

    application, warnings = await service.submit_application(instance.id, brand, "Handmade candles")

    assert warnings == []
    assert application.status == "pending"
    db.refresh(instance)
    assert instance.status == "pending"
    assert instance.version == 2

    assert len(_notifications(db, organiser.id, "application_received")) == 1
    assert len(_notifications(db, manager.id, "application_received")) == 1
    assert _notifications(db, brand.id) == []
    assert sorted(dispatcher.recipients()) == sorted([organiser.email, manager.email])


async def test_only_brands_can_apply(db, dispatcher, organiser, instance):
    with pytest.raises(PermissionDeniedError):
        await ApplicationService(db, dispatcher).submit_application(instance.id, organiser)


async def test_second_application_for_same_instance_is_rejected(db, dispatcher, brand, other_brand, instance):
    service = ApplicationService(db, dispatcher)
    await service.submit_application(instance.id, brand)

    with pytest.raises(NotAvailableError):
        await service.submit_application(instance.id, other_brand)

    pending = (
        db.query(StallApplication)
        .filter(StallApplication.stall_instance_id == instance.id, StallApplication.status == "pending")
        .count()
    )
    assert pending == 1


def test_concurrent_submissions_exactly_one_succeeds(tmp_path, dispatcher, monkeypatch):
    engine = create_engine(f"sqlite:///{tmp_path / 'race.db'}", connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    seed = Session()
    organiser = make_profile(seed, "organiser", "olivia@fairs.example")
    brands = [make_profile(seed, "brand", f"brand{n}@makers.example") for n in range(2)]
    exhibition = ExhibitionService(seed).create_exhibition(ExhibitionCreate(title="Race Fair"), organiser)
    stall = ExhibitionService(seed).create_stall(
        exhibition.id, StallCreate(name="Only Stall", price=Decimal("100.00"), quantity=1), organiser
    )
    instance_id = seed.query(StallInstance).filter(StallInstance.stall_id == stall.id).one().id
    seed.close()

    # Both submissions pass the availability pre-checks before either one writes
    both_checked = threading.Barrier(2, timeout=5)
    get_pending = ApplicationRepository.get_pending_for_instance

    def checked_together(db, instance_id):
        pending = get_pending(db, instance_id)
        both_checked.wait()
        return pending

    monkeypatch.setattr(ApplicationRepository, "get_pending_for_instance", staticmethod(checked_together))

    def submit(brand):
        db = Session()
        try:
            asyncio.run(ApplicationService(db, dispatcher).submit_application(instance_id, brand))
            return None
        except Exception as e:
            return e
        finally:
            db.close()

    with ThreadPoolExecutor(max_workers=2) as pool:
        results = list(pool.map(submit, brands))

    failures = [r for r in results if r is not None]
    assert len(failures) == 1
    assert isinstance(failures[0], (AlreadyPendingError, NotAvailableError))

    check = Session()
    try:
        assert check.query(StallApplication).filter(StallApplication.status == "pending").count() == 1
        assert check.get(StallInstance, instance_id).status == "pending"
    finally:
        check.close()
        engine.dispose()


async def test_unique_index_is_the_conflict_signal(db, dispatcher, brand, other_brand, instance, monkeypatch):
    # A pending row that slipped past the pre-check, with the instance still marked available
    db.add(
        StallApplication(
            stall_id=instance.stall_id,
            stall_instance_id=instance.id,
            exhibition_id=instance.exhibition_id,
            brand_id=brand.id,
            status="pending",
        )
    )
    db.commit()
    monkeypatch.setattr(ApplicationRepository, "get_pending_for_instance", staticmethod(lambda db, iid: None))

    with pytest.raises(AlreadyPendingError):
        await ApplicationService(db, dispatcher).submit_application(instance.id, other_brand)

    db.refresh(instance)
    assert instance.status == "available"


def test_storage_rejects_two_pending_rows(db, brand, other_brand, instance):
    for profile in (brand, other_brand):
        db.add(
            StallApplication(
                stall_id=instance.stall_id,
                stall_instance_id=instance.id,
                exhibition_id=instance.exhibition_id,
                brand_id=profile.id,
                status="pending",
            )
        )
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()


# ============================================================================
# STATUS UPDATES
# ============================================================================


async def test_status_update_persists_when_email_fails(db, dispatcher, organiser, brand, instance):
    service = ApplicationService(db, dispatcher)
    application, _ = await service.submit_application(instance.id, brand)
    dispatcher.failing.add(brand.email)

    updated, warnings = await service.update_application_status(application.id, "approved", organiser)

    assert updated.status == "approved"
    assert warnings == [f"Email notification to {brand.email} could not be sent"]
    db.expire_all()
    assert db.get(StallApplication, application.id).status == "approved"
    assert len(_notifications(db, brand.id, "application_approved")) == 1


async def test_reject_releases_instance(db, dispatcher, organiser, brand, instance):
    service = ApplicationService(db, dispatcher)
    application, _ = await service.submit_application(instance.id, brand, None)

    await service.update_application_status(application.id, "rejected", organiser, "Hall is full")

    db.refresh(instance)
    assert instance.status == "available"
    assert application.organiser_comments == "Hall is full"
    assert len(_notifications(db, brand.id, "application_rejected")) == 1


async def test_booking_confirmation_books_instance(db, dispatcher, organiser, brand, instance):
    service = ApplicationService(db, dispatcher)
    application, _ = await service.submit_application(instance.id, brand)
    for status in ("approved", "payment_pending", "booking_confirmed"):
        application, _ = await service.update_application_status(application.id, status, organiser)

    assert application.booking_confirmed is True
    db.refresh(instance)
    assert instance.status == "booked"

    with pytest.raises(InvalidTransitionError):
        await service.update_application_status(application.id, "pending", organiser)


async def test_brand_cannot_change_status(db, dispatcher, brand, instance):
    service = ApplicationService(db, dispatcher)
    application, _ = await service.submit_application(instance.id, brand)

    with pytest.raises(PermissionDeniedError):
        await service.update_application_status(application.id, "approved", brand)


async def test_delete_pending_application_releases_instance(db, dispatcher, brand, instance):
    service = ApplicationService(db, dispatcher)
    application, _ = await service.submit_application(instance.id, brand)

    service.delete_application(application.id, brand)

    assert db.query(StallApplication).count() == 0
    assert db.get(StallInstance, instance.id).status == "available"


async def test_only_pending_applications_can_be_deleted(db, dispatcher, organiser, brand, instance):
    service = ApplicationService(db, dispatcher)
    application, _ = await service.submit_application(instance.id, brand)
    await service.update_application_status(application.id, "approved", organiser)

    with pytest.raises(InvalidTransitionError):
        service.delete_application(application.id, brand)


async def test_listing_is_scoped_by_role(db, dispatcher, organiser, brand, other_brand, manager, stall):
    db.refresh(stall)
    first, second = sorted(stall.instances, key=lambda i: i.instance_number)
    service = ApplicationService(db, dispatcher)
    await service.submit_application(first.id, brand)
    await service.submit_application(second.id, other_brand)

    assert len(service.list_applications(brand)) == 1
    assert len(service.list_applications(organiser)) == 2
    assert len(service.list_applications(manager)) == 2
    stats = service.get_application_stats(organiser)
    assert stats == {"total": 2, "by_status": {"pending": 2}}
