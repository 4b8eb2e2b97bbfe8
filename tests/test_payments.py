"""Tests for payments and the end-to-end booking flow."""

from decimal import Decimal

import pytest

from exhibae.domain.applications.service import ApplicationService
from exhibae.domain.coupons.schemas import CouponCreate
from exhibae.domain.coupons.service import CouponService
from exhibae.domain.payments.schemas import PaymentCreate
from exhibae.domain.payments.service import PaymentService
from exhibae.errors import PermissionDeniedError, ValidationFailedError
from exhibae.models import Coupon, Notification, PaymentTransaction, StallApplication

from .conftest import auth_headers

pytestmark = pytest.mark.anyio


async def _approved_application(db, dispatcher, organiser, brand, instance):
    service = ApplicationService(db, dispatcher)
    application, _ = await service.submit_application(instance.id, brand)
    application, _ = await service.update_application_status(application.id, "approved", organiser)
    return application


def test_booking_scenario(db, client, dispatcher, organiser, brand, instance):
    brand_headers = auth_headers(brand)
    organiser_headers = auth_headers(organiser)

    response = client.post(
        "/applications",
        json={"stall_instance_id": instance.id, "message": "Hand-poured candles"},
        headers=brand_headers,
    )
    assert response.status_code == 201
    application_id = response.json()["application"]["id"]
    assert response.json()["application"]["status"] == "pending"
    db.refresh(instance)
    assert instance.status == "pending"
    assert db.query(StallApplication).filter(StallApplication.stall_instance_id == instance.id).count() == 1

    response = client.patch(
        f"/applications/{application_id}/status", json={"status": "approved"}, headers=organiser_headers
    )
    assert response.status_code == 200
    assert response.json()["application"]["status"] == "approved"
    approved = (
        db.query(Notification)
        .filter(Notification.user_id == brand.id, Notification.type == "application_approved")
        .count()
    )
    assert approved == 1

    response = client.patch(
        f"/applications/{application_id}/status", json={"status": "payment_pending"}, headers=organiser_headers
    )
    assert response.json()["application"]["status"] == "payment_pending"

    response = client.post(
        f"/applications/{application_id}/payments",
        json={"amount": "250.00", "payment_method": "bank_transfer", "reference_number": "TXN-0001"},
        headers=brand_headers,
    )
    assert response.status_code == 201
    assert response.json()["payment"]["status"] == "processing"
    assert db.query(PaymentTransaction).count() == 1

    response = client.get(f"/applications/{application_id}", headers=brand_headers)
    assert response.json()["status"] == "payment_pending"

    response = client.patch(
        f"/applications/{application_id}/status", json={"status": "booking_confirmed"}, headers=organiser_headers
    )
    assert response.json()["application"]["status"] == "booking_confirmed"
    assert response.json()["application"]["booking_confirmed"] is True
    db.refresh(instance)
    assert instance.status == "booked"


def test_illegal_transition_is_a_conflict(client, organiser, brand, instance):
    response = client.post("/applications", json={"stall_instance_id": instance.id}, headers=auth_headers(brand))
    application_id = response.json()["application"]["id"]

    response = client.patch(
        f"/applications/{application_id}/status",
        json={"status": "booking_confirmed"},
        headers=auth_headers(organiser),
    )

    assert response.status_code == 409
    assert response.json()["code"] == "INVALID_TRANSITION"


def test_unavailable_stall_is_a_conflict(client, brand, other_brand, instance):
    client.post("/applications", json={"stall_instance_id": instance.id}, headers=auth_headers(brand))

    response = client.post(
        "/applications", json={"stall_instance_id": instance.id}, headers=auth_headers(other_brand)
    )

    assert response.status_code == 409
    assert response.json() == {"detail": "Stall is not available", "code": "NOT_AVAILABLE"}


async def test_payment_applies_coupon(db, dispatcher, organiser, brand, instance):
    application = await _approved_application(db, dispatcher, organiser, brand, instance)
    coupon = CouponService(db).create_coupon(
        CouponCreate(code="SPRING10", type="percentage", value="10"), organiser
    )

    payment, warnings = await PaymentService(db, dispatcher).create_payment(
        application.id,
        PaymentCreate(amount="250.00", payment_method="card", coupon_code="spring10"),
        brand,
    )

    assert warnings == []
    assert payment.amount == Decimal("225.00")
    assert payment.discount_amount == Decimal("25.00")
    assert payment.coupon_id == coupon.id
    db.expire_all()
    assert db.get(Coupon, coupon.id).times_used == 1
    assert db.get(StallApplication, application.id).status == "approved"


async def test_payment_notifies_organiser(db, dispatcher, organiser, brand, instance):
    application = await _approved_application(db, dispatcher, organiser, brand, instance)
    dispatcher.sent.clear()

    await PaymentService(db, dispatcher).create_payment(
        application.id, PaymentCreate(amount="250.00", payment_method="upi"), brand
    )

    assert dispatcher.recipients() == [organiser.email]
    notification = db.query(Notification).filter(Notification.type == "payment_submitted").one()
    assert notification.user_id == organiser.id
    assert "250.00" in notification.message


async def test_pending_application_cannot_be_paid(db, dispatcher, brand, instance):
    application, _ = await ApplicationService(db, dispatcher).submit_application(instance.id, brand)

    with pytest.raises(ValidationFailedError):
        await PaymentService(db, dispatcher).create_payment(
            application.id, PaymentCreate(amount="250.00", payment_method="cash"), brand
        )


async def test_only_the_applying_brand_pays(db, dispatcher, organiser, brand, instance):
    application = await _approved_application(db, dispatcher, organiser, brand, instance)

    with pytest.raises(PermissionDeniedError):
        await PaymentService(db, dispatcher).create_payment(
            application.id, PaymentCreate(amount="250.00", payment_method="cash"), organiser
        )


async def test_payment_status_changes_leave_application_alone(db, dispatcher, organiser, brand, instance):
    application = await _approved_application(db, dispatcher, organiser, brand, instance)
    service = PaymentService(db, dispatcher)
    payment, _ = await service.create_payment(
        application.id, PaymentCreate(amount="250.00", payment_method="card"), brand
    )

    assert service.update_payment_status(payment.id, "completed", organiser).status == "completed"
    assert service.refund_payment(payment.id, organiser).status == "refunded"
    assert db.get(StallApplication, application.id).status == "approved"
    assert [p.id for p in service.list_payments(application.id, brand)] == [payment.id]

    with pytest.raises(PermissionDeniedError):
        service.refund_payment(payment.id, brand)
