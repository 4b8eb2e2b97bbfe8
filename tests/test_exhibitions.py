"""Tests for exhibitions, stall layout and maintenance."""

from decimal import Decimal

import pytest

from exhibae.domain.applications.service import ApplicationService
from exhibae.domain.exhibitions.schemas import InstancePositionUpdate, MaintenanceCreate, MaintenanceUpdate
from exhibae.domain.exhibitions.service import ExhibitionService, derive_display_status
from exhibae.errors import InvalidTransitionError, PermissionDeniedError, ValidationFailedError
from exhibae.models import StallInstance

from .conftest import auth_headers, make_profile

pytestmark = pytest.mark.anyio


@pytest.mark.parametrize(
    "applications,expected",
    [
        ([], "available"),
        ([("rejected", False)], "available"),
        ([("booking_confirmed", True)], "booked"),
        ([("approved", True)], "booked"),
        ([("approved", False)], "available"),
        ([("booking_confirmed", True), ("pending", False)], "pending"),
        ([("pending", False), ("approved", True)], "pending"),
    ],
)
def test_display_status_precedence(applications, expected):
    assert derive_display_status("available", applications) == expected


def test_create_exhibition_and_stalls_over_http(client, organiser, brand):
    headers = auth_headers(organiser)

    response = client.post(
        "/exhibitions",
        json={"title": "Autumn Makers Market", "start_date": "2026-10-01", "end_date": "2026-10-03"},
        headers=headers,
    )
    assert response.status_code == 201
    exhibition_id = response.json()["id"]
    assert response.json()["status"] == "draft"

    response = client.post(
        f"/exhibitions/{exhibition_id}/stalls",
        json={"name": "Premium Stall", "price": "400", "quantity": 3},
        headers=headers,
    )
    assert response.status_code == 201
    assert Decimal(response.json()["price"]) == Decimal("400.00")

    instances = client.get(f"/exhibitions/{exhibition_id}/instances", headers=headers).json()
    assert [i["instance_number"] for i in instances] == [1, 2, 3]
    assert {i["status"] for i in instances} == {"available"}

    response = client.post("/exhibitions", json={"title": "Brand Fair"}, headers=auth_headers(brand))
    assert response.status_code == 403
    assert response.json()["code"] == "PERMISSION_DENIED"


def test_end_date_before_start_rejected(client, organiser):
    response = client.post(
        "/exhibitions",
        json={"title": "Backwards Fair", "start_date": "2026-10-03", "end_date": "2026-10-01"},
        headers=auth_headers(organiser),
    )
    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_FAILED"


def test_stall_listing_shows_pending(client, brand, exhibition, instance):
    client.post("/applications", json={"stall_instance_id": instance.id}, headers=auth_headers(brand))

    stalls = client.get(f"/exhibitions/{exhibition.id}/stalls", headers=auth_headers(brand)).json()

    assert len(stalls) == 1
    assert stalls[0]["display_status"] == "pending"


def test_manual_status_limited_to_available_and_maintenance(db, organiser, instance):
    service = ExhibitionService(db)

    assert service.update_instance_status(instance.id, "under_maintenance", organiser).status == "under_maintenance"
    assert service.update_instance_status(instance.id, "available", organiser).status == "available"
    with pytest.raises(InvalidTransitionError):
        service.update_instance_status(instance.id, "booked", organiser)


def test_other_organisers_cannot_edit_layout(db, instance):
    stranger = make_profile(db, "organiser", "sam@otherfair.example")
    with pytest.raises(PermissionDeniedError):
        ExhibitionService(db).update_instance_price(instance.id, Decimal("10"), stranger)


def test_price_and_position_updates(db, organiser, instance):
    service = ExhibitionService(db)

    updated = service.update_instance_price(instance.id, Decimal("275.00"), organiser)
    assert updated.price == Decimal("275.00")

    updated = service.update_instance_position(
        instance.id, InstancePositionUpdate(position_x=12.5, position_y=4, rotation_angle=90), organiser
    )
    assert (updated.position_x, updated.position_y, updated.rotation_angle) == (12.5, 4, 90)


async def test_instances_with_history_cannot_be_deleted(db, dispatcher, organiser, brand, stall):
    db.refresh(stall)
    first, second = sorted(stall.instances, key=lambda i: i.instance_number)
    service = ExhibitionService(db)
    applications = ApplicationService(db, dispatcher)
    application, _ = await applications.submit_application(first.id, brand)
    await applications.update_application_status(application.id, "rejected", organiser)

    with pytest.raises(ValidationFailedError):
        service.delete_instance(first.id, organiser)

    service.delete_instance(second.id, organiser)
    assert db.get(StallInstance, second.id) is None


def test_maintenance_takes_instance_out_until_all_logs_close(db, organiser, instance):
    service = ExhibitionService(db)

    paint = service.schedule_maintenance(instance.id, MaintenanceCreate(maintenance_type="painting"), organiser)
    wiring = service.schedule_maintenance(instance.id, MaintenanceCreate(maintenance_type="electrical"), organiser)
    db.refresh(instance)
    assert instance.status == "under_maintenance"

    service.update_maintenance(paint.id, MaintenanceUpdate(status="completed"), organiser)
    db.refresh(instance)
    assert instance.status == "under_maintenance"
    assert instance.last_maintenance_date is not None

    service.update_maintenance(wiring.id, MaintenanceUpdate(status="cancelled"), organiser)
    db.refresh(instance)
    assert instance.status == "available"
    assert len(service.list_maintenance(instance.id, organiser)) == 2


def test_deleting_last_open_log_releases_instance(db, organiser, instance):
    service = ExhibitionService(db)
    paint = service.schedule_maintenance(instance.id, MaintenanceCreate(maintenance_type="painting"), organiser)
    wiring = service.schedule_maintenance(instance.id, MaintenanceCreate(maintenance_type="electrical"), organiser)

    service.delete_maintenance(paint.id, organiser)
    db.refresh(instance)
    assert instance.status == "under_maintenance"

    service.delete_maintenance(wiring.id, organiser)
    db.refresh(instance)
    assert instance.status == "available"
    assert service.list_maintenance(instance.id, organiser) == []


async def test_no_maintenance_on_reserved_instance(db, dispatcher, organiser, brand, instance):
    await ApplicationService(db, dispatcher).submit_application(instance.id, brand)

    with pytest.raises(ValidationFailedError):
        ExhibitionService(db).schedule_maintenance(
            instance.id, MaintenanceCreate(maintenance_type="cleaning"), organiser
        )
