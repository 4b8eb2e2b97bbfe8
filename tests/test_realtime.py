"""Tests for the realtime change feed."""

import asyncio

import pytest
from starlette.websockets import WebSocketDisconnect

from exhibae.domain.applications.service import ApplicationService
from exhibae.domain.chat.service import ChatService
from exhibae.models import Notification
from exhibae.realtime import Binding, Channel, ChangeCache, ChangeEvent, broker
from exhibae.realtime.router import application_channel

from .conftest import make_profile, token_for

pytestmark = pytest.mark.anyio


def _event(operation="UPDATE", table="stall_instances", version=None, **row):
    return ChangeEvent(operation=operation, table=table, new=row or None, version=version)


# ============================================================================
# CHANNEL MATCHING
# ============================================================================


def test_binding_filters_on_table_operation_and_columns():
    binding = Binding.on("stall_applications", "INSERT", brand_id="brand-1")

    assert binding.matches(_event("INSERT", "stall_applications", id="a", brand_id="brand-1"))
    assert not binding.matches(_event("UPDATE", "stall_applications", id="a", brand_id="brand-1"))
    assert not binding.matches(_event("INSERT", "stall_applications", id="a", brand_id="brand-2"))
    assert not binding.matches(_event("INSERT", "stall_instances", id="a", brand_id="brand-1"))


def test_tuple_filter_means_any_of():
    channel = Channel("organiser").on("stall_instances", exhibition_id=["exh-1", "exh-2"])

    assert channel.matches(_event(id="i", exhibition_id="exh-2"))
    assert not channel.matches(_event(id="i", exhibition_id="exh-3"))


def test_delete_matches_on_old_image():
    channel = Channel("inbox").on("notifications", user_id="u-1")
    deleted = ChangeEvent(operation="DELETE", table="notifications", old={"id": "n", "user_id": "u-1"})

    assert channel.matches(deleted)


def test_broadcast_reaches_only_its_channel():
    event = ChangeEvent(operation="BROADCAST", table=None, new={"type": "typing"}, channel="conversation:c-1")

    assert Channel("conversation:c-1").matches(event)
    assert not Channel("conversation:c-2").matches(event)


# ============================================================================
# CLIENT CACHE
# ============================================================================


def test_cache_ignores_stale_versions():
    cache = ChangeCache([{"id": "i-1", "status": "available", "version": 1}])

    assert cache.apply(_event(id="i-1", status="booked", version=3))
    assert not cache.apply(_event(id="i-1", status="pending", version=2))

    assert cache.get("i-1")["status"] == "booked"


def test_cache_keeps_deleted_rows_out():
    cache = ChangeCache([{"id": "i-1", "version": 2}])

    assert cache.apply(ChangeEvent(operation="DELETE", table="stall_instances", old={"id": "i-1"}, version=3))
    assert not cache.apply(_event(id="i-1", status="available", version=2))
    assert "i-1" not in cache


def test_cache_merges_partial_rows():
    cache = ChangeCache()
    cache.apply(_event("INSERT", id="i-1", status="available", position_x=1.0, version=1))
    cache.apply(_event(id="i-1", status="pending", version=2))

    assert cache.get("i-1") == {"id": "i-1", "status": "pending", "position_x": 1.0, "version": 2}
    assert len(cache) == 1


# ============================================================================
# COMMIT-TIME PUBLICATION
# ============================================================================


async def test_commit_publishes_to_subscribers(db, brand):
    channel = Channel("inbox-test").on("notifications", user_id=brand.id)

    async with broker.subscribe(channel) as subscription:
        db.add(Notification(user_id=brand.id, title="Hello", message="Welcome to ExhiBae", type="info"))
        db.commit()

        event = await subscription.get(timeout=1)

    assert event.operation == "INSERT"
    assert event.table == "notifications"
    assert event.new["message"] == "Welcome to ExhiBae"
    assert broker.subscription_count("inbox-test") == 0


async def test_rolled_back_changes_are_not_published(db, brand):
    channel = Channel("inbox-rollback").on("notifications", user_id=brand.id)

    async with broker.subscribe(channel) as subscription:
        db.add(Notification(user_id=brand.id, title="Draft", message="Never sent", type="info"))
        db.flush()
        db.rollback()

        with pytest.raises(asyncio.TimeoutError):
            await subscription.get(timeout=0.1)


async def test_organiser_sees_instance_reservation(db, dispatcher, organiser, brand, instance):
    async with broker.subscribe(application_channel(db, organiser)) as subscription:
        await ApplicationService(db, dispatcher).submit_application(instance.id, brand)

        events = [await subscription.get(timeout=1), await subscription.get(timeout=1)]

    by_table = {event.table: event for event in events}
    assert by_table["stall_applications"].operation == "INSERT"
    assert by_table["stall_instances"].new["status"] == "pending"
    assert by_table["stall_instances"].old["status"] == "available"
    assert by_table["stall_instances"].version == 2


async def test_other_organisers_do_not_see_reservation(db, dispatcher, brand, instance):
    stranger = make_profile(db, "organiser", "sam@otherfair.example")

    async with broker.subscribe(application_channel(db, stranger)) as subscription:
        await ApplicationService(db, dispatcher).submit_application(instance.id, brand)

        with pytest.raises(asyncio.TimeoutError):
            await subscription.get(timeout=0.1)


# ============================================================================
# WEBSOCKET ENDPOINTS
# ============================================================================


def test_websocket_without_token_is_closed(client):
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect("/realtime/notifications"):
            pass

    assert exc_info.value.code == 4401


def test_websocket_streams_notifications(db, client, brand):
    with client.websocket_connect(f"/realtime/notifications?token={token_for(brand)}") as websocket:
        assert websocket.receive_json() == {"type": "subscribed", "channel": f"notifications:{brand.id}"}

        websocket.send_json({"type": "ping"})
        assert websocket.receive_json() == {"type": "pong"}

        db.add(Notification(user_id=brand.id, title="Paid", message="Payment received", type="payment"))
        db.commit()

        event = websocket.receive_json()

    assert event["operation"] == "INSERT"
    assert event["new"]["title"] == "Paid"


def test_conversation_feed_rejects_outsiders(db, client, organiser, brand, other_brand):
    conversation = ChatService(db).open_conversation(brand, organiser.id)

    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect(
            f"/realtime/conversations/{conversation.id}?token={token_for(other_brand)}"
        ) as websocket:
            websocket.receive_json()

    assert exc_info.value.code == 4403
