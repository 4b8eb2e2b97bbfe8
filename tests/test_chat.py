"""Tests for brand/organiser conversations and support tickets."""

import pytest

from exhibae.domain.chat.schemas import TicketCreate, TicketUpdate
from exhibae.domain.chat.service import ChatService, validate_ticket_transition
from exhibae.errors import InvalidTransitionError, PermissionDeniedError, ValidationFailedError

from .conftest import auth_headers, make_profile


# ============================================================================
# CONVERSATIONS
# ============================================================================


def test_conversation_is_reused_from_either_side(db, organiser, brand):
    service = ChatService(db)

    opened = service.open_conversation(brand, organiser.id)
    reopened = service.open_conversation(organiser, brand.id)

    assert opened.id == reopened.id
    assert (opened.brand_id, opened.organiser_id) == (brand.id, organiser.id)


def test_conversation_needs_a_brand_and_an_organiser(db, brand, other_brand):
    with pytest.raises(ValidationFailedError):
        ChatService(db).open_conversation(brand, other_brand.id)


def test_outsiders_cannot_read_a_conversation(db, organiser, brand, other_brand):
    service = ChatService(db)
    conversation = service.open_conversation(brand, organiser.id)

    with pytest.raises(PermissionDeniedError):
        service.list_messages(conversation.id, other_brand)


def test_messages_over_http(client, organiser, brand):
    brand_headers = auth_headers(brand)
    organiser_headers = auth_headers(organiser)

    conversation = client.post(
        "/conversations", json={"participant_id": organiser.id}, headers=brand_headers
    ).json()
    response = client.post(
        f"/conversations/{conversation['id']}/messages",
        json={"content": "Is there power at the corner stall?"},
        headers=brand_headers,
    )
    assert response.status_code == 201
    assert response.json()["status"] == "sent"

    listed = client.get("/conversations", headers=organiser_headers).json()
    assert listed[0]["unread_count"] == 1
    assert listed[0]["last_message"] == "Is there power at the corner stall?"

    response = client.post(f"/conversations/{conversation['id']}/read", headers=organiser_headers)
    assert response.json() == {"updated": 1}
    messages = client.get(f"/conversations/{conversation['id']}/messages", headers=organiser_headers).json()
    assert messages[0]["is_read"] is True
    assert messages[0]["status"] == "read"


# ============================================================================
# SUPPORT TICKETS
# ============================================================================


@pytest.mark.parametrize(
    "current,requested,allowed",
    [
        ("open", "in_progress", True),
        ("in_progress", "resolved", True),
        ("resolved", "closed", True),
        ("open", "resolved", False),
        ("open", "closed", False),
        ("closed", "open", False),
    ],
)
def test_ticket_transitions(current, requested, allowed):
    assert validate_ticket_transition(current, requested) is allowed


def test_ticket_walks_the_full_chain(db, brand, manager):
    service = ChatService(db)
    ticket = service.create_ticket(brand, TicketCreate(subject="Invoice missing"))
    assert ticket.status == "open"
    assert ticket.user_role == "brand"

    for status in ("in_progress", "resolved", "closed"):
        ticket = service.change_ticket_status(ticket.id, status, manager)

    assert ticket.status == "closed"
    assert ticket.closed_at is not None
    with pytest.raises(InvalidTransitionError):
        service.change_ticket_status(ticket.id, "open", manager)


def test_creator_may_only_close(db, brand, manager):
    service = ChatService(db)
    ticket = service.create_ticket(brand, TicketCreate(subject="Stall map is blank"))

    with pytest.raises(PermissionDeniedError):
        service.change_ticket_status(ticket.id, "in_progress", brand)

    service.change_ticket_status(ticket.id, "in_progress", manager)
    service.change_ticket_status(ticket.id, "resolved", manager)
    assert service.change_ticket_status(ticket.id, "closed", brand).status == "closed"


def test_tickets_are_assigned_to_managers_only(db, brand, organiser, manager):
    service = ChatService(db)
    ticket = service.create_ticket(brand, TicketCreate(subject="Refund please", priority="high"))

    with pytest.raises(ValidationFailedError):
        service.assign_ticket(ticket.id, organiser.id, manager)
    with pytest.raises(PermissionDeniedError):
        service.assign_ticket(ticket.id, manager.id, brand)

    helper = make_profile(db, "manager", "hal@exhibae.example")
    ticket = service.assign_ticket(ticket.id, helper.id, manager)
    assert ticket.assigned_to == helper.id
    assert [t.id for t in service.list_tickets(helper, assigned_to_me=True)] == [ticket.id]


def test_closed_ticket_is_read_only(db, brand, manager):
    service = ChatService(db)
    ticket = service.create_ticket(brand, TicketCreate(subject="Wrong stall size"))
    service.send_ticket_message(ticket.id, brand, "It should be 3x3")
    for status in ("in_progress", "resolved", "closed"):
        service.change_ticket_status(ticket.id, status, manager)

    with pytest.raises(ValidationFailedError):
        service.send_ticket_message(ticket.id, manager, "Anything else?")
    with pytest.raises(ValidationFailedError):
        service.update_ticket(ticket.id, TicketUpdate(priority="low"), brand)
    assert len(service.list_ticket_messages(ticket.id, brand)) == 1


def test_other_users_cannot_see_a_ticket(client, brand, other_brand):
    ticket = client.post("/support/tickets", json={"subject": "Login loop"}, headers=auth_headers(brand)).json()

    response = client.get(f"/support/tickets/{ticket['id']}", headers=auth_headers(other_brand))

    assert response.status_code == 403
    assert response.json()["code"] == "PERMISSION_DENIED"
