"""Chat service - brand/organiser conversations and support tickets"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ...errors import InvalidTransitionError, NotFoundError, PermissionDeniedError, ValidationFailedError
from ...models import ChatMessage, Conversation, Message, Profile, SupportTicket, utcnow
from ...shared.permissions import is_manager
from .repository import ChatRepository
from .schemas import TicketCreate, TicketUpdate

logger = logging.getLogger(__name__)

TICKET_TRANSITIONS = {
    "open": {"in_progress"},
    "in_progress": {"resolved"},
    "resolved": {"closed"},
    "closed": set(),  # Terminal state
}

PREVIEW_LENGTH = 200


def validate_ticket_transition(current_status: str, new_status: str) -> bool:
    return new_status in TICKET_TRANSITIONS.get(current_status, set())


class ChatService:
    """Service layer for conversations and support tickets"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = ChatRepository()

    # ------------------------------------------------------------------
    # Conversations
    # ------------------------------------------------------------------

    def open_conversation(self, user: Profile, participant_id: str, exhibition_id: Optional[str] = None) -> Conversation:
        """Get or create the brand/organiser conversation between the caller and a participant"""
        participant = self.db.query(Profile).filter(Profile.id == participant_id).first()
        if not participant:
            raise NotFoundError("Profile", participant_id)

        roles = {user.role: user.id, participant.role: participant.id}
        if set(roles) != {"brand", "organiser"}:
            raise ValidationFailedError("Conversations are between a brand and an organiser")

        brand_id, organiser_id = roles["brand"], roles["organiser"]
        conversation = self.repo.find_conversation(self.db, brand_id, organiser_id, exhibition_id)
        if conversation:
            return conversation

        conversation = self.repo.save(
            self.db, Conversation(brand_id=brand_id, organiser_id=organiser_id, exhibition_id=exhibition_id)
        )
        logger.info(f"💬 Conversation {conversation.id} opened between {brand_id} and {organiser_id}")
        return conversation

    def get_conversation(self, conversation_id: str, user: Profile) -> Conversation:
        conversation = self.repo.get_conversation(self.db, conversation_id)
        if not conversation:
            raise NotFoundError("Conversation", conversation_id)
        if user.id not in (conversation.brand_id, conversation.organiser_id) and not is_manager(user):
            raise PermissionDeniedError("You are not part of this conversation")
        return conversation

    def list_conversations(self, user: Profile) -> list[tuple[Conversation, int]]:
        conversations = self.repo.get_conversations_for_user(self.db, user.id)
        unread = self.repo.count_unread_by_conversation(self.db, [c.id for c in conversations], user.id)
        return [(conversation, unread.get(conversation.id, 0)) for conversation in conversations]

    def list_messages(self, conversation_id: str, user: Profile, limit: int = 50, offset: int = 0) -> list[Message]:
        conversation = self.get_conversation(conversation_id, user)
        return self.repo.get_messages(self.db, conversation.id, limit, offset)

    def send_message(self, conversation_id: str, user: Profile, content: str) -> Message:
        conversation = self.get_conversation(conversation_id, user)
        message = Message(conversation_id=conversation.id, sender_id=user.id, content=content, status="sent")
        self.db.add(message)
        conversation.last_message = content[:PREVIEW_LENGTH]
        conversation.last_message_at = utcnow()
        self.db.commit()
        self.db.refresh(message)
        return message

    def mark_conversation_read(self, conversation_id: str, user: Profile) -> int:
        conversation = self.get_conversation(conversation_id, user)
        unread = self.repo.get_unread_messages(self.db, conversation.id, user.id)
        now = utcnow()
        for message in unread:
            message.is_read = True
            message.read_at = now
            message.status = "read"
        self.db.commit()
        return len(unread)

    # ------------------------------------------------------------------
    # Support tickets
    # ------------------------------------------------------------------

    def create_ticket(self, user: Profile, data: TicketCreate) -> SupportTicket:
        ticket = self.repo.save(
            self.db,
            SupportTicket(
                created_by=user.id,
                user_role=user.role,
                status="open",
                **data.model_dump(),
            ),
        )
        logger.info(f"🎫 Support ticket {ticket.id} opened by {user.id} ({ticket.priority})")
        return ticket

    def list_tickets(
        self, user: Profile, status: Optional[str] = None, priority: Optional[str] = None, assigned_to_me: bool = False
    ) -> list[SupportTicket]:
        if is_manager(user):
            return self.repo.get_tickets(
                self.db, status=status, priority=priority, assigned_to=user.id if assigned_to_me else None
            )
        return self.repo.get_tickets(self.db, created_by=user.id, status=status, priority=priority)

    def get_ticket(self, ticket_id: str, user: Profile) -> SupportTicket:
        ticket = self.repo.get_ticket(self.db, ticket_id)
        if not ticket:
            raise NotFoundError("Support ticket", ticket_id)
        if user.id not in (ticket.created_by, ticket.assigned_to) and not is_manager(user):
            raise PermissionDeniedError("You cannot access this ticket")
        return ticket

    def update_ticket(self, ticket_id: str, data: TicketUpdate, user: Profile) -> SupportTicket:
        ticket = self.get_ticket(ticket_id, user)
        if ticket.status == "closed":
            raise ValidationFailedError("Closed tickets cannot be edited")
        for key, value in data.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(ticket, key, value)
        self.db.commit()
        self.db.refresh(ticket)
        return ticket

    def change_ticket_status(self, ticket_id: str, new_status: str, user: Profile) -> SupportTicket:
        """
        Move a ticket along open → in_progress → resolved → closed.

        Support staff drive every step; the ticket's creator may only close a
        resolved ticket.
        """
        ticket = self.get_ticket(ticket_id, user)
        is_staff = is_manager(user) or ticket.assigned_to == user.id
        if not is_staff and not (ticket.created_by == user.id and new_status == "closed"):
            raise PermissionDeniedError("Only support staff can change this ticket's status")
        if not validate_ticket_transition(ticket.status, new_status):
            raise InvalidTransitionError(ticket.status, new_status, entity="ticket")

        previous = ticket.status
        ticket.status = new_status
        if new_status == "closed":
            ticket.closed_at = utcnow()
        self.db.commit()
        self.db.refresh(ticket)
        logger.info(f"🎫 Ticket {ticket.id} transitioned: {previous} → {new_status}")
        return ticket

    def assign_ticket(self, ticket_id: str, assignee_id: str, user: Profile) -> SupportTicket:
        if not is_manager(user):
            raise PermissionDeniedError("Only managers can assign tickets")
        ticket = self.get_ticket(ticket_id, user)
        assignee = self.db.query(Profile).filter(Profile.id == assignee_id).first()
        if not assignee or not is_manager(assignee):
            raise ValidationFailedError("Tickets can only be assigned to managers")
        ticket.assigned_to = assignee.id
        self.db.commit()
        self.db.refresh(ticket)
        logger.info(f"🎫 Ticket {ticket.id} assigned to {assignee.id}")
        return ticket

    def list_ticket_messages(self, ticket_id: str, user: Profile) -> list[ChatMessage]:
        ticket = self.get_ticket(ticket_id, user)
        return self.repo.get_ticket_messages(self.db, ticket.id)

    def send_ticket_message(
        self, ticket_id: str, user: Profile, content: str, attachments: Optional[list] = None
    ) -> ChatMessage:
        ticket = self.get_ticket(ticket_id, user)
        if ticket.status == "closed":
            raise ValidationFailedError("Cannot post to a closed ticket")
        message = ChatMessage(ticket_id=ticket.id, sender_id=user.id, content=content, attachments=attachments)
        return self.repo.save(self.db, message)

    def mark_ticket_read(self, ticket_id: str, user: Profile) -> int:
        ticket = self.get_ticket(ticket_id, user)
        unread = self.repo.get_unread_ticket_messages(self.db, ticket.id, user.id)
        for message in unread:
            message.read = True
        self.db.commit()
        return len(unread)
