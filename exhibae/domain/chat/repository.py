"""Chat repository - Database operations for conversations and support tickets"""

from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ...models import ChatMessage, Conversation, Message, SupportTicket


class ChatRepository:
    """Repository for conversations, messages and support tickets"""

    # ------------------------------------------------------------------
    # Conversations
    # ------------------------------------------------------------------

    @staticmethod
    def find_conversation(
        db: Session, brand_id: str, organiser_id: str, exhibition_id: Optional[str]
    ) -> Optional[Conversation]:
        query = db.query(Conversation).filter(
            Conversation.brand_id == brand_id, Conversation.organiser_id == organiser_id
        )
        if exhibition_id:
            query = query.filter(Conversation.exhibition_id == exhibition_id)
        else:
            query = query.filter(Conversation.exhibition_id.is_(None))
        return query.first()

    @staticmethod
    def get_conversation(db: Session, conversation_id: str) -> Optional[Conversation]:
        return db.query(Conversation).filter(Conversation.id == conversation_id).first()

    @staticmethod
    def get_conversations_for_user(db: Session, user_id: str) -> list[Conversation]:
        return (
            db.query(Conversation)
            .filter(or_(Conversation.brand_id == user_id, Conversation.organiser_id == user_id))
            .order_by(func.coalesce(Conversation.last_message_at, Conversation.created_at).desc())
            .all()
        )

    @staticmethod
    def count_unread_by_conversation(db: Session, conversation_ids: list[str], user_id: str) -> dict[str, int]:
        if not conversation_ids:
            return {}
        rows = (
            db.query(Message.conversation_id, func.count(Message.id))
            .filter(
                Message.conversation_id.in_(conversation_ids),
                Message.sender_id != user_id,
                Message.is_read.is_(False),
            )
            .group_by(Message.conversation_id)
            .all()
        )
        return {conversation_id: count for conversation_id, count in rows}

    @staticmethod
    def get_messages(db: Session, conversation_id: str, limit: int = 50, offset: int = 0) -> list[Message]:
        return (
            db.query(Message)
            .filter(Message.conversation_id == conversation_id)
            .order_by(Message.created_at.asc())
            .offset(offset)
            .limit(limit)
            .all()
        )

    @staticmethod
    def get_unread_messages(db: Session, conversation_id: str, reader_id: str) -> list[Message]:
        return (
            db.query(Message)
            .filter(
                Message.conversation_id == conversation_id,
                Message.sender_id != reader_id,
                Message.is_read.is_(False),
            )
            .all()
        )

    # ------------------------------------------------------------------
    # Support tickets
    # ------------------------------------------------------------------

    @staticmethod
    def get_ticket(db: Session, ticket_id: str) -> Optional[SupportTicket]:
        return db.query(SupportTicket).filter(SupportTicket.id == ticket_id).first()

    @staticmethod
    def get_tickets(
        db: Session,
        created_by: Optional[str] = None,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        assigned_to: Optional[str] = None,
    ) -> list[SupportTicket]:
        query = db.query(SupportTicket)
        if created_by:
            query = query.filter(SupportTicket.created_by == created_by)
        if status:
            query = query.filter(SupportTicket.status == status)
        if priority:
            query = query.filter(SupportTicket.priority == priority)
        if assigned_to:
            query = query.filter(SupportTicket.assigned_to == assigned_to)
        return query.order_by(SupportTicket.updated_at.desc()).all()

    @staticmethod
    def get_ticket_messages(db: Session, ticket_id: str) -> list[ChatMessage]:
        return (
            db.query(ChatMessage)
            .filter(ChatMessage.ticket_id == ticket_id)
            .order_by(ChatMessage.created_at.asc())
            .all()
        )

    @staticmethod
    def get_unread_ticket_messages(db: Session, ticket_id: str, reader_id: str) -> list[ChatMessage]:
        return (
            db.query(ChatMessage)
            .filter(
                ChatMessage.ticket_id == ticket_id,
                ChatMessage.sender_id != reader_id,
                ChatMessage.read.is_(False),
            )
            .all()
        )

    @staticmethod
    def save(db: Session, obj):
        db.add(obj)
        db.commit()
        db.refresh(obj)
        return obj
