import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    text,
)
from sqlalchemy.orm import relationship

from .database import Base


def generate_id():
    """Generate a UUID primary key matching the auth provider's id format"""
    return str(uuid.uuid4())


def utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Profile(Base):
    __tablename__ = "profiles"

    # Same id as the auth provider's user (JWT `sub`)
    id = Column(String(36), primary_key=True, default=generate_id)
    email = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(255), nullable=True)
    company_name = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    role = Column(String(20), nullable=False, default="brand")  # organiser, brand, shopper, manager
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    exhibitions = relationship("Exhibition", back_populates="organiser")


class Exhibition(Base):
    __tablename__ = "exhibitions"

    id = Column(String(36), primary_key=True, default=generate_id)
    organiser_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    address = Column(String(500), nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(100), nullable=True)
    country = Column(String(100), nullable=True)
    postal_code = Column(String(20), nullable=True)
    status = Column(String(20), nullable=False, default="draft")  # draft, published, cancelled, completed
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    start_time = Column(String(10), nullable=True)
    end_time = Column(String(10), nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    organiser = relationship("Profile", back_populates="exhibitions")
    stalls = relationship("Stall", back_populates="exhibition")


class Stall(Base):
    """A stall type offered at an exhibition; bookable units are its instances"""

    __tablename__ = "stalls"

    id = Column(String(36), primary_key=True, default=generate_id)
    exhibition_id = Column(String(36), ForeignKey("exhibitions.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    width = Column(Float, nullable=True)
    length = Column(Float, nullable=True)
    price = Column(Numeric(12, 2), nullable=False, default=0)
    quantity = Column(Integer, nullable=False, default=1)
    status = Column(String(20), nullable=False, default="available")
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    exhibition = relationship("Exhibition", back_populates="stalls")
    instances = relationship("StallInstance", back_populates="stall", order_by="StallInstance.instance_number")
    applications = relationship("StallApplication", back_populates="stall")


class StallInstance(Base):
    __tablename__ = "stall_instances"

    id = Column(String(36), primary_key=True, default=generate_id)
    stall_id = Column(String(36), ForeignKey("stalls.id"), nullable=False, index=True)
    exhibition_id = Column(String(36), ForeignKey("exhibitions.id"), nullable=False, index=True)
    instance_number = Column(Integer, nullable=False)
    position_x = Column(Float, nullable=False, default=0)
    position_y = Column(Float, nullable=False, default=0)
    rotation_angle = Column(Float, nullable=False, default=0)
    # available, pending, booked, under_maintenance
    status = Column(String(20), nullable=False, default="available", index=True)
    price = Column(Numeric(12, 2), nullable=True)  # Overrides the stall price when set
    last_maintenance_date = Column(DateTime, nullable=True)
    next_maintenance_date = Column(DateTime, nullable=True)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    stall = relationship("Stall", back_populates="instances")
    applications = relationship("StallApplication", back_populates="stall_instance")
    maintenance_logs = relationship("MaintenanceLog", back_populates="stall_instance", cascade="all, delete-orphan")

    __mapper_args__ = {"version_id_col": version}


class StallApplication(Base):
    __tablename__ = "stall_applications"

    id = Column(String(36), primary_key=True, default=generate_id)
    stall_id = Column(String(36), ForeignKey("stalls.id"), nullable=False, index=True)
    stall_instance_id = Column(String(36), ForeignKey("stall_instances.id"), nullable=False, index=True)
    exhibition_id = Column(String(36), ForeignKey("exhibitions.id"), nullable=False, index=True)
    brand_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    # pending, approved, rejected, payment_pending, booking_confirmed
    status = Column(String(30), nullable=False, default="pending")
    message = Column(Text, nullable=True)
    organiser_comments = Column(Text, nullable=True)
    booking_confirmed = Column(Boolean, nullable=False, default=False)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    stall = relationship("Stall", back_populates="applications")
    stall_instance = relationship("StallInstance", back_populates="applications")
    exhibition = relationship("Exhibition")
    brand = relationship("Profile")
    payments = relationship("PaymentTransaction", back_populates="application")

    __mapper_args__ = {"version_id_col": version}
    __table_args__ = (
        # At most one pending application per stall instance, enforced by storage
        Index(
            "uq_stall_applications_one_pending",
            "stall_instance_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
    )


class PaymentTransaction(Base):
    __tablename__ = "payment_transactions"

    id = Column(String(36), primary_key=True, default=generate_id)
    application_id = Column(String(36), ForeignKey("stall_applications.id"), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    payment_method = Column(String(50), nullable=False)
    reference_number = Column(String(255), nullable=True)
    status = Column(String(20), nullable=False, default="processing")  # processing, completed, refunded, failed
    coupon_id = Column(String(36), ForeignKey("coupons.id"), nullable=True)
    discount_amount = Column(Numeric(12, 2), nullable=False, default=0)
    transaction_date = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    application = relationship("StallApplication", back_populates="payments")
    coupon = relationship("Coupon")


class MaintenanceLog(Base):
    __tablename__ = "maintenance_logs"

    id = Column(String(36), primary_key=True, default=generate_id)
    stall_instance_id = Column(String(36), ForeignKey("stall_instances.id"), nullable=False, index=True)
    maintenance_type = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    performed_by = Column(String(255), nullable=True)
    performed_at = Column(DateTime, nullable=True)
    next_maintenance_date = Column(DateTime, nullable=True)
    status = Column(String(20), nullable=False, default="scheduled")  # scheduled, in_progress, completed, cancelled
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    stall_instance = relationship("StallInstance", back_populates="maintenance_logs")


class Coupon(Base):
    __tablename__ = "coupons"

    id = Column(String(36), primary_key=True, default=generate_id)
    organiser_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    code = Column(String(50), unique=True, index=True, nullable=False)
    description = Column(Text, nullable=True)
    type = Column(String(20), nullable=False)  # percentage, fixed
    value = Column(Numeric(12, 2), nullable=False)
    # all_exhibitions, specific_exhibition, all_brands, specific_brand
    scope = Column(String(30), nullable=False, default="all_exhibitions")
    exhibition_id = Column(String(36), ForeignKey("exhibitions.id"), nullable=True)
    brand_id = Column(String(36), ForeignKey("profiles.id"), nullable=True)
    min_booking_amount = Column(Numeric(12, 2), nullable=True)
    max_discount_amount = Column(Numeric(12, 2), nullable=True)
    usage_limit = Column(Integer, nullable=True)
    times_used = Column(Integer, nullable=False, default=0)
    start_date = Column(DateTime, nullable=True)
    end_date = Column(DateTime, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=generate_id)
    user_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    type = Column(String(50), nullable=False)
    link = Column(String(500), nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, default=utcnow)

    __mapper_args__ = {"version_id_col": version}


class Conversation(Base):
    """Direct conversation between a brand and an organiser"""

    __tablename__ = "conversations"

    id = Column(String(36), primary_key=True, default=generate_id)
    brand_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    organiser_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    exhibition_id = Column(String(36), ForeignKey("exhibitions.id"), nullable=True)
    last_message = Column(Text, nullable=True)
    last_message_at = Column(DateTime, nullable=True)
    metadata_json = Column("metadata", JSON, nullable=True)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    messages = relationship("Message", back_populates="conversation", order_by="Message.created_at")

    __mapper_args__ = {"version_id_col": version}


class Message(Base):
    __tablename__ = "messages"

    id = Column(String(36), primary_key=True, default=generate_id)
    conversation_id = Column(String(36), ForeignKey("conversations.id"), nullable=False, index=True)
    sender_id = Column(String(36), ForeignKey("profiles.id"), nullable=False)
    content = Column(Text, nullable=False)
    status = Column(String(20), nullable=False, default="sent")  # sent, delivered, read
    is_read = Column(Boolean, nullable=False, default=False)
    read_at = Column(DateTime, nullable=True)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, default=utcnow)

    conversation = relationship("Conversation", back_populates="messages")

    __mapper_args__ = {"version_id_col": version}


class SupportTicket(Base):
    __tablename__ = "support_tickets"

    id = Column(String(36), primary_key=True, default=generate_id)
    category = Column(String(100), nullable=True)
    created_by = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    assigned_to = Column(String(36), ForeignKey("profiles.id"), nullable=True, index=True)
    user_role = Column(String(20), nullable=True)
    status = Column(String(20), nullable=False, default="open")  # open, in_progress, resolved, closed
    priority = Column(String(20), nullable=False, default="medium")  # low, medium, high, urgent
    subject = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    closed_at = Column(DateTime, nullable=True)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    messages = relationship("ChatMessage", back_populates="ticket", order_by="ChatMessage.created_at")

    __mapper_args__ = {"version_id_col": version}


class ChatMessage(Base):
    __tablename__ = "chat_messages"

    id = Column(String(36), primary_key=True, default=generate_id)
    ticket_id = Column(String(36), ForeignKey("support_tickets.id"), nullable=False, index=True)
    sender_id = Column(String(36), ForeignKey("profiles.id"), nullable=False)
    content = Column(Text, nullable=False)
    attachments = Column(JSON, nullable=True)
    read = Column(Boolean, nullable=False, default=False)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, default=utcnow)

    ticket = relationship("SupportTicket", back_populates="messages")

    __mapper_args__ = {"version_id_col": version}


class EmailLog(Base):
    """Every email the microservice accepts, with its delivery state"""

    __tablename__ = "email_logs"

    id = Column(String(36), primary_key=True, default=generate_id)
    email_type = Column(String(50), nullable=False, default="custom")
    template_id = Column(String(100), nullable=True, index=True)
    recipient_email = Column(String(255), nullable=False, index=True)
    recipient_name = Column(String(255), nullable=True)
    from_address = Column(String(255), nullable=True)
    subject = Column(String(500), nullable=False)
    html = Column(Text, nullable=True)
    text = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="pending", index=True)  # queued, pending, sending, sent, failed
    attempts = Column(Integer, nullable=False, default=0)
    send_at = Column(DateTime, nullable=True)
    message_id = Column(String(255), nullable=True)
    error_message = Column(Text, nullable=True)
    sent_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
