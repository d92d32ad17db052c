"""NotificationDelivery ORM model — transactional outbox for lifecycle emails."""
import uuid
import enum
from sqlalchemy import Column, String, Text, Integer, DateTime, ForeignKey, Index, Enum as SAEnum
from sqlalchemy.sql import func
from app.database import Base


class EventKind(str, enum.Enum):
    created = "created"
    rescheduled = "rescheduled"
    in_progress = "in_progress"
    completed = "completed"
    cancelled = "cancelled"


class DeliveryStatus(str, enum.Enum):
    pending = "pending"
    sent = "sent"
    failed = "failed"
    dead = "dead"


class NotificationDelivery(Base):
    __tablename__ = "notification_deliveries"
    __table_args__ = (
        Index("ix_notification_deliveries_status_next", "status", "next_attempt_at"),
    )

    delivery_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    schedule_id = Column(String(36), ForeignKey("schedules.schedule_id"), nullable=False, index=True)
    event_kind = Column(SAEnum(EventKind), nullable=False)
    recipient = Column(String(255), nullable=True)
    subject = Column(String(255), nullable=False)
    body = Column(Text, nullable=False)
    status = Column(SAEnum(DeliveryStatus), nullable=False, default=DeliveryStatus.pending)
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)
    next_attempt_at = Column(DateTime(timezone=True), nullable=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
