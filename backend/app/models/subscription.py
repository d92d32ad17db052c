"""Subscription ORM model — owned by the billing side, only read here."""
import uuid
import enum
from sqlalchemy import Column, String, DateTime, ForeignKey, Table, Enum as SAEnum
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from app.database import Base


class SubscriptionStatus(str, enum.Enum):
    active = "active"
    expired = "expired"
    cancelled = "cancelled"
    pending = "pending"


subscription_addons = Table(
    "subscription_addons",
    Base.metadata,
    Column("subscription_id", String(36), ForeignKey("subscriptions.subscription_id"), primary_key=True),
    Column("addon_id", String(36), ForeignKey("addon_services.addon_id"), primary_key=True),
)


class Subscription(Base):
    __tablename__ = "subscriptions"

    subscription_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    vendor_id = Column(String(36), ForeignKey("actors.actor_id"), nullable=False)
    status = Column(SAEnum(SubscriptionStatus), nullable=False, default=SubscriptionStatus.pending)
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    addons = relationship("AddonService", secondary=subscription_addons)
