"""Schedule ORM model — one arranged delivery of an add-on service."""
import uuid
import enum
from sqlalchemy import Column, String, Text, DateTime, Integer, ForeignKey, Index, Enum as SAEnum, text
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from app.database import Base


class ScheduleStatus(str, enum.Enum):
    scheduled = "scheduled"
    in_progress = "in_progress"
    completed = "completed"
    cancelled = "cancelled"


class Priority(str, enum.Enum):
    low = "low"
    medium = "medium"
    high = "high"
    urgent = "urgent"


ACTIVE_STATUSES = (ScheduleStatus.scheduled, ScheduleStatus.in_progress)
TERMINAL_STATUSES = (ScheduleStatus.completed, ScheduleStatus.cancelled)
ACTIVE_STATUS_SQL = "status IN ('scheduled', 'in_progress')"


class Schedule(Base):
    __tablename__ = "schedules"
    __table_args__ = (
        Index("ix_schedules_vendor_addon_status", "vendor_id", "addon_id", "status"),
        # At most one scheduled or in_progress row per (vendor, addon)
        Index(
            "uq_schedules_active_vendor_addon",
            "vendor_id",
            "addon_id",
            unique=True,
            sqlite_where=text(ACTIVE_STATUS_SQL),
            postgresql_where=text(ACTIVE_STATUS_SQL),
        ),
    )

    schedule_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    addon_id = Column(String(36), ForeignKey("addon_services.addon_id"), nullable=False)
    vendor_id = Column(String(36), ForeignKey("actors.actor_id"), nullable=False)
    subscription_id = Column(String(36), ForeignKey("subscriptions.subscription_id"), nullable=False)
    status = Column(SAEnum(ScheduleStatus), nullable=False, default=ScheduleStatus.scheduled)
    scheduled_date = Column(DateTime(timezone=True), nullable=False)
    priority = Column(SAEnum(Priority), nullable=False, default=Priority.medium)
    email_subject = Column(String(255), nullable=False)
    email_message = Column(Text, nullable=False)
    vendor_response = Column(Text, nullable=True)
    cancellation_reason = Column(String(500), nullable=True)
    in_progress_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    scheduled_by = Column(String(36), ForeignKey("actors.actor_id"), nullable=False)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # UPDATEs carry "WHERE version = <seen>"; a lost race raises StaleDataError
    __mapper_args__ = {"version_id_col": version}

    addon = relationship("AddonService")
    vendor = relationship("Actor", foreign_keys=[vendor_id])
    notes = relationship("ScheduleNote", order_by="ScheduleNote.note_id", viewonly=True)
