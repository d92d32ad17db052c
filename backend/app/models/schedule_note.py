"""ScheduleNote ORM model — append-only audit ledger entries."""
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from app.database import Base


class ScheduleNote(Base):
    __tablename__ = "schedule_notes"

    # Autoincrement key doubles as the insertion order
    note_id = Column(Integer, primary_key=True, autoincrement=True)
    schedule_id = Column(String(36), ForeignKey("schedules.schedule_id"), nullable=False, index=True)
    author_id = Column(String(36), ForeignKey("actors.actor_id"), nullable=False)
    message = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
