"""Actor ORM model — identity/permission facts supplied by the account system."""
import uuid
from sqlalchemy import Column, String, DateTime, JSON
from sqlalchemy.sql import func
from app.database import Base


class Actor(Base):
    __tablename__ = "actors"

    actor_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    display_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=True)
    role = Column(String(50), nullable=False, default="vendor")
    permissions = Column(JSON, nullable=False, default=list)  # scope strings, e.g. ["schedule", "manage"]
    created_at = Column(DateTime(timezone=True), server_default=func.now())
