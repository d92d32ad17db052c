"""AddonService ORM model — catalog entry, read-only from the engine's side."""
import uuid
from sqlalchemy import Column, String, Text, Numeric, DateTime
from sqlalchemy.sql import func
from app.database import Base


class AddonService(Base):
    __tablename__ = "addon_services"

    addon_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(150), nullable=False)
    description = Column(Text, nullable=False, default="")
    price = Column(Numeric(12, 2), nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="INR")
    billing_type = Column(String(20), nullable=False, default="one_time")
    category = Column(String(50), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
