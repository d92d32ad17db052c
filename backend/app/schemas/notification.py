"""Pydantic schemas for notification deliveries."""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class DeliveryOut(BaseModel):
    delivery_id: str
    schedule_id: str
    event_kind: str
    recipient: Optional[str] = None
    subject: str
    status: str
    attempts: int
    last_error: Optional[str] = None
    next_attempt_at: Optional[datetime] = None
    sent_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class RetryReport(BaseModel):
    retried: int
