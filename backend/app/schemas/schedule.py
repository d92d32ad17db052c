"""Pydantic schemas for add-on service schedules."""
from __future__ import annotations
from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class ScheduleCreate(BaseModel):
    addon_id: str
    vendor_id: str
    subscription_id: str
    scheduled_date: Optional[datetime] = None  # required; checked by the engine
    priority: str = "medium"
    email_subject: str
    email_message: str


class ScheduleStatusUpdate(BaseModel):
    status: str
    scheduled_date: Optional[datetime] = None
    vendor_response: Optional[str] = None
    cancellation_reason: Optional[str] = None


class NoteCreate(BaseModel):
    message: str


class NoteOut(BaseModel):
    note_id: int
    author_id: str
    message: str
    created_at: datetime

    model_config = {"from_attributes": True}


class ScheduleOut(BaseModel):
    schedule_id: str
    addon_id: str
    vendor_id: str
    subscription_id: str
    status: str
    scheduled_date: datetime
    priority: str
    email_subject: str
    email_message: str
    vendor_response: Optional[str] = None
    cancellation_reason: Optional[str] = None
    in_progress_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    scheduled_by: str
    version: int
    created_at: datetime
    updated_at: datetime
    notes: list[NoteOut] = []

    model_config = {"from_attributes": True}


class DeliveryReport(BaseModel):
    delivered: bool
    error: Optional[str] = None
    delivery_ids: list[str] = []


class ScheduleResult(BaseModel):
    """A committed mutation; ``delivery.delivered`` is false on partial success."""

    schedule: ScheduleOut
    delivery: DeliveryReport
