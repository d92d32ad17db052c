"""Schedule API routes — delegates to LifecycleEngine for invariant enforcement."""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query, status

from app.dependencies import current_actor, get_engine
from app.schemas.schedule import (
    DeliveryReport,
    NoteCreate,
    NoteOut,
    ScheduleCreate,
    ScheduleOut,
    ScheduleResult,
    ScheduleStatusUpdate,
)
from app.services.authorization import ActorCapabilities
from app.services.lifecycle_service import LifecycleEngine, LifecycleOutcome

logger = logging.getLogger(__name__)
router = APIRouter()


def _result(outcome: LifecycleOutcome) -> ScheduleResult:
    return ScheduleResult(
        schedule=ScheduleOut.model_validate(outcome.schedule),
        delivery=DeliveryReport(
            delivered=outcome.delivery.delivered,
            error=outcome.delivery.error,
            delivery_ids=outcome.delivery.delivery_ids,
        ),
    )


@router.post("/", response_model=ScheduleResult, status_code=status.HTTP_201_CREATED)
def create_schedule(
    payload: ScheduleCreate,
    actor: ActorCapabilities = Depends(current_actor),
    engine: LifecycleEngine = Depends(get_engine),
):
    """Schedule an add-on service for a vendor and email the vendor."""
    outcome = engine.create_schedule(
        actor=actor,
        addon_id=payload.addon_id,
        vendor_id=payload.vendor_id,
        subscription_id=payload.subscription_id,
        scheduled_date=payload.scheduled_date,
        email_subject=payload.email_subject,
        email_message=payload.email_message,
        priority=payload.priority,
    )
    return _result(outcome)


@router.get("/", response_model=list[ScheduleOut])
def list_schedules(
    vendor_id: Optional[str] = Query(None),
    addon_id: Optional[str] = Query(None),
    status_filter: Optional[str] = Query(None, alias="status"),
    active_only: bool = Query(False),
    actor: ActorCapabilities = Depends(current_actor),
    engine: LifecycleEngine = Depends(get_engine),
):
    """List schedules, newest first. ``active_only`` answers "is this addon already scheduled?"."""
    return engine.list_schedules(
        vendor_id=vendor_id,
        addon_id=addon_id,
        status=status_filter,
        active_only=active_only,
    )


@router.get("/{schedule_id}", response_model=ScheduleOut)
def get_schedule(
    schedule_id: str,
    actor: ActorCapabilities = Depends(current_actor),
    engine: LifecycleEngine = Depends(get_engine),
):
    """Fetch a single schedule with its notes."""
    return engine.get_schedule(schedule_id)


@router.patch("/{schedule_id}/status", response_model=ScheduleResult)
def update_schedule_status(
    schedule_id: str,
    payload: ScheduleStatusUpdate,
    actor: ActorCapabilities = Depends(current_actor),
    engine: LifecycleEngine = Depends(get_engine),
):
    """Move a schedule along its lifecycle, or re-schedule it."""
    outcome = engine.update_status(
        actor=actor,
        schedule_id=schedule_id,
        target_status=payload.status,
        scheduled_date=payload.scheduled_date,
        vendor_response=payload.vendor_response,
        cancellation_reason=payload.cancellation_reason,
    )
    if not outcome.delivery.delivered:
        logger.warning("Schedule %s updated but notification failed: %s", schedule_id, outcome.delivery.error)
    return _result(outcome)


@router.post("/{schedule_id}/notes", response_model=NoteOut, status_code=status.HTTP_201_CREATED)
def add_note(
    schedule_id: str,
    payload: NoteCreate,
    actor: ActorCapabilities = Depends(current_actor),
    engine: LifecycleEngine = Depends(get_engine),
):
    """Append a note to the schedule's audit trail."""
    return engine.add_note(actor=actor, schedule_id=schedule_id, message=payload.message)


@router.get("/{schedule_id}/notes", response_model=list[NoteOut])
def list_notes(
    schedule_id: str,
    actor: ActorCapabilities = Depends(current_actor),
    engine: LifecycleEngine = Depends(get_engine),
):
    """Notes in insertion order."""
    return list(engine.list_notes(schedule_id))
