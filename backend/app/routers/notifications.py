"""Notification delivery routes — the operator view of the outbox."""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query

from app.dependencies import current_actor, get_dispatcher
from app.models.notification import DeliveryStatus
from app.schemas.notification import DeliveryOut, RetryReport
from app.services.authorization import ActorCapabilities, Action, require
from app.services.errors import ValidationError
from app.services.notification_service import NotificationDispatcher

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/", response_model=list[DeliveryOut])
def list_deliveries(
    status_filter: Optional[str] = Query(None, alias="status"),
    schedule_id: Optional[str] = Query(None),
    actor: ActorCapabilities = Depends(current_actor),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """List deliveries, e.g. ``?status=failed`` for everything awaiting retry."""
    delivery_status = None
    if status_filter:
        try:
            delivery_status = DeliveryStatus(status_filter)
        except ValueError:
            raise ValidationError(f"Invalid delivery status: {status_filter}")
    return dispatcher.list_deliveries(status=delivery_status, schedule_id=schedule_id)


@router.post("/retry", response_model=RetryReport)
def retry_deliveries(
    actor: ActorCapabilities = Depends(current_actor),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """Re-attempt failed deliveries whose backoff has elapsed."""
    require(actor, Action.transition)
    retried = dispatcher.retry_failed()
    logger.info("Delivery retry requested by %s: %d attempted", actor.actor_id, retried)
    return RetryReport(retried=retried)
