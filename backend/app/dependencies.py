"""FastAPI dependencies that assemble the lifecycle engine per request.

Collaborators (delivery channel, clock) are resolved here so tests can
swap them through ``app.dependency_overrides``.
"""
from fastapi import Depends, Query
from sqlalchemy.orm import Session

from app.database import get_db
from app.services.authorization import ActorCapabilities, load_capabilities
from app.services.clock import Clock, utc_now
from app.services.lifecycle_service import LifecycleEngine
from app.services.notification_service import DeliveryChannel, NotificationDispatcher, get_channel


def get_clock() -> Clock:
    return utc_now


def current_actor(
    actor_id: str = Query(..., description="ID of the authenticated actor performing the request"),
    db: Session = Depends(get_db),
) -> ActorCapabilities:
    return load_capabilities(db, actor_id)


def get_dispatcher(
    db: Session = Depends(get_db),
    channel: DeliveryChannel = Depends(get_channel),
    clock: Clock = Depends(get_clock),
) -> NotificationDispatcher:
    return NotificationDispatcher(db, channel, clock)


def get_engine(
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    clock: Clock = Depends(get_clock),
) -> LifecycleEngine:
    return LifecycleEngine(db, dispatcher, clock=clock)
