"""Schedule lifecycle engine — enforces every add-on schedule invariant.

Responsibilities:
- Authorization gate on create / transition / note operations
- Subscription gate: the addon must be covered by an active subscription
- Transition table with time and cancellation-reason guards
- Optimistic locking via the ``version`` column (lost races are re-read
  and re-validated, never blindly re-applied)
- Timestamps stamped exactly once per transition
- Outbox notification staged in the same transaction as each change
- Append-only notes through the AuditLedger
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.models.addon import AddonService
from app.models.notification import EventKind
from app.models.schedule import (
    ACTIVE_STATUSES,
    TERMINAL_STATUSES,
    Priority,
    Schedule,
    ScheduleStatus,
)
from app.models.schedule_note import ScheduleNote
from app.services.audit_ledger import AuditLedger, NoteEntry, NoteHistory
from app.services.authorization import Action, ActorCapabilities, get_actor, require
from app.services.clock import Clock, as_utc, utc_now
from app.services.errors import (
    GuardNotSatisfied,
    InvalidTransition,
    NotFound,
    SubscriptionInactive,
    ValidationError,
)
from app.services.notification_service import DispatchResult, NotificationDispatcher
from app.services.subscription_gate import SubscriptionGate

logger = logging.getLogger(__name__)

GUARD_DATE_REACHED = "scheduled_date_not_reached"
GUARD_REASON_GIVEN = "cancellation_reason_required"

# (source, target) -> guard that must hold for the edge to commit
TRANSITIONS: dict[tuple[ScheduleStatus, ScheduleStatus], str] = {
    (ScheduleStatus.scheduled, ScheduleStatus.in_progress): GUARD_DATE_REACHED,
    (ScheduleStatus.scheduled, ScheduleStatus.completed): GUARD_DATE_REACHED,
    (ScheduleStatus.in_progress, ScheduleStatus.completed): GUARD_DATE_REACHED,
    (ScheduleStatus.scheduled, ScheduleStatus.cancelled): GUARD_REASON_GIVEN,
    (ScheduleStatus.in_progress, ScheduleStatus.cancelled): GUARD_REASON_GIVEN,
}

TIMESTAMP_FIELDS = {
    ScheduleStatus.in_progress: "in_progress_at",
    ScheduleStatus.completed: "completed_at",
    ScheduleStatus.cancelled: "cancelled_at",
}

STATUS_EVENTS = {
    ScheduleStatus.in_progress: EventKind.in_progress,
    ScheduleStatus.completed: EventKind.completed,
    ScheduleStatus.cancelled: EventKind.cancelled,
}

MAX_CONFLICT_RETRIES = 3


@dataclass
class LifecycleOutcome:
    """A committed change plus how its notifications fared."""

    schedule: Schedule
    delivery: DispatchResult


@dataclass
class _TransitionPlan:
    target: ScheduleStatus
    status_changes: bool
    new_date: Optional[datetime]
    reason: Optional[str]


def _parse_enum(enum_cls, value, field_name: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(f"Invalid {field_name} '{value}'. Expected one of: {allowed}")


class LifecycleEngine:
    """State machine for add-on service schedules."""

    def __init__(
        self,
        db: Session,
        dispatcher: NotificationDispatcher,
        ledger: Optional[AuditLedger] = None,
        subscription_gate: Optional[SubscriptionGate] = None,
        clock: Clock = utc_now,
    ):
        self.db = db
        self.dispatcher = dispatcher
        self.ledger = ledger or AuditLedger(db)
        self.subscription_gate = subscription_gate or SubscriptionGate(db, clock)
        self.clock = clock

    # ── Reads ──────────────────────────────────────────────────────

    def get_schedule(self, schedule_id: str) -> Schedule:
        schedule = self.db.query(Schedule).filter(Schedule.schedule_id == schedule_id).first()
        if not schedule:
            raise NotFound(f"Schedule {schedule_id} not found")
        return schedule

    def list_schedules(
        self,
        vendor_id: Optional[str] = None,
        addon_id: Optional[str] = None,
        status: Optional[str] = None,
        active_only: bool = False,
    ) -> list[Schedule]:
        query = self.db.query(Schedule)
        if vendor_id:
            query = query.filter(Schedule.vendor_id == vendor_id)
        if addon_id:
            query = query.filter(Schedule.addon_id == addon_id)
        if status:
            query = query.filter(Schedule.status == _parse_enum(ScheduleStatus, status, "status"))
        if active_only:
            query = query.filter(Schedule.status.in_(ACTIVE_STATUSES))
        return query.order_by(Schedule.created_at.desc()).all()

    def find_active_schedule(self, vendor_id: str, addon_id: str) -> Optional[Schedule]:
        """Answered from the (vendor_id, addon_id, status) index."""
        return (
            self.db.query(Schedule)
            .filter(
                Schedule.vendor_id == vendor_id,
                Schedule.addon_id == addon_id,
                Schedule.status.in_(ACTIVE_STATUSES),
            )
            .first()
        )

    def list_notes(self, schedule_id: str) -> NoteHistory:
        self.get_schedule(schedule_id)
        return self.ledger.list(schedule_id)

    # ── Create ─────────────────────────────────────────────────────

    def create_schedule(
        self,
        actor: ActorCapabilities,
        addon_id: str,
        vendor_id: str,
        subscription_id: str,
        scheduled_date: Optional[datetime],
        email_subject: str,
        email_message: str,
        priority: Any = Priority.medium,
    ) -> LifecycleOutcome:
        require(actor, Action.create)

        if scheduled_date is None:
            raise ValidationError("scheduled_date is required")
        if not (email_subject or "").strip() or not (email_message or "").strip():
            raise ValidationError("email_subject and email_message are required")
        priority = _parse_enum(Priority, priority, "priority")

        addon = self.db.query(AddonService).filter(AddonService.addon_id == addon_id).first()
        if not addon:
            raise NotFound(f"Addon service {addon_id} not found")
        get_actor(self.db, vendor_id)

        if self.subscription_gate.owner_of(subscription_id) != vendor_id:
            raise SubscriptionInactive(f"Subscription {subscription_id} does not belong to vendor {vendor_id}")
        if not self.subscription_gate.is_active(subscription_id, addon_id):
            raise SubscriptionInactive(
                f"Subscription {subscription_id} is not active for addon '{addon.name}'"
            )

        existing = self.find_active_schedule(vendor_id, addon_id)
        if existing:
            raise ValidationError(
                f"Addon '{addon.name}' is already scheduled for this vendor (schedule {existing.schedule_id})",
                condition="already_scheduled",
            )

        now = self.clock()
        schedule = Schedule(
            addon_id=addon_id,
            vendor_id=vendor_id,
            subscription_id=subscription_id,
            status=ScheduleStatus.scheduled,
            scheduled_date=as_utc(scheduled_date),
            priority=priority,
            email_subject=email_subject,
            email_message=email_message,
            scheduled_by=actor.actor_id,
            created_at=now,
            updated_at=now,
        )
        try:
            self.db.add(schedule)
            self.db.flush()
            self.dispatcher.dispatch(schedule, EventKind.created)
            self.db.commit()
        except IntegrityError:
            # Another create committed first; the partial unique index rejected this row
            self.db.rollback()
            self.dispatcher.discard()
            raise ValidationError(
                f"Addon '{addon.name}' is already scheduled for this vendor",
                condition="already_scheduled",
            )
        except Exception:
            self.db.rollback()
            self.dispatcher.discard()
            raise

        self.db.refresh(schedule)
        logger.info(
            "Scheduled addon %s for vendor %s on %s (schedule %s) by %s",
            addon_id, vendor_id, schedule.scheduled_date, schedule.schedule_id, actor.actor_id,
        )
        return LifecycleOutcome(schedule=schedule, delivery=self.dispatcher.flush())

    # ── Transition ─────────────────────────────────────────────────

    def update_status(
        self,
        actor: ActorCapabilities,
        schedule_id: str,
        target_status: Any,
        scheduled_date: Optional[datetime] = None,
        vendor_response: Optional[str] = None,
        cancellation_reason: Optional[str] = None,
    ) -> LifecycleOutcome:
        require(actor, Action.transition)
        target = _parse_enum(ScheduleStatus, target_status, "status")
        if cancellation_reason and target != ScheduleStatus.cancelled:
            raise ValidationError("cancellation_reason is only accepted when cancelling")

        for attempt in range(1, MAX_CONFLICT_RETRIES + 1):
            schedule = self.get_schedule(schedule_id)
            plan = self._plan_transition(schedule, target, scheduled_date, cancellation_reason)
            try:
                self._apply(schedule, plan, vendor_response)
                self.db.commit()
            except StaleDataError:
                self.db.rollback()
                self.dispatcher.discard()
                logger.info("Schedule %s changed concurrently (attempt %d); re-validating", schedule_id, attempt)
                continue
            except Exception:
                self.db.rollback()
                self.dispatcher.discard()
                raise
            break
        else:
            raise InvalidTransition(
                f"Schedule {schedule_id} kept changing concurrently; re-fetch and retry",
                condition="concurrent_update",
            )

        self.db.refresh(schedule)
        logger.info(
            "Schedule %s -> %s (version %d) by %s",
            schedule_id, schedule.status.value, schedule.version, actor.actor_id,
        )
        return LifecycleOutcome(schedule=schedule, delivery=self.dispatcher.flush())

    def _plan_transition(
        self,
        schedule: Schedule,
        target: ScheduleStatus,
        scheduled_date: Optional[datetime],
        cancellation_reason: Optional[str],
    ) -> _TransitionPlan:
        current = schedule.status
        if current in TERMINAL_STATUSES:
            raise InvalidTransition(
                f"Cannot change status from {current.value}. This service is already finalized."
            )

        new_date = as_utc(scheduled_date)
        if new_date is not None and new_date == as_utc(schedule.scheduled_date):
            new_date = None

        if target == current:
            # Same status is only meaningful as a re-schedule
            if new_date is None:
                raise InvalidTransition(f"Schedule is already {current.value}")
            return _TransitionPlan(target=target, status_changes=False, new_date=new_date, reason=None)

        guard = TRANSITIONS.get((current, target))
        if guard is None:
            raise InvalidTransition(f"Invalid status transition from {current.value} to {target.value}")

        reason = None
        if guard == GUARD_DATE_REACHED:
            effective_date = new_date or as_utc(schedule.scheduled_date)
            if self.clock() < effective_date:
                raise GuardNotSatisfied(
                    f"Cannot mark as {target.value} before the scheduled date ({effective_date.isoformat()})",
                    condition=GUARD_DATE_REACHED,
                )
        elif guard == GUARD_REASON_GIVEN:
            reason = (cancellation_reason or "").strip()
            if not reason:
                raise GuardNotSatisfied(
                    "Cancellation reason is required when cancelling a service",
                    condition=GUARD_REASON_GIVEN,
                )
            if new_date is not None:
                raise ValidationError("A cancelled service cannot be rescheduled")

        return _TransitionPlan(target=target, status_changes=True, new_date=new_date, reason=reason)

    def _apply(self, schedule: Schedule, plan: _TransitionPlan, vendor_response: Optional[str]) -> None:
        now = self.clock()
        context: dict[str, Any] = {"vendor_response": vendor_response}

        if plan.new_date is not None:
            context["old_date"] = schedule.scheduled_date
            context["new_date"] = plan.new_date
            schedule.scheduled_date = plan.new_date

        if plan.status_changes:
            stamp_field = TIMESTAMP_FIELDS[plan.target]
            if getattr(schedule, stamp_field) is not None:
                raise InvalidTransition(f"{stamp_field} is already set on schedule {schedule.schedule_id}")
            schedule.status = plan.target
            setattr(schedule, stamp_field, now)
            if plan.target == ScheduleStatus.cancelled:
                schedule.cancellation_reason = plan.reason

        if vendor_response is not None:
            schedule.vendor_response = vendor_response
        schedule.updated_at = now

        # Flushes the versioned UPDATE; a lost race surfaces here
        self.db.flush()

        if plan.new_date is not None:
            self.dispatcher.dispatch(schedule, EventKind.rescheduled, context)
        if plan.status_changes:
            self.dispatcher.dispatch(schedule, STATUS_EVENTS[plan.target], context)

    # ── Notes ──────────────────────────────────────────────────────

    def add_note(self, actor: ActorCapabilities, schedule_id: str, message: str) -> ScheduleNote:
        require(actor, Action.add_note)
        self.get_schedule(schedule_id)
        if not (message or "").strip():
            raise ValidationError("Note message is required")

        try:
            note = self.ledger.append(
                schedule_id, NoteEntry(author_id=actor.actor_id, message=message, created_at=self.clock())
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(note)
        logger.info("Note %s added to schedule %s by %s", note.note_id, schedule_id, actor.actor_id)
        return note
