"""NotificationDispatcher — outbound emails for schedule lifecycle events.

Dispatch goes through a transactional outbox:

1. ``dispatch`` renders the message and inserts a ``pending``
   NotificationDelivery row inside the caller's open transaction, so the
   row commits or rolls back together with the state change.
2. After the caller commits, ``flush`` hands every staged row to the
   delivery channel and records the outcome.
3. Failed rows are picked up again by ``retry_failed`` with exponential
   backoff (2^attempts minutes) until ``NOTIFY_MAX_ATTEMPTS``; then they
   are marked ``dead`` and stay listed for operators.

A channel failure never undoes the committed transition. It is logged at
ERROR and returned in the DispatchResult as a partial success.
"""
import logging
import smtplib
import ssl
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from email.message import EmailMessage
from typing import Any, Optional, Protocol

import pytz
from sqlalchemy.orm import Session

from app.config import settings
from app.models.addon import AddonService
from app.models.notification import NotificationDelivery, DeliveryStatus, EventKind
from app.models.schedule import Schedule
from app.services.clock import Clock, as_utc, utc_now
from app.services.errors import DeliveryError

logger = logging.getLogger(__name__)

DATE_FORMAT = "%A, %d %B %Y, %I:%M %p %Z"


class DeliveryChannel(Protocol):
    def send(self, recipient: str, subject: str, body: str) -> None:
        """Deliver one message or raise DeliveryError."""


class SmtpChannel:
    """Sends plain-text email over SMTP. Without SMTP_HOST it only logs."""

    def send(self, recipient: str, subject: str, body: str) -> None:
        if not settings.SMTP_HOST:
            logger.info("SMTP not configured, skipping email to %s: %s", recipient, subject)
            return

        msg = EmailMessage()
        msg["From"] = f"{settings.SMTP_FROM_NAME} <{settings.SMTP_FROM_EMAIL}>"
        msg["To"] = recipient
        msg["Subject"] = subject
        msg.set_content(body)

        try:
            if settings.SMTP_PORT == 465:
                server = smtplib.SMTP_SSL(
                    settings.SMTP_HOST, settings.SMTP_PORT, context=ssl.create_default_context(), timeout=30
                )
            else:
                server = smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=30)
                if settings.SMTP_USE_TLS:
                    server.starttls(context=ssl.create_default_context())
            with server:
                if settings.SMTP_USERNAME:
                    server.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            raise DeliveryError(f"SMTP delivery to {recipient} failed: {exc}") from exc

        logger.info("Email sent to %s: %s", recipient, subject)


def get_channel() -> DeliveryChannel:
    """FastAPI dependency — the production delivery channel."""
    return SmtpChannel()


@dataclass
class DispatchResult:
    delivered: bool = True
    error: Optional[str] = None
    delivery_ids: list[str] = field(default_factory=list)

    def merge(self, other: "DispatchResult") -> "DispatchResult":
        errors = [e for e in (self.error, other.error) if e]
        return DispatchResult(
            delivered=self.delivered and other.delivered,
            error="; ".join(errors) or None,
            delivery_ids=self.delivery_ids + other.delivery_ids,
        )


# ── Rendering ──────────────────────────────────────────────────────


def _format_date(value: Optional[datetime], tz_name: str) -> str:
    if value is None:
        return ""
    return as_utc(value).astimezone(pytz.timezone(tz_name)).strftime(DATE_FORMAT)


def _service_block(addon: AddonService) -> list[str]:
    return [
        f"Service: {addon.name}",
        f"Category: {addon.category.capitalize()}",
        f"Description: {addon.description}",
    ]


def render_notification(
    schedule: Schedule,
    addon: AddonService,
    event_kind: EventKind,
    context: dict[str, Any],
    tz_name: Optional[str] = None,
) -> tuple[str, str]:
    """Return (subject, body) for a lifecycle event."""
    tz_name = tz_name or settings.DISPLAY_TIMEZONE
    fmt = lambda dt: _format_date(dt, tz_name)  # noqa: E731
    notes = context.get("vendor_response")

    if event_kind == EventKind.created:
        subject = schedule.email_subject
        vendor_name = schedule.vendor.display_name if schedule.vendor else ""
        lines = [f"Vendor: {vendor_name}", "", schedule.email_message, "", *_service_block(addon),
                 f"Priority: {schedule.priority.value.upper()}",
                 f"Scheduled for: {fmt(schedule.scheduled_date)}",
                 "", "If you need to reschedule or have any questions, please reply to this email.",
                 "", f"Schedule ID: {schedule.schedule_id}"]
    elif event_kind == EventKind.rescheduled:
        subject = f"Service Rescheduled - {addon.name}"
        lines = [*_service_block(addon), "",
                 f"New scheduled date: {fmt(context.get('new_date'))}"]
        if context.get("old_date"):
            lines.append(f"Previous date: {fmt(context['old_date'])}")
        lines += ["", "Please mark your calendar with the new date and time."]
    elif event_kind == EventKind.in_progress:
        subject = f"Service In Progress - {addon.name}"
        lines = [*_service_block(addon),
                 f"Started at: {fmt(schedule.in_progress_at)}",
                 f"Scheduled for: {fmt(schedule.scheduled_date)}"]
    elif event_kind == EventKind.completed:
        subject = f"Service Completed - {addon.name}"
        lines = [*_service_block(addon),
                 f"Completed at: {fmt(schedule.completed_at)}",
                 f"Scheduled for: {fmt(schedule.scheduled_date)}"]
        if schedule.in_progress_at:
            lines.append(f"Started at: {fmt(schedule.in_progress_at)}")
    elif event_kind == EventKind.cancelled:
        subject = f"Service Cancelled - {addon.name}"
        lines = [*_service_block(addon),
                 f"Cancelled at: {fmt(schedule.cancelled_at)}",
                 f"Reason: {schedule.cancellation_reason}"]
    else:
        raise ValueError(f"Unknown event kind: {event_kind}")

    if notes and event_kind != EventKind.created:
        lines += ["", "Notes:", notes]
    return subject, "\n".join(lines)


# ── Dispatcher ─────────────────────────────────────────────────────


class NotificationDispatcher:
    def __init__(
        self,
        db: Session,
        channel: DeliveryChannel,
        clock: Clock = utc_now,
        max_attempts: Optional[int] = None,
    ):
        self.db = db
        self.channel = channel
        self.clock = clock
        self.max_attempts = max_attempts or settings.NOTIFY_MAX_ATTEMPTS
        self._staged: list[str] = []

    def dispatch(
        self,
        schedule: Schedule,
        event_kind: EventKind,
        context: Optional[dict[str, Any]] = None,
    ) -> NotificationDelivery:
        """Stage a notification inside the current transaction."""
        addon = self.db.query(AddonService).filter(AddonService.addon_id == schedule.addon_id).first()
        subject, body = render_notification(schedule, addon, event_kind, context or {})
        delivery = NotificationDelivery(
            schedule_id=schedule.schedule_id,
            event_kind=event_kind,
            recipient=schedule.vendor.email if schedule.vendor else None,
            subject=subject,
            body=body,
            status=DeliveryStatus.pending,
            attempts=0,
            next_attempt_at=self.clock(),
        )
        self.db.add(delivery)
        self.db.flush()
        self._staged.append(delivery.delivery_id)
        return delivery

    def discard(self) -> None:
        """Forget staged rows after the caller rolled back."""
        self._staged.clear()

    def flush(self) -> DispatchResult:
        """Deliver everything staged since the last flush. Call after commit."""
        staged, self._staged = self._staged, []
        result = DispatchResult()
        for delivery_id in staged:
            delivery = self.db.get(NotificationDelivery, delivery_id)
            if delivery is None:
                logger.error("Staged delivery %s vanished before flush", delivery_id)
                continue
            result = result.merge(self._attempt(delivery))
        return result

    def _attempt(self, delivery: NotificationDelivery) -> DispatchResult:
        now = self.clock()
        delivery.attempts += 1
        try:
            if not delivery.recipient:
                raise DeliveryError("Vendor has no email address on file")
            try:
                self.channel.send(delivery.recipient, delivery.subject, delivery.body)
            except DeliveryError:
                raise
            except Exception as exc:
                logger.exception("Channel raised while sending delivery %s", delivery.delivery_id)
                raise DeliveryError(f"{type(exc).__name__}: {exc}") from exc
        except DeliveryError as exc:
            delivery.last_error = exc.detail
            if delivery.attempts >= self.max_attempts:
                delivery.status = DeliveryStatus.dead
                delivery.next_attempt_at = None
            else:
                delivery.status = DeliveryStatus.failed
                delivery.next_attempt_at = now + timedelta(minutes=2 ** delivery.attempts)
            self.db.commit()
            logger.error(
                "Delivery %s (%s, schedule %s) failed on attempt %d: %s",
                delivery.delivery_id, delivery.event_kind.value, delivery.schedule_id,
                delivery.attempts, exc.detail,
            )
            return DispatchResult(delivered=False, error=exc.detail, delivery_ids=[delivery.delivery_id])

        delivery.status = DeliveryStatus.sent
        delivery.sent_at = now
        delivery.last_error = None
        delivery.next_attempt_at = None
        self.db.commit()
        logger.info("Delivery %s (%s) sent to %s", delivery.delivery_id, delivery.event_kind.value, delivery.recipient)
        return DispatchResult(delivered=True, delivery_ids=[delivery.delivery_id])

    def retry_failed(self) -> int:
        """Re-attempt failed deliveries whose backoff has elapsed.

        Returns:
            Number of deliveries attempted.
        """
        now = self.clock()
        candidates = (
            self.db.query(NotificationDelivery)
            .filter(NotificationDelivery.status.in_([DeliveryStatus.failed, DeliveryStatus.pending]))
            .order_by(NotificationDelivery.created_at)
            .all()
        )
        retried = 0
        for delivery in candidates:
            due = as_utc(delivery.next_attempt_at)
            if due is not None and due > now:
                continue
            self._attempt(delivery)
            retried += 1
        logger.info("Retried %d notification deliveries", retried)
        return retried

    def list_deliveries(
        self,
        status: Optional[DeliveryStatus] = None,
        schedule_id: Optional[str] = None,
    ) -> list[NotificationDelivery]:
        query = self.db.query(NotificationDelivery)
        if status:
            query = query.filter(NotificationDelivery.status == status)
        if schedule_id:
            query = query.filter(NotificationDelivery.schedule_id == schedule_id)
        return query.order_by(NotificationDelivery.created_at).all()
