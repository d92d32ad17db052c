"""Domain errors raised by the lifecycle services.

Routers never build HTTP errors for lifecycle failures themselves; the
handler registered in ``app.main`` maps each class to its status code.
"""
from typing import Optional


class LifecycleError(Exception):
    """Base class for every failure a lifecycle operation can report."""

    code = "lifecycle_error"
    status_code = 400

    def __init__(self, detail: str, condition: Optional[str] = None):
        super().__init__(detail)
        self.detail = detail
        self.condition = condition

    def to_dict(self) -> dict:
        body = {"error": self.code, "detail": self.detail}
        if self.condition:
            body["condition"] = self.condition
        return body


class Forbidden(LifecycleError):
    code = "forbidden"
    status_code = 403


class ValidationError(LifecycleError):
    code = "validation_error"
    status_code = 422


class SubscriptionInactive(LifecycleError):
    code = "subscription_inactive"
    status_code = 409


class InvalidTransition(LifecycleError):
    code = "invalid_transition"
    status_code = 409


class GuardNotSatisfied(LifecycleError):
    code = "guard_not_satisfied"
    status_code = 400


class NotFound(LifecycleError):
    code = "not_found"
    status_code = 404


class DeliveryError(LifecycleError):
    """Notification channel failure. Never aborts a committed transition."""

    code = "delivery_error"
    status_code = 502
