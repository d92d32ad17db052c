"""SubscriptionGate — is a vendor's subscription to an add-on currently active?"""
import logging

from sqlalchemy.orm import Session

from app.models.subscription import Subscription, SubscriptionStatus, subscription_addons
from app.services.clock import Clock, as_utc, utc_now

logger = logging.getLogger(__name__)


class SubscriptionGate:
    """Read-only view over subscription records owned by billing."""

    def __init__(self, db: Session, clock: Clock = utc_now):
        self.db = db
        self.clock = clock

    def is_active(self, subscription_id: str, addon_id: str) -> bool:
        subscription = (
            self.db.query(Subscription)
            .filter(Subscription.subscription_id == subscription_id)
            .first()
        )
        if not subscription:
            logger.info("Subscription %s not found", subscription_id)
            return False
        if subscription.status != SubscriptionStatus.active:
            return False
        if as_utc(subscription.end_date) <= self.clock():
            return False

        covered = (
            self.db.query(subscription_addons)
            .filter(
                subscription_addons.c.subscription_id == subscription_id,
                subscription_addons.c.addon_id == addon_id,
            )
            .first()
        )
        return covered is not None

    def owner_of(self, subscription_id: str) -> str | None:
        subscription = (
            self.db.query(Subscription)
            .filter(Subscription.subscription_id == subscription_id)
            .first()
        )
        return subscription.vendor_id if subscription else None
