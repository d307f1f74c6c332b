from enum import Enum
from typing import Optional
import logging

logger = logging.getLogger(__name__)


class SubscriptionStatus(str, Enum):
    """Subscription states as Stripe reports them, plus a local 'inactive'."""
    TRIALING = "trialing"
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"
    UNPAID = "unpaid"
    INCOMPLETE = "incomplete"
    INCOMPLETE_EXPIRED = "incomplete_expired"
    PAUSED = "paused"
    INACTIVE = "inactive"


ACTIVE_STATUSES = frozenset({SubscriptionStatus.TRIALING, SubscriptionStatus.ACTIVE})


def normalize_status(raw: Optional[str], default: SubscriptionStatus = SubscriptionStatus.INACTIVE) -> SubscriptionStatus:
    """Map a Stripe status string onto SubscriptionStatus."""
    if not raw:
        return default
    try:
        return SubscriptionStatus(raw.lower())
    except ValueError:
        # Stripe's "ended" and any future values land here
        logger.warning(f"Unknown subscription status '{raw}', treating as {default.value}")
        return default


def is_active(status: Optional[str]) -> bool:
    if not status:
        return False
    return normalize_status(status) in ACTIVE_STATUSES
