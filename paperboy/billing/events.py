"""
Stripe event classification.

Turns a verified webhook payload into one typed record per recognised event
kind. Nothing here touches the database; the reconciler consumes the records.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from paperboy.billing.status import SubscriptionStatus, normalize_status

# Key under which checkout sessions and subscriptions carry our user id
METADATA_USER_ID = "user_id"

CHECKOUT_COMPLETED = "checkout.session.completed"
SUBSCRIPTION_CREATED = "customer.subscription.created"
SUBSCRIPTION_UPDATED = "customer.subscription.updated"
SUBSCRIPTION_DELETED = "customer.subscription.deleted"
INVOICE_PAID = "invoice.paid"
INVOICE_PAYMENT_FAILED = "invoice.payment_failed"


@dataclass(frozen=True)
class CheckoutCompleted:
    event_id: Optional[str]
    customer_id: Optional[str]
    subscription_id: Optional[str]
    client_reference_id: Optional[str]
    metadata_user_id: Optional[str]


@dataclass(frozen=True)
class SubscriptionChanged:
    """customer.subscription.created and customer.subscription.updated."""
    event_id: Optional[str]
    event_type: str
    subscription_id: str
    customer_id: Optional[str]
    status: SubscriptionStatus
    current_period_start: Optional[datetime]
    current_period_end: Optional[datetime]
    trial_end: Optional[datetime]
    price_id: Optional[str]
    metadata_user_id: Optional[str]


@dataclass(frozen=True)
class SubscriptionDeleted:
    event_id: Optional[str]
    subscription_id: str
    customer_id: Optional[str]
    status: SubscriptionStatus
    ended_at: Optional[datetime]  # ended_at, else canceled_at
    metadata_user_id: Optional[str]
    created: Optional[datetime] = None  # event envelope time


@dataclass(frozen=True)
class InvoicePaid:
    event_id: Optional[str]
    invoice_id: Optional[str]
    customer_id: Optional[str]
    subscription_id: Optional[str]
    period_start: Optional[datetime]
    period_end: Optional[datetime]
    billed_at: Optional[datetime]
    created: Optional[datetime] = None  # event envelope time


@dataclass(frozen=True)
class InvoicePaymentFailed:
    event_id: Optional[str]
    invoice_id: Optional[str]
    customer_id: Optional[str]
    subscription_id: Optional[str]
    attempt_count: Optional[int]
    next_payment_attempt: Optional[datetime]


BillingEvent = Union[
    CheckoutCompleted,
    SubscriptionChanged,
    SubscriptionDeleted,
    InvoicePaid,
    InvoicePaymentFailed,
]


def to_datetime(value: Any) -> Optional[datetime]:
    """Convert Stripe's unix seconds to an aware UTC datetime."""
    if value is None:
        return None
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return None


def _id_of(value: Any) -> Optional[str]:
    """Return the id of a Stripe reference that may or may not be expanded."""
    if value is None:
        return None
    if isinstance(value, Mapping):
        return value.get("id")
    return str(value)


def _metadata_user_id(obj: Mapping) -> Optional[str]:
    metadata = obj.get("metadata") or {}
    return metadata.get(METADATA_USER_ID) or None


def _items(obj: Mapping) -> List[Mapping]:
    items = obj.get("items") or {}
    return list(items.get("data") or [])


def _subscription_period(subscription: Mapping) -> Tuple[Optional[datetime], Optional[datetime]]:
    """
    Billing period of a subscription.

    Older API versions carry current_period_start/end on the subscription
    itself; newer ones only on each subscription item.
    """
    start = subscription.get("current_period_start")
    end = subscription.get("current_period_end")

    if start is None or end is None:
        starts = [it["current_period_start"] for it in _items(subscription) if it.get("current_period_start") is not None]
        ends = [it["current_period_end"] for it in _items(subscription) if it.get("current_period_end") is not None]
        if start is None and starts:
            start = min(starts)
        if end is None and ends:
            end = max(ends)

    return to_datetime(start), to_datetime(end)


def _subscription_price_id(subscription: Mapping) -> Optional[str]:
    items = _items(subscription)
    if not items:
        return None
    return _id_of(items[0].get("price"))


def _invoice_subscription_id(invoice: Mapping) -> Optional[str]:
    subscription_id = _id_of(invoice.get("subscription"))
    if subscription_id:
        return subscription_id
    # 2025+ API versions moved it under parent.subscription_details
    parent = invoice.get("parent") or {}
    details = parent.get("subscription_details") or {}
    return _id_of(details.get("subscription"))


def _invoice_period(invoice: Mapping) -> Tuple[Optional[datetime], Optional[datetime]]:
    """Prefer the subscription line's service period over the invoice's own window."""
    lines = (invoice.get("lines") or {}).get("data") or []
    for line in lines:
        period = line.get("period") or {}
        if period.get("start") is None or period.get("end") is None:
            continue
        parent = line.get("parent") or {}
        if line.get("type") == "subscription" or parent.get("type") == "subscription_item_details":
            return to_datetime(period["start"]), to_datetime(period["end"])
    return to_datetime(invoice.get("period_start")), to_datetime(invoice.get("period_end"))


def _checkout_completed(event_id: Optional[str], session: Mapping) -> CheckoutCompleted:
    return CheckoutCompleted(
        event_id=event_id,
        customer_id=_id_of(session.get("customer")),
        subscription_id=_id_of(session.get("subscription")),
        client_reference_id=session.get("client_reference_id") or None,
        metadata_user_id=_metadata_user_id(session),
    )


def _subscription_changed(event_id: Optional[str], event_type: str, subscription: Mapping) -> SubscriptionChanged:
    period_start, period_end = _subscription_period(subscription)
    return SubscriptionChanged(
        event_id=event_id,
        event_type=event_type,
        subscription_id=subscription.get("id"),
        customer_id=_id_of(subscription.get("customer")),
        status=normalize_status(subscription.get("status")),
        current_period_start=period_start,
        current_period_end=period_end,
        trial_end=to_datetime(subscription.get("trial_end")),
        price_id=_subscription_price_id(subscription),
        metadata_user_id=_metadata_user_id(subscription),
    )


def _subscription_deleted(event_id: Optional[str], subscription: Mapping, created: Optional[datetime] = None) -> SubscriptionDeleted:
    ended_at = to_datetime(subscription.get("ended_at")) or to_datetime(subscription.get("canceled_at"))
    return SubscriptionDeleted(
        event_id=event_id,
        subscription_id=subscription.get("id"),
        customer_id=_id_of(subscription.get("customer")),
        status=normalize_status(subscription.get("status"), default=SubscriptionStatus.CANCELED),
        ended_at=ended_at,
        metadata_user_id=_metadata_user_id(subscription),
        created=created,
    )


def _invoice_paid(event_id: Optional[str], invoice: Mapping, created: Optional[datetime] = None) -> InvoicePaid:
    period_start, period_end = _invoice_period(invoice)
    return InvoicePaid(
        event_id=event_id,
        invoice_id=invoice.get("id"),
        customer_id=_id_of(invoice.get("customer")),
        subscription_id=_invoice_subscription_id(invoice),
        period_start=period_start,
        period_end=period_end,
        billed_at=to_datetime(invoice.get("created")),
        created=created,
    )


def _invoice_payment_failed(event_id: Optional[str], invoice: Mapping) -> InvoicePaymentFailed:
    return InvoicePaymentFailed(
        event_id=event_id,
        invoice_id=invoice.get("id"),
        customer_id=_id_of(invoice.get("customer")),
        subscription_id=_invoice_subscription_id(invoice),
        attempt_count=invoice.get("attempt_count"),
        next_payment_attempt=to_datetime(invoice.get("next_payment_attempt")),
    )


def classify_event(event: Mapping) -> Optional[BillingEvent]:
    """
    Build the typed record for a webhook event.

    Returns None for event types Paperboy does not act on.
    """
    event_type = event.get("type")
    event_id = event.get("id")
    created = to_datetime(event.get("created"))
    obj: Dict[str, Any] = (event.get("data") or {}).get("object") or {}

    if event_type == CHECKOUT_COMPLETED:
        return _checkout_completed(event_id, obj)
    if event_type in (SUBSCRIPTION_CREATED, SUBSCRIPTION_UPDATED):
        return _subscription_changed(event_id, event_type, obj)
    if event_type == SUBSCRIPTION_DELETED:
        return _subscription_deleted(event_id, obj, created)
    if event_type == INVOICE_PAID:
        return _invoice_paid(event_id, obj, created)
    if event_type == INVOICE_PAYMENT_FAILED:
        return _invoice_payment_failed(event_id, obj)
    return None
