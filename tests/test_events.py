from datetime import datetime, timezone

from paperboy.billing.events import (
    CheckoutCompleted,
    InvoicePaid,
    InvoicePaymentFailed,
    SubscriptionChanged,
    SubscriptionDeleted,
    classify_event,
    to_datetime,
)
from paperboy.billing.status import SubscriptionStatus, is_active, normalize_status


def _utc(ts):
    return datetime.fromtimestamp(ts, tz=timezone.utc)


def test_checkout_completed_extracts_client_reference(make_event):
    event = make_event("checkout.session.completed", {
        "id": "cs_1",
        "customer": "cus_1",
        "subscription": "sub_1",
        "client_reference_id": "user_1",
        "metadata": {},
    })

    record = classify_event(event)

    assert isinstance(record, CheckoutCompleted)
    assert record.client_reference_id == "user_1"
    assert record.customer_id == "cus_1"
    assert record.subscription_id == "sub_1"
    assert record.metadata_user_id is None


def test_subscription_updated_with_top_level_period(make_event):
    event = make_event("customer.subscription.updated", {
        "id": "sub_1",
        "customer": "cus_1",
        "status": "trialing",
        "current_period_start": 1700000000,
        "current_period_end": 1702592000,
        "trial_end": 1701000000,
        "metadata": {"user_id": "user_1"},
        "items": {"data": [{"price": {"id": "price_1"}}]},
    })

    record = classify_event(event)

    assert isinstance(record, SubscriptionChanged)
    assert record.event_type == "customer.subscription.updated"
    assert record.status is SubscriptionStatus.TRIALING
    assert record.current_period_start == _utc(1700000000)
    assert record.current_period_end == _utc(1702592000)
    assert record.trial_end == _utc(1701000000)
    assert record.price_id == "price_1"
    assert record.metadata_user_id == "user_1"


def test_subscription_period_read_from_items_on_newer_api(make_event):
    event = make_event("customer.subscription.created", {
        "id": "sub_1",
        "customer": {"id": "cus_1", "object": "customer"},
        "status": "active",
        "trial_end": None,
        "items": {"data": [
            {"price": {"id": "price_1"}, "current_period_start": 1700000000, "current_period_end": 1702592000},
        ]},
    })

    record = classify_event(event)

    assert record.customer_id == "cus_1"
    assert record.current_period_start == _utc(1700000000)
    assert record.current_period_end == _utc(1702592000)
    assert record.trial_end is None


def test_subscription_deleted_prefers_ended_at(make_event):
    event = make_event("customer.subscription.deleted", {
        "id": "sub_1",
        "customer": "cus_1",
        "status": "canceled",
        "ended_at": 1705000000,
        "canceled_at": 1704000000,
    })

    record = classify_event(event)

    assert isinstance(record, SubscriptionDeleted)
    assert record.ended_at == _utc(1705000000)
    assert record.status is SubscriptionStatus.CANCELED


def test_subscription_deleted_falls_back_to_canceled_at(make_event):
    event = make_event("customer.subscription.deleted", {
        "id": "sub_1", "customer": "cus_1", "status": "canceled", "ended_at": None, "canceled_at": 1704000000,
    })

    assert classify_event(event).ended_at == _utc(1704000000)


def test_subscription_deleted_carries_event_time(make_event):
    event = make_event("customer.subscription.deleted", {
        "id": "sub_1", "customer": "cus_1", "status": "canceled", "ended_at": None, "canceled_at": None,
    })

    record = classify_event(event)

    assert record.ended_at is None
    assert record.created == _utc(1700000000)


def test_invoice_paid_uses_subscription_line_period(make_event):
    event = make_event("invoice.paid", {
        "id": "in_1",
        "customer": "cus_1",
        "subscription": "sub_1",
        "created": 1702592100,
        "period_start": 1700000000,
        "period_end": 1702592000,
        "lines": {"data": [
            {"type": "subscription", "period": {"start": 1702592000, "end": 1705270400}},
        ]},
    })

    record = classify_event(event)

    assert isinstance(record, InvoicePaid)
    assert record.subscription_id == "sub_1"
    assert record.period_start == _utc(1702592000)
    assert record.period_end == _utc(1705270400)
    assert record.billed_at == _utc(1702592100)


def test_invoice_subscription_id_from_parent_details(make_event):
    event = make_event("invoice.payment_failed", {
        "id": "in_2",
        "customer": "cus_1",
        "attempt_count": 2,
        "next_payment_attempt": 1703000000,
        "parent": {"type": "subscription_details", "subscription_details": {"subscription": "sub_9"}},
    })

    record = classify_event(event)

    assert isinstance(record, InvoicePaymentFailed)
    assert record.subscription_id == "sub_9"
    assert record.attempt_count == 2
    assert record.next_payment_attempt == _utc(1703000000)


def test_unrecognised_event_type_is_ignored(make_event):
    assert classify_event(make_event("customer.created", {"id": "cus_1"})) is None


def test_to_datetime_handles_missing_and_bad_values():
    assert to_datetime(None) is None
    assert to_datetime("not-a-number") is None
    assert to_datetime("1700000000") == _utc(1700000000)


def test_status_normalization():
    assert normalize_status("past_due") is SubscriptionStatus.PAST_DUE
    assert normalize_status("ACTIVE") is SubscriptionStatus.ACTIVE
    assert normalize_status("ended") is SubscriptionStatus.INACTIVE
    assert normalize_status(None, default=SubscriptionStatus.CANCELED) is SubscriptionStatus.CANCELED
    assert is_active("trialing")
    assert not is_active("canceled")
    assert not is_active(None)
