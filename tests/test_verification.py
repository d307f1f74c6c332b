import json
import time

import pytest

from conftest import WEBHOOK_SECRET, sign_payload
from paperboy.billing.verification import verify_event
from paperboy.core.exceptions import WebhookConfigurationError, WebhookVerificationError


def _payload(event_type="invoice.paid"):
    return json.dumps({"id": "evt_1", "type": event_type, "data": {"object": {"id": "in_1"}}}).encode("utf-8")


def test_valid_signature_returns_event():
    payload = _payload()

    event = verify_event(payload, sign_payload(payload), WEBHOOK_SECRET)

    assert event["type"] == "invoice.paid"
    assert event["data"]["object"]["id"] == "in_1"


def test_wrong_secret_is_rejected():
    payload = _payload()

    with pytest.raises(WebhookVerificationError) as exc:
        verify_event(payload, sign_payload(payload, secret="whsec_other"), WEBHOOK_SECRET)
    assert exc.value.status_code == 400


def test_tampered_body_is_rejected():
    payload = _payload()
    header = sign_payload(payload)

    with pytest.raises(WebhookVerificationError):
        verify_event(_payload("invoice.payment_failed"), header, WEBHOOK_SECRET)


def test_stale_timestamp_is_rejected():
    payload = _payload()
    header = sign_payload(payload, timestamp=int(time.time()) - 3600)

    with pytest.raises(WebhookVerificationError):
        verify_event(payload, header, WEBHOOK_SECRET)


def test_strict_mode_requires_signature():
    with pytest.raises(WebhookVerificationError):
        verify_event(_payload(), None, WEBHOOK_SECRET, strict=True)


def test_strict_mode_requires_secret():
    with pytest.raises(WebhookConfigurationError) as exc:
        verify_event(_payload(), "t=1,v1=abc", None, strict=True)
    assert exc.value.status_code == 500


def test_relaxed_mode_trusts_unsigned_body(caplog):
    event = verify_event(_payload(), None, WEBHOOK_SECRET, strict=False)

    assert event["id"] == "evt_1"
    assert "without verification" in caplog.text


def test_relaxed_mode_still_rejects_malformed_json():
    with pytest.raises(WebhookVerificationError):
        verify_event(b"{not json", None, None, strict=False)


def test_event_without_data_object_is_rejected():
    payload = json.dumps({"id": "evt_1", "type": "invoice.paid", "data": {}}).encode("utf-8")

    with pytest.raises(WebhookVerificationError):
        verify_event(payload, sign_payload(payload), WEBHOOK_SECRET)
