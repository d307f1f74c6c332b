import json
import logging
from typing import Any, Dict, Optional

import stripe

from paperboy.core.exceptions import WebhookConfigurationError, WebhookVerificationError

logger = logging.getLogger(__name__)


def _parse_event(payload: bytes) -> Dict[str, Any]:
    try:
        event = json.loads(payload)
    except (ValueError, UnicodeDecodeError):
        raise WebhookVerificationError("Invalid payload")

    if not isinstance(event, dict) or not isinstance(event.get("type"), str):
        raise WebhookVerificationError("Invalid payload: missing event type")
    data = event.get("data")
    if not isinstance(data, dict) or not isinstance(data.get("object"), dict):
        raise WebhookVerificationError("Invalid payload: missing event data")
    return event


def verify_event(
    payload: bytes,
    signature: Optional[str],
    secret: Optional[str],
    strict: bool = True,
) -> Dict[str, Any]:
    """
    Authenticate a Stripe webhook body and return the event as a dict.

    With a secret and a signature the body is checked with Stripe's signing
    scheme. Without either, strict mode rejects the request and relaxed mode
    logs a warning and trusts the body (local development only).
    """
    if secret and signature:
        try:
            body = payload.decode("utf-8") if hasattr(payload, "decode") else payload
            stripe.WebhookSignature.verify_header(
                body, signature, secret, tolerance=stripe.Webhook.DEFAULT_TOLERANCE
            )
        except UnicodeDecodeError:
            raise WebhookVerificationError("Invalid payload")
        except stripe.SignatureVerificationError as e:
            logger.error(f"Webhook signature verification failed: {e}")
            raise WebhookVerificationError("Invalid signature")
        return _parse_event(payload)

    if strict:
        if not secret:
            logger.error("Webhook secret is not configured; rejecting webhook")
            raise WebhookConfigurationError()
        raise WebhookVerificationError("Missing Stripe-Signature header")

    if not signature:
        logger.warning("Missing Stripe signature. Proceeding without verification (DEV ONLY).")
    else:
        logger.warning("Webhook secret is missing or placeholder. Proceeding without verification (DEV ONLY).")
    return _parse_event(payload)
