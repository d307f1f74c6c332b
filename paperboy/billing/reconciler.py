"""
Subscription status reconciler.

Applies classified Stripe events to the profile and subscription history.
Every write sets fields on a keyed document, so a redelivered event leaves
the same end state. Profile writes are the primary effect and propagate
persistence errors; subscription history writes are best-effort.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Dict, Optional

from pymongo.errors import PyMongoError

from paperboy.billing.customers import CustomerResolver
from paperboy.billing.events import (
    BillingEvent,
    CheckoutCompleted,
    InvoicePaid,
    InvoicePaymentFailed,
    SubscriptionChanged,
    SubscriptionDeleted,
)
from paperboy.billing.status import SubscriptionStatus
from paperboy.core.exceptions import CustomerNotFoundError
from paperboy.services.profile_service import ProfileService
from paperboy.services.subscription_service import SubscriptionService

logger = logging.getLogger(__name__)


def _without_none(fields: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in fields.items() if v is not None}


class SubscriptionReconciler:
    def __init__(self, profiles: ProfileService, subscriptions: SubscriptionService):
        self.profiles = profiles
        self.subscriptions = subscriptions
        self.resolver = CustomerResolver(profiles)

    async def apply(self, event: BillingEvent) -> bool:
        """
        Apply one event. Returns True when the user's profile was updated.

        Events that cannot be tied to a user are logged and skipped.
        """
        if isinstance(event, CheckoutCompleted):
            return await self.handle_checkout_completed(event)
        if isinstance(event, SubscriptionChanged):
            return await self.handle_subscription_changed(event)
        if isinstance(event, SubscriptionDeleted):
            return await self.handle_subscription_deleted(event)
        if isinstance(event, InvoicePaid):
            return await self.handle_invoice_paid(event)
        if isinstance(event, InvoicePaymentFailed):
            return await self.handle_invoice_payment_failed(event)
        raise TypeError(f"Unsupported billing event: {type(event).__name__}")

    async def _resolve_user(self, customer_id: Optional[str], metadata_user_id: Optional[str], context: str) -> Optional[str]:
        try:
            return await self.resolver.resolve(customer_id, metadata_user_id)
        except CustomerNotFoundError:
            logger.error(f"Could not find user for Stripe customer {customer_id} during {context}")
            return None

    async def _side_update(self, write: Awaitable, description: str):
        try:
            await write
        except PyMongoError as e:
            logger.error(f"Error updating {description}: {e}")

    async def handle_checkout_completed(self, event: CheckoutCompleted) -> bool:
        user_id = event.client_reference_id
        if not user_id:
            logger.warning("checkout.session.completed missing client_reference_id; falling back to customer lookup")
            user_id = await self._resolve_user(event.customer_id, event.metadata_user_id, "checkout.session.completed")
            if not user_id:
                return False

        logger.info(f"Checkout completed for user {user_id}, Stripe customer {event.customer_id}")
        fields = _without_none({
            "onboarding_complete": True,
            "stripe_customer_id": event.customer_id,
        })
        # The subscription row itself arrives with customer.subscription.created
        return await self.profiles.set_fields(user_id, fields)

    async def handle_subscription_changed(self, event: SubscriptionChanged) -> bool:
        if not event.subscription_id:
            logger.error(f"{event.event_type} without a subscription id; skipping")
            return False

        user_id = await self._resolve_user(event.customer_id, event.metadata_user_id, event.event_type)
        if not user_id:
            return False

        logger.info(f"Subscription {event.event_type} for user {user_id}, status: {event.status.value}")

        await self._side_update(
            self.subscriptions.upsert(event.subscription_id, user_id, {
                "stripe_customer_id": event.customer_id,
                "status": event.status.value,
                "current_period_start": event.current_period_start,
                "current_period_end": event.current_period_end,
                "price_id": event.price_id,
            }),
            f"subscription {event.subscription_id} for user {user_id}"
        )

        fields = {
            "subscription_status": event.status.value,
            "stripe_subscription_id": event.subscription_id,
            "trial_end": event.trial_end,
        }
        if event.customer_id:
            fields["stripe_customer_id"] = event.customer_id
        return await self.profiles.set_fields(user_id, fields)

    async def handle_subscription_deleted(self, event: SubscriptionDeleted) -> bool:
        if not event.subscription_id:
            logger.error("customer.subscription.deleted without a subscription id; skipping")
            return False

        user_id = await self._resolve_user(event.customer_id, event.metadata_user_id, "customer.subscription.deleted")
        if not user_id:
            return False

        logger.info(f"Subscription {event.subscription_id} canceled for user {user_id}")

        await self._side_update(
            self.subscriptions.update(event.subscription_id, {
                "status": event.status.value,
                "current_period_end": event.ended_at or event.created or datetime.now(timezone.utc),
            }),
            f"subscription {event.subscription_id} to canceled for user {user_id}"
        )

        # stripe_subscription_id stays on the profile for history
        return await self.profiles.set_fields(user_id, {
            "subscription_status": SubscriptionStatus.CANCELED.value,
        })

    async def handle_invoice_paid(self, event: InvoicePaid) -> bool:
        if not event.subscription_id:
            logger.info(f"Invoice {event.invoice_id} paid without a subscription; ignoring")
            return False

        user_id = await self._resolve_user(event.customer_id, None, "invoice.paid")
        if not user_id:
            return False

        logger.info(f"Invoice paid for user {user_id}, Stripe subscription {event.subscription_id}")

        await self._side_update(
            self.subscriptions.update(event.subscription_id, _without_none({
                "status": SubscriptionStatus.ACTIVE.value,
                "current_period_start": event.period_start,
                "current_period_end": event.period_end,
                "last_billed_at": event.billed_at or event.created or datetime.now(timezone.utc),
            })),
            f"subscription {event.subscription_id} on invoice.paid for user {user_id}"
        )

        return await self.profiles.set_fields(user_id, {
            "subscription_status": SubscriptionStatus.ACTIVE.value,
        })

    async def handle_invoice_payment_failed(self, event: InvoicePaymentFailed) -> bool:
        if not event.subscription_id:
            logger.info(f"Invoice {event.invoice_id} payment failed without a subscription; ignoring")
            return False

        user_id = await self._resolve_user(event.customer_id, None, "invoice.payment_failed")
        if not user_id:
            return False

        logger.info(
            f"Invoice payment failed for user {user_id}, Stripe subscription {event.subscription_id}, "
            f"attempts: {event.attempt_count}, next attempt: {event.next_payment_attempt}"
        )

        await self._side_update(
            self.subscriptions.update(event.subscription_id, {
                "status": SubscriptionStatus.PAST_DUE.value,
            }),
            f"subscription {event.subscription_id} on invoice.payment_failed for user {user_id}"
        )

        return await self.profiles.set_fields(user_id, {
            "subscription_status": SubscriptionStatus.PAST_DUE.value,
        })
