from fastapi import APIRouter, Depends, Header, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials
from typing import List, Optional
from pymongo.errors import PyMongoError
import asyncio
import stripe
import logging

from paperboy.api.deps import get_profile_service, get_stripe_gateway, get_subscription_service
from paperboy.api.v1.auth import get_current_user, security
from paperboy.billing.events import classify_event
from paperboy.billing.reconciler import SubscriptionReconciler
from paperboy.billing.verification import verify_event
from paperboy.core.config import Settings, get_settings
from paperboy.core.exceptions import BillingCustomerNotFoundError, BillingError
from paperboy.schemas.billing import (
    CheckoutSessionResponse,
    PortalSessionResponse,
    SubscriptionRecord,
    WebhookAck,
)
from paperboy.schemas.profile import CurrentUser
from paperboy.services.profile_service import ProfileService
from paperboy.services.stripe_gateway import StripeGateway
from paperboy.services.subscription_service import SubscriptionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/billing", tags=["Billing"])


async def get_billing_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    x_test_user: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
) -> CurrentUser:
    """Same as get_current_user, but failures are rendered as {"error": ...}."""
    try:
        return await get_current_user(credentials, x_test_user, settings)
    except HTTPException as e:
        raise BillingError(f"Authentication error: {e.detail}", status_code=e.status_code)


def _stripe_message(e: stripe.StripeError) -> str:
    return e.user_message or str(e)


@router.post("/checkout-session", response_model=CheckoutSessionResponse)
async def create_checkout_session(
    user: CurrentUser = Depends(get_billing_user),
    profiles: ProfileService = Depends(get_profile_service),
    gateway: StripeGateway = Depends(get_stripe_gateway),
):
    """
    Start a subscription checkout.

    Creates the Stripe customer on the first call and stores its id on the
    profile before the session is created, so retries reuse the customer.
    Stripe calls are blocking and run in a worker thread.
    """
    try:
        profile = await profiles.ensure_profile(user.uid, user.email)
    except PyMongoError as e:
        logger.error(f"Profile fetch error for user {user.uid}: {e}")
        raise BillingError("Could not fetch user profile.")

    try:
        customer_id = profile.stripe_customer_id
        if not customer_id:
            new_customer_id = await asyncio.to_thread(gateway.create_customer, user.uid, user.email or profile.email)
            customer_id = await profiles.claim_customer_id(user.uid, new_customer_id)
            if not customer_id:
                raise BillingError("Could not save Stripe customer for this user.")

        session = await asyncio.to_thread(gateway.create_checkout_session, user.uid, customer_id)
    except stripe.StripeError as e:
        logger.error(f"Error creating checkout session for user {user.uid}: {e}")
        raise BillingError(_stripe_message(e))
    except PyMongoError as e:
        logger.error(f"Profile update error for user {user.uid}: {e}")
        raise BillingError("Could not save Stripe customer for this user.")
    except RuntimeError as e:
        logger.error(f"Checkout misconfigured: {e}")
        raise BillingError(str(e))

    logger.info(f"Created checkout session {session.id} for user {user.uid}")
    return CheckoutSessionResponse(sessionId=session.id, url=session.url)


@router.post("/portal-session", response_model=PortalSessionResponse)
async def create_portal_session(
    user: CurrentUser = Depends(get_billing_user),
    profiles: ProfileService = Depends(get_profile_service),
    gateway: StripeGateway = Depends(get_stripe_gateway),
):
    """Open the Stripe customer portal for the current user."""
    try:
        profile = await profiles.get_profile(user.uid)
    except PyMongoError as e:
        logger.error(f"Profile fetch error for user {user.uid}: {e}")
        raise BillingError("Could not fetch user profile.", status_code=500)

    if not profile or not profile.stripe_customer_id:
        logger.error(f"No Stripe customer on file for user {user.uid}")
        raise BillingCustomerNotFoundError()

    try:
        portal_session = await asyncio.to_thread(gateway.create_portal_session, profile.stripe_customer_id)
    except stripe.StripeError as e:
        logger.error(f"Error creating customer portal session for user {user.uid}: {e}")
        raise BillingError(_stripe_message(e), status_code=500)

    return PortalSessionResponse(url=portal_session.url)


@router.get("/subscriptions", response_model=List[SubscriptionRecord])
async def list_subscriptions(
    user: CurrentUser = Depends(get_current_user),
    subscriptions: SubscriptionService = Depends(get_subscription_service),
):
    """Subscription history for the current user, newest first."""
    return await subscriptions.list_for_user(user.uid)


@router.post("/webhook", response_model=WebhookAck, include_in_schema=False)
async def stripe_webhook(
    request: Request,
    settings: Settings = Depends(get_settings),
    profiles: ProfileService = Depends(get_profile_service),
    subscriptions: SubscriptionService = Depends(get_subscription_service),
):
    """
    Handle Stripe webhook events.

    Unknown event types and events that cannot be tied to a user are
    acknowledged with 200 so Stripe stops retrying them.
    """
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature")

    event = verify_event(
        payload,
        sig_header,
        settings.webhook_secret,
        strict=settings.STRIPE_STRICT_VERIFICATION,
    )
    event_type = event["type"]
    logger.info(f"Processing event type: {event_type}")

    try:
        billing_event = classify_event(event)
    except (AttributeError, TypeError, ValueError, KeyError) as e:
        logger.error(f"Malformed {event_type} payload: {e}")
        raise HTTPException(status_code=400, detail="Invalid payload")

    if billing_event is None:
        logger.info(f"Unhandled event type: {event_type}")
        return WebhookAck()

    try:
        await SubscriptionReconciler(profiles, subscriptions).apply(billing_event)
    except Exception as e:
        logger.error(f"Error processing webhook event {event_type}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Webhook handler error: {e}")

    return WebhookAck()
