import stripe
from typing import Optional
import logging

from paperboy.billing.events import METADATA_USER_ID

logger = logging.getLogger(__name__)


class StripeGateway:
    """
    Outbound Stripe calls used by the billing endpoints.

    The API key travels with each request instead of being set on the
    stripe module, so several gateways (or a fake one) can coexist.
    """

    def __init__(self, api_key: str, price_id: Optional[str], site_url: str):
        self.api_key = api_key
        self.price_id = price_id
        self.site_url = site_url.rstrip("/")

    @property
    def success_url(self) -> str:
        # Stripe substitutes the placeholder with the real session id
        return f"{self.site_url}/payment-success?session_id={{CHECKOUT_SESSION_ID}}"

    @property
    def cancel_url(self) -> str:
        return f"{self.site_url}/payment-canceled"

    @property
    def portal_return_url(self) -> str:
        return f"{self.site_url}/dashboard"

    def create_customer(self, user_id: str, email: Optional[str]) -> str:
        customer = stripe.Customer.create(
            api_key=self.api_key,
            email=email,
            metadata={METADATA_USER_ID: user_id},  # Link Stripe customer to our user
        )
        logger.info(f"Created Stripe customer {customer.id} for user {user_id}")
        return customer.id

    def create_checkout_session(self, user_id: str, customer_id: str):
        if not self.price_id:
            raise RuntimeError("Stripe price ID not configured")
        return stripe.checkout.Session.create(
            api_key=self.api_key,
            payment_method_types=["card"],
            mode="subscription",
            customer=customer_id,
            line_items=[
                {
                    "price": self.price_id,
                    "quantity": 1,
                },
            ],
            success_url=self.success_url,
            cancel_url=self.cancel_url,
            client_reference_id=user_id,  # Identifies the user in checkout.session.completed
            subscription_data={
                "metadata": {METADATA_USER_ID: user_id},
            },
        )

    def create_portal_session(self, customer_id: str):
        return stripe.billing_portal.Session.create(
            api_key=self.api_key,
            customer=customer_id,
            return_url=self.portal_return_url,
        )
