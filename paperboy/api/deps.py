from fastapi import Depends

from paperboy.core.config import Settings, get_settings
from paperboy.core.exceptions import BillingError
from paperboy.db.mongo import get_database
from paperboy.services.profile_service import ProfileService
from paperboy.services.stripe_gateway import StripeGateway
from paperboy.services.subscription_service import SubscriptionService


async def get_profile_service(db=Depends(get_database)) -> ProfileService:
    return ProfileService(db)


async def get_subscription_service(db=Depends(get_database)) -> SubscriptionService:
    return SubscriptionService(db)


def get_stripe_gateway(settings: Settings = Depends(get_settings)) -> StripeGateway:
    if not settings.STRIPE_SECRET_KEY:
        raise BillingError("Stripe API key not configured", status_code=500)
    return StripeGateway(
        api_key=settings.STRIPE_SECRET_KEY,
        price_id=settings.STRIPE_PRICE_ID,
        site_url=settings.SITE_URL,
    )
