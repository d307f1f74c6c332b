from pydantic import BaseModel
from typing import Optional
from datetime import datetime


class CheckoutSessionResponse(BaseModel):
    """Response model for checkout session creation."""
    sessionId: str
    url: str


class PortalSessionResponse(BaseModel):
    """Response model for customer portal session creation."""
    url: str


class WebhookAck(BaseModel):
    received: bool = True


class SubscriptionRecord(BaseModel):
    """One row of the subscription history collection."""
    user_id: str
    stripe_subscription_id: str
    stripe_customer_id: Optional[str] = None
    status: Optional[str] = None
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    price_id: Optional[str] = None
    last_billed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        extra = "ignore"
