from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

from paperboy.billing.status import SubscriptionStatus


class CurrentUser(BaseModel):
    """Identity extracted from a verified ID token."""
    uid: str
    email: Optional[str] = None


class Profile(BaseModel):
    """Per-user profile as stored in the profiles collection."""
    user_id: str
    name: Optional[str] = None
    title: Optional[str] = None
    goals: Optional[str] = None
    email: Optional[str] = None
    subscription_status: Optional[SubscriptionStatus] = None
    stripe_customer_id: Optional[str] = None
    stripe_subscription_id: Optional[str] = None
    trial_end: Optional[datetime] = None
    onboarding_complete: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        extra = "ignore"


class ProfileUpdate(BaseModel):
    """Fields editable from the onboarding form and the account page."""
    name: Optional[str] = Field(default=None, max_length=200)
    title: Optional[str] = Field(default=None, max_length=200, description="Career or job title")
    goals: Optional[str] = Field(default=None, max_length=4000)


class SubscriptionState(BaseModel):
    """Subscription summary polled by the payment-success page."""
    subscription_status: Optional[SubscriptionStatus] = None
    is_active: bool = False
    trial_end: Optional[datetime] = None


class UserCount(BaseModel):
    count: int
