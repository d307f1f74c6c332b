from fastapi import APIRouter, Depends
from paperboy.api.deps import get_profile_service
from paperboy.api.v1.auth import get_current_profile, get_current_user
from paperboy.billing.status import is_active
from paperboy.schemas.profile import CurrentUser, Profile, ProfileUpdate, SubscriptionState
from paperboy.services.profile_service import ProfileService


router = APIRouter(prefix="/profile", tags=["Profile"])


@router.get("", response_model=Profile)
async def read_profile(profile: Profile = Depends(get_current_profile)):
    """Get the current user's profile."""
    return profile


@router.put("", response_model=Profile)
async def update_profile(
    update: ProfileUpdate,
    user: CurrentUser = Depends(get_current_user),
    profiles: ProfileService = Depends(get_profile_service),
):
    """Save the onboarding / account form (name, title, goals)."""
    return await profiles.update_details(user.uid, update)


@router.get("/subscription", response_model=SubscriptionState)
async def read_subscription_state(profile: Profile = Depends(get_current_profile)):
    """
    Subscription summary for the current user.

    The payment-success page polls this until the webhook has landed.
    """
    status = profile.subscription_status
    return SubscriptionState(
        subscription_status=status,
        is_active=is_active(status.value if status else None),
        trial_end=profile.trial_end,
    )
