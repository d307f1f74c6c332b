from fastapi import APIRouter, Depends
from paperboy.api.deps import get_profile_service
from paperboy.core.config import Settings, get_settings
from paperboy.schemas.profile import UserCount
from paperboy.services.profile_service import ProfileService

router = APIRouter(prefix="/stats", tags=["Stats"])


@router.get("/user-count", response_model=UserCount)
async def user_count(
    profiles: ProfileService = Depends(get_profile_service),
    settings: Settings = Depends(get_settings),
):
    """Public subscriber counter shown on the landing page."""
    return UserCount(count=settings.USER_COUNT_BASE + await profiles.count_profiles())
