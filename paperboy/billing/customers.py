import logging
from typing import Optional

from paperboy.core.exceptions import CustomerNotFoundError
from paperboy.services.profile_service import ProfileService

logger = logging.getLogger(__name__)


class CustomerResolver:
    """Maps a Stripe customer to the Paperboy user that owns it."""

    def __init__(self, profiles: ProfileService):
        self.profiles = profiles

    async def resolve(self, customer_id: Optional[str], metadata_user_id: Optional[str] = None) -> str:
        if metadata_user_id:
            return metadata_user_id

        if customer_id:
            user_id = await self.profiles.find_user_id_by_customer(customer_id)
            if user_id:
                return user_id

        raise CustomerNotFoundError(customer_id)
