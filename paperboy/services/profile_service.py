from paperboy.db.mongo import PROFILES
from paperboy.schemas.profile import Profile, ProfileUpdate
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import logging

logger = logging.getLogger(__name__)


class ProfileService:
    """Reads and keyed writes against the profiles collection."""

    def __init__(self, db):
        self.collection = db[PROFILES]

    async def get_profile(self, user_id: str) -> Optional[Profile]:
        doc = await self.collection.find_one({"user_id": user_id})
        if not doc:
            return None
        return Profile(**doc)

    async def ensure_profile(self, user_id: str, email: Optional[str] = None) -> Profile:
        """Create the profile on first sight of a user; existing fields are left alone."""
        now = datetime.now(timezone.utc)
        result = await self.collection.update_one(
            {"user_id": user_id},
            {"$setOnInsert": {
                "user_id": user_id,
                "email": email,
                "onboarding_complete": False,
                "created_at": now,
                "updated_at": now,
            }},
            upsert=True
        )
        if result.upserted_id is not None:
            logger.info(f"Created profile for user {user_id}")
        return await self.get_profile(user_id)

    async def update_details(self, user_id: str, update: ProfileUpdate) -> Profile:
        """Upsert the onboarding/account form fields."""
        fields = update.model_dump(exclude_unset=True)
        now = datetime.now(timezone.utc)
        await self.collection.update_one(
            {"user_id": user_id},
            {
                "$set": {**fields, "updated_at": now},
                "$setOnInsert": {"user_id": user_id, "onboarding_complete": False, "created_at": now},
            },
            upsert=True
        )
        logger.info(f"Updated profile details for user {user_id}")
        return await self.get_profile(user_id)

    async def set_fields(self, user_id: str, fields: Dict[str, Any]) -> bool:
        """
        Set fields on an existing profile.

        Returns False when no profile matched; profiles are never created here.
        """
        result = await self.collection.update_one(
            {"user_id": user_id},
            {"$set": {**fields, "updated_at": datetime.now(timezone.utc)}}
        )
        if result.matched_count == 0:
            logger.warning(f"No profile found for user {user_id}; update skipped")
            return False
        return True

    async def claim_customer_id(self, user_id: str, customer_id: str) -> Optional[str]:
        """
        Store a new Stripe customer id unless the profile already has one.

        Returns the id that ended up on the profile. When a concurrent request
        stored its customer first, that one is returned and ours is left unused.
        """
        result = await self.collection.update_one(
            {"user_id": user_id, "stripe_customer_id": None},
            {"$set": {"stripe_customer_id": customer_id, "updated_at": datetime.now(timezone.utc)}}
        )
        if result.matched_count:
            return customer_id

        profile = await self.get_profile(user_id)
        stored = profile.stripe_customer_id if profile else None
        if stored:
            logger.warning(
                f"User {user_id} already has Stripe customer {stored}; "
                f"customer {customer_id} is left unused"
            )
        return stored

    async def find_user_id_by_customer(self, customer_id: str) -> Optional[str]:
        doc = await self.collection.find_one(
            {"stripe_customer_id": customer_id},
            {"user_id": 1}
        )
        if not doc:
            return None
        return doc.get("user_id")

    async def count_profiles(self) -> int:
        return await self.collection.count_documents({})
