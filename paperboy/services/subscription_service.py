from paperboy.db.mongo import SUBSCRIPTIONS
from paperboy.schemas.billing import SubscriptionRecord
from datetime import datetime, timezone
from typing import Any, Dict, List

import logging

logger = logging.getLogger(__name__)


class SubscriptionService:
    """Subscription history, one document per Stripe subscription id."""

    def __init__(self, db):
        self.collection = db[SUBSCRIPTIONS]

    async def upsert(self, subscription_id: str, user_id: str, fields: Dict[str, Any]):
        now = datetime.now(timezone.utc)
        await self.collection.update_one(
            {"stripe_subscription_id": subscription_id},
            {
                "$set": {**fields, "user_id": user_id, "updated_at": now},
                "$setOnInsert": {"stripe_subscription_id": subscription_id, "created_at": now},
            },
            upsert=True
        )
        logger.info(f"Subscription {subscription_id} upserted for user {user_id}")

    async def update(self, subscription_id: str, fields: Dict[str, Any]) -> bool:
        """Set fields on an existing row. Returns False when the row is unknown."""
        result = await self.collection.update_one(
            {"stripe_subscription_id": subscription_id},
            {"$set": {**fields, "updated_at": datetime.now(timezone.utc)}}
        )
        if result.matched_count == 0:
            logger.warning(f"Subscription {subscription_id} not found in history; update skipped")
            return False
        return True

    async def list_for_user(self, user_id: str) -> List[SubscriptionRecord]:
        cursor = self.collection.find({"user_id": user_id}).sort("updated_at", -1)
        records = []
        async for doc in cursor:
            records.append(SubscriptionRecord(**doc))
        return records
