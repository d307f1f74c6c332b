from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ASCENDING
from paperboy.core.config import settings
import logging

logger = logging.getLogger(__name__)

PROFILES = "profiles"
SUBSCRIPTIONS = "subscriptions"


class MongoDB:
    client: AsyncIOMotorClient = None
    db = None

    async def connect_to_database(self):
        logger.info("Connecting to MongoDB...")
        try:
            self.client = AsyncIOMotorClient(settings.MONGO_URI, tz_aware=True)
            self.db = self.client[settings.MONGO_DB_NAME]
            logger.info("Connected to MongoDB.")
        except Exception as e:
            logger.error(f"Could not connect to MongoDB: {e}")
            raise e
        await ensure_indexes(self.db)

    async def close_database_connection(self):
        logger.info("Closing MongoDB connection...")
        if self.client:
            self.client.close()
            logger.info("MongoDB connection closed.")


async def ensure_indexes(db):
    """Create the keys the upserts rely on."""
    await db[PROFILES].create_index([("user_id", ASCENDING)], unique=True)
    await db[PROFILES].create_index([("stripe_customer_id", ASCENDING)])
    await db[SUBSCRIPTIONS].create_index([("stripe_subscription_id", ASCENDING)], unique=True)
    await db[SUBSCRIPTIONS].create_index([("user_id", ASCENDING)])
    logger.info("MongoDB indexes ensured.")


mongodb = MongoDB()

async def get_database():
    return mongodb.db
