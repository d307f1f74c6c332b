from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import List, Optional


# Value shipped in the example .env; treated as "no secret configured"
PLACEHOLDER_WEBHOOK_SECRET = "whsec_xxxxxxxxxxxxxxxxxxxxx"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Configuration
    API_V1_PREFIX: str = "/api/v1"
    PROJECT_NAME: str = "Paperboy"

    # Frontend Configuration
    SITE_URL: str = "http://localhost:8080"  # Used to build Stripe redirect URLs
    CORS_ORIGINS: List[str] = [
        "http://localhost:8080",
        "http://127.0.0.1:8080",
    ]

    # MongoDB Configuration
    MONGO_URI: str = "mongodb://localhost:27017"
    MONGO_DB_NAME: str = "paperboy"

    # Firebase Configuration
    FIREBASE_CREDENTIALS_JSON: Optional[str] = None
    FIREBASE_CREDENTIALS_PATH: str = "paperboy-firebase-credentials.json"

    # Stripe Configuration
    STRIPE_SECRET_KEY: Optional[str] = None
    STRIPE_WEBHOOK_SECRET: Optional[str] = None
    STRIPE_PRICE_ID: Optional[str] = None
    # When false, webhooks without a secret or signature are accepted unverified (DEV ONLY)
    STRIPE_STRICT_VERIFICATION: bool = True

    # Landing page subscriber counter starts from this number
    USER_COUNT_BASE: int = 10

    # Testing Configuration
    TEST_MODE: bool = False

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignore extra env variables

    @property
    def webhook_secret(self) -> Optional[str]:
        """Configured webhook signing secret, or None when unset or still the placeholder."""
        if not self.STRIPE_WEBHOOK_SECRET or self.STRIPE_WEBHOOK_SECRET == PLACEHOLDER_WEBHOOK_SECRET:
            return None
        return self.STRIPE_WEBHOOK_SECRET


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
