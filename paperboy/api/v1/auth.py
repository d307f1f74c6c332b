from fastapi import APIRouter, Depends, Header
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional
import firebase_admin
from firebase_admin import auth, credentials
from paperboy.core.config import Settings, get_settings
from paperboy.core.exceptions import AuthenticationError, AuthServiceUnavailableError
from paperboy.schemas.profile import CurrentUser, Profile
from paperboy.api.deps import get_profile_service
from paperboy.services.profile_service import ProfileService
import json
import logging
import os

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


def init_firebase(settings: Settings) -> bool:
    """Initialize Firebase Admin SDK if not already initialized."""
    if firebase_admin._apps:
        return True

    # 1. Try loading from JSON string in environment variable (Best for Cloud)
    if settings.FIREBASE_CREDENTIALS_JSON:
        try:
            creds_dict = json.loads(settings.FIREBASE_CREDENTIALS_JSON)
            cred = credentials.Certificate(creds_dict)
            firebase_admin.initialize_app(cred)
            logger.info("Firebase Admin SDK initialized from FIREBASE_CREDENTIALS_JSON")
            return True
        except Exception as e:
            logger.error(f"Failed to initialize Firebase from JSON env var: {e}")

    # 2. Fallback to file path
    possible_paths = [
        settings.FIREBASE_CREDENTIALS_PATH,
        os.path.join(os.getcwd(), settings.FIREBASE_CREDENTIALS_PATH),
    ]

    for path in possible_paths:
        if os.path.exists(path):
            try:
                cred = credentials.Certificate(path)
                firebase_admin.initialize_app(cred)
                logger.info(f"Firebase Admin SDK initialized with: {path}")
                return True
            except Exception as e:
                logger.error(f"Failed to initialize Firebase with {path}: {e}")

    logger.warning(f"Firebase credentials not found. Tried env var and paths: {possible_paths}")
    return False


security = HTTPBearer(auto_error=False)

# For testing without Firebase - set TEST_MODE=true in .env
TEST_USER_ID = "test_user_123"


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    x_test_user: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
) -> CurrentUser:
    """
    Verify the Firebase ID token from the Authorization header.

    For testing: Set TEST_MODE=true in .env and use X-Test-User header.
    """
    if settings.TEST_MODE:
        return CurrentUser(uid=x_test_user or TEST_USER_ID, email=None)

    if not firebase_admin._apps:
        logger.error("Firebase Admin SDK not initialized")
        raise AuthServiceUnavailableError()

    if not credentials:
        raise AuthenticationError("Missing authorization header")

    try:
        decoded_token = auth.verify_id_token(credentials.credentials)
    except auth.ExpiredIdTokenError:
        raise AuthenticationError("Token has expired")
    except auth.InvalidIdTokenError as e:
        logger.error(f"Invalid token: {e}")
        raise AuthenticationError("Invalid authentication token")
    except Exception as e:
        logger.error(f"Authentication error: {e}")
        raise AuthenticationError("Could not validate credentials")

    logger.info(f"Authenticated user: {decoded_token['uid']}")
    return CurrentUser(uid=decoded_token["uid"], email=decoded_token.get("email"))


async def get_current_profile(
    user: CurrentUser = Depends(get_current_user),
    profiles: ProfileService = Depends(get_profile_service),
) -> Profile:
    """The caller's profile, created on first authenticated request."""
    return await profiles.ensure_profile(user.uid, user.email)


@router.get("/verify")
async def verify_token(user: CurrentUser = Depends(get_current_user)):
    """Verify the current user's token."""
    return {
        "valid": True,
        "user_id": user.uid
    }


@router.get("/me", response_model=CurrentUser)
async def get_me(user: CurrentUser = Depends(get_current_user)):
    """Get current user identity."""
    return user
