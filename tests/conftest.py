"""
Shared fixtures.

The database is an in-memory stand-in for the handful of motor collection
methods the services call; Stripe is replaced by a recording gateway.
"""
import asyncio
import copy
import hashlib
import hmac
import time
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from pymongo.errors import OperationFailure

from main import app
from paperboy.api.deps import get_stripe_gateway
from paperboy.core.config import Settings, get_settings
from paperboy.db.mongo import PROFILES, SUBSCRIPTIONS, get_database
from paperboy.services.profile_service import ProfileService
from paperboy.services.subscription_service import SubscriptionService

WEBHOOK_SECRET = "whsec_test_secret"


def _matches(doc, query):
    return all(doc.get(key) == value for key, value in query.items())


class FakeCursor:
    def __init__(self, docs):
        self._docs = docs

    def sort(self, key, direction=1):
        self._docs.sort(key=lambda d: d.get(key) or 0, reverse=direction < 0)
        return self

    def __aiter__(self):
        self._iter = iter(self._docs)
        return self

    async def __anext__(self):
        try:
            return next(self._iter)
        except StopIteration:
            raise StopAsyncIteration


class FakeCollection:
    def __init__(self):
        self.docs = []
        self.fail_writes = False

    async def create_index(self, keys, **kwargs):
        return "_".join(k for k, _ in keys)

    async def find_one(self, query, projection=None):
        for doc in self.docs:
            if _matches(doc, query):
                return copy.deepcopy(doc)
        return None

    def find(self, query):
        return FakeCursor([copy.deepcopy(d) for d in self.docs if _matches(d, query)])

    async def count_documents(self, query):
        return len([d for d in self.docs if _matches(d, query)])

    async def update_one(self, query, update, upsert=False):
        if self.fail_writes:
            raise OperationFailure("simulated write failure")

        for doc in self.docs:
            if _matches(doc, query):
                before = copy.deepcopy(doc)
                doc.update(update.get("$set", {}))
                return SimpleNamespace(matched_count=1, modified_count=int(before != doc), upserted_id=None)

        if not upsert:
            return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=None)

        doc = dict(query)
        doc.update(update.get("$setOnInsert", {}))
        doc.update(update.get("$set", {}))
        doc["_id"] = f"oid_{len(self.docs) + 1}"
        self.docs.append(doc)
        return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=doc["_id"])

    def snapshot(self, *ignored):
        """Documents without bookkeeping fields, for state comparisons."""
        drop = {"_id", "updated_at", *ignored}
        return [{k: v for k, v in d.items() if k not in drop} for d in self.docs]


class FakeDatabase:
    def __init__(self):
        self._collections = {}

    def __getitem__(self, name):
        return self._collections.setdefault(name, FakeCollection())

    @property
    def profiles(self):
        return self[PROFILES]

    @property
    def subscriptions(self):
        return self[SUBSCRIPTIONS]


class FakeStripeGateway:
    """Records calls instead of talking to Stripe."""

    def __init__(self):
        self.customers_created = []
        self.checkout_sessions = []
        self.portal_sessions = []
        self.calls_on_event_loop = []
        self.error = None
        self.on_create_customer = None

    def _record_call(self, name):
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return
        self.calls_on_event_loop.append(name)

    def create_customer(self, user_id, email):
        self._record_call("create_customer")
        if self.error:
            raise self.error
        customer_id = f"cus_new_{len(self.customers_created) + 1}"
        self.customers_created.append((user_id, email, customer_id))
        if self.on_create_customer:
            self.on_create_customer(user_id, customer_id)
        return customer_id

    def create_checkout_session(self, user_id, customer_id):
        self._record_call("create_checkout_session")
        if self.error:
            raise self.error
        self.checkout_sessions.append((user_id, customer_id))
        return SimpleNamespace(id="cs_test_123", url="https://checkout.stripe.test/cs_test_123")

    def create_portal_session(self, customer_id):
        self._record_call("create_portal_session")
        if self.error:
            raise self.error
        self.portal_sessions.append(customer_id)
        return SimpleNamespace(id="bps_test_123", url="https://billing.stripe.test/p/session_123")


def sign_payload(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: int = None) -> str:
    """Build a Stripe-Signature header the way Stripe does."""
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.{payload.decode('utf-8')}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


@pytest.fixture
def db():
    return FakeDatabase()


@pytest.fixture
def profiles(db):
    return ProfileService(db)


@pytest.fixture
def subscriptions(db):
    return SubscriptionService(db)


@pytest.fixture
def seed_profile(db):
    def _seed(user_id="user_1", **fields):
        doc = {
            "user_id": user_id,
            "email": f"{user_id}@example.com",
            "onboarding_complete": False,
            "subscription_status": None,
            "stripe_customer_id": None,
            "stripe_subscription_id": None,
            "trial_end": None,
        }
        doc.update(fields)
        db.profiles.docs.append(doc)
        return doc
    return _seed


@pytest.fixture
def make_event():
    counter = {"n": 0}

    def _make(event_type, obj, event_id=None):
        counter["n"] += 1
        return {
            "id": event_id or f"evt_{counter['n']}",
            "object": "event",
            "type": event_type,
            "created": 1700000000,
            "data": {"object": obj},
        }
    return _make


@pytest.fixture
def test_settings():
    return Settings(
        _env_file=None,
        TEST_MODE=True,
        STRIPE_SECRET_KEY="sk_test_dummy",
        STRIPE_WEBHOOK_SECRET=WEBHOOK_SECRET,
        STRIPE_PRICE_ID="price_dummy",
        SITE_URL="http://localhost:8080",
    )


@pytest.fixture
def gateway():
    return FakeStripeGateway()


@pytest.fixture
def client(db, test_settings, gateway):
    app.dependency_overrides[get_database] = lambda: db
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_stripe_gateway] = lambda: gateway
    yield TestClient(app)
    app.dependency_overrides.clear()
