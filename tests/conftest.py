"""
Pytest configuration for the license server test suite.

Configuration is read from the environment when `config` is imported, so
the test values are set before any application import.
"""

import json
import os
from datetime import datetime, timedelta

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVATO_ITEMS"] = json.dumps({"100": "device", "200": "network"})
os.environ["ENVATO_PERSONAL_TOKEN"] = "seller-token"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["ADMIN_USERNAME"] = "admin"

import pytest

from config import Base, engine, SessionLocal
# models are imported so every table is registered on Base.metadata
from app.models.activation_model import Activation
from app.models.license_model import BindingMode, License
from app.models.license_reset_model import LicenseReset
from app.models.logs_model import APILog
from app.models.oauth_user_model import OAuthUser
from app.services.envato_client import Identity, PurchaseVerification, TokenGrant
from app.services.item_policy import ItemPolicyResolver
from app.utils.errors import OAuthError, PurchaseVerificationFailed


# =============================================================================
# Test doubles
# =============================================================================

class FixedClock:
    """Deterministic clock; call it to read the time, advance() to move it."""

    def __init__(self, start=datetime(2026, 1, 16, 12, 0, 0)):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakeEnvato:
    """In-memory marketplace: seller sales, buyer purchases and OAuth."""

    def __init__(self):
        self.sales = {}          # purchase code -> item id
        self.purchases = {}      # (access token, purchase code) -> item id
        self.calls = []

    def verify_purchase_authenticity(self, purchase_code):
        self.calls.append(("sale", purchase_code))
        if purchase_code not in self.sales:
            raise PurchaseVerificationFailed("Purchase code not found or invalid.")
        item_id = str(self.sales[purchase_code])
        return PurchaseVerification(item_id=item_id, raw={"item": {"id": item_id}})

    def verify_purchase_ownership(self, access_token, purchase_code):
        self.calls.append(("purchase", access_token, purchase_code))
        key = (access_token, purchase_code)
        if key not in self.purchases:
            raise PurchaseVerificationFailed()
        item_id = str(self.purchases[key])
        return PurchaseVerification(item_id=item_id, raw={"item": {"id": item_id}})

    def authorization_url(self, state):
        return "https://api.envato.com/authorization?state=" + state

    def exchange_authorization_code(self, code):
        self.calls.append(("token", code))
        if code != "good-code":
            raise OAuthError("invalid_grant")
        return TokenGrant(access_token="buyer-token", refresh_token="refresh", expires_in=3600)

    def fetch_identity(self, access_token):
        return Identity(external_user_id="u-1", username="buyer", email="buyer@example.com")


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture(autouse=True)
def tables():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def envato():
    return FakeEnvato()


@pytest.fixture
def item_policy():
    return ItemPolicyResolver({"100": "device", "200": "network"})


@pytest.fixture
def make_license(db, clock):
    def _make(purchase_code="ABC-1", item_id="100", mode=BindingMode.device, is_active=True):
        lic = License(
            purchase_code=purchase_code,
            item_id=item_id,
            binding_mode=mode,
            is_active=is_active,
            created_at=clock(),
            updated_at=clock(),
        )
        db.add(lic)
        db.commit()
        return lic
    return _make


@pytest.fixture
def make_user(db, clock):
    def _make(external_user_id="u-1", access_token="buyer-token", expires_in=3600):
        user = OAuthUser(
            external_user_id=external_user_id,
            username="buyer",
            email="buyer@example.com",
            access_token=access_token,
            token_expires_at=clock() + timedelta(seconds=expires_in),
            created_at=clock(),
            updated_at=clock(),
        )
        db.add(user)
        db.commit()
        return user
    return _make


def active_activations(session, license_id):
    return (
        session.query(Activation)
        .filter(Activation.license_id == license_id, Activation.is_active.is_(True))
        .all()
    )
