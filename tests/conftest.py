"""Shared test fixtures for the referral portal test suite.

Provides:
- app: Flask app configured for testing (in-memory SQLite, CSRF off)
- client: Flask test client
- db_session: clean database per test (tables created/dropped)
- make_token: signs identity hub tokens with the test secret
- auth_client: test client carrying a valid hub cookie
- identity / referrer / repo: service-level building blocks
"""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from referral_portal import create_app
from referral_portal.extensions import db as _db, schema_probe
from referral_portal.services.account_service import find_or_create_referrer_account
from referral_portal.services.auth_service import Identity
from referral_portal.services.referral_service import ReferralRepository

TEST_PHONE = "+60 12-345 6789"
TEST_PHONE_NORMALIZED = "+6012-3456789"


@pytest.fixture(scope="session")
def app():
    """Create the Flask application configured for testing."""
    app = create_app("testing")
    yield app


@pytest.fixture(autouse=True)
def db_session(app):
    """Create all tables before each test, drop after.

    The schema probe memo is cleared on both sides so tests that alter
    the customer table never see a stale answer.
    """
    with app.app_context():
        _db.create_all()
        schema_probe.reset()
        yield _db.session
        _db.session.rollback()
        _db.drop_all()
        schema_probe.reset()


@pytest.fixture
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture
def make_token(app):
    """Factory for signed hub tokens.

    Usage:
        make_token(phone="+60 12 345")
        make_token(secret="wrong", phone="...")
        make_token(expires_in=-60, phone="...")
    """

    def _make(secret=None, expires_in=3600, algorithm="HS256", **claims):
        payload = dict(claims)
        payload["exp"] = datetime.now(timezone.utc) + timedelta(seconds=expires_in)
        return jwt.encode(
            payload,
            secret or app.config["JWT_SECRET"],
            algorithm=algorithm,
        )

    return _make


@pytest.fixture
def auth_client(client, make_token):
    """Test client signed in as TEST_PHONE."""
    token = make_token(phone=TEST_PHONE, name="Aina", userId="hub-user-1")
    client.set_cookie("auth_token", token)
    return client


@pytest.fixture
def identity():
    return Identity(phone=TEST_PHONE_NORMALIZED, name="Aina", user_id="hub-user-1")


@pytest.fixture
def referrer(identity):
    """A freshly created referral account for TEST_PHONE."""
    return find_or_create_referrer_account(identity)


@pytest.fixture
def repo():
    return ReferralRepository(_db.session, schema_probe)


@pytest.fixture
def lead_data():
    return {
        "leadName": "Mr Lee",
        "leadMobileNumber": "0123456789",
        "livingRegion": "Selangor",
        "relationship": "Friend",
    }
