"""
Pytest configuration and shared fixtures for the test suite.
"""

from datetime import timedelta

import mongomock
import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from config import Settings
from database import ensure_indexes
from lifecycle import PostLifecycle
from main import create_app
from repository import AccountRepository, PostRepository
from schemas import Principal, ROLE_CANTEEN, ROLE_NGO, utcnow


@pytest.fixture
def settings():
    """Settings with a test signing key, cheap bcrypt and no background sweep."""
    return Settings(
        jwt_secret="test-secret",
        database_name="foodshare_test",
        bcrypt_rounds=4,
        expiry_sweep_interval_seconds=0,
        log_level="WARNING",
    )


@pytest.fixture
def db():
    """In-memory MongoDB database."""
    database = mongomock.MongoClient()["foodshare_test"]
    ensure_indexes(database)
    return database


@pytest.fixture
def post_repo(db):
    return PostRepository(db)


@pytest.fixture
def account_repo(db):
    return AccountRepository(db)


@pytest.fixture
def lifecycle(post_repo, account_repo):
    return PostLifecycle(post_repo, account_repo)


def _principal(role):
    return Principal(id=str(ObjectId()), role=role)


@pytest.fixture
def canteen():
    return _principal(ROLE_CANTEEN)


@pytest.fixture
def other_canteen():
    return _principal(ROLE_CANTEEN)


@pytest.fixture
def ngo():
    return _principal(ROLE_NGO)


@pytest.fixture
def other_ngo():
    return _principal(ROLE_NGO)


@pytest.fixture
def ready_by():
    """Two hours from now at the precision posts are stored with."""
    return utcnow() + timedelta(hours=2)


@pytest.fixture
def post_fields(ready_by):
    """Sample surplus post payload."""
    return {
        "canteen_name": "Campus Canteen",
        "items": "Rice, Dal",
        "portions": 40,
        "ready_by": ready_by,
        "location": "Gate 3",
        "dietary": ["veg"],
        "contact": "+91-98765-43210",
        "notes": "Bring containers",
    }


@pytest.fixture
def create_post(lifecycle, canteen, post_fields):
    """Factory fixture to create a post owned by `canteen` unless told otherwise."""

    def _create_post(owner=None, **overrides):
        fields = {**post_fields, **overrides}
        return lifecycle.create_post(owner or canteen, fields)

    return _create_post


@pytest.fixture
def ngo_registration():
    return {
        "account_type": "NGO",
        "org_name": "Helping Hands",
        "reg_number": "NGO-2024-001",
        "about": "Food rescue volunteers",
        "contact_person": "Asha Rao",
        "phone_number": "+91-555-0100",
        "address": "12 Lake Road",
        "city": "Pune",
        "state": "MH",
        "country": "India",
        "email": "hands@example.com",
        "password": "s3cret-pass",
    }


@pytest.fixture
def canteen_registration():
    return {
        "account_type": "Canteen",
        "canteen_name": "Campus Canteen",
        "surplus_capacity": 50,
        "operational_hours": "08:00-20:00",
        "contact_person": "Ravi Kumar",
        "phone_number": "+91-555-0200",
        "address": "Block C",
        "city": "Pune",
        "state": "MH",
        "country": "India",
        "email": "canteen@example.com",
        "password": "s3cret-pass",
    }


@pytest.fixture
def client(settings, db):
    """HTTP client bound to an app backed by the in-memory database."""
    with TestClient(create_app(settings, db)) as test_client:
        yield test_client
