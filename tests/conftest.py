"""Shared fixtures: a small Austin land market and valid AI payloads."""

from datetime import datetime, timedelta, timezone

import pytest

from landhacker.core.cache import cache
from landhacker.data.base import SubjectProperty
from landhacker.data.distance_client import MockDistance
from landhacker.data.property_store import InMemoryPropertyStore
from landhacker.models.mock_model import MockModel

AUSTIN = {"city": "Austin", "state": "TX", "zipcode": "78701"}


@pytest.fixture(autouse=True)
def clear_cache():
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def store():
    """One user, one 10-acre subject parcel and four comps (one outlier)."""
    s = InMemoryPropertyStore()
    user = s.add_user("uid-1", "landlord", "landlord@example.com", credits=5)
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    s.add_parcel(
        address={"street": "1 Subject Rd", **AUSTIN}, acres=10, price=250000,
        latitude=30.30, longitude=-97.80, details={"gisArea": 10, "marketValue": 250000},
        user_id=user.id, created_at=base,
    )
    comps = [
        ("11 Comp Ln", 9.0, 216000),    # 24,000/acre
        ("12 Comp Ln", 11.0, 275000),   # 25,000/acre
        ("13 Comp Ln", 12.0, 312000),   # 26,000/acre
        ("14 Comp Ln", 8.0, 800000),    # 100,000/acre
    ]
    for i, (street, acres, price) in enumerate(comps, start=1):
        s.add_parcel(address={"street": street, **AUSTIN}, acres=acres, price=price,
                     created_at=base + timedelta(days=i))
    return s


@pytest.fixture
def user(store):
    return store.users[1]


@pytest.fixture
def subject():
    return SubjectProperty(address="1 Subject Rd, Austin, TX 78701", acres=10, latitude=30.30,
                           longitude=-97.80, market_value=250000, city="Austin", zip_code="78701")


@pytest.fixture
def distance():
    return MockDistance()


@pytest.fixture
def model():
    return MockModel()


@pytest.fixture
def valid_estimate():
    return {
        "estimatedValue": 250000,
        "confidenceScore": 0.8,
        "keyFeatures": ["Road frontage"],
        "risks": ["Floodplain"],
        "opportunities": ["Subdivision"],
        "marketTrends": {"direction": "up", "reasoning": "Austin growth corridor."},
    }

