"""Tests for the PostgreSQL stores.

These run against a real database and are skipped unless
FOODSHARE_TEST_DB_URL is set, e.g.

    FOODSHARE_TEST_DB_URL=postgresql://root@localhost:26257/foodshare_test?sslmode=disable
"""

import asyncio
import os
import uuid
from datetime import datetime, timedelta

import pytest
import pytest_asyncio

from database import init_db, close as close_db
from database.lib.schema_manager import SchemaManager
from food import (
    ListingStore, FoodLifecycle, InvalidStateError, ForbiddenError, FoodNotFoundError
)
from notifications import NotificationStore
from users import UserStore, DuplicateEmailError

DB_URL = os.environ.get("FOODSHARE_TEST_DB_URL")

SOUP = {"name": "Soup", "address": "1 Oak Rd", "latitude": 51.5, "longitude": -0.12}

def test_schema_files_load():
    """The versioned schema definitions are importable and consistent."""
    schema_files = SchemaManager(pool=None)._load_schema_files()
    assert list(schema_files) == [1]
    tables = [table["name"] for table in schema_files[1]["tables"]]
    assert tables == ["users", "food_listings", "notifications"]

requires_db = pytest.mark.skipif(not DB_URL, reason="FOODSHARE_TEST_DB_URL not set")

@pytest_asyncio.fixture
async def db_pool():
    """Create a fresh schema and return the connection pool."""
    pool = await init_db(DB_URL, force_recreate=True)
    yield pool
    await close_db()

@pytest_asyncio.fixture
async def stores(db_pool):
    return UserStore(db_pool), ListingStore(db_pool), NotificationStore(db_pool)

@pytest_asyncio.fixture
async def people(stores):
    users, _, _ = stores
    suffix = uuid.uuid4().hex[:8]
    donor = await users.create_user("Alice Donor", f"alice-{suffix}@example.com")
    claimer = await users.create_user("Bob Claimer", f"bob-{suffix}@example.com")
    other = await users.create_user("Carol", f"carol-{suffix}@example.com")
    return donor, claimer, other

@requires_db
@pytest.mark.asyncio
async def test_duplicate_email(stores, people):
    users, _, _ = stores
    donor, _, _ = people
    with pytest.raises(DuplicateEmailError):
        await users.create_user("Again", donor["email"])

@requires_db
@pytest.mark.asyncio
async def test_listing_crud(stores, people):
    _, listings, _ = stores
    donor, claimer, _ = people

    listing = await listings.create(SOUP, donor["id"])
    assert listing["status"] == "available"
    assert listing["donor"]["avatar"] == "AD"
    created_at = datetime.fromisoformat(listing["created_at"])
    expires_at = datetime.fromisoformat(listing["expires_at"])
    assert abs(expires_at - created_at - timedelta(hours=24)) < timedelta(minutes=1)

    updated = await listings.update(listing["id"], {"description": "Warm"}, donor["id"])
    assert updated["description"] == "Warm"

    with pytest.raises(ForbiddenError):
        await listings.update(listing["id"], {"name": "x"}, claimer["id"])

    await listings.delete(listing["id"], donor["id"])
    assert await listings.get(listing["id"]) is None
    with pytest.raises(FoodNotFoundError):
        await listings.delete(listing["id"], donor["id"])

@requires_db
@pytest.mark.asyncio
async def test_claim_race(stores, people):
    _, listings, notifications = stores
    donor, claimer, other = people
    lifecycle = FoodLifecycle(listings, notifications)

    listing = await lifecycle.create(SOUP, donor)
    results = await asyncio.gather(
        lifecycle.claim(listing["id"], claimer),
        lifecycle.claim(listing["id"], other),
        return_exceptions=True
    )
    winners = [r for r in results if isinstance(r, dict)]
    losers = [r for r in results if isinstance(r, Exception)]
    assert len(winners) == 1
    assert len(losers) == 1
    assert isinstance(losers[0], InvalidStateError)

    assert await notifications.unread_count(donor["id"]) == 1

@requires_db
@pytest.mark.asyncio
async def test_full_lifecycle_and_stats(stores, people):
    _, listings, notifications = stores
    donor, claimer, _ = people
    lifecycle = FoodLifecycle(listings, notifications)

    listing = await lifecycle.create(SOUP, donor)
    with pytest.raises(InvalidStateError):
        await lifecycle.complete(listing["id"], donor)
    await lifecycle.claim(listing["id"], claimer)
    with pytest.raises(ForbiddenError):
        await lifecycle.complete(listing["id"], claimer)
    completed = await lifecycle.complete(listing["id"], donor)
    assert completed["status"] == "completed"

    assert (await listings.stats(donor["id"]))["completed_donations"] == 1
    assert (await listings.stats(claimer["id"]))["completed_pickups"] == 1
    assert [l["id"] for l in await listings.list_by_claimer(claimer["id"])] == [listing["id"]]
    assert await listings.list_available() == []

    received = await notifications.list_for_user(claimer["id"])
    assert [n["type"] for n in received] == ["food_completed"]
    assert received[0]["listing"]["name"] == "Soup"
    assert received[0]["actor"]["id"] == donor["id"]

    assert await notifications.mark_all_read(claimer["id"]) == 1
    assert await notifications.mark_all_read(claimer["id"]) == 0
