"""Tests for the food lifecycle: creation, claiming, completion and notifications."""

import asyncio
import os

import pytest
import pytest_asyncio

from conftest import FakeConnection, StalledConnection
from realtime import RealtimeNotifier
from food import (
    FoodLifecycle,
    FoodNotFoundError,
    FoodValidationError,
    ForbiddenError,
    ClaimOwnListingError,
    InvalidStateError,
    PhotoUpload,
    STATUS_CLAIMED,
    STATUS_COMPLETED
)

SOUP = {"name": "Soup", "address": "1 Oak Rd"}
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


class BrokenNotifier:
    """Notifier whose every delivery fails."""

    async def push_to_user(self, user_id, event, payload):
        raise RuntimeError("socket layer down")

    async def broadcast_all(self, event, payload):
        raise RuntimeError("socket layer down")


@pytest.fixture
def lifecycle(services):
    return services.lifecycle

@pytest_asyncio.fixture
async def soup(lifecycle, donor):
    return await lifecycle.create(SOUP, donor)

@pytest.mark.asyncio
async def test_share_claim_complete(services, lifecycle, donor, claimer):
    """A listing goes available -> claimed -> completed with a notification at each step."""
    notifier = services.notifier
    donor_socket = FakeConnection()
    claimer_socket = FakeConnection()
    notifier.join_user_channel(notifier.connect(donor_socket), donor["id"])
    notifier.join_user_channel(notifier.connect(claimer_socket), claimer["id"])

    listing = await lifecycle.create(SOUP, donor)
    assert listing["status"] == "available"

    # Everyone connected hears about new food
    for socket in (donor_socket, claimer_socket):
        shared = socket.sent[-1]
        assert shared["type"] == "food_shared"
        assert shared["data"]["food"]["id"] == listing["id"]
        assert shared["data"]["message"] == 'Alice Donor shared "Soup"'

    claimed = await lifecycle.claim(listing["id"], claimer)
    assert claimed["status"] == STATUS_CLAIMED
    assert claimed["claimer_id"] == claimer["id"]

    notifications = await services.notifications.list_for_user(donor["id"])
    assert len(notifications) == 1
    request = notifications[0]
    assert request["type"] == "claim_request"
    assert request["message"] == 'Bob Claimer claimed your "Soup"'
    assert request["read"] is False
    assert request["actor"] == {"id": claimer["id"], "name": "Bob Claimer", "avatar": "BC"}
    assert request["listing"]["name"] == "Soup"

    pushed = donor_socket.sent[-1]
    assert pushed["type"] == "notification"
    assert pushed["data"]["notification"]["id"] == request["id"]
    assert pushed["data"]["message"] == 'Bob Claimer claimed your "Soup"'

    completed = await lifecycle.complete(listing["id"], donor)
    assert completed["status"] == STATUS_COMPLETED

    notifications = await services.notifications.list_for_user(claimer["id"])
    assert [n["type"] for n in notifications] == ["food_completed"]
    assert notifications[0]["message"] == 'Pickup completed for "Soup"'
    assert notifications[0]["actor_user_id"] == donor["id"]
    assert claimer_socket.sent[-1]["type"] == "notification"

    stats = await services.listings.stats(donor["id"])
    assert stats["completed_donations"] == 1

@pytest.mark.asyncio
async def test_concurrent_claims_have_one_winner(services, lifecycle, soup, claimer, other_user):
    results = await asyncio.gather(
        lifecycle.claim(soup["id"], claimer),
        lifecycle.claim(soup["id"], other_user),
        return_exceptions=True
    )

    winners = [r for r in results if isinstance(r, dict)]
    losers = [r for r in results if isinstance(r, Exception)]
    assert len(winners) == 1
    assert len(losers) == 1
    assert isinstance(losers[0], InvalidStateError)
    assert str(losers[0]) == "This food has already been claimed"

    current = await lifecycle.get(soup["id"])
    assert current["claimer_id"] == winners[0]["claimer_id"]
    # One claim, one notification
    assert len(await services.notifications.list_for_user(soup["donor_id"])) == 1

@pytest.mark.asyncio
async def test_cannot_claim_own_food(lifecycle, soup, donor):
    with pytest.raises(ClaimOwnListingError, match="You cannot claim your own food"):
        await lifecycle.claim(soup["id"], donor)
    assert (await lifecycle.get(soup["id"]))["status"] == "available"

@pytest.mark.asyncio
async def test_claim_missing_listing(lifecycle, claimer):
    with pytest.raises(FoodNotFoundError, match="Food listing not found"):
        await lifecycle.claim("00000000-0000-0000-0000-000000000000", claimer)

@pytest.mark.asyncio
async def test_complete_requires_claim(lifecycle, soup, donor):
    with pytest.raises(InvalidStateError, match="Food must be claimed before completing"):
        await lifecycle.complete(soup["id"], donor)

@pytest.mark.asyncio
async def test_only_donor_completes(lifecycle, soup, claimer):
    await lifecycle.claim(soup["id"], claimer)
    with pytest.raises(ForbiddenError, match="Only the donor can mark as completed"):
        await lifecycle.complete(soup["id"], claimer)
    assert (await lifecycle.get(soup["id"]))["status"] == STATUS_CLAIMED

@pytest.mark.asyncio
async def test_completed_listing_cannot_be_claimed_again(lifecycle, soup, donor, claimer, other_user):
    await lifecycle.claim(soup["id"], claimer)
    await lifecycle.complete(soup["id"], donor)
    with pytest.raises(InvalidStateError):
        await lifecycle.claim(soup["id"], other_user)
    with pytest.raises(InvalidStateError):
        await lifecycle.complete(soup["id"], donor)

@pytest.mark.asyncio
async def test_delete_then_get(lifecycle, soup, donor, claimer):
    with pytest.raises(ForbiddenError):
        await lifecycle.delete(soup["id"], claimer)
    await lifecycle.delete(soup["id"], donor)
    with pytest.raises(FoodNotFoundError):
        await lifecycle.get(soup["id"])

@pytest.mark.asyncio
async def test_update_by_non_donor_is_forbidden(lifecycle, soup, claimer):
    with pytest.raises(ForbiddenError):
        await lifecycle.update(soup["id"], {"name": "Mine"}, claimer)

@pytest.mark.asyncio
async def test_locked_listings(services, donor, claimer):
    lifecycle = FoodLifecycle(
        services.listings,
        services.notifications,
        lock_claimed_listings=True
    )
    listing = await lifecycle.create(SOUP, donor)
    await lifecycle.claim(listing["id"], claimer)

    with pytest.raises(InvalidStateError):
        await lifecycle.update(listing["id"], {"name": "Stew"}, donor)
    with pytest.raises(InvalidStateError):
        await lifecycle.delete(listing["id"], donor)

@pytest.mark.asyncio
async def test_create_with_photo(settings, lifecycle, donor):
    photo = PhotoUpload("soup.PNG", "image/png", PNG_BYTES)
    listing = await lifecycle.create(SOUP, donor, photo=photo)

    assert listing["photo_ref"].startswith("/uploads/food_")
    assert listing["photo_ref"].endswith(".png")
    stored = os.path.join(settings["uploads_dir"], listing["photo_ref"][len("/uploads/"):])
    with open(stored, "rb") as f:
        assert f.read() == PNG_BYTES

@pytest.mark.asyncio
async def test_bad_photo_writes_nothing(settings, lifecycle, donor):
    photo = PhotoUpload("notes.txt", "text/plain", b"hello")
    with pytest.raises(FoodValidationError, match="Only image files are allowed"):
        await lifecycle.create(SOUP, donor, photo=photo)

    assert await lifecycle.list_all() == []
    assert not os.path.exists(settings["uploads_dir"]) or os.listdir(settings["uploads_dir"]) == []

@pytest.mark.asyncio
async def test_update_replaces_photo(settings, lifecycle, donor):
    listing = await lifecycle.create(SOUP, donor, photo=PhotoUpload("a.png", "image/png", PNG_BYTES))
    old_path = os.path.join(settings["uploads_dir"], listing["photo_ref"][len("/uploads/"):])

    updated = await lifecycle.update(
        listing["id"], {}, donor,
        photo=PhotoUpload("b.jpg", "image/jpeg", PNG_BYTES)
    )
    assert updated["photo_ref"].endswith(".jpg")
    assert not os.path.exists(old_path)

@pytest.mark.asyncio
async def test_push_failures_do_not_fail_operations(services, donor, claimer):
    lifecycle = FoodLifecycle(
        services.listings,
        services.notifications,
        notifier=BrokenNotifier()
    )
    listing = await lifecycle.create(SOUP, donor)
    claimed = await lifecycle.claim(listing["id"], claimer)

    assert claimed["status"] == STATUS_CLAIMED
    assert await services.notifications.unread_count(donor["id"]) == 1

@pytest.mark.asyncio
async def test_stalled_client_does_not_block_operations(services, donor, claimer):
    notifier = RealtimeNotifier(send_timeout=0.1)
    lifecycle = FoodLifecycle(services.listings, services.notifications, notifier=notifier)
    notifier.join_user_channel(notifier.connect(StalledConnection()), donor["id"])
    claimer_socket = FakeConnection()
    notifier.join_user_channel(notifier.connect(claimer_socket), claimer["id"])

    listing = await asyncio.wait_for(lifecycle.create(SOUP, donor), timeout=2)
    claimed = await asyncio.wait_for(lifecycle.claim(listing["id"], claimer), timeout=2)

    assert claimed["status"] == STATUS_CLAIMED
    assert claimer_socket.sent[0]["type"] == "food_shared"
    # The stalled donor connection was dropped; the notification is still stored
    assert notifier.channels.get(donor["id"]) is None
    assert await services.notifications.unread_count(donor["id"]) == 1
