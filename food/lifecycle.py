"""Food listing lifecycle and claim state machine.

A listing moves available -> claimed -> completed and never backwards.
Claiming and completing are single conditional writes in the store; when a
write does not apply, the listing is re-read only to explain why.

Side effects after a successful transition:
- claim:    claim_request notification to the donor, pushed in real time
- complete: food_completed notification to the claimer, pushed in real time
- create:   food_shared broadcast to every connected client

Realtime delivery is best effort. A failed push is logged and the
transition still stands.
"""

import logging
from typing import Dict, Any, List, Optional

from .exceptions import (
    FoodNotFoundError, ForbiddenError,
    ClaimOwnListingError, InvalidStateError
)
from .store import STATUS_AVAILABLE, STATUS_CLAIMED
from .uploads import PhotoUpload, validate_photo, save_photo, remove_photo, DEFAULT_MAX_UPLOAD_BYTES
from .validation import clean_listing_fields, clean_listing_patch

logger = logging.getLogger(__name__)

EVENT_NOTIFICATION = 'notification'
EVENT_FOOD_SHARED = 'food_shared'


class FoodLifecycle:
    """Applies listing operations and raises their notifications."""

    def __init__(
        self,
        listings,
        notifications,
        notifier=None,
        uploads_dir: str = 'uploads',
        max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
        lock_claimed_listings: bool = False
    ):
        """Initialize the lifecycle.

        Args:
            listings: ListingStore or MemoryListingStore
            notifications: NotificationStore or MemoryNotificationStore
            notifier: Anything with async push_to_user(user_id, event, payload)
                and broadcast_all(event, payload); None disables realtime delivery
            uploads_dir: Directory photos are written to
            max_upload_bytes: Largest accepted photo
            lock_claimed_listings: Refuse updates and deletes once claimed
        """
        self.listings = listings
        self.notifications = notifications
        self.notifier = notifier
        self.uploads_dir = uploads_dir
        self.max_upload_bytes = max_upload_bytes
        self.lock_claimed_listings = lock_claimed_listings

    async def get(self, listing_id) -> Dict[str, Any]:
        listing = await self.listings.get(listing_id)
        if not listing:
            raise FoodNotFoundError("Food listing not found")
        return listing

    async def create(
        self,
        fields: Dict[str, Any],
        donor: Dict[str, Any],
        photo: Optional[PhotoUpload] = None
    ) -> Dict[str, Any]:
        """Create a listing for donor and broadcast it.

        The photo is checked before anything is written and removed again if
        the listing cannot be stored.
        """
        fields = clean_listing_fields(fields)
        if photo is not None:
            validate_photo(photo, self.max_upload_bytes)
            fields['photo_ref'] = await save_photo(photo, self.uploads_dir, self.max_upload_bytes)

        try:
            listing = await self.listings.create(fields, donor['id'])
        except Exception:
            if photo is not None:
                remove_photo(fields['photo_ref'], self.uploads_dir)
            raise

        await self._broadcast(EVENT_FOOD_SHARED, {
            'food': listing,
            'message': f'{donor["name"]} shared "{listing["name"]}"'
        })
        return listing

    async def update(
        self,
        listing_id,
        patch: Dict[str, Any],
        caller: Dict[str, Any],
        photo: Optional[PhotoUpload] = None
    ) -> Dict[str, Any]:
        """Update a listing on behalf of its donor, optionally replacing the photo."""
        current = await self.get(listing_id)
        if current['donor_id'] != caller['id']:
            raise ForbiddenError("Not authorized to update this listing")
        patch = dict(patch)
        clean_listing_patch(current, patch)

        new_photo_ref = None
        if photo is not None:
            validate_photo(photo, self.max_upload_bytes)
            new_photo_ref = await save_photo(photo, self.uploads_dir, self.max_upload_bytes)
            patch['photo_ref'] = new_photo_ref

        try:
            listing = await self.listings.update(
                listing_id, patch, caller['id'],
                available_only=self.lock_claimed_listings
            )
        except Exception:
            remove_photo(new_photo_ref, self.uploads_dir)
            raise

        if new_photo_ref and current['photo_ref'] != new_photo_ref:
            remove_photo(current['photo_ref'], self.uploads_dir)
        logger.info(f"Listing {listing['id']} updated by donor {caller['id']}")
        return listing

    async def delete(self, listing_id, caller: Dict[str, Any]) -> None:
        """Delete a listing on behalf of its donor."""
        current = await self.get(listing_id)
        if current['donor_id'] != caller['id']:
            raise ForbiddenError("Not authorized to delete this listing")
        await self.listings.delete(
            listing_id, caller['id'],
            available_only=self.lock_claimed_listings
        )
        remove_photo(current['photo_ref'], self.uploads_dir)

    async def claim(self, listing_id, claimer: Dict[str, Any]) -> Dict[str, Any]:
        """Claim an available listing.

        Raises:
            FoodNotFoundError: If the listing doesn't exist
            InvalidStateError: If the listing is not available
            ClaimOwnListingError: If the claimer is the donor
        """
        listing = await self.listings.claim_if_available(listing_id, claimer['id'])
        if listing is None:
            current = await self.get(listing_id)
            if current['status'] != STATUS_AVAILABLE:
                raise InvalidStateError("This food has already been claimed")
            if current['donor_id'] == claimer['id']:
                raise ClaimOwnListingError("You cannot claim your own food")
            raise InvalidStateError("This food could not be claimed")

        logger.info(f"Listing {listing['id']} claimed by {claimer['id']}")

        message = f'{claimer["name"]} claimed your "{listing["name"]}"'
        notification = await self.notifications.create(
            recipient_user_id=listing['donor_id'],
            type='claim_request',
            message=message,
            related_listing_id=listing['id'],
            actor_user_id=claimer['id']
        )
        await self._push_notification(listing['donor_id'], notification, message)
        return listing

    async def complete(self, listing_id, caller: Dict[str, Any]) -> Dict[str, Any]:
        """Mark a claimed listing as picked up.

        Raises:
            FoodNotFoundError: If the listing doesn't exist
            ForbiddenError: If the caller is not the donor
            InvalidStateError: If the listing is not claimed
        """
        listing = await self.listings.complete_if_claimed(listing_id, caller['id'])
        if listing is None:
            current = await self.get(listing_id)
            if current['donor_id'] != caller['id']:
                raise ForbiddenError("Only the donor can mark as completed")
            if current['status'] != STATUS_CLAIMED:
                raise InvalidStateError("Food must be claimed before completing")
            raise InvalidStateError("This food could not be completed")

        logger.info(f"Listing {listing['id']} completed by donor {caller['id']}")

        if listing['claimer_id']:
            message = f'Pickup completed for "{listing["name"]}"'
            notification = await self.notifications.create(
                recipient_user_id=listing['claimer_id'],
                type='food_completed',
                message=message,
                related_listing_id=listing['id'],
                actor_user_id=caller['id']
            )
            await self._push_notification(listing['claimer_id'], notification, message)
        return listing

    async def list_available(self) -> List[Dict[str, Any]]:
        return await self.listings.list_available()

    async def list_all(self) -> List[Dict[str, Any]]:
        return await self.listings.list_all()

    async def _push_notification(self, user_id: str, notification: Dict[str, Any], message: str):
        enriched = await self.notifications.get(notification['id']) or notification
        await self._push(user_id, EVENT_NOTIFICATION, {
            'notification': enriched,
            'message': message
        })

    async def _push(self, user_id: str, event: str, payload: Dict[str, Any]) -> None:
        if self.notifier is None:
            return
        try:
            await self.notifier.push_to_user(user_id, event, payload)
        except Exception as e:
            logger.warning(f"Realtime push of {event} to {user_id} failed: {e}")

    async def _broadcast(self, event: str, payload: Dict[str, Any]) -> None:
        if self.notifier is None:
            return
        try:
            await self.notifier.broadcast_all(event, payload)
        except Exception as e:
            logger.warning(f"Realtime broadcast of {event} failed: {e}")


__all__ = ['FoodLifecycle', 'EVENT_NOTIFICATION', 'EVENT_FOOD_SHARED']
