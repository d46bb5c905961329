"""Food listings: storage, validation, photo uploads and the claim lifecycle.

This package provides:
- Listing stores for PostgreSQL and for the in-memory backend
- Field validation shared by both stores
- Photo upload checks and storage
- The available -> claimed -> completed state machine with its notifications
"""

from .exceptions import (
    FoodError,
    FoodValidationError,
    FoodNotFoundError,
    ForbiddenError,
    ClaimOwnListingError,
    InvalidStateError
)
from .store import (
    ListingStore,
    MemoryListingStore,
    STATUS_AVAILABLE,
    STATUS_CLAIMED,
    STATUS_COMPLETED,
    STATUSES
)
from .uploads import PhotoUpload
from .lifecycle import FoodLifecycle, EVENT_NOTIFICATION, EVENT_FOOD_SHARED

__all__ = [
    'FoodError',
    'FoodValidationError',
    'FoodNotFoundError',
    'ForbiddenError',
    'ClaimOwnListingError',
    'InvalidStateError',
    'ListingStore',
    'MemoryListingStore',
    'STATUS_AVAILABLE',
    'STATUS_CLAIMED',
    'STATUS_COMPLETED',
    'STATUSES',
    'PhotoUpload',
    'FoodLifecycle',
    'EVENT_NOTIFICATION',
    'EVENT_FOOD_SHARED'
]
