"""Service wiring for the API.

Builds the stores, the realtime notifier and the food lifecycle for the
configured storage backend. The resulting Services object lives on
``app.state.services`` and is what routers and the auth dependency use.
"""

import logging
from typing import Dict, Any, Optional

from database import init_db, close as db_close, MemoryDatabase
from food import ListingStore, MemoryListingStore, FoodLifecycle
from notifications import NotificationStore, MemoryNotificationStore
from realtime import RealtimeNotifier
from users import UserStore, MemoryUserStore

logger = logging.getLogger(__name__)


class Services:
    """Everything a request handler needs, built once per application."""

    def __init__(
        self,
        settings: Dict[str, Any],
        users,
        listings,
        notifications,
        notifier: Optional[RealtimeNotifier] = None,
        memory_db: Optional[MemoryDatabase] = None
    ):
        self.settings = settings
        self.users = users
        self.listings = listings
        self.notifications = notifications
        self.notifier = notifier or RealtimeNotifier()
        self.memory_db = memory_db
        self.lifecycle = FoodLifecycle(
            listings,
            notifications,
            notifier=self.notifier,
            uploads_dir=settings['uploads_dir'],
            max_upload_bytes=settings['max_upload_bytes'],
            lock_claimed_listings=settings['lock_claimed_listings']
        )

    async def close(self) -> None:
        if self.memory_db is None:
            await db_close()


def build_memory_services(settings: Dict[str, Any], db: Optional[MemoryDatabase] = None) -> Services:
    """Services backed by an in-process MemoryDatabase."""
    db = db or MemoryDatabase()
    return Services(
        settings,
        users=MemoryUserStore(db),
        listings=MemoryListingStore(db, ttl_hours=settings['listing_ttl_hours']),
        notifications=MemoryNotificationStore(db),
        memory_db=db
    )


async def build_postgres_services(settings: Dict[str, Any]) -> Services:
    """Services backed by the asyncpg pool, creating the schema if needed."""
    pool = await init_db(settings['db_url'])
    return Services(
        settings,
        users=UserStore(pool),
        listings=ListingStore(pool, ttl_hours=settings['listing_ttl_hours']),
        notifications=NotificationStore(pool)
    )


async def build_services(settings: Dict[str, Any]) -> Services:
    """Services for the configured storage_backend."""
    logger.info(f"Using {settings['storage_backend']} storage backend")
    if settings['storage_backend'] == 'memory':
        return build_memory_services(settings)
    return await build_postgres_services(settings)


__all__ = ['Services', 'build_services', 'build_memory_services', 'build_postgres_services']
