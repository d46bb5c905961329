"""In-process storage backend.

Holds the same three tables as the PostgreSQL schema in plain dicts keyed by
UUID. Used when ``storage_backend = memory`` and by the test suite. Rows are
dicts with the column names of database/schema/v1.py.
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, Any
from uuid import UUID

_TICK = timedelta(microseconds=1)


class MemoryDatabase:
    """Tables shared by the memory-backed stores so joins see each other's rows."""

    def __init__(self):
        self.users: Dict[UUID, Dict[str, Any]] = {}
        self.food_listings: Dict[UUID, Dict[str, Any]] = {}
        self.notifications: Dict[UUID, Dict[str, Any]] = {}
        self._last_timestamp = datetime.min.replace(tzinfo=timezone.utc)

    def now(self) -> datetime:
        """Strictly increasing UTC timestamp, so created_at ordering is total."""
        current = datetime.now(timezone.utc)
        if current <= self._last_timestamp:
            current = self._last_timestamp + _TICK
        self._last_timestamp = current
        return current

    def clear(self) -> None:
        self.users.clear()
        self.food_listings.clear()
        self.notifications.clear()
