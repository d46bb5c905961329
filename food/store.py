"""Listing stores.

ListingStore persists listings in PostgreSQL / CockroachDB; MemoryListingStore
keeps them in a MemoryDatabase. Both return listings as plain dicts:

    {
        'id', 'name', 'description', 'photo_ref', 'address',
        'latitude', 'longitude', 'status', 'donor_id', 'claimer_id',
        'donor': {'id', 'name', 'avatar'} | None,
        'claimer': {'id', 'name', 'avatar'} | None,
        'expires_at', 'created_at', 'updated_at'
    }

Status transitions go through claim_if_available and complete_if_claimed,
each a single conditional write that returns None when its precondition
does not hold.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Any
from uuid import uuid4

from database import get_pool, parse_uuid, MemoryDatabase
from .exceptions import FoodNotFoundError, ForbiddenError, InvalidStateError
from .validation import clean_listing_fields, clean_listing_patch

logger = logging.getLogger(__name__)

STATUS_AVAILABLE = 'available'
STATUS_CLAIMED = 'claimed'
STATUS_COMPLETED = 'completed'
STATUSES = (STATUS_AVAILABLE, STATUS_CLAIMED, STATUS_COMPLETED)

DEFAULT_TTL_HOURS = 24

_SELECT_LISTING = '''
    SELECT
        f.*,
        d.name AS donor_name,
        d.avatar AS donor_avatar,
        c.name AS claimer_name,
        c.avatar AS claimer_avatar
    FROM {source} f
    LEFT JOIN users d ON d.id = f.donor_id
    LEFT JOIN users c ON c.id = f.claimer_id
'''


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _user_snapshot(user_id, name, avatar) -> Optional[Dict[str, Any]]:
    if user_id is None or name is None:
        return None
    return {'id': str(user_id), 'name': name, 'avatar': avatar}


def serialize_listing(row) -> Dict[str, Any]:
    """Convert a joined listing row into its JSON-ready dict."""
    return {
        'id': str(row['id']),
        'name': row['name'],
        'description': row['description'],
        'photo_ref': row['photo_ref'],
        'address': row['address'],
        'latitude': row['latitude'],
        'longitude': row['longitude'],
        'status': row['status'],
        'donor_id': str(row['donor_id']),
        'claimer_id': str(row['claimer_id']) if row['claimer_id'] else None,
        'donor': _user_snapshot(row['donor_id'], row['donor_name'], row['donor_avatar']),
        'claimer': _user_snapshot(row['claimer_id'], row['claimer_name'], row['claimer_avatar']),
        'expires_at': _isoformat(row['expires_at']),
        'created_at': _isoformat(row['created_at']),
        'updated_at': _isoformat(row['updated_at'])
    }


def _empty_stats() -> Dict[str, int]:
    return {
        'food_shared': 0,
        'food_claimed': 0,
        'completed_donations': 0,
        'completed_pickups': 0,
        'total_completed': 0
    }


class ListingStore:
    """PostgreSQL-backed listing store."""

    def __init__(self, pool=None, ttl_hours: int = DEFAULT_TTL_HOURS):
        """Initialize the listing store.

        Args:
            pool: Optional database pool. If not provided, will get from database module.
            ttl_hours: Hours from creation until a listing expires
        """
        self.pool = pool
        self.ttl_hours = ttl_hours

    async def ensure_pool(self):
        """Ensure we have a database pool."""
        if not self.pool:
            self.pool = await get_pool()

    async def _fetch_joined(self, conn, listing_id) -> Optional[Dict[str, Any]]:
        row = await conn.fetchrow(
            _SELECT_LISTING.format(source='food_listings') + ' WHERE f.id = $1',
            listing_id
        )
        return serialize_listing(row) if row else None

    async def create(self, fields: Dict[str, Any], donor_id) -> Dict[str, Any]:
        """Create a new listing owned by donor_id.

        Raises:
            FoodValidationError: If name or address is missing or a field is invalid
        """
        cleaned = clean_listing_fields(fields)
        expires_at = datetime.now(timezone.utc) + timedelta(hours=self.ttl_hours)
        await self.ensure_pool()

        async with self.pool.acquire() as conn:
            listing_id = await conn.fetchval(
                '''
                INSERT INTO food_listings (
                    name, description, photo_ref, address,
                    latitude, longitude, donor_id, expires_at
                ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
                RETURNING id
                ''',
                cleaned['name'], cleaned['description'], cleaned['photo_ref'],
                cleaned['address'], cleaned['latitude'], cleaned['longitude'],
                parse_uuid(donor_id), expires_at
            )
            listing = await self._fetch_joined(conn, listing_id)

        logger.info(f"Created listing {listing_id} for donor {donor_id}")
        return listing

    async def get(self, listing_id) -> Optional[Dict[str, Any]]:
        """Get a listing by ID, None if it doesn't exist."""
        uid = parse_uuid(listing_id)
        if uid is None:
            return None
        await self.ensure_pool()
        async with self.pool.acquire() as conn:
            return await self._fetch_joined(conn, uid)

    async def _list(self, where: str = '', *args) -> List[Dict[str, Any]]:
        await self.ensure_pool()
        query = _SELECT_LISTING.format(source='food_listings')
        if where:
            query += f' WHERE {where}'
        query += ' ORDER BY f.created_at DESC'
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(query, *args)
        return [serialize_listing(row) for row in rows]

    async def list_available(self) -> List[Dict[str, Any]]:
        return await self._list('f.status = $1', STATUS_AVAILABLE)

    async def list_all(self) -> List[Dict[str, Any]]:
        return await self._list()

    async def list_by_donor(self, user_id) -> List[Dict[str, Any]]:
        uid = parse_uuid(user_id)
        if uid is None:
            return []
        return await self._list('f.donor_id = $1', uid)

    async def list_by_claimer(self, user_id) -> List[Dict[str, Any]]:
        uid = parse_uuid(user_id)
        if uid is None:
            return []
        return await self._list('f.claimer_id = $1', uid)

    async def _lock_owned(self, conn, uid, caller_id, available_only: bool):
        """Lock the listing row and check the caller may modify it."""
        row = await conn.fetchrow(
            'SELECT * FROM food_listings WHERE id = $1 FOR UPDATE',
            uid
        )
        if not row:
            raise FoodNotFoundError(f"Food listing {uid} not found")
        if row['donor_id'] != parse_uuid(caller_id):
            raise ForbiddenError("Not authorized to modify this listing")
        if available_only and row['status'] != STATUS_AVAILABLE:
            raise InvalidStateError(f"Listing is already {row['status']}")
        return row

    async def update(
        self,
        listing_id,
        patch: Dict[str, Any],
        caller_id,
        available_only: bool = False
    ) -> Dict[str, Any]:
        """Apply a validated partial update on behalf of the donor.

        Raises:
            FoodNotFoundError: If listing doesn't exist
            ForbiddenError: If caller is not the donor
            InvalidStateError: If available_only and the listing was claimed
            FoodValidationError: If the patch is invalid
        """
        uid = parse_uuid(listing_id)
        if uid is None:
            raise FoodNotFoundError(f"Food listing {listing_id} not found")
        await self.ensure_pool()

        async with self.pool.acquire() as conn:
            async with conn.transaction():
                row = await self._lock_owned(conn, uid, caller_id, available_only)
                changes = clean_listing_patch(dict(row), patch)

                if changes:
                    fields = []
                    values = []
                    for i, (field, value) in enumerate(changes.items(), start=1):
                        fields.append(f"{field} = ${i}")
                        values.append(value)
                    values.append(uid)
                    await conn.execute(
                        f'''
                        UPDATE food_listings
                        SET {', '.join(fields)}, updated_at = now()
                        WHERE id = ${len(values)}
                        ''',
                        *values
                    )

            return await self._fetch_joined(conn, uid)

    async def delete(self, listing_id, caller_id, available_only: bool = False) -> None:
        """Delete a listing on behalf of the donor.

        Raises:
            FoodNotFoundError: If listing doesn't exist
            ForbiddenError: If caller is not the donor
            InvalidStateError: If available_only and the listing was claimed
        """
        uid = parse_uuid(listing_id)
        if uid is None:
            raise FoodNotFoundError(f"Food listing {listing_id} not found")
        await self.ensure_pool()

        async with self.pool.acquire() as conn:
            async with conn.transaction():
                await self._lock_owned(conn, uid, caller_id, available_only)
                await conn.execute('DELETE FROM food_listings WHERE id = $1', uid)

        logger.info(f"Deleted listing {uid}")

    async def claim_if_available(self, listing_id, claimer_id) -> Optional[Dict[str, Any]]:
        """Atomically move an available listing to claimed.

        Returns:
            The claimed listing, or None if the listing is missing, not
            available, or owned by the claimer
        """
        uid = parse_uuid(listing_id)
        claimer = parse_uuid(claimer_id)
        if uid is None or claimer is None:
            return None
        await self.ensure_pool()

        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                'WITH claimed AS ('
                '    UPDATE food_listings'
                '    SET status = $3, claimer_id = $2, updated_at = now()'
                '    WHERE id = $1 AND status = $4 AND donor_id <> $2'
                '    RETURNING *'
                ')' + _SELECT_LISTING.format(source='claimed'),
                uid, claimer, STATUS_CLAIMED, STATUS_AVAILABLE
            )
        return serialize_listing(row) if row else None

    async def complete_if_claimed(self, listing_id, donor_id) -> Optional[Dict[str, Any]]:
        """Atomically move a claimed listing to completed on behalf of its donor.

        Returns:
            The completed listing, or None if the listing is missing, not
            claimed, or not owned by donor_id
        """
        uid = parse_uuid(listing_id)
        donor = parse_uuid(donor_id)
        if uid is None or donor is None:
            return None
        await self.ensure_pool()

        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                'WITH completed AS ('
                '    UPDATE food_listings'
                '    SET status = $3, updated_at = now()'
                '    WHERE id = $1 AND status = $4 AND donor_id = $2'
                '    RETURNING *'
                ')' + _SELECT_LISTING.format(source='completed'),
                uid, donor, STATUS_COMPLETED, STATUS_CLAIMED
            )
        return serialize_listing(row) if row else None

    async def stats(self, user_id) -> Dict[str, int]:
        """Count a user's listings as donor and as claimer."""
        uid = parse_uuid(user_id)
        if uid is None:
            return _empty_stats()
        await self.ensure_pool()

        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                '''
                SELECT
                    count(*) FILTER (WHERE donor_id = $1) AS food_shared,
                    count(*) FILTER (WHERE claimer_id = $1) AS food_claimed,
                    count(*) FILTER (WHERE donor_id = $1 AND status = $2) AS completed_donations,
                    count(*) FILTER (WHERE claimer_id = $1 AND status = $2) AS completed_pickups
                FROM food_listings
                WHERE donor_id = $1 OR claimer_id = $1
                ''',
                uid, STATUS_COMPLETED
            )

        stats = {key: int(row[key]) for key in (
            'food_shared', 'food_claimed', 'completed_donations', 'completed_pickups'
        )}
        stats['total_completed'] = stats['completed_donations'] + stats['completed_pickups']
        return stats


class MemoryListingStore:
    """In-memory listing store with the same contract as ListingStore.

    Each check-and-write runs without an intervening await, so it is atomic
    with respect to other tasks on the event loop.
    """

    def __init__(self, db: MemoryDatabase, ttl_hours: int = DEFAULT_TTL_HOURS):
        self.db = db
        self.ttl_hours = ttl_hours

    def _joined(self, row: Dict[str, Any]) -> Dict[str, Any]:
        donor = self.db.users.get(row['donor_id'])
        claimer = self.db.users.get(row['claimer_id']) if row['claimer_id'] else None
        return serialize_listing({
            **row,
            'donor_name': donor['name'] if donor else None,
            'donor_avatar': donor['avatar'] if donor else None,
            'claimer_name': claimer['name'] if claimer else None,
            'claimer_avatar': claimer['avatar'] if claimer else None
        })

    async def create(self, fields: Dict[str, Any], donor_id) -> Dict[str, Any]:
        cleaned = clean_listing_fields(fields)
        donor = parse_uuid(donor_id)
        if donor is None:
            raise ValueError(f"Invalid donor id: {donor_id}")

        now = self.db.now()
        row = {
            'id': uuid4(),
            **cleaned,
            'status': STATUS_AVAILABLE,
            'donor_id': donor,
            'claimer_id': None,
            'expires_at': now + timedelta(hours=self.ttl_hours),
            'created_at': now,
            'updated_at': now
        }
        self.db.food_listings[row['id']] = row
        logger.info(f"Created listing {row['id']} for donor {donor_id}")
        return self._joined(row)

    async def get(self, listing_id) -> Optional[Dict[str, Any]]:
        row = self.db.food_listings.get(parse_uuid(listing_id))
        return self._joined(row) if row else None

    def _list(self, predicate=None) -> List[Dict[str, Any]]:
        rows = [
            row for row in self.db.food_listings.values()
            if predicate is None or predicate(row)
        ]
        rows.sort(key=lambda row: row['created_at'], reverse=True)
        return [self._joined(row) for row in rows]

    async def list_available(self) -> List[Dict[str, Any]]:
        return self._list(lambda row: row['status'] == STATUS_AVAILABLE)

    async def list_all(self) -> List[Dict[str, Any]]:
        return self._list()

    async def list_by_donor(self, user_id) -> List[Dict[str, Any]]:
        uid = parse_uuid(user_id)
        return self._list(lambda row: row['donor_id'] == uid)

    async def list_by_claimer(self, user_id) -> List[Dict[str, Any]]:
        uid = parse_uuid(user_id)
        return self._list(lambda row: uid is not None and row['claimer_id'] == uid)

    def _owned_row(self, listing_id, caller_id, available_only: bool) -> Dict[str, Any]:
        row = self.db.food_listings.get(parse_uuid(listing_id))
        if not row:
            raise FoodNotFoundError(f"Food listing {listing_id} not found")
        if row['donor_id'] != parse_uuid(caller_id):
            raise ForbiddenError("Not authorized to modify this listing")
        if available_only and row['status'] != STATUS_AVAILABLE:
            raise InvalidStateError(f"Listing is already {row['status']}")
        return row

    async def update(
        self,
        listing_id,
        patch: Dict[str, Any],
        caller_id,
        available_only: bool = False
    ) -> Dict[str, Any]:
        row = self._owned_row(listing_id, caller_id, available_only)
        changes = clean_listing_patch(row, patch)
        if changes:
            row.update(changes)
            row['updated_at'] = self.db.now()
        return self._joined(row)

    async def delete(self, listing_id, caller_id, available_only: bool = False) -> None:
        row = self._owned_row(listing_id, caller_id, available_only)
        del self.db.food_listings[row['id']]
        logger.info(f"Deleted listing {row['id']}")

    async def claim_if_available(self, listing_id, claimer_id) -> Optional[Dict[str, Any]]:
        row = self.db.food_listings.get(parse_uuid(listing_id))
        claimer = parse_uuid(claimer_id)
        if (
            not row
            or claimer is None
            or row['status'] != STATUS_AVAILABLE
            or row['donor_id'] == claimer
        ):
            return None
        row['status'] = STATUS_CLAIMED
        row['claimer_id'] = claimer
        row['updated_at'] = self.db.now()
        return self._joined(row)

    async def complete_if_claimed(self, listing_id, donor_id) -> Optional[Dict[str, Any]]:
        row = self.db.food_listings.get(parse_uuid(listing_id))
        if (
            not row
            or row['status'] != STATUS_CLAIMED
            or row['donor_id'] != parse_uuid(donor_id)
        ):
            return None
        row['status'] = STATUS_COMPLETED
        row['updated_at'] = self.db.now()
        return self._joined(row)

    async def stats(self, user_id) -> Dict[str, int]:
        uid = parse_uuid(user_id)
        stats = _empty_stats()
        if uid is None:
            return stats
        for row in self.db.food_listings.values():
            completed = row['status'] == STATUS_COMPLETED
            if row['donor_id'] == uid:
                stats['food_shared'] += 1
                stats['completed_donations'] += completed
            if row['claimer_id'] == uid:
                stats['food_claimed'] += 1
                stats['completed_pickups'] += completed
        stats['total_completed'] = stats['completed_donations'] + stats['completed_pickups']
        return stats
