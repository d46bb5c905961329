"""Notification store.

Notifications are written by the food lifecycle on claim and completion,
read by their recipient, and only ever changed by marking them read.
Reads join in display fields of the related listing and of the actor:

    {
        'id', 'recipient_user_id', 'type', 'message',
        'related_listing_id', 'actor_user_id', 'read', 'created_at',
        'listing': {'id', 'name', 'photo_ref'} | None,
        'actor': {'id', 'name', 'avatar'} | None
    }
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional, Any
from uuid import uuid4

from database import get_pool, parse_uuid, MemoryDatabase

logger = logging.getLogger(__name__)

NOTIFICATION_TYPES = ('claim_request', 'food_shared', 'claim_accepted', 'food_completed')
DEFAULT_LIMIT = 50

_SELECT_NOTIFICATION = '''
    SELECT
        n.*,
        f.name AS listing_name,
        f.photo_ref AS listing_photo_ref,
        u.name AS actor_name,
        u.avatar AS actor_avatar
    FROM notifications n
    LEFT JOIN food_listings f ON f.id = n.related_listing_id
    LEFT JOIN users u ON u.id = n.actor_user_id
'''


def _optional_id(value) -> Optional[str]:
    return str(value) if value else None


def serialize_notification(row) -> Dict[str, Any]:
    """Convert a joined notification row into its JSON-ready dict."""
    created_at: Optional[datetime] = row['created_at']
    listing = None
    if row['related_listing_id'] and row['listing_name'] is not None:
        listing = {
            'id': str(row['related_listing_id']),
            'name': row['listing_name'],
            'photo_ref': row['listing_photo_ref']
        }
    actor = None
    if row['actor_user_id'] and row['actor_name'] is not None:
        actor = {
            'id': str(row['actor_user_id']),
            'name': row['actor_name'],
            'avatar': row['actor_avatar']
        }
    return {
        'id': str(row['id']),
        'recipient_user_id': str(row['recipient_user_id']),
        'type': row['type'],
        'message': row['message'],
        'related_listing_id': _optional_id(row['related_listing_id']),
        'actor_user_id': _optional_id(row['actor_user_id']),
        'read': row['read'],
        'created_at': created_at.isoformat() if created_at else None,
        'listing': listing,
        'actor': actor
    }


def _check_type(type: str) -> None:
    if type not in NOTIFICATION_TYPES:
        raise ValueError(f"Unknown notification type: {type}")


class NotificationStore:
    """PostgreSQL-backed notification store."""

    def __init__(self, pool=None):
        self.pool = pool

    async def ensure_pool(self):
        """Ensure we have a database pool."""
        if not self.pool:
            self.pool = await get_pool()

    async def create(
        self,
        recipient_user_id,
        type: str,
        message: str,
        related_listing_id=None,
        actor_user_id=None
    ) -> Dict[str, Any]:
        """Create an unread notification.

        Args:
            recipient_user_id: User the notification is for
            type: One of NOTIFICATION_TYPES
            message: Display text
            related_listing_id: Optional listing it refers to
            actor_user_id: Optional user who triggered it

        Returns:
            The stored notification, enriched

        Raises:
            ValueError: If type is unknown or recipient_user_id is not an id
        """
        _check_type(type)
        recipient = parse_uuid(recipient_user_id)
        if recipient is None:
            raise ValueError(f"Invalid recipient id: {recipient_user_id}")
        await self.ensure_pool()

        async with self.pool.acquire() as conn:
            notification_id = await conn.fetchval(
                '''
                INSERT INTO notifications (
                    recipient_user_id, type, message,
                    related_listing_id, actor_user_id
                ) VALUES ($1, $2, $3, $4, $5)
                RETURNING id
                ''',
                recipient,
                type,
                message,
                parse_uuid(related_listing_id) if related_listing_id else None,
                parse_uuid(actor_user_id) if actor_user_id else None
            )
            row = await conn.fetchrow(
                _SELECT_NOTIFICATION + ' WHERE n.id = $1',
                notification_id
            )

        logger.info(f"Created {type} notification {notification_id} for {recipient}")
        return serialize_notification(row)

    async def get(self, notification_id) -> Optional[Dict[str, Any]]:
        uid = parse_uuid(notification_id)
        if uid is None:
            return None
        await self.ensure_pool()
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(_SELECT_NOTIFICATION + ' WHERE n.id = $1', uid)
        return serialize_notification(row) if row else None

    async def list_for_user(self, user_id, limit: int = DEFAULT_LIMIT) -> List[Dict[str, Any]]:
        """Newest notifications first, at most limit of them."""
        uid = parse_uuid(user_id)
        if uid is None:
            return []
        await self.ensure_pool()
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                _SELECT_NOTIFICATION + '''
                WHERE n.recipient_user_id = $1
                ORDER BY n.created_at DESC
                LIMIT $2
                ''',
                uid,
                limit
            )
        return [serialize_notification(row) for row in rows]

    async def unread_count(self, user_id) -> int:
        uid = parse_uuid(user_id)
        if uid is None:
            return 0
        await self.ensure_pool()
        async with self.pool.acquire() as conn:
            return await conn.fetchval(
                '''
                SELECT count(*)
                FROM notifications
                WHERE recipient_user_id = $1
                AND NOT read
                ''',
                uid
            )

    async def mark_all_read(self, user_id) -> int:
        """Mark every unread notification of user_id as read.

        Returns:
            Number of notifications changed; 0 when called again
        """
        uid = parse_uuid(user_id)
        if uid is None:
            return 0
        await self.ensure_pool()
        async with self.pool.acquire() as conn:
            result = await conn.execute(
                '''
                UPDATE notifications
                SET read = true
                WHERE recipient_user_id = $1
                AND NOT read
                ''',
                uid
            )
        # asyncpg returns the command tag, e.g. "UPDATE 3"
        return int(result.split()[-1])


class MemoryNotificationStore:
    """In-memory notification store with the same contract as NotificationStore."""

    def __init__(self, db: MemoryDatabase):
        self.db = db

    def _joined(self, row: Dict[str, Any]) -> Dict[str, Any]:
        listing = self.db.food_listings.get(row['related_listing_id']) if row['related_listing_id'] else None
        actor = self.db.users.get(row['actor_user_id']) if row['actor_user_id'] else None
        return serialize_notification({
            **row,
            'listing_name': listing['name'] if listing else None,
            'listing_photo_ref': listing['photo_ref'] if listing else None,
            'actor_name': actor['name'] if actor else None,
            'actor_avatar': actor['avatar'] if actor else None
        })

    def _owned(self, user_id) -> List[Dict[str, Any]]:
        uid = parse_uuid(user_id)
        return [
            row for row in self.db.notifications.values()
            if uid is not None and row['recipient_user_id'] == uid
        ]

    async def create(
        self,
        recipient_user_id,
        type: str,
        message: str,
        related_listing_id=None,
        actor_user_id=None
    ) -> Dict[str, Any]:
        _check_type(type)
        recipient = parse_uuid(recipient_user_id)
        if recipient is None:
            raise ValueError(f"Invalid recipient id: {recipient_user_id}")

        row = {
            'id': uuid4(),
            'recipient_user_id': recipient,
            'type': type,
            'message': message,
            'related_listing_id': parse_uuid(related_listing_id) if related_listing_id else None,
            'actor_user_id': parse_uuid(actor_user_id) if actor_user_id else None,
            'read': False,
            'created_at': self.db.now()
        }
        self.db.notifications[row['id']] = row
        logger.info(f"Created {type} notification {row['id']} for {recipient}")
        return self._joined(row)

    async def get(self, notification_id) -> Optional[Dict[str, Any]]:
        row = self.db.notifications.get(parse_uuid(notification_id))
        return self._joined(row) if row else None

    async def list_for_user(self, user_id, limit: int = DEFAULT_LIMIT) -> List[Dict[str, Any]]:
        rows = sorted(self._owned(user_id), key=lambda row: row['created_at'], reverse=True)
        return [self._joined(row) for row in rows[:limit]]

    async def unread_count(self, user_id) -> int:
        return sum(1 for row in self._owned(user_id) if not row['read'])

    async def mark_all_read(self, user_id) -> int:
        changed = 0
        for row in self._owned(user_id):
            if not row['read']:
                row['read'] = True
                changed += 1
        return changed


__all__ = [
    'NotificationStore',
    'MemoryNotificationStore',
    'NOTIFICATION_TYPES',
    'DEFAULT_LIMIT'
]
