"""User directory.

Users are owned by the authentication layer; this module only keeps what the
food lifecycle needs to display: a name and avatar initials. Both the
PostgreSQL and the in-memory store return plain dicts:

    {'id': str, 'name': str, 'email': str, 'avatar': str, 'created_at': str}
"""

import logging
import re
from typing import Dict, Any, Optional
from uuid import uuid4

import asyncpg

from database import get_pool, parse_uuid, MemoryDatabase

logger = logging.getLogger(__name__)

NAME_MAX_LENGTH = 50
EMAIL_PATTERN = re.compile(r'^\S+@\S+\.\S+$')


class UserError(Exception):
    """Base exception for user operations."""
    pass


class DuplicateEmailError(UserError):
    """Raised when an email address is already registered."""
    pass


def avatar_initials(name: str) -> str:
    """Two-letter avatar: first letters of first and last word, else first two letters."""
    parts = name.strip().split()
    if len(parts) >= 2:
        return (parts[0][0] + parts[-1][0]).upper()
    return name.strip()[:2].upper()


def _validate(name: str, email: str) -> tuple:
    name = (name or '').strip()
    email = (email or '').strip().lower()
    if not name:
        raise UserError("Please add a name")
    if len(name) > NAME_MAX_LENGTH:
        raise UserError(f"Name must be at most {NAME_MAX_LENGTH} characters")
    if not EMAIL_PATTERN.match(email):
        raise UserError("Please add a valid email")
    return name, email


def _serialize(row) -> Dict[str, Any]:
    return {
        'id': str(row['id']),
        'name': row['name'],
        'email': row['email'],
        'avatar': row['avatar'],
        'created_at': row['created_at'].isoformat() if row['created_at'] else None
    }


class UserStore:
    """PostgreSQL-backed user directory."""

    def __init__(self, pool=None):
        self.pool = pool

    async def ensure_pool(self):
        """Ensure we have a database pool."""
        if not self.pool:
            self.pool = await get_pool()

    async def create_user(self, name: str, email: str) -> Dict[str, Any]:
        """Register a user, deriving the avatar from the name.

        Raises:
            UserError: If name or email is invalid
            DuplicateEmailError: If the email is taken
        """
        name, email = _validate(name, email)
        await self.ensure_pool()

        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    '''
                    INSERT INTO users (name, email, avatar)
                    VALUES ($1, $2, $3)
                    RETURNING *
                    ''',
                    name, email, avatar_initials(name)
                )
        except asyncpg.exceptions.UniqueViolationError:
            raise DuplicateEmailError(f"Email {email} is already registered")

        logger.info(f"Created user {row['id']}")
        return _serialize(row)

    async def get_user(self, user_id) -> Optional[Dict[str, Any]]:
        uid = parse_uuid(user_id)
        if uid is None:
            return None
        await self.ensure_pool()
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow('SELECT * FROM users WHERE id = $1', uid)
        return _serialize(row) if row else None


class MemoryUserStore:
    """In-memory user directory with the same contract as UserStore."""

    def __init__(self, db: MemoryDatabase):
        self.db = db

    async def create_user(self, name: str, email: str) -> Dict[str, Any]:
        name, email = _validate(name, email)
        if any(u['email'] == email for u in self.db.users.values()):
            raise DuplicateEmailError(f"Email {email} is already registered")

        now = self.db.now()
        row = {
            'id': uuid4(),
            'name': name,
            'email': email,
            'avatar': avatar_initials(name),
            'created_at': now,
            'updated_at': now
        }
        self.db.users[row['id']] = row
        logger.info(f"Created user {row['id']}")
        return _serialize(row)

    async def get_user(self, user_id) -> Optional[Dict[str, Any]]:
        row = self.db.users.get(parse_uuid(user_id))
        return _serialize(row) if row else None


__all__ = [
    'UserStore',
    'MemoryUserStore',
    'UserError',
    'DuplicateEmailError',
    'avatar_initials'
]
