"""Create a user and print a bearer token for it.

Usage:
    python -m auth "Ada Lovelace" ada@example.com

Tokens are only useful against a server sharing the same jwt_secret and,
with the postgres backend, the same database.
"""
import argparse
import asyncio
import logging
import sys

from config import settings_conf, jwt_secret_generated
from database import init_db, close as db_close
from users import UserStore, UserError
from . import create_token

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


async def create_user_token(name: str, email: str) -> str:
    """Register the user in PostgreSQL and return a token for them."""
    pool = await init_db(settings_conf['db_url'])
    try:
        user = await UserStore(pool).create_user(name, email)
    finally:
        await db_close()
    logger.info(f"Created user {user['id']} ({user['email']})")
    return create_token(user['id'])


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="python -m auth", description=__doc__.splitlines()[0])
    parser.add_argument("name", help="Display name")
    parser.add_argument("email", help="Unique email address")
    args = parser.parse_args(argv)

    if jwt_secret_generated:
        logger.error("Set jwt_secret in settings.conf so the server accepts the token")
        return 1

    if settings_conf['storage_backend'] != 'postgres':
        logger.error("Creating users needs storage_backend = postgres")
        return 1

    try:
        token = asyncio.run(create_user_token(args.name, args.email))
    except UserError as e:
        logger.error(str(e))
        return 1

    print(token)
    return 0


if __name__ == "__main__":
    sys.exit(main())
