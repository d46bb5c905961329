"""Shared fixtures: an in-memory backend, two users and an app wired to them."""

import asyncio

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from api import create_app, build_memory_services
from auth import create_token
from config import DEFAULTS, validate_settings
from database import MemoryDatabase

TEST_SECRET = "test-secret"


class FakeConnection:
    """Stands in for a WebSocket: records what it is sent."""

    def __init__(self, fail: bool = False):
        self.sent = []
        self.fail = fail

    async def send_json(self, message):
        if self.fail:
            raise ConnectionError("connection closed")
        self.sent.append(message)


class StalledConnection:
    """Stands in for a client that stops reading: sends never complete."""

    def __init__(self):
        self.sent = []

    async def send_json(self, message):
        await asyncio.sleep(3600)
        self.sent.append(message)


def make_settings(tmp_path, **overrides):
    return validate_settings({
        **DEFAULTS,
        'storage_backend': 'memory',
        'jwt_secret': TEST_SECRET,
        'uploads_dir': str(tmp_path / 'uploads'),
        **overrides
    })


@pytest.fixture
def settings(tmp_path):
    """Validated settings for the memory backend with uploads in tmp_path."""
    return make_settings(tmp_path)


@pytest.fixture
def memory_db():
    return MemoryDatabase()


@pytest.fixture
def services(settings, memory_db):
    return build_memory_services(settings, memory_db)


@pytest_asyncio.fixture
async def donor(services):
    return await services.users.create_user("Alice Donor", "alice@example.com")


@pytest_asyncio.fixture
async def claimer(services):
    return await services.users.create_user("Bob Claimer", "bob@example.com")


@pytest_asyncio.fixture
async def other_user(services):
    return await services.users.create_user("Carol", "carol@example.com")


def auth_headers(user, settings):
    return {"Authorization": f"Bearer {create_token(user['id'], settings)}"}


@pytest.fixture
def app(services):
    return create_app(services=services)


@pytest_asyncio.fixture
async def client(app):
    """HTTP client talking to the app in-process."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
