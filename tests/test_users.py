"""Tests for the user directory."""

import pytest

from users import avatar_initials, UserError, DuplicateEmailError


@pytest.mark.parametrize("name,initials", [
    ("Alice Donor", "AD"),
    ("mary ann smith", "MS"),
    ("bob", "BO"),
])
def test_avatar_initials(name, initials):
    assert avatar_initials(name) == initials

@pytest.mark.asyncio
async def test_create_and_get_user(services):
    user = await services.users.create_user("  Dana Lee ", "Dana@Example.com")
    assert user["name"] == "Dana Lee"
    assert user["email"] == "dana@example.com"
    assert user["avatar"] == "DL"
    assert await services.users.get_user(user["id"]) == user
    assert await services.users.get_user("nope") is None

@pytest.mark.asyncio
async def test_duplicate_email(services, donor):
    with pytest.raises(DuplicateEmailError):
        await services.users.create_user("Someone", "ALICE@example.com")

@pytest.mark.asyncio
async def test_invalid_user(services):
    with pytest.raises(UserError):
        await services.users.create_user("", "x@example.com")
    with pytest.raises(UserError):
        await services.users.create_user("Eve", "not-an-email")
