"""Tests for the authenticated user."""

import pytest

from teckboard.api.user import AuthUser, get_user
from teckboard.api.user import all as user_all


@pytest.mark.asyncio
async def test_auth_user(server, client):
    server.add("GET", "user", body={"data": {"id": "u1", "name": "Ada", "email": "ada@example.com"}})

    user = await get_user(client)

    assert isinstance(user, AuthUser)
    assert isinstance(user.id, str)
    assert user.endpoint == "user"
    assert server.last.headers["Authorization"] == "Bearer secret-token"


@pytest.mark.asyncio
async def test_auth_user_save_targets_user_endpoint(server, client):
    server.add("GET", "user", body={"data": {"id": "u1", "name": "Ada", "email_verified_at": "2020-01-01"}})
    server.add("PATCH", "user", body={"data": {"id": "u1", "name": "Ada L."}})

    user = await get_user(client)
    user.name = "Ada L."
    await user.save()

    assert server.last.url.path == "/api/v1/user"
    assert "email_verified_at" not in server.last_json()
    assert user.name == "Ada L."


@pytest.mark.asyncio
async def test_user_smoke_run(server, client):
    assert await user_all(client) == 1
    server.add("GET", "user", body={"data": {"id": "u1"}})
    assert await user_all(client) == 0
