"""Authenticated user API endpoints."""

from typing import TYPE_CHECKING, Any

import logfire

from teckboard.models import ResourceModel
from teckboard.registry import action, all_action

if TYPE_CHECKING:
    from teckboard.client import TeckboardClient


class AuthUser(ResourceModel):
    """The user the bearer token belongs to. Lives at `user`, not `user/<id>`."""
    base_uri = 'user'
    channel_prefix = 'user.'
    update_events = {'User.UpdateUser': 'user'}
    read_only_fields = ResourceModel.read_only_fields | {'email_verified_at'}

    name: str | None = None
    email: str | None = None
    avatar: str | None = None
    locale: str | None = None
    settings: dict[str, Any] | None = None
    email_verified_at: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def resolve_endpoint(cls, resource_id: str) -> str:
        return cls.base_uri


@action("get")
async def get_user(client: 'TeckboardClient') -> AuthUser:
    """
    Get the authenticated user.
    """
    return (await client.get(AuthUser.base_uri)).as_model(AuthUser)


@all_action
async def all(client: 'TeckboardClient') -> int:
    """
    Check that the configured token resolves to a user.
    """
    try:
        logfire.info('Testing user API')
        user = await get_user(client)
        logfire.info(f'✓ Authenticated as {user.name} ({user.id})')
        return 0
    except Exception as e:
        logfire.error(f'✗ User tests failed: {e}')
        return 1
