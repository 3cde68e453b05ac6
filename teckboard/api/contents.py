"""Contents API endpoints."""

from typing import TYPE_CHECKING, Any

from teckboard.models import ResourceModel
from teckboard.registry import action

if TYPE_CHECKING:
    from teckboard.client import TeckboardClient


class Content(ResourceModel):
    """A piece of content pinned to a board."""
    base_uri = 'contents'
    channel_prefix = 'content.'
    update_events = {'Content.UpdateContent': 'content'}
    read_only_fields = ResourceModel.read_only_fields | {'board_id', 'user_id', 'type'}

    board_id: str | None = None
    user_id: str | None = None
    type: str | None = None
    title: str | None = None
    data: dict[str, Any] | None = None
    position: int | None = None
    settings: dict[str, Any] | None = None
    created_at: str | None = None
    updated_at: str | None = None


@action()
async def get_content(client: 'TeckboardClient', *, content_id: str) -> Content:
    """
    Get a specific content by ID.

    :param content_id: The ID of the content.
    """
    return (await client.get(Content.resolve_endpoint(content_id))).as_model(Content)


@action()
async def update_content_title(client: 'TeckboardClient', *, content_id: str, title: str) -> Content:
    """
    Change the title of a content.

    :param content_id: The ID of the content.
    :param title: The new title.
    """
    content = await get_content(client, content_id=content_id)
    content.title = title
    return await content.save()
