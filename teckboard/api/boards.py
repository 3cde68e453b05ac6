"""Boards API endpoints."""

import asyncio
from typing import TYPE_CHECKING, Any

import logfire

from teckboard.api.contents import Content
from teckboard.models import APIModel, ResourceModel
from teckboard.pagination import Page
from teckboard.realtime import PusherSocket
from teckboard.registry import action, all_action
from teckboard.utils import compact_dict

if TYPE_CHECKING:
    from teckboard.client import TeckboardClient


class Icon(APIModel):
    """Board icon."""
    type: str | None = None
    value: str | None = None


class ShardRole(APIModel):
    """Role a user holds on a board."""
    id: str | int | None = None
    name: str | None = None
    permissions: list[str] | None = None


class BoardChannel(APIModel):
    """Chat channel attached to a board."""
    id: str | int | None = None
    name: str | None = None


class BoardChatSettings(APIModel):
    """Board settings, currently only the chat block."""
    chat: dict[str, Any] | None = None


class BoardUser(APIModel):
    """Board member."""
    id: str
    name: str | None = None
    email: str | None = None
    avatar: str | None = None
    role: ShardRole | None = None


class Announcement(APIModel):
    """Announcement posted on a board."""
    id: str | int
    title: str | None = None
    body: str | None = None
    author: dict[str, Any] | None = None
    created_at: str | None = None
    updated_at: str | None = None


class Board(ResourceModel):
    """
    A board.

    Usage:
        board = await get_board(client, board_id='000')
        board.name = 'ChangedName'
        board.settings = BoardChatSettings(chat={'enabled': False})
        await board.save()

        board.on_update(lambda b: print(f'{b.name} was updated by the backend'))
        board.listen_to_updates()
    """
    base_uri = 'boards'
    channel_prefix = 'board.'
    update_events = {'Board.UpdateBoard': 'board'}
    read_only_fields = ResourceModel.read_only_fields | {
        'channel', 'owner', 'owner_id', 'company_id', 'latest_content',
        'roles', 'slug', 'uri', 'url', 'user_role',
    }

    name: str | None = None
    color_scheme: str | None = None
    channel: BoardChannel | None = None
    owner: bool | None = None
    owner_id: str | None = None
    company_id: str | None = None
    icon: Icon | None = None
    latest_content: str | None = None
    roles: list[ShardRole] | None = None
    settings: BoardChatSettings | None = None
    slug: str | None = None
    uri: str | None = None
    url: str | None = None
    user_role: ShardRole | None = None
    created_at: str | None = None
    updated_at: str | None = None

    async def get_contents(self) -> list[Content]:
        """All contents on the board."""
        return await self._get_list('contents', Content)

    async def get_users(self) -> list[BoardUser]:
        """All users on the board."""
        return await self._get_list('users', BoardUser)

    async def get_invitations(self) -> list[BoardUser]:
        """Users invited to the board who have not joined yet."""
        return await self._get_list('invitations', BoardUser)

    async def get_announcements(self, page: int = 1) -> Page[Announcement]:
        """
        One page of the board's announcements.

        :param page: Page number, starting at 1.
        """
        return await self._get_page('announcements', Announcement, page)


@action("list")
async def list_boards(client: 'TeckboardClient') -> list[Board]:
    """
    List the boards of the authenticated user.
    """
    return (await client.get(Board.base_uri)).as_list(Board)


@action()
async def get_board(client: 'TeckboardClient', *, board_id: str) -> Board:
    """
    Get a specific board by ID.

    :param board_id: The ID of the board.
    """
    return (await client.get(Board.resolve_endpoint(board_id))).as_model(Board)


@action()
async def new_board(
    client: 'TeckboardClient',
    *,
    name: str,
    color_scheme: str | None = None,
    company_id: str | None = None,
) -> Board:
    """
    Create a new board.

    :param name: Board name.
    :param color_scheme: Board color scheme.
    :param company_id: Company the board belongs to.
    """
    payload = compact_dict(name=name, color_scheme=color_scheme, company_id=company_id)
    return (await client.post(Board.base_uri, json=payload)).as_model(Board)


@action()
async def delete_board(client: 'TeckboardClient', *, board_id: str) -> bool:
    """
    Delete a board by ID.

    :param board_id: The ID of the board to delete.
    """
    await client.delete(Board.resolve_endpoint(board_id))
    logfire.info(f'Deleted board {board_id}')
    return True


@action("rename")
async def rename_board(client: 'TeckboardClient', *, board_id: str, name: str) -> Board:
    """
    Rename a board.

    :param board_id: The ID of the board.
    :param name: The new name.
    """
    board = await get_board(client, board_id=board_id)
    board.name = name
    return await board.save()


@action("contents")
async def get_board_contents(client: 'TeckboardClient', *, board_id: str) -> list[Content]:
    """
    Get the contents of a board.

    :param board_id: The ID of the board.
    """
    return await (await get_board(client, board_id=board_id)).get_contents()


@action("users")
async def get_board_users(client: 'TeckboardClient', *, board_id: str) -> list[BoardUser]:
    """
    Get the users of a board.

    :param board_id: The ID of the board.
    """
    return await (await get_board(client, board_id=board_id)).get_users()


@action("announcements")
async def get_board_announcements(client: 'TeckboardClient', *, board_id: str, page: int = 1) -> Page[Announcement]:
    """
    Get one page of a board's announcements.

    :param board_id: The ID of the board.
    :param page: Page number.
    """
    return await (await get_board(client, board_id=board_id)).get_announcements(page)


@action("watch")
async def watch_board(client: 'TeckboardClient', *, board_id: str, seconds: float = 60.0) -> Board:
    """
    Print pushed updates of a board for a while, then return its final state.

    :param board_id: The ID of the board.
    :param seconds: How long to listen.
    """
    board = await get_board(client, board_id=board_id)
    board.on_update(lambda b: logfire.info(f'Board {b.id} updated: {b.name}'))
    board.listen_to_updates()
    if isinstance(client.socket, PusherSocket):
        try:
            await asyncio.wait_for(client.socket.run(), timeout=seconds)
        except TimeoutError:
            pass
    else:
        logfire.warn('No socket URL configured, no updates will arrive.')
    board.stop_listening()
    return board


@all_action
async def all(client: 'TeckboardClient') -> int:
    """
    Run all read-only board checks.

    Lists boards, then fetches the first one and its sub-resources.
    """
    try:
        logfire.info('Testing boards API')

        boards = await list_boards(client)
        logfire.info(f'✓ Listed {len(boards)} boards')
        if not boards:
            logfire.warn('No boards available, skipping per-board checks.')
            return 0

        board = await get_board(client, board_id=boards[0].id)
        logfire.info(f'✓ Got board: {board.name}')

        contents = await board.get_contents()
        logfire.info(f'✓ Board has {len(contents)} contents')

        users = await board.get_users()
        logfire.info(f'✓ Board has {len(users)} users')

        announcements = await board.get_announcements()
        logfire.info(f'✓ Announcements page {announcements.page}/{announcements.total_pages}')

        await board.refresh()
        logfire.info(f'✓ Refreshed board: {board.name}')

        logfire.info('✓ All board tests passed!')
        return 0

    except Exception as e:
        logfire.error(f'✗ Board tests failed: {e}')
        return 1
