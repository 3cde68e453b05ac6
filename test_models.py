"""
Tests for the ResourceModel base: construction, dirty tracking, partial
updates and persistence, using Board as the concrete resource.
"""

import httpx
import pytest
from pydantic import ValidationError

from teckboard.api.boards import Board, BoardChatSettings, Icon
from teckboard.errors import (
    ConfigurationError,
    ImmutableFieldError,
    PersistenceError,
    TransportError,
    UnboundModelError,
)
from teckboard.models import ResourceModel
from conftest import make_client


class Note(ResourceModel):
    """Resource without a base_uri, endpoint must be given explicitly."""
    text: str | None = None


# =============================================================================
# Construction
# =============================================================================


class TestConstruction:
    """Building models from payloads."""

    def test_fields_copied_from_payload(self, board_payload, client):
        board = Board.from_payload(board_payload, client)

        assert board.id == "b1"
        assert board.name == "Old"
        assert board.color_scheme == "dark"
        assert board.owner is True
        assert isinstance(board.icon, Icon)
        assert board.icon.value == ":rocket:"
        assert board.roles[0].permissions == ["board.edit"]
        assert board.settings.chat == {"enabled": True}

    def test_endpoint_derived_from_id(self, board_payload, client):
        board = Board.from_payload(board_payload, client)
        assert board.endpoint == "boards/b1"

    def test_unknown_keys_kept(self, client):
        board = Board.from_payload({"id": "b1", "archived_at": None, "tags": ["x"]}, client)
        assert board.tags == ["x"]

    def test_numeric_id_coerced_to_string(self):
        board = Board.from_payload({"id": 42})
        assert board.id == "42"
        assert board.endpoint == "boards/42"

    def test_missing_id_rejected(self):
        with pytest.raises(ValidationError):
            Board.from_payload({"name": "No id"})

    def test_empty_id_rejected(self):
        with pytest.raises(ValidationError):
            Board.from_payload({"id": ""})

    def test_explicit_endpoint(self):
        note = Note.from_payload({"id": "n1", "text": "hi"}, endpoint="boards/b1/notes/n1")
        assert note.endpoint == "boards/b1/notes/n1"

    def test_missing_endpoint_rejected(self):
        with pytest.raises(ConfigurationError):
            Note.from_payload({"id": "n1"})

    def test_new_model_is_clean(self, board_payload):
        assert not Board.from_payload(board_payload).is_dirty

    def test_id_is_immutable(self, board_payload):
        board = Board.from_payload(board_payload)
        with pytest.raises(ImmutableFieldError):
            board.id = "b2"
        assert board.id == "b1"
        assert board.endpoint == "boards/b1"


class TestCollection:
    """Board.collection maps raw payloads in order."""

    def test_order_and_length(self, client):
        payloads = [{"id": "b3", "name": "C"}, {"id": "b1", "name": "A"}, {"id": "b2", "name": "B"}]
        boards = Board.collection(payloads, client)

        assert [b.id for b in boards] == ["b3", "b1", "b2"]
        assert all(b.client is client for b in boards)

    def test_no_deduplication(self):
        boards = Board.collection([{"id": "b1"}, {"id": "b1"}])
        assert len(boards) == 2
        assert boards[0] is not boards[1]

    def test_empty(self):
        assert Board.collection([]) == []


# =============================================================================
# Local state
# =============================================================================


class TestDirtyTracking:
    """Assignments mark fields dirty."""

    def test_assignment_marks_dirty(self, board_payload):
        board = Board.from_payload(board_payload)
        board.name = "New"

        assert board.is_dirty
        assert board.dirty_fields == {"name"}
        assert board.name == "New"

    def test_assignment_is_validated(self, board_payload):
        board = Board.from_payload(board_payload)
        board.settings = {"chat": {"enabled": False}}
        assert isinstance(board.settings, BoardChatSettings)
        with pytest.raises(ValidationError):
            board.roles = "admin"

    def test_to_payload_skips_read_only_fields(self, board_payload):
        board = Board.from_payload(board_payload)
        payload = board.to_payload()

        assert payload["name"] == "Old"
        assert payload["settings"] == {"chat": {"enabled": True}}
        for field in ("id", "slug", "owner_id", "roles", "created_at", "updated_at"):
            assert field not in payload

    def test_to_payload_includes_dirty_extras(self, board_payload):
        board = Board.from_payload({**board_payload, "pinned": False})
        assert "pinned" not in board.to_payload()
        board.pinned = True
        assert board.to_payload()["pinned"] is True


class TestBatchUpdate:
    """batch_update merges partial payloads in place."""

    def test_only_present_keys_change(self, board_payload):
        board = Board.from_payload(board_payload)
        board.batch_update({"name": "Renamed"})

        assert board.name == "Renamed"
        assert board.color_scheme == "dark"
        assert board.slug == "old"
        assert board.icon.type == "emoji"

    def test_nested_values_are_typed(self, board_payload):
        board = Board.from_payload(board_payload)
        board.batch_update({"icon": {"type": "image", "value": "https://img"}})
        assert isinstance(board.icon, Icon)
        assert board.icon.type == "image"

    def test_resets_dirty(self, board_payload):
        board = Board.from_payload(board_payload)
        board.name = "Local"
        board.batch_update({"color_scheme": "light"})

        assert not board.is_dirty
        assert board.name == "Local"

    def test_id_in_payload_ignored(self, board_payload):
        board = Board.from_payload(board_payload)
        board.batch_update({"id": "other", "name": "X"})
        assert board.id == "b1"
        assert board.name == "X"

    def test_accepts_model(self, board_payload):
        board = Board.from_payload(board_payload)
        board.batch_update(Board.from_payload({"id": "b1", "name": "From model"}))
        assert board.name == "From model"
        assert board.color_scheme == "dark"

    def test_keeps_identity(self, board_payload):
        board = Board.from_payload(board_payload)
        assert board.batch_update({"name": "Same object"}) is board

    def test_invalid_value_leaves_model_untouched(self, board_payload):
        board = Board.from_payload(board_payload)
        board.color_scheme = "light"

        with pytest.raises(ValidationError):
            board.batch_update({"name": "X", "roles": "admin"})

        assert board.name == "Old"
        assert board.roles[0].name == "admin"
        assert board.dirty_fields == {"color_scheme"}


# =============================================================================
# Persistence
# =============================================================================


class TestSave:
    """save() persists through PATCH."""

    @pytest.mark.asyncio
    async def test_save_success(self, server, client):
        server.add("GET", "boards/b1", body={"data": {"id": "b1", "name": "Old"}})
        server.add("PATCH", "boards/b1", body={"data": {"id": "b1", "name": "New"}})

        board = (await client.get("boards/b1")).as_model(Board)
        board.name = "New"
        assert board.is_dirty

        result = await board.save()

        assert result is board
        assert board.name == "New"
        assert not board.is_dirty
        assert server.last.method == "PATCH"
        assert server.last.url.path == "/api/v1/boards/b1"
        assert server.last_json()["name"] == "New"
        assert "id" not in server.last_json()

    @pytest.mark.asyncio
    async def test_save_merges_server_reply(self, server, client, board_payload):
        server.add("PATCH", "boards/b1", body={"data": {"name": "New", "updated_at": "2021-04-01T00:00:00Z"}})

        board = Board.from_payload(board_payload, client)
        board.name = "New"
        await board.save()

        assert board.updated_at == "2021-04-01T00:00:00Z"
        assert board.color_scheme == "dark"

    @pytest.mark.asyncio
    async def test_save_forbidden(self, server, client, board_payload):
        server.add("PATCH", "boards/b1", status=403, body={"message": "This action is unauthorized."})

        board = Board.from_payload(board_payload, client)
        board.name = "New"

        with pytest.raises(PersistenceError) as exc_info:
            await board.save()

        assert exc_info.value.status_code == 403
        assert exc_info.value.body == {"message": "This action is unauthorized."}
        assert board.is_dirty
        assert board.name == "New"

    @pytest.mark.asyncio
    async def test_save_not_found_is_persistence_error(self, client, board_payload):
        board = Board.from_payload(board_payload, client)
        with pytest.raises(PersistenceError) as exc_info:
            await board.save()
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_save_transport_failure(self, server, board_payload):
        def fail(request):
            raise httpx.ConnectError("connection refused", request=request)

        server.route("PATCH", "boards/b1", fail)
        board = Board.from_payload(board_payload, make_client(server))
        board.name = "New"

        with pytest.raises(TransportError):
            await board.save()
        assert board.is_dirty

    @pytest.mark.asyncio
    async def test_save_unbound(self, board_payload):
        board = Board.from_payload(board_payload)
        with pytest.raises(UnboundModelError):
            await board.save()


class TestRefresh:
    """refresh() merges the current server state in place."""

    @pytest.mark.asyncio
    async def test_refresh(self, server, client, board_payload):
        server.add("GET", "boards/b1", body={"data": {**board_payload, "name": "Server"}})

        board = Board.from_payload(board_payload, client)
        board.name = "Local"
        assert await board.refresh() is board

        assert board.name == "Server"
        assert not board.is_dirty
