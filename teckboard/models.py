"""
Base models for teckboard API resources.

Provides the APIModel record base and the ResourceModel base that binds a
record to its endpoint, tracks local changes, persists them and applies
real-time updates pushed over a socket channel.
"""

from collections.abc import Callable, Iterable, Mapping
from functools import partial
from typing import TYPE_CHECKING, Any, ClassVar, Self, TypeVar

import logfire
from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, ValidationError

from teckboard.errors import (
    APIError,
    ConfigurationError,
    ImmutableFieldError,
    PersistenceError,
    UnboundModelError,
)

if TYPE_CHECKING:
    from teckboard.client import TeckboardClient
    from teckboard.pagination import Page
    from teckboard.realtime import Channel

T = TypeVar('T', bound='APIModel')


class APIModel(BaseModel):
    """
    Base model for all API records.

    Features:
    - populate_by_name=True: Allows both alias and field name on input
    - extra='allow': Keys the model does not declare are kept as attributes,
      payloads are never rejected for carrying more than we know about

    Example:
        class Icon(APIModel):
            type: str | None = None
            value: str | None = None

        icon = Icon.from_payload({'type': 'emoji', 'value': ':rocket:', 'size': 2})
        icon.size  # 2
    """
    model_config = ConfigDict(populate_by_name=True, extra='allow')

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any], client: 'TeckboardClient | None' = None) -> Self:
        """Build a record from a raw payload. Plain records have no use for the client."""
        return cls.model_validate(payload)


class ResourceModel(APIModel):
    """
    A server resource bound to its endpoint.

    Subclasses declare their fields like any pydantic model plus a few class
    level settings:

        class Board(ResourceModel):
            base_uri = 'boards'
            channel_prefix = 'board.'
            update_events = {'Board.UpdateBoard': 'board'}
            read_only_fields = ResourceModel.read_only_fields | {'slug'}

            name: str | None = None
            slug: str | None = None

    Usage:
        board = Board.from_payload({'id': 'b1', 'name': 'Old'}, client)
        board.name = 'New'          # board.is_dirty -> True
        await board.save()          # PATCH boards/b1, board.is_dirty -> False

        board.listen_to_updates()   # joins socket channel 'board.b1'

    A model has two states. It is clean when its fields match the last known
    server state and dirty after any local assignment. Saving, refreshing and
    push updates all return it to clean. Push updates and local writes go
    through the same assignment path; whichever runs last wins.
    """
    model_config = ConfigDict(validate_assignment=True, coerce_numbers_to_str=True)

    id: str = Field(min_length=1)

    base_uri: ClassVar[str] = ''
    """Collection path the resource endpoint is derived from."""

    channel_prefix: ClassVar[str | None] = None
    """Socket channel prefix, None for resources without real-time updates."""

    update_events: ClassVar[dict[str, str]] = {}
    """Socket event name -> key of the embedded resource in the event payload."""

    read_only_fields: ClassVar[frozenset[str]] = frozenset({'id', 'created_at', 'updated_at'})
    """Fields that are never sent back on save."""

    _client: 'TeckboardClient | None' = PrivateAttr(default=None)
    _endpoint: str = PrivateAttr(default='')
    _dirty: set[str] = PrivateAttr(default_factory=set)
    _socket_channel: 'Channel | None' = PrivateAttr(default=None)
    _handlers: list[tuple[str, Callable[[Any], None]]] = PrivateAttr(default_factory=list)
    _observers: list[Callable[['ResourceModel'], None]] = PrivateAttr(default_factory=list)

    def model_post_init(self, context: Any) -> None:
        self._endpoint = self.resolve_endpoint(self.id)

    @classmethod
    def resolve_endpoint(cls, resource_id: str) -> str:
        """Endpoint of a single resource. Empty when the class has no base_uri."""
        return f'{cls.base_uri}/{resource_id}' if cls.base_uri else ''

    @classmethod
    def from_payload(
        cls,
        payload: Mapping[str, Any],
        client: 'TeckboardClient | None' = None,
        *,
        endpoint: str | None = None,
    ) -> Self:
        """
        Build a model from a raw resource payload.

        Args:
            payload: Resource record as sent by the server, must carry an id
            client: Client used for saving, fetching and socket access
            endpoint: Explicit endpoint, replaces the one derived from the id

        Raises:
            pydantic.ValidationError: The payload has no usable id
            ConfigurationError: No endpoint could be determined
        """
        model = cls.model_validate(payload)
        if endpoint is not None:
            model._endpoint = endpoint
        if not model._endpoint:
            raise ConfigurationError(f'{cls.__name__} {model.id!r} has no endpoint')
        model._client = client
        return model

    @classmethod
    def collection(
        cls,
        payloads: Iterable[Mapping[str, Any]],
        client: 'TeckboardClient | None' = None,
    ) -> list[Self]:
        """Map raw payloads to models, keeping order. No deduplication by id."""
        return [cls.from_payload(payload, client) for payload in payloads]

    # -- state ---------------------------------------------------------------

    @property
    def endpoint(self) -> str:
        return self._endpoint

    @property
    def client(self) -> 'TeckboardClient | None':
        return self._client

    @property
    def is_dirty(self) -> bool:
        return bool(self._dirty)

    @property
    def dirty_fields(self) -> frozenset[str]:
        return frozenset(self._dirty)

    def __setattr__(self, name: str, value: Any) -> None:
        if name.startswith('_'):
            super().__setattr__(name, value)
            return
        if name == 'id':
            raise ImmutableFieldError(f'{type(self).__name__}.id cannot change after construction')
        self._assign(name, value)
        self._dirty.add(name)

    def _assign(self, name: str, value: Any) -> None:
        # Local writes and server updates both land here
        super().__setattr__(name, value)

    @classmethod
    def _field_name(cls, key: str) -> str:
        for name, info in cls.model_fields.items():
            if key == name or key == info.alias:
                return name
        return key

    def _updates(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        """Payload keys mapped to field names, without private keys and the id."""
        updates = {}
        for key, value in payload.items():
            name = self._field_name(key)
            if name.startswith('_'):
                continue
            if name == 'id':
                if str(value) != self.id:
                    logfire.warn(f'Ignoring id {value!r} in update for {type(self).__name__} {self.id}')
                continue
            updates[name] = value
        return updates

    def batch_update(self, payload: Mapping[str, Any] | BaseModel) -> Self:
        """
        Merge a full or partial payload into this instance.

        Keys present in the payload overwrite the matching fields, absent keys
        are left alone. The identifier never changes. The model is clean
        afterwards, the payload being treated as the server's state.

        The merged state is validated before anything is assigned, so a
        payload that fails validation leaves the instance untouched.

        Raises:
            pydantic.ValidationError: A value does not fit its field
        """
        if isinstance(payload, BaseModel):
            payload = payload.model_dump(by_alias=True, exclude_unset=True)
        updates = self._updates(payload)
        type(self).model_validate({**self.model_dump(), **updates})
        for name, value in updates.items():
            self._assign(name, value)
        self._dirty.clear()
        return self

    def to_payload(self) -> dict[str, Any]:
        """Serialize the persistable fields, as sent by save()."""
        extras = self.__pydantic_extra__ or {}
        include = (set(type(self).model_fields) - self.read_only_fields) | self._dirty.intersection(extras)
        return self.model_dump(mode='json', by_alias=True, include=include)

    # -- persistence ---------------------------------------------------------

    def _require_client(self) -> 'TeckboardClient':
        if self._client is None:
            raise UnboundModelError(f'{type(self).__name__} {self.id} is not bound to a client')
        return self._client

    async def save(self) -> Self:
        """
        Persist the current field values with a PATCH to the endpoint.

        Returns the same instance, refreshed from the server reply and clean.

        Raises:
            PersistenceError: The server answered with a non-2xx status. The
                model stays dirty and keeps the attempted values.
            TransportError: No response was received.
        """
        client = self._require_client()
        changed = sorted(self._dirty)
        logfire.info(f'Saving {type(self).__name__} {self.id}', endpoint=self._endpoint, fields=changed)
        try:
            response = await client.patch(self._endpoint, json=self.to_payload())
        except APIError as exc:
            logfire.error(f'Saving {type(self).__name__} {self.id} failed with {exc.status_code}')
            raise PersistenceError(exc.status_code, exc.body) from exc
        data = response.data
        self.batch_update(data if isinstance(data, Mapping) else {})
        return self

    async def refresh(self) -> Self:
        """Refetch the resource and merge it into this instance."""
        response = await self._require_client().get(self._endpoint, cache=False)
        data = response.data
        return self.batch_update(data if isinstance(data, Mapping) else {})

    async def _get_list(self, subpath: str, model_cls: type[T], **params: Any) -> list[T]:
        response = await self._require_client().get(f'{self._endpoint}/{subpath}', params=params or None)
        return response.as_list(model_cls)

    async def _get_page(self, subpath: str, model_cls: type[T], page: int = 1) -> 'Page[T]':
        client = self._require_client()
        path = f'{self._endpoint}/{subpath}'

        async def fetch(number: int) -> 'Page[T]':
            response = await client.get(path, params={'page': number})
            return response.as_page(model_cls, fetch)

        return await fetch(page)

    # -- real-time -----------------------------------------------------------

    @property
    def socket_channel(self) -> 'Channel':
        """The joined channel for this instance, joined on first access."""
        if self._socket_channel is None:
            if self.channel_prefix is None:
                raise TypeError(f'{type(self).__name__} has no real-time channel')
            self._socket_channel = self._require_client().socket.join(self.channel_prefix + self.id)
        return self._socket_channel

    def listen_to_updates(self) -> Self:
        """
        Apply pushed updates to this instance from now on.

        Registers one handler per entry in update_events. Calling it again is
        a no-op. Two instances of the same remote resource each get their own
        handlers.
        """
        if self._handlers:
            return self
        channel = self.socket_channel
        for event, key in self.update_events.items():
            handler = partial(self._on_push, key)
            channel.listen(event, handler)
            self._handlers.append((event, handler))
        logfire.debug(f'Listening to {channel.name}', events=list(self.update_events))
        return self

    def stop_listening(self) -> None:
        """Remove this instance's handlers. The channel itself stays joined."""
        if self._socket_channel is not None:
            for event, handler in self._handlers:
                self._socket_channel.stop_listening(event, handler)
        self._handlers.clear()

    def on_update(self, callback: Callable[[Self], None]) -> Self:
        """Call `callback(model)` after every pushed update applied to this instance."""
        self._observers.append(callback)
        return self

    def _on_push(self, key: str, event: Any) -> None:
        resource = event.get(key, event) if isinstance(event, Mapping) else event
        if not isinstance(resource, Mapping):
            logfire.warn(f'Ignoring malformed push for {type(self).__name__} {self.id}')
            return
        try:
            self.batch_update(resource)
        except ValidationError:
            logfire.exception(f'Ignoring invalid push for {type(self).__name__} {self.id}')
            return
        for callback in list(self._observers):
            callback(self)
