"""
Socket capability for real-time updates.

`Socket` is an in-process channel registry: models join channels and listen
for events, whatever feeds the socket calls `dispatch()` for each inbound
event. `PusherSocket` feeds it from a Pusher-protocol websocket, which is
what Laravel broadcasting speaks.

Event names follow the Laravel Echo convention: `Board.UpdateBoard` is
namespaced to `App\\Events\\Board\\UpdateBoard` on the wire, a leading dot
(`.board.updated`) opts out of the namespace.
"""

import asyncio
import json
from collections.abc import Awaitable, Callable, Coroutine
from functools import partial
from typing import Any, Self

import logfire
import websockets

Handler = Callable[[Any], None]
Authorizer = Callable[[str, str], Awaitable[dict[str, Any]]]


class EventFormatter:
    """Turns listener event names into wire event names."""

    def __init__(self, namespace: str | None = 'App.Events'):
        self.namespace = namespace

    def format(self, event: str) -> str:
        if event.startswith(('.', '\\')):
            return event[1:]
        if self.namespace:
            event = f'{self.namespace}.{event}'
        return event.replace('.', '\\')


class Channel:
    """
    A named subscription on a socket.

    Handlers are called synchronously, in registration order, exactly once
    for every dispatched event they listen to.
    """

    def __init__(self, name: str, wire_name: str, formatter: EventFormatter):
        self.name = name
        self.wire_name = wire_name
        self._formatter = formatter
        self._listeners: dict[str, list[Handler]] = {}

    def __repr__(self) -> str:
        return f'Channel({self.name!r})'

    def listen(self, event: str, handler: Handler) -> Self:
        """Register `handler(payload)` for an event. Returns the channel for chaining."""
        self._listeners.setdefault(self._formatter.format(event), []).append(handler)
        return self

    def stop_listening(self, event: str, handler: Handler | None = None) -> Self:
        """Remove one handler, or every handler of the event when none is given."""
        wire_event = self._formatter.format(event)
        if handler is None:
            self._listeners.pop(wire_event, None)
        elif handler in self._listeners.get(wire_event, []):
            self._listeners[wire_event].remove(handler)
        return self

    def listeners(self, event: str) -> list[Handler]:
        return list(self._listeners.get(self._formatter.format(event), []))

    def dispatch(self, wire_event: str, payload: Any) -> int:
        """Call every handler for a wire event. Returns how many ran."""
        handlers = list(self._listeners.get(wire_event, []))
        for handler in handlers:
            try:
                handler(payload)
            except Exception:
                logfire.exception(f'Handler for {wire_event} on {self.name} failed')
        return len(handlers)


class Socket:
    """
    In-process socket. Channels are joined once per name and shared.

    Usage:
        socket = Socket()
        socket.join('board.b1').listen('Board.UpdateBoard', print)
        socket.emit('board.b1', 'Board.UpdateBoard', {'board': {'id': 'b1'}})
    """

    channel_prefix = ''
    """Prefix the transport puts in front of channel names on the wire."""

    def __init__(self, *, namespace: str | None = 'App.Events'):
        self.formatter = EventFormatter(namespace)
        self._channels: dict[str, Channel] = {}

    @property
    def channels(self) -> dict[str, Channel]:
        return {channel.name: channel for channel in self._channels.values()}

    def join(self, name: str) -> Channel:
        """Return the channel for `name`, joining it on first use."""
        wire_name = self.channel_prefix + name
        channel = self._channels.get(wire_name)
        if channel is None:
            channel = self._channels[wire_name] = Channel(name, wire_name, self.formatter)
            logfire.debug(f'Joined channel {name}')
            self._on_join(channel)
        return channel

    def leave(self, name: str) -> None:
        channel = self._channels.pop(self.channel_prefix + name, None)
        if channel is not None:
            logfire.debug(f'Left channel {name}')
            self._on_leave(channel)

    def _on_join(self, channel: Channel) -> None:
        """Hook for transports, called once per newly joined channel."""

    def _on_leave(self, channel: Channel) -> None:
        """Hook for transports, called when a channel is left."""

    def dispatch(self, wire_channel: str, wire_event: str, payload: Any) -> int:
        """Route an inbound event to its channel. Returns how many handlers ran."""
        channel = self._channels.get(wire_channel)
        if channel is None:
            logfire.debug(f'Dropping {wire_event} for unjoined channel {wire_channel}')
            return 0
        return channel.dispatch(wire_event, payload)

    def emit(self, name: str, event: str, payload: Any) -> int:
        """Publish an event locally, formatted the same way listeners are."""
        return self.dispatch(self.channel_prefix + name, self.formatter.format(event), payload)


class PusherSocket(Socket):
    """
    Pusher-protocol client over a websocket.

    Channels are joined as presence channels and authorized through
    `authorizer(socket_id, channel_name)`, which returns the `auth` (and
    `channel_data`) fields the server expects in the subscribe message.

    Usage:
        socket = PusherSocket('wss://ws.example.com/app/KEY?protocol=7', authorizer=client.authorize_channel)
        async with socket:
            board.listen_to_updates()
            await socket.run()
    """

    channel_prefix = 'presence-'

    def __init__(
        self,
        url: str,
        *,
        authorizer: Authorizer | None = None,
        namespace: str | None = 'App.Events',
    ):
        super().__init__(namespace=namespace)
        self.url = url
        self.authorizer = authorizer
        self.socket_id: str | None = None
        self._ws: Any = None
        self._pending: set[asyncio.Task[None]] = set()

    @property
    def connected(self) -> bool:
        return self._ws is not None and self.socket_id is not None

    async def __aenter__(self) -> Self:
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def connect(self) -> None:
        """Open the websocket and subscribe every channel joined so far."""
        if self._ws is not None:
            await self.close()
        logfire.info(f'Connecting to {self.url}')
        self._ws = await websockets.connect(self.url)
        try:
            await self.handle_frame(await self._ws.recv())
            if self.socket_id is None:
                raise ConnectionError('Socket server did not establish a connection')
        except Exception:
            await self.close()
            raise
        for channel in list(self._channels.values()):
            await self._subscribe(channel)

    async def close(self) -> None:
        for task in list(self._pending):
            task.cancel()
        self._pending.clear()
        if self._ws is not None:
            await self._ws.close()
            logfire.info(f'Disconnected from {self.url}')
        self._ws = None
        self.socket_id = None

    async def run(self) -> None:
        """Consume frames until the connection closes."""
        if self._ws is None:
            await self.connect()
        async for raw in self._ws:
            try:
                await self.handle_frame(raw)
            except Exception:
                logfire.exception('Failed to handle socket frame')

    async def send(self, event: str, data: Any) -> None:
        await self._ws.send(json.dumps({'event': event, 'data': data}))

    def _on_join(self, channel: Channel) -> None:
        if self.connected:
            self._spawn(self._subscribe(channel), f'Subscribing to {channel.wire_name}')

    def _on_leave(self, channel: Channel) -> None:
        if self.connected:
            self._spawn(
                self.send('pusher:unsubscribe', {'channel': channel.wire_name}),
                f'Unsubscribing from {channel.wire_name}',
            )

    def _spawn(self, coro: Coroutine[Any, Any, None], description: str) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._pending.add(task)
        task.add_done_callback(partial(self._task_done, description))

    def _task_done(self, description: str, task: asyncio.Task[None]) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        if (exc := task.exception()) is not None:
            logfire.error(f'{description} failed: {exc!r}', _exc_info=exc)

    async def _subscribe(self, channel: Channel) -> None:
        data: dict[str, Any] = {'channel': channel.wire_name}
        if self.authorizer is not None and channel.wire_name.startswith(('private-', 'presence-')):
            data.update(await self.authorizer(self.socket_id or '', channel.wire_name))
        await self.send('pusher:subscribe', data)

    async def handle_frame(self, raw: str | bytes) -> None:
        """Handle one protocol frame."""
        message = json.loads(raw)
        event = message.get('event', '')
        data = message.get('data')
        if isinstance(data, str):
            try:
                data = json.loads(data)
            except ValueError:
                pass

        if event == 'pusher:connection_established':
            self.socket_id = data['socket_id']
            logfire.info(f'Socket connected as {self.socket_id}')
        elif event == 'pusher:ping':
            await self.send('pusher:pong', {})
        elif event == 'pusher:error':
            logfire.error(f'Socket error: {data}')
        elif event == 'pusher_internal:subscription_succeeded':
            logfire.debug(f'Subscribed to {message.get("channel")}')
        elif event.startswith(('pusher:', 'pusher_internal:')):
            logfire.debug(f'Ignoring {event}')
        else:
            self.dispatch(message.get('channel', ''), event, data)
