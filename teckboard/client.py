"""
teckboard API Client

Handles authentication, base HTTP client configuration and the socket used
for real-time updates.
"""

from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import httpx
import logfire

from teckboard.errors import APIError, TransportError
from teckboard.models import APIModel
from teckboard.pagination import Page
from teckboard.realtime import PusherSocket, Socket

T = TypeVar('T', bound=APIModel)


class APIResponse:
    """
    Wrapper around httpx.Response with envelope unwrapping helpers.

    The server nests single resources under `data`, lists under `data` or
    `data.data`, and paginated lists under `data` next to `meta` and `links`.
    """

    def __init__(self, response: httpx.Response, client: 'TeckboardClient | None' = None):
        self._response = response
        self._client = client
        self._json: Any = {}
        if response.content:
            try:
                self._json = response.json()
            except ValueError:
                logfire.warn("Response body is not valid JSON, returning empty dict.")

    @property
    def response(self) -> httpx.Response:
        """Access the underlying httpx.Response."""
        return self._response

    @property
    def status_code(self) -> int:
        """HTTP status code."""
        return self._response.status_code

    @property
    def json(self) -> Any:
        """Parsed JSON body."""
        return self._json

    @property
    def data(self) -> Any:
        """The body with the outer `data` envelope removed."""
        if isinstance(self._json, dict) and 'data' in self._json:
            return self._json['data']
        return self._json

    def get(self, key: str, default: Any = None) -> Any:
        """Get a value from the JSON body."""
        return self._json.get(key, default) if isinstance(self._json, dict) else default

    def as_model(self, model_cls: type[T], *keys: str) -> T:
        """
        Parse the response as a single model instance.

        Args:
            model_cls: The model class to parse into
            *keys: Keys to try in order inside the envelope. If none match,
                   the envelope itself is parsed.

        Example:
            # Response: {"data": {"id": "b1", ...}}
            board = response.as_model(Board)
        """
        payload = self.data
        for key in keys:
            if isinstance(payload, dict) and key in payload:
                payload = payload[key]
                break
        return model_cls.from_payload(payload, self._client)

    def as_list(self, model_cls: type[T]) -> list[T]:
        """
        Parse the response as a list of model instances.

        Example:
            # Response: {"data": [{...}, {...}]} or {"data": {"data": [{...}]}}
            users = response.as_list(BoardUser)
        """
        items = self.data
        if isinstance(items, dict):
            items = items.get('data', [])
        return [model_cls.from_payload(item, self._client) for item in items or []]

    def as_page(
        self,
        model_cls: type[T],
        fetcher: Callable[[int], Awaitable[Page[T]]] | None = None,
    ) -> Page[T]:
        """
        Parse a paginated response.

        Args:
            model_cls: The model class of the items
            fetcher: Coroutine function returning a given page number, used
                     by Page.next_page()
        """
        body = self._json if isinstance(self._json, dict) else {}
        return Page[model_cls].build(self.as_list(model_cls), body, fetcher)


class TeckboardClientConfig(APIModel):
    """Configuration for teckboard API client."""

    endpoint: str
    """Base URL of the API, e.g. https://dev.teckboard.de/api/v1."""

    bearer_token: str | None = None
    """Bearer token sent in the Authorization header."""

    cache_enabled: bool = False
    """Reuse GET responses until the next mutating request."""

    timeout: float = 30.0
    verify_ssl: bool = True

    socket_url: str | None = None
    """Pusher-protocol websocket URL. Without it the socket is local only."""

    auth_endpoint: str | None = None
    """Channel authorization URL, defaults to /broadcasting/auth on the API host."""

    def channel_auth_url(self) -> str:
        if self.auth_endpoint:
            return self.auth_endpoint
        return str(httpx.URL(self.endpoint).copy_with(path='/broadcasting/auth', query=None))


class TeckboardClient:
    """
    HTTP client for the teckboard API.

    Handles authentication, error translation, the optional GET cache and
    owns the socket models use for real-time updates.

    Usage:
        config = TeckboardClientConfig(
            endpoint="https://dev.teckboard.de/api/v1",
            bearer_token="...",
        )
        async with TeckboardClient(config) as client:
            board = (await client.get('boards/b1')).as_model(Board)
            board.name = 'Renamed'
            await board.save()
    """

    def __init__(
        self,
        config: TeckboardClientConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        socket: Socket | None = None,
    ):
        """
        Initialize the client.

        Args:
            config: Client configuration
            transport: httpx transport override, mostly for tests
            socket: Socket override. Defaults to a PusherSocket when
                    config.socket_url is set, a local Socket otherwise.
        """
        self.config = config
        self.client = self._create_client(transport)
        self.socket = socket if socket is not None else self._create_socket()
        self._cache: dict[tuple[str, str], httpx.Response] = {}

    def _create_client(self, transport: httpx.AsyncBaseTransport | None) -> httpx.AsyncClient:
        """Create the HTTP client with authentication."""
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

        if self.config.bearer_token:
            headers["Authorization"] = f"Bearer {self.config.bearer_token}"
            logfire.debug("Sending bearer token.")

        return httpx.AsyncClient(
            base_url=self.config.endpoint,
            headers=headers,
            timeout=self.config.timeout,
            verify=self.config.verify_ssl,
            transport=transport,
        )

    def _create_socket(self) -> Socket:
        if self.config.socket_url:
            return PusherSocket(self.config.socket_url, authorizer=self.authorize_channel)
        return Socket()

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.aclose()

    async def aclose(self) -> None:
        if isinstance(self.socket, PusherSocket):
            await self.socket.close()
        await self.client.aclose()

    def clear_cache(self) -> None:
        self._cache.clear()

    async def request(
        self,
        endpoint: str,
        method: str = "GET",
        *,
        cache: bool = True,
        **kwargs: Any
    ) -> httpx.Response:
        """
        Make an authenticated request.

        Args:
            endpoint: API endpoint path, relative to the configured endpoint
            method: HTTP method (GET, POST, PUT, PATCH, DELETE). Defaults to GET.
            cache: Allow a cached GET response when caching is enabled
            **kwargs: Additional arguments to pass to httpx

        Returns:
            Response object with a 2xx status

        Raises:
            TransportError: No response was received
            NotFoundError: The server answered 404
            APIError: The server answered with any other non-2xx status
        """
        method = method.upper()
        cache_key = (endpoint, str(httpx.QueryParams(kwargs.get('params'))))
        use_cache = self.config.cache_enabled and method == "GET"
        if use_cache and cache and cache_key in self._cache:
            logfire.debug(f"{method} {endpoint} (cached)", method=method, endpoint=endpoint)
            return self._cache[cache_key]

        logfire.debug(f"{method} {endpoint}", method=method, endpoint=endpoint)
        try:
            response = await self.client.request(method, endpoint, **kwargs)
        except httpx.TransportError as exc:
            logfire.error(f"{method} {endpoint} failed: {exc}")
            raise TransportError(f"{method} {endpoint} failed: {exc}") from exc

        if response.is_error:
            raise APIError.from_response(response)

        if use_cache:
            self._cache[cache_key] = response
        elif method != "GET":
            self._cache.clear()
        return response

    async def get(self, endpoint: str, **kwargs: Any) -> APIResponse:
        """
        Make a GET request and return wrapped response.

        Args:
            endpoint: API endpoint path
            **kwargs: Additional arguments (params, headers, cache, etc.)
        """
        return APIResponse(await self.request(endpoint, "GET", **kwargs), self)

    async def post(self, endpoint: str, **kwargs: Any) -> APIResponse:
        """Make a POST request and return wrapped response."""
        return APIResponse(await self.request(endpoint, "POST", **kwargs), self)

    async def put(self, endpoint: str, **kwargs: Any) -> APIResponse:
        """Make a PUT request and return wrapped response."""
        return APIResponse(await self.request(endpoint, "PUT", **kwargs), self)

    async def patch(self, endpoint: str, **kwargs: Any) -> APIResponse:
        """Make a PATCH request and return wrapped response."""
        return APIResponse(await self.request(endpoint, "PATCH", **kwargs), self)

    async def delete(self, endpoint: str, **kwargs: Any) -> APIResponse:
        """Make a DELETE request and return wrapped response."""
        return APIResponse(await self.request(endpoint, "DELETE", **kwargs), self)

    async def authorize_channel(self, socket_id: str, channel_name: str) -> dict[str, Any]:
        """
        Authorize a private or presence channel subscription.

        Returns the `auth` / `channel_data` fields for the subscribe message.
        """
        response = await self.request(
            self.config.channel_auth_url(),
            "POST",
            json={"socket_id": socket_id, "channel_name": channel_name},
        )
        return APIResponse(response, self).json
