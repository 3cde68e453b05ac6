"""
Paginated list responses.

The server wraps paginated lists as:

    {"data": [...], "meta": {"current_page": 1, "last_page": 2, ...}, "links": {...}}

Some endpoints report `page` / `total_pages` instead; both spellings are accepted.
"""

from collections.abc import Awaitable, Callable, Iterator
from typing import Any, Generic, TypeVar

from pydantic import AliasChoices, Field, PrivateAttr

from teckboard.models import APIModel

T = TypeVar('T')


class PageMeta(APIModel):
    """Paging metadata."""
    page: int = Field(default=1, validation_alias=AliasChoices('page', 'current_page'))
    total_pages: int = Field(default=1, validation_alias=AliasChoices('total_pages', 'last_page'))
    per_page: int | None = None
    total: int | None = None


class PageLinks(APIModel):
    """Cursor links to neighbouring pages."""
    first: str | None = None
    last: str | None = None
    prev: str | None = None
    next: str | None = None


class Page(APIModel, Generic[T]):
    """
    One page of a paginated list.

    Iterating a page yields its items. `next_page()` fetches the following
    page with the same request, or returns None on the last one.

    Example:
        page = await board.get_announcements()
        while page is not None:
            for announcement in page:
                print(announcement.title)
            page = await page.next_page()
    """
    items: list[T] = Field(default_factory=list, alias='data')
    meta: PageMeta = Field(default_factory=PageMeta)
    links: PageLinks | None = None

    _fetcher: Callable[[int], Awaitable['Page[T]']] | None = PrivateAttr(default=None)

    @property
    def page(self) -> int:
        return self.meta.page

    @property
    def total_pages(self) -> int:
        return self.meta.total_pages

    @property
    def has_next(self) -> bool:
        return self.meta.page < self.meta.total_pages

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[T]:  # type: ignore[override]
        return iter(self.items)

    def __getitem__(self, index: int) -> T:
        return self.items[index]

    async def next_page(self) -> 'Page[T] | None':
        if not self.has_next or self._fetcher is None:
            return None
        return await self._fetcher(self.meta.page + 1)

    @classmethod
    def build(
        cls,
        items: list[Any],
        body: dict[str, Any],
        fetcher: Callable[[int], Awaitable['Page[T]']] | None = None,
    ) -> 'Page[T]':
        """Assemble a page from already-built items and the raw response body."""
        page = cls(data=items, meta=body.get('meta') or {}, links=body.get('links'))
        page._fetcher = fetcher
        return page
