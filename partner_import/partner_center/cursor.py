"""Page-at-a-time cursor over one Partner Center collection."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Optional

from partner_import.errors import InvalidArgument, InvalidState
from partner_import.models import USER, AccessToken, Page, PageSpec
from partner_import.partner_center.fetcher import PagedFetcher

logger = logging.getLogger("partner_import.cursor")

DEFAULT_PAGE_SIZE = 25
MAX_PAGE_SIZE = 50


def clamp_page_size(size: Optional[int]) -> int:
    """Sizes above the ceiling become the ceiling; anything below 1 becomes the default."""
    if size is None or size < 1:
        return DEFAULT_PAGE_SIZE
    return min(size, MAX_PAGE_SIZE)


class ImportCursor:
    """Holds at most one live page of a collection.

    The first page is fetched lazily by current(). advance() follows the
    live page's continuation, or exhausts the cursor when there is none.
    """

    def __init__(
        self,
        fetcher: PagedFetcher,
        token: AccessToken,
        kind: str,
        page_size: Optional[int] = DEFAULT_PAGE_SIZE,
        customer_id: Optional[str] = None,
    ) -> None:
        if kind == USER and not customer_id:
            raise InvalidArgument("customer_id is required for a user cursor")
        self._fetcher = fetcher
        self._token = token
        self._spec = PageSpec(kind=kind, size=clamp_page_size(page_size), customer_id=customer_id)
        self._page: Optional[Page] = None
        self._started = False
        self.pages_fetched = 0

    @property
    def kind(self) -> str:
        return self._spec.kind

    @property
    def customer_id(self) -> Optional[str]:
        return self._spec.customer_id

    @property
    def page_size(self) -> int:
        return self._spec.size

    def _fetch(self, spec: PageSpec) -> Page:
        page = self._fetcher.fetch(spec.kind, spec, self._token)
        self.pages_fetched += 1
        return page

    def current(self) -> Page:
        if not self._started:
            self._page = self._fetch(self._spec)
            self._started = True
        if self._page is None:
            raise InvalidState(f"{self.kind} cursor is exhausted")
        return self._page

    def advance(self) -> None:
        page = self.current()
        if page.continuation is None:
            self._page = None
            return
        self._page = self._fetch(replace(self._spec, continuation=page.continuation))

    def has_more(self) -> bool:
        return not self._started or self._page is not None
