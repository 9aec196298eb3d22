"""Partner Center API access: token exchange, page fetches and cursors."""

from partner_import.partner_center.cursor import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    ImportCursor,
    clamp_page_size,
)
from partner_import.partner_center.fetcher import PagedFetcher
from partner_import.partner_center.token import TokenProvider

__all__ = [
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    "ImportCursor",
    "PagedFetcher",
    "TokenProvider",
    "clamp_page_size",
]
