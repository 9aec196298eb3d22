"""Single-page fetches against the Partner Center customer and user listings."""

from __future__ import annotations

import logging
import uuid
from typing import Any, Optional
from urllib.parse import urljoin

import requests

from partner_import.errors import CommunicationFailure, EntityNotUsable, InvalidArgument
from partner_import.models import (
    CUSTOMER,
    RECORD_KINDS,
    USER,
    AccessToken,
    Continuation,
    Customer,
    Page,
    PageSpec,
    User,
)

logger = logging.getLogger("partner_import.fetcher")

# Statuses on a customer-scoped listing meaning the customer cannot be enumerated
ENTITY_NOT_USABLE_STATUSES = frozenset({403, 404})


class PagedFetcher:
    """Fetches one page per call. No retries and no token refresh."""

    def __init__(
        self,
        base_url: str,
        session: Optional[requests.Session] = None,
        timeout: float = 30.0,
    ) -> None:
        if not base_url:
            raise InvalidArgument("base_url is required")
        self._base = base_url.rstrip("/")
        # Listing paths and next links are relative to the versioned service root
        self._root = f"{self._base}/v1/"
        self._session = session or requests.Session()
        self._timeout = timeout

    def _first_page_url(self, spec: PageSpec) -> str:
        if spec.kind == CUSTOMER:
            return self._root + "customers"
        return f"{self._root}customers/{spec.customer_id}/users"

    def _continuation_url(self, uri: str) -> str:
        if uri.startswith("/v1/"):
            return urljoin(self._base + "/", uri)
        return urljoin(self._root, uri.lstrip("/"))

    def fetch(
        self,
        kind: Optional[str],
        page_spec: Optional[PageSpec],
        token: Optional[AccessToken],
    ) -> Page:
        if not kind:
            raise InvalidArgument("kind is required")
        if page_spec is None:
            raise InvalidArgument("page_spec is required")
        if token is None or not token.access_token:
            raise InvalidArgument("token is required")
        if kind not in RECORD_KINDS:
            raise InvalidArgument(f"Unknown record kind: {kind!r}")
        if kind == USER and not page_spec.customer_id:
            raise InvalidArgument("customer_id is required to list users")

        headers = {
            "Authorization": f"Bearer {token.access_token}",
            "Accept": "application/json",
            "MS-RequestId": str(uuid.uuid4()),
        }
        params: Optional[dict[str, Any]] = None
        if page_spec.continuation is not None:
            url = self._continuation_url(page_spec.continuation.uri)
            headers.update(dict(page_spec.continuation.headers))
        else:
            url = self._first_page_url(page_spec)
            params = {"size": page_spec.size}

        resp = self._session.get(url, params=params, headers=headers, timeout=self._timeout)
        if not resp.ok:
            logger.warning(
                "Listing %s failed with HTTP %d",
                url,
                resp.status_code,
                extra={"status_code": resp.status_code, "customer_id": page_spec.customer_id},
            )
            if page_spec.customer_id and resp.status_code in ENTITY_NOT_USABLE_STATUSES:
                raise EntityNotUsable(resp.status_code, resp.text, url)
            raise CommunicationFailure(resp.status_code, resp.text, url)

        try:
            data = resp.json()
        except ValueError as exc:
            raise CommunicationFailure(resp.status_code, resp.text, url) from exc
        if not isinstance(data, dict):
            raise CommunicationFailure(resp.status_code, resp.text, url)
        page = _parse_page(kind, data, page_spec.customer_id)
        logger.debug("Fetched %d %s records from %s", len(page), kind, url)
        return page


def _parse_continuation(data: dict[str, Any]) -> Optional[Continuation]:
    nxt = (data.get("links") or {}).get("next")
    if not nxt or not nxt.get("uri"):
        return None
    headers = tuple(
        (h["key"], h["value"])
        for h in nxt.get("headers") or []
        if h.get("key")
    )
    return Continuation(uri=nxt["uri"], headers=headers)


def _parse_page(kind: str, data: dict[str, Any], customer_id: Optional[str]) -> Page:
    raw_items = data.get("items") or []
    if kind == CUSTOMER:
        items = tuple(Customer.from_api(item) for item in raw_items)
    else:
        items = tuple(User.from_api(item, customer_id or "") for item in raw_items)
    return Page(
        items=items,
        continuation=_parse_continuation(data),
        total_count=data.get("totalCount"),
    )
