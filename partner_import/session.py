"""Resumable two-phase import: customer pages first, then each customer's users.

The host pulls one batch per call. All traversal state lives in the
ImportSession value handed back by start() and passed into every pull(),
so nothing is re-fetched between calls:

    CUSTOMERS         emit the live customer page, index (name, id), advance
    CONFIGURE_USERS   build the next indexed customer's user cursor; customers
                      whose users cannot be listed are skipped
    USERS             emit the live user page tagged with the customer name
    DONE              nothing left; further pulls are a protocol error
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Optional

import requests

from partner_import.config import ConnectorConfig
from partner_import.errors import EntityNotUsable, InvalidState
from partner_import.models import CUSTOMER, USER, AccessToken, ImportBatch
from partner_import.partner_center.cursor import DEFAULT_PAGE_SIZE, ImportCursor
from partner_import.partner_center.fetcher import PagedFetcher
from partner_import.partner_center.token import TokenProvider
from partner_import.transform import to_change_entry

logger = logging.getLogger("partner_import.session")

INIT = "INIT"
CUSTOMERS = "CUSTOMERS"
CONFIGURE_USERS = "CONFIGURE_USERS"
USERS = "USERS"
DONE = "DONE"
FAILED = "FAILED"
CLOSED = "CLOSED"

COMPANY_ATTRIBUTE = "company"


class CustomerIndex:
    """Customers in the order they were observed, replayed once by position."""

    def __init__(self) -> None:
        self._entries: list[tuple[str, str]] = []
        self._ids: set[str] = set()
        self.position = 0

    def add(self, name: str, customer_id: str) -> None:
        if customer_id in self._ids:
            raise InvalidState(f"Customer {customer_id} was already indexed in this session")
        self._ids.add(customer_id)
        self._entries.append((name, customer_id))

    @property
    def entries(self) -> tuple[tuple[str, str], ...]:
        return tuple(self._entries)

    def ids(self) -> list[str]:
        return [customer_id for _, customer_id in self._entries]

    def current(self) -> Optional[tuple[str, str]]:
        if self.position < len(self._entries):
            return self._entries[self.position]
        return None

    def advance(self) -> bool:
        """Move the replay position; True while an entry remains."""
        self.position += 1
        return self.position < len(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


@dataclass
class ImportSession:
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    index: CustomerIndex = field(default_factory=CustomerIndex)
    customer_cursor: Optional[ImportCursor] = None
    user_cursor: Optional[ImportCursor] = None
    phase: str = INIT
    token: Optional[AccessToken] = None
    pulls: int = 0
    customers_imported: int = 0
    users_imported: int = 0
    skipped_customers: list[str] = field(default_factory=list)
    started_at: float = field(default_factory=time.monotonic)

    @property
    def active(self) -> bool:
        return self.phase in (CUSTOMERS, CONFIGURE_USERS, USERS)

    def _log_extra(self, **kwargs) -> dict:
        return {"session_id": self.session_id, "phase": self.phase, **kwargs}


class ImportSessionStateMachine:
    """Drives cursors for one session at a time; holds no per-session state itself."""

    def __init__(
        self,
        token_provider: TokenProvider,
        fetcher: PagedFetcher,
        authority: str,
        resource: str,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        self._tokens = token_provider
        self._fetcher = fetcher
        self._authority = authority
        self._resource = resource
        self._page_size = page_size

    @classmethod
    def from_config(
        cls,
        config: ConnectorConfig,
        http: Optional[requests.Session] = None,
    ) -> "ImportSessionStateMachine":
        http = http or requests.Session()
        return cls(
            token_provider=TokenProvider.from_config(config, session=http),
            fetcher=PagedFetcher(config.api_base_url, session=http, timeout=config.http_timeout),
            authority=config.authority,
            resource=config.resource,
            page_size=config.page_size,
        )

    # ------------------------------------------------------------------
    # Host-facing operations
    # ------------------------------------------------------------------

    def start(self) -> ImportSession:
        """Acquire a token and position a customer cursor before the first page."""
        session = ImportSession()
        session.token = self._tokens.acquire(self._authority, self._resource)
        session.customer_cursor = ImportCursor(self._fetcher, session.token, CUSTOMER, self._page_size)
        session.phase = CUSTOMERS
        logger.info("Import session opened", extra=session._log_extra())
        return session

    def pull(self, session: Optional[ImportSession]) -> ImportBatch:
        """Return the next batch of change entries and whether more remain."""
        if session is None:
            raise InvalidState("No import session; open one before pulling")
        if session.phase == INIT:
            raise InvalidState("Import session has not been started")
        if not session.active:
            raise InvalidState(f"Import session is {session.phase}; nothing left to pull")

        session.pulls += 1
        try:
            batch = self._step(session)
        except Exception:
            logger.error(
                "Import session failed on pull %d",
                session.pulls,
                extra=session._log_extra(),
            )
            session.phase = FAILED
            session.customer_cursor = None
            session.user_cursor = None
            raise

        logger.info(
            "Pulled %d entries (more=%s)",
            len(batch),
            batch.more,
            extra=session._log_extra(entries=len(batch)),
        )
        return batch

    def close(self, session: ImportSession) -> None:
        logger.info(
            "Import session closed: %d customers, %d users, %d skipped",
            session.customers_imported,
            session.users_imported,
            len(session.skipped_customers),
            extra=session._log_extra(duration_s=round(time.monotonic() - session.started_at, 3)),
        )
        session.phase = CLOSED
        session.customer_cursor = None
        session.user_cursor = None
        session.token = None

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _step(self, session: ImportSession) -> ImportBatch:
        if session.phase == CUSTOMERS:
            if session.customer_cursor is not None and session.customer_cursor.has_more():
                return self._pull_customers(session)
            session.customer_cursor = None
            session.index.position = 0
            session.phase = CONFIGURE_USERS
            logger.info(
                "Customer phase complete, %d customers indexed",
                len(session.index),
                extra=session._log_extra(),
            )

        if session.phase == CONFIGURE_USERS:
            if not self._configure_user_cursor(session):
                session.phase = DONE
                return ImportBatch([], more=False)
            session.phase = USERS

        return self._pull_users(session)

    def _pull_customers(self, session: ImportSession) -> ImportBatch:
        cursor = session.customer_cursor
        page = cursor.current()
        entries = [to_change_entry(customer) for customer in page.items]
        cursor.advance()
        for customer in page.items:
            session.index.add(customer.company_name, customer.id)
        session.customers_imported += len(entries)
        # The user phase always follows, so more remains even after the last page
        return ImportBatch(entries, more=True)

    def _token_for_cursor(self, session: ImportSession) -> AccessToken:
        if session.token is None or session.token.is_near_expiry():
            logger.info("Refreshing access token", extra=session._log_extra())
            session.token = self._tokens.acquire(self._authority, self._resource)
        return session.token

    def _configure_user_cursor(self, session: ImportSession) -> bool:
        """Build a user cursor for the next usable customer; False once none remain."""
        while True:
            entry = session.index.current()
            if entry is None:
                return False
            name, customer_id = entry
            cursor = ImportCursor(
                self._fetcher,
                self._token_for_cursor(session),
                USER,
                self._page_size,
                customer_id=customer_id,
            )
            try:
                cursor.current()
            except EntityNotUsable as exc:
                logger.warning(
                    "Skipping users of customer %s (%s): HTTP %d",
                    customer_id,
                    name,
                    exc.status_code,
                    extra=session._log_extra(customer_id=customer_id, status_code=exc.status_code),
                )
                session.skipped_customers.append(customer_id)
                session.index.advance()
                continue
            session.user_cursor = cursor
            return True

    def _pull_users(self, session: ImportSession) -> ImportBatch:
        cursor = session.user_cursor
        name, _ = session.index.current()
        page = cursor.current()
        extra = ((COMPANY_ATTRIBUTE, name),)
        entries = [to_change_entry(user, extra) for user in page.items]
        cursor.advance()
        session.users_imported += len(entries)

        if cursor.has_more():
            return ImportBatch(entries, more=True)

        session.user_cursor = None
        if session.index.advance():
            session.phase = CONFIGURE_USERS
            return ImportBatch(entries, more=True)
        session.phase = DONE
        return ImportBatch(entries, more=False)
