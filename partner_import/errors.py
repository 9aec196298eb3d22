"""Exception taxonomy shared by the fetcher, token provider and import session."""

from __future__ import annotations

from typing import Optional


class PartnerImportError(Exception):
    """Base class for every failure raised by partner_import."""


class InvalidArgument(PartnerImportError, ValueError):
    """A required input was missing or empty."""


class ConfigurationError(PartnerImportError):
    """A connectivity parameter or environment setting is missing or invalid."""


class InvalidState(PartnerImportError):
    """The host drove the import session out of protocol."""


class AuthFailure(PartnerImportError):
    """The authority rejected the credential exchange."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class CommunicationFailure(PartnerImportError):
    """The remote API answered with a non-success status."""

    def __init__(self, status_code: int, body: str = "", url: Optional[str] = None) -> None:
        message = f"HTTP {status_code}"
        if url:
            message += f" from {url}"
        if body:
            message += f": {body[:500]}"
        super().__init__(message)
        self.status_code = status_code
        self.body = body
        self.url = url

    @property
    def is_authorization_failure(self) -> bool:
        return self.status_code == 401


class EntityNotUsable(CommunicationFailure):
    """A customer-scoped collection cannot be enumerated (403/404 on the customer)."""
