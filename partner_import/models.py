"""Records, pages and change entries exchanged between the import components."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, ClassVar, Optional, Union

CUSTOMER = "customer"
USER = "user"
RECORD_KINDS = (CUSTOMER, USER)

NEAR_EXPIRY_WINDOW = timedelta(minutes=1)


@dataclass(frozen=True)
class Customer:
    id: str
    company_name: str = ""
    domain: str = ""
    tenant_id: str = ""

    KIND: ClassVar[str] = CUSTOMER
    # Fields mapped to change attributes, in emission order
    ATTRIBUTES: ClassVar[tuple[str, ...]] = ("company_name", "domain", "tenant_id")

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Customer":
        profile = data.get("companyProfile") or {}
        return cls(
            id=data.get("id") or "",
            company_name=profile.get("companyName") or "",
            domain=profile.get("domain") or "",
            tenant_id=profile.get("tenantId") or "",
        )


@dataclass(frozen=True)
class User:
    id: str
    customer_id: str
    display_name: str = ""
    first_name: str = ""
    last_name: str = ""
    usage_location: str = ""
    user_principal_name: str = ""

    KIND: ClassVar[str] = USER
    ATTRIBUTES: ClassVar[tuple[str, ...]] = (
        "display_name",
        "first_name",
        "last_name",
        "usage_location",
        "user_principal_name",
    )

    @classmethod
    def from_api(cls, data: dict[str, Any], customer_id: str) -> "User":
        return cls(
            id=data.get("id") or "",
            customer_id=customer_id,
            display_name=data.get("displayName") or "",
            first_name=data.get("firstName") or "",
            last_name=data.get("lastName") or "",
            usage_location=data.get("usageLocation") or "",
            user_principal_name=data.get("userPrincipalName") or "",
        )


Record = Union[Customer, User]


@dataclass(frozen=True)
class Continuation:
    """Seek state returned by the listing API for the next page."""

    uri: str
    headers: tuple[tuple[str, str], ...] = ()


@dataclass(frozen=True)
class PageSpec:
    kind: str
    size: int
    customer_id: Optional[str] = None
    continuation: Optional[Continuation] = None


@dataclass(frozen=True)
class Page:
    items: tuple[Record, ...]
    continuation: Optional[Continuation] = None
    total_count: Optional[int] = None

    @property
    def has_next(self) -> bool:
        return self.continuation is not None

    def __len__(self) -> int:
        return len(self.items)


@dataclass(frozen=True)
class AccessToken:
    access_token: str
    expires_on: datetime

    def is_near_expiry(self, now: Optional[datetime] = None) -> bool:
        """True once the current time is within one minute of expiry."""
        now = now or datetime.now(timezone.utc)
        return now > self.expires_on - NEAR_EXPIRY_WINDOW

    def __repr__(self) -> str:
        return f"AccessToken(expires_on={self.expires_on.isoformat()})"


@dataclass(frozen=True)
class ChangeEntry:
    dn: str
    object_type: str
    attributes: tuple[tuple[str, str], ...] = ()
    modification_type: str = "add"

    def get(self, name: str) -> Optional[str]:
        for key, value in self.attributes:
            if key == name:
                return value
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "dn": self.dn,
            "object_type": self.object_type,
            "modification_type": self.modification_type,
            "attributes": dict(self.attributes),
        }


@dataclass(frozen=True)
class ImportBatch:
    entries: list[ChangeEntry] = field(default_factory=list)
    more: bool = False

    def __len__(self) -> int:
        return len(self.entries)
