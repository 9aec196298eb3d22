"""Shared test fixtures.

Provides:
  - make_response(): a stand-in for requests.Response
  - FakePartnerCenter: a requests.Session double serving the token endpoint
    and seek-paginated customer/user listings shaped like the real API
  - ConnectorConfig fixtures with throwaway credentials
"""

import json
from datetime import datetime, timezone
from typing import Any, Optional
from unittest.mock import MagicMock
from urllib.parse import parse_qs, urlparse

import pytest

from partner_import.config import ConnectorConfig
from partner_import.secrets import SecretBuffer

API_BASE = "https://api.test"
AUTHORITY = "https://login.test"
FIXED_NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


def make_response(status: int, payload: Any = None) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.ok = status < 400
    resp.json.return_value = payload
    resp.text = json.dumps(payload) if payload is not None else ""
    return resp


def make_customers(n: int) -> list[dict[str, Any]]:
    return [
        {
            "id": f"cust-{i:03d}",
            "companyProfile": {
                "companyName": f"Company {i:03d}",
                "domain": f"company{i:03d}.onmicrosoft.com",
                "tenantId": f"cust-{i:03d}",
            },
            "relationshipToPartner": "reseller",
        }
        for i in range(n)
    ]


def make_users(customer_id: str, n: int) -> list[dict[str, Any]]:
    return [
        {
            "id": f"{customer_id}-user-{j:02d}",
            "userPrincipalName": f"user{j}@{customer_id}.onmicrosoft.com",
            "firstName": f"First{j}",
            "lastName": f"Last{j}",
            "displayName": f"First{j} Last{j}",
            "usageLocation": "US",
        }
        for j in range(n)
    ]


class FakePartnerCenter:
    """requests.Session double for the authority and the listing API.

    Pages are sliced from the configured records; the continuation token is
    the offset of the next page.
    """

    def __init__(
        self,
        customers: Optional[list[dict]] = None,
        users: Optional[dict[str, list[dict]]] = None,
        unusable: tuple = (),
        failing: Optional[dict[str, int]] = None,
        token_ttl: int = 3600,
    ) -> None:
        self.customers = customers or []
        self.users = users or {}
        self.unusable = set(unusable)
        self.failing = failing or {}
        self.token_ttl = token_ttl
        self.post = MagicMock(side_effect=self._post)
        self.get = MagicMock(side_effect=self._get)

    def _post(self, url, data=None, headers=None, timeout=None):
        return make_response(
            200,
            {"token_type": "Bearer", "access_token": "test-token", "expires_in": self.token_ttl},
        )

    def _get(self, url, params=None, headers=None, timeout=None):
        parsed = urlparse(url)
        path = parsed.path
        if params:
            size = int(params["size"])
            offset = 0
        else:
            size = int(parse_qs(parsed.query)["size"][0])
            offset = int(headers["MS-ContinuationToken"])

        if not path.startswith("/v1/"):
            return make_response(404, {"code": 404, "description": "Resource not found"})
        if path in self.failing:
            return make_response(self.failing[path], {"code": 500, "description": "boom"})

        if path == "/v1/customers":
            records = self.customers
        else:
            customer_id = path.split("/")[3]
            if customer_id in self.unusable:
                return make_response(403, {"code": 2004, "description": "Access denied"})
            records = self.users.get(customer_id, [])

        items = records[offset:offset + size]
        body: dict[str, Any] = {
            "totalCount": len(items),
            "items": items,
            "links": {"self": {"uri": path, "method": "GET", "headers": []}},
            "attributes": {"objectType": "Collection"},
        }
        next_offset = offset + size
        if next_offset < len(records):
            # Next links are relative to the /v1 service root
            relative = path[len("/v1"):]
            body["links"]["next"] = {
                "uri": f"{relative}?size={size}&seekOperation=Next",
                "method": "GET",
                "headers": [{"key": "MS-ContinuationToken", "value": str(next_offset)}],
            }
        return make_response(200, body)

    def user_listing_calls(self) -> list[str]:
        return [
            urlparse(c.args[0]).path
            for c in self.get.call_args_list
            if urlparse(c.args[0]).path.endswith("/users")
        ]


@pytest.fixture
def connector_config() -> ConnectorConfig:
    return ConnectorConfig(
        app_id="app-id",
        app_secret=SecretBuffer("app-secret"),
        username="admin@partner.onmicrosoft.com",
        password=SecretBuffer("p@ss word"),
        authority=AUTHORITY,
        resource=API_BASE,
        api_base_url=API_BASE,
        page_size=25,
    )


@pytest.fixture
def parameters() -> dict[str, str]:
    return {
        "AppId": "app-id",
        "AppSecret": "app-secret",
        "Username": "admin@partner.onmicrosoft.com",
        "Password": "p@ss word",
    }
