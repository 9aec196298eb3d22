"""Access token acquisition against the Azure AD authority (password grant)."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Union

import requests

from partner_import.config import ConnectorConfig
from partner_import.errors import AuthFailure, InvalidArgument
from partner_import.models import AccessToken
from partner_import.secrets import SecretBuffer

logger = logging.getLogger("partner_import.token")

TOKEN_PATH = "/common/oauth2/token"

# RFC 3986 unreserved characters pass through form encoding untouched
_UNRESERVED = frozenset(
    b"ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-._~"
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _append_encoded(body: bytearray, value: Union[bytes, bytearray]) -> None:
    for octet in value:
        if octet in _UNRESERVED:
            body.append(octet)
        else:
            body += b"%%%02X" % octet


def innermost_cause(exc: BaseException) -> BaseException:
    """Follow a chain of wrapped exceptions down to the original failure."""
    seen: set[int] = set()
    while id(exc) not in seen:
        seen.add(id(exc))
        nxt = exc.__cause__ or exc.__context__
        if nxt is None:
            # requests wraps urllib3 errors in args; urllib3 keeps them in .reason
            reason = getattr(exc, "reason", None)
            if isinstance(reason, BaseException):
                nxt = reason
            elif exc.args and isinstance(exc.args[0], BaseException):
                nxt = exc.args[0]
        if nxt is None:
            break
        exc = nxt
    return exc


class TokenProvider:
    """Exchanges app + user credentials for a bearer token.

    Every acquire() performs a fresh exchange and blocks until the authority
    answers. The credential buffers are owned by the caller. The form body is
    assembled in a bytearray that is zeroed once the request completes, but
    requests only accepts an immutable bytes copy of it; that copy cannot be
    scrubbed and lives until it is garbage collected.
    """

    def __init__(
        self,
        app_id: str,
        app_secret: SecretBuffer,
        username: str,
        password: SecretBuffer,
        session: Optional[requests.Session] = None,
        timeout: float = 30.0,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if not app_id:
            raise InvalidArgument("app_id is required")
        if not app_secret:
            raise InvalidArgument("app_secret is required")
        if not username:
            raise InvalidArgument("username is required")
        if not password:
            raise InvalidArgument("password is required")
        self._app_id = app_id
        self._app_secret = app_secret
        self._username = username
        self._password = password
        self._session = session or requests.Session()
        self._timeout = timeout
        self._clock = clock

    @classmethod
    def from_config(
        cls,
        config: ConnectorConfig,
        session: Optional[requests.Session] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> "TokenProvider":
        return cls(
            config.app_id,
            config.app_secret,
            config.username,
            config.password,
            session=session,
            timeout=config.http_timeout,
            clock=clock,
        )

    def _form_body(self, resource: str) -> bytearray:
        fields = (
            (b"client_id", self._app_id.encode("utf-8")),
            (b"client_secret", self._app_secret.buffer),
            (b"grant_type", b"password"),
            (b"password", self._password.buffer),
            (b"resource", resource.encode("utf-8")),
            (b"username", self._username.encode("utf-8")),
        )
        body = bytearray()
        for name, value in fields:
            if body:
                body += b"&"
            body += name + b"="
            _append_encoded(body, value)
        return body

    def acquire(self, authority: str, resource: str) -> AccessToken:
        """Run the password-grant exchange and return a usable token.

        Raises AuthFailure when the exchange fails for any reason; the reason
        names the innermost cause, never a wrapper.
        """
        if not authority:
            raise InvalidArgument("authority is required")
        if not resource:
            raise InvalidArgument("resource is required")

        url = authority.rstrip("/") + TOKEN_PATH
        requested_at = self._clock()
        body = self._form_body(resource)
        try:
            resp = self._session.post(
                url,
                data=bytes(body),
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            cause = innermost_cause(exc)
            raise AuthFailure(f"Token request to {url} failed: {cause}") from cause
        finally:
            for i in range(len(body)):
                body[i] = 0

        if not resp.ok:
            raise AuthFailure(
                f"Authority rejected the credential exchange "
                f"(HTTP {resp.status_code}): {_error_description(resp)}"
            )

        try:
            data = resp.json()
            access_token = data["access_token"]
            expires_in = int(data["expires_in"])
        except (ValueError, KeyError, TypeError) as exc:
            raise AuthFailure(f"Malformed token response from {url}: {exc!r}") from exc
        if not access_token:
            raise AuthFailure(f"Token response from {url} carried no access_token")

        token = AccessToken(
            access_token=access_token,
            expires_on=requested_at + timedelta(seconds=expires_in),
        )
        if token.is_near_expiry(self._clock()):
            raise AuthFailure(f"Token issued with expires_in={expires_in}s is already near expiry")

        logger.info("Acquired access token for %s, expires %s", resource, token.expires_on.isoformat())
        return token


def _error_description(resp: requests.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        return resp.text[:500]
    if isinstance(data, dict):
        return str(data.get("error_description") or data.get("error") or data)[:500]
    return str(data)[:500]
