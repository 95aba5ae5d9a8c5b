# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""
Async Gerrit REST transport and response decoding.

This module provides a thin typed wrapper around ``httpx.AsyncClient`` for
Gerrit's REST API with:
- Deferred HTTP basic authentication (credentials are only sent after the
  server issues a Basic challenge)
- Strict XSSI guard checking and JSON decoding of Gerrit responses
- Classification of HTTP failures into typed exceptions

Usage:
    from gerritlabel.gerrit.client import Credentials, GerritRestClient

    async with GerritRestClient(auth=Credentials("user", "secret")) as client:
        changes = await client.get_json(
            "https://gerrit.example.org/changes/", params={"q": "status:open"}
        )
"""

from __future__ import annotations

import base64
import json
import logging
from collections.abc import Generator
from dataclasses import dataclass
from types import TracebackType
from typing import Any, Final

import httpx

from gerritlabel.errors import GerritLabelError

log = logging.getLogger("gerritlabel.gerrit.client")


XSSI_PREFIX: Final[bytes] = b")]}'\n"

DEFAULT_TIMEOUT: Final[float] = 10.0


class GerritRestError(GerritLabelError):
    """Raised for failed REST requests."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class GerritAuthError(GerritRestError):
    """Raised for authentication failures (401/403)."""


class GerritNotFoundError(GerritRestError):
    """Raised when a resource is not found (404)."""


class GerritDecodeError(GerritRestError):
    """Raised when a response body is not a guarded Gerrit JSON document."""


@dataclass(frozen=True)
class Credentials:
    """HTTP credentials for a Gerrit server."""

    user: str
    password: str

    def __repr__(self) -> str:
        return f"Credentials(user={self.user!r}, password={_mask_secret(self.password)!r})"


def _mask_secret(s: str) -> str:
    """Mask a secret for logging, preserving first/last 2 chars."""
    if not s:
        return s
    if len(s) <= 4:
        return "****"
    return s[:2] + "*" * (len(s) - 4) + s[-2:]


class DeferredBasicAuth(httpx.Auth):
    """
    HTTP basic auth that waits for the server to ask for it.

    The first request is sent without an ``Authorization`` header. If the
    server answers ``401`` with a ``Basic`` challenge, the request is sent
    once more carrying the credentials. Any other response, including a
    challenge for a different scheme, is returned unchanged.
    """

    def __init__(self, username: str, password: str) -> None:
        token = base64.b64encode(f"{username}:{password}".encode()).decode("ascii")
        self._auth_header = f"Basic {token}"

    def auth_flow(
        self, request: httpx.Request
    ) -> Generator[httpx.Request, httpx.Response, None]:
        response = yield request

        if response.status_code != 401:
            return

        challenge = response.headers.get("www-authenticate", "")
        if challenge.split(" ", 1)[0].lower() != "basic":
            log.debug(
                "Ignoring non-Basic authentication challenge: %r", challenge
            )
            return

        log.debug("Answering Basic challenge for %s", request.url)
        request.headers["Authorization"] = self._auth_header
        yield request


def decode_response(body: bytes) -> Any:
    """
    Strip Gerrit's XSSI guard and parse the JSON payload.

    Gerrit prepends ``)]}'`` and a newline to every JSON response to
    prevent JSON hijacking. The guard must be present byte-for-byte.

    Raises:
        GerritDecodeError: If the guard is missing or the payload is not
            valid UTF-8 JSON.
    """
    if not body.startswith(XSSI_PREFIX):
        preview = body[:16].decode("utf-8", errors="replace")
        raise GerritDecodeError(
            f"Response does not start with the Gerrit XSSI guard: {preview!r}"
        )

    try:
        return json.loads(body[len(XSSI_PREFIX):].decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise GerritDecodeError(f"Failed to parse JSON response: {exc}") from exc


class GerritRestClient:
    """
    Async REST client for Gerrit.

    Each ``get_json`` call issues exactly one logical GET request (plus the
    authenticated re-send when the server challenges) and never retries.
    The client owns an ``httpx.AsyncClient`` and must be closed, either
    with ``aclose()`` or by using it as an async context manager.
    """

    def __init__(
        self,
        *,
        auth: Credentials | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the Gerrit REST client.

        Args:
            auth: Optional credentials for deferred HTTP basic auth.
            timeout: Request timeout in seconds.
            transport: Optional httpx transport, mainly for tests.
        """
        self._auth: Credentials | None = None
        if auth is not None and auth.user and auth.password:
            self._auth = auth

        self._timeout = float(timeout)
        self._client = httpx.AsyncClient(
            auth=(
                DeferredBasicAuth(self._auth.user, self._auth.password)
                if self._auth is not None
                else None
            ),
            headers={"Accept": "application/json"},
            timeout=self._timeout,
            transport=transport,
        )

        log.debug(
            "GerritRestClient initialized: timeout=%.1fs, auth_user=%s",
            self._timeout,
            self._auth.user if self._auth else "(none)",
        )

    @property
    def is_authenticated(self) -> bool:
        """Check if the client has authentication credentials."""
        return self._auth is not None

    async def __aenter__(self) -> GerritRestClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying connection pool."""
        await self._client.aclose()

    async def get_json(self, url: str, params: dict[str, str] | None = None) -> Any:
        """
        Perform an HTTP GET request and decode the guarded JSON body.

        Args:
            url: Absolute URL of the REST resource.
            params: Optional query parameters.

        Returns:
            The parsed JSON response.

        Raises:
            GerritAuthError: On authentication failures.
            GerritNotFoundError: When the resource is not found.
            GerritDecodeError: When the body is not guarded JSON.
            GerritRestError: On any other HTTP or network failure.
        """
        log.debug(
            "Gerrit REST GET %s (auth=%s)", url, "yes" if self._auth else "no"
        )

        try:
            response = await self._client.get(url, params=params)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise GerritRestError(f"Gerrit REST GET {url} failed: {exc}") from exc

        status = response.status_code
        if status >= 400:
            body = response.text
            if status in (401, 403):
                raise GerritAuthError(
                    f"Authentication failed for {url} (HTTP {status})",
                    status_code=status,
                    response_body=body,
                )
            if status == 404:
                raise GerritNotFoundError(
                    f"Resource not found: {url}",
                    status_code=status,
                    response_body=body,
                )
            raise GerritRestError(
                f"Gerrit REST GET {url} failed with HTTP {status}",
                status_code=status,
                response_body=body,
            )

        return decode_response(response.content)

    def __repr__(self) -> str:
        """String representation for debugging."""
        auth = "(none)"
        if self._auth is not None:
            auth = f"{self._auth.user}:{_mask_secret(self._auth.password)}"
        return f"GerritRestClient(auth='{auth}', timeout={self._timeout})"


__all__ = [
    "Credentials",
    "DeferredBasicAuth",
    "GerritAuthError",
    "GerritDecodeError",
    "GerritNotFoundError",
    "GerritRestClient",
    "GerritRestError",
    "XSSI_PREFIX",
    "decode_response",
]
