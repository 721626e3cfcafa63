"""Asynchronous TLS-capable GET client with per-call timeout and classified errors."""

from __future__ import annotations

import asyncio
import logging
import re
import ssl
from collections.abc import Mapping
from typing import Any

import aiohttp

from .exceptions import (
    HttpClientError,
    HttpRequestError,
    HttpResponseError,
    HttpServerError,
    HttpTimeoutError,
    HttpTlsError,
    HttpTransportError,
)

logger = logging.getLogger(__name__)

# RFC 9110 token characters
_HEADER_NAME = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")
_HEADER_VALUE = re.compile(r"^[\t\x20-\x7e]*$")


def _validate_header(name: Any, value: Any) -> None:
    if not isinstance(name, str) or not _HEADER_NAME.match(name):
        raise HttpRequestError(f"Invalid header name: {name!r}")
    if not isinstance(value, str) or not _HEADER_VALUE.match(value):
        raise HttpRequestError(f"Invalid value for header {name!r}")


class HttpClient:
    """Thin wrapper around an aiohttp session that only issues GET requests.

    The client never retries: every call either returns the decoded body or
    raises one ``HttpError`` subclass. Retry policy belongs to callers.
    """

    def __init__(self, timeout: float, *, verify_ssl: bool = True):
        self._timeout = timeout
        self._verify_ssl = verify_ssl
        self._session: aiohttp.ClientSession | None = None

    @property
    def timeout(self) -> float:
        return self._timeout

    def set_timeout(self, timeout: float) -> None:
        self._timeout = timeout

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    async def request_get(self, uri: str, headers: Mapping[str, str] | None = None) -> str:
        """GET ``uri`` and return the body as text."""
        headers = dict(headers or {})
        for name, value in headers.items():
            _validate_header(name, value)

        # aiohttp reads total=0 as "no timeout"; a zero budget has already expired
        if self._timeout <= 0:
            raise HttpTimeoutError(f"Request timed out after {self._timeout}s: {uri}")

        session = await self._ensure_session()
        timeout = aiohttp.ClientTimeout(total=self._timeout)
        logger.debug("GET %s headers=%s", uri, sorted(headers))

        try:
            async with session.get(uri, headers=headers, timeout=timeout, ssl=self._verify_ssl) as resp:
                status = resp.status
                raw = await resp.read()
        except asyncio.TimeoutError as exc:
            logger.error("Timeout after %ss while requesting %s", self._timeout, uri)
            raise HttpTimeoutError(f"Request timed out after {self._timeout}s: {uri}") from exc
        except (aiohttp.ClientSSLError, ssl.SSLError) as exc:
            raise HttpTlsError(f"TLS failure: {exc}") from exc
        except aiohttp.ClientError as exc:
            raise HttpTransportError(f"Request failed: {exc}") from exc

        try:
            body = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise HttpResponseError(
                f"HTTP {status} on GET {uri}: body is not valid UTF-8", status_code=status,
            ) from exc

        logger.debug("HTTP %d from %s (%d bytes)", status, uri, len(raw))

        if 400 <= status < 500:
            raise HttpClientError(f"HTTP {status} on GET {uri}: {body}", status_code=status, response_body=body)
        if status >= 500:
            raise HttpServerError(f"HTTP {status} on GET {uri}: {body}", status_code=status, response_body=body)

        return body

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> HttpClient:
        await self._ensure_session()
        return self

    async def __aexit__(self, *_: Any) -> None:
        await self.close()
