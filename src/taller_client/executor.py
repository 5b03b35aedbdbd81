"""Authenticated HTTP request executor for the taller REST backend."""

from __future__ import annotations

import json
import logging
from time import perf_counter
from typing import Any

import httpx
from pydantic_core import to_jsonable_python

from taller_client.credentials import TokenSource
from taller_client.errors import EncodeError, HttpError, NetworkError, ParseError
from taller_client.keys import RequestKey
from taller_client.settings import Settings

logger = logging.getLogger(__name__)

MUTATING_METHODS = frozenset({"POST", "PUT", "PATCH"})


class _NoContent:
    """Result of a successful request with no body (HTTP 204 or empty)."""

    _instance: _NoContent | None = None

    def __new__(cls) -> _NoContent:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NO_CONTENT"


NO_CONTENT = _NoContent()


def auth_headers(tokens: TokenSource) -> dict[str, str]:
    """Bearer header for the stored token; empty when no token is stored."""
    token = tokens.read()
    if not token:
        return {}
    return {"Authorization": f"Bearer {token}"}


def error_message(response: httpx.Response) -> str:
    """Message for a failed response: body ``error`` field, else status text."""
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        raw = payload.get("error")
        if isinstance(raw, str) and raw.strip():
            return raw
    reason = response.reason_phrase
    if reason:
        return reason
    return f"HTTP {response.status_code}"


def _has_no_content(response: httpx.Response) -> bool:
    if response.status_code == 204:
        return True
    if response.headers.get("content-length") == "0":
        return True
    return not response.content


def _encode_body(verb: str, url: str, body: Any) -> str:
    try:
        return json.dumps(body, default=to_jsonable_python)
    except (TypeError, ValueError) as exc:
        raise EncodeError(f"{verb} {url} body is not JSON serializable: {exc}") from exc


class RequestExecutor:
    """Thin async HTTP client around the taller REST API."""

    def __init__(
        self,
        settings: Settings,
        tokens: TokenSource,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        self.settings = settings
        self.tokens = tokens
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(
            base_url=settings.base_url.rstrip("/"),
            timeout=settings.timeout_s,
            transport=transport,
        )

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> RequestExecutor:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    def build_headers(self, *, has_body: bool) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if has_body:
            headers["Content-Type"] = "application/json"
        headers.update(auth_headers(self.tokens))
        return headers

    async def execute(
        self,
        method: str,
        url: str,
        body: Any = None,
        *,
        params: list[tuple[str, str]] | dict[str, Any] | None = None,
    ) -> Any:
        """Issue one request and return decoded JSON or ``NO_CONTENT``."""
        verb = method.upper()
        content: str | None = None
        if body is not None:
            if verb in MUTATING_METHODS:
                content = _encode_body(verb, url, body)
            else:
                logger.debug("ignoring body for %s %s", verb, url)
        headers = self.build_headers(has_body=content is not None)

        started = perf_counter()
        try:
            response = await self._http.request(
                verb, url, headers=headers, content=content, params=params or None
            )
        except httpx.RequestError as exc:
            logger.warning("%s %s transport error: %s", verb, url, exc)
            raise NetworkError(f"{verb} {url} failed with transport error: {exc}") from exc
        duration_ms = int((perf_counter() - started) * 1000)
        logger.debug("%s %s -> %s (%d ms)", verb, url, response.status_code, duration_ms)

        if not response.is_success:
            message = error_message(response)
            logger.warning(
                "%s %s failed with status %s: %s", verb, url, response.status_code, message
            )
            raise HttpError(response.status_code, message)

        if _has_no_content(response):
            return NO_CONTENT
        try:
            return response.json()
        except ValueError as exc:
            raise ParseError(
                f"{verb} {url} returned invalid JSON", status=response.status_code
            ) from exc

    async def execute_key(self, key: RequestKey) -> Any:
        """GET the resource a request key identifies."""
        path, params = key.url_parts()
        return await self.execute("GET", path, params=params)
