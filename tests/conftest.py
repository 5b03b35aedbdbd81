import asyncio
import json
from typing import Any

import httpx
import pytest

from taller_client.credentials import MemoryTokenStore
from taller_client.settings import Settings

BASE_URL = "http://taller.test"


def _json(status: int, payload: Any) -> httpx.Response:
    return httpx.Response(status_code=status, json=payload)


class FakeBackend:
    """In-memory stand-in for the taller REST API."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.clientes: list[dict[str, Any]] = [
            {"id": 1, "nombre": "Talleres Norte", "nif": "A11111111"},
        ]
        self.ordenes: list[dict[str, Any]] = [{"id": 7, "codigo": "OR-0007", "estado": "abierta"}]
        self.overrides: dict[tuple[str, str], httpx.Response] = {}
        self.gate: asyncio.Event | None = None

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def count(self, method: str, path: str) -> int:
        return sum(
            1 for request in self.requests if request.method == method and request.url.path == path
        )

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.gate is not None:
            await self.gate.wait()
        await asyncio.sleep(0)
        override = self.overrides.get((request.method, request.url.path))
        if override is not None:
            return override
        return self._route(request)

    def _route(self, request: httpx.Request) -> httpx.Response:
        method = request.method
        parts = [part for part in request.url.path.split("/") if part]
        if parts[:3] == ["api", "auth", "login"] and method == "POST":
            body = json.loads(request.content)
            if body.get("password") != "secret123":
                return _json(401, {"error": "Credenciales inválidas"})
            return _json(200, {"token": "tok-login", "user": {"username": body["username"]}})
        if parts[:2] == ["api", "clientes"]:
            return self._clientes(request, parts[2:])
        if parts == ["api", "ordenes"] and method == "GET":
            return _json(200, list(self.ordenes))
        return _json(404, {"error": "not found"})

    def _clientes(self, request: httpx.Request, rest: list[str]) -> httpx.Response:
        method = request.method
        if not rest:
            if method == "GET":
                search = request.url.params.get("search", "").lower()
                rows = [row for row in self.clientes if search in row["nombre"].lower()]
                return _json(200, rows)
            if method == "POST":
                body = json.loads(request.content)
                created = {"id": max(row["id"] for row in self.clientes) + 1, **body}
                self.clientes.append(created)
                return _json(201, created)
        found = next((row for row in self.clientes if str(row["id"]) == rest[0]), None)
        if found is None:
            return _json(404, {"error": "not found"})
        if method == "GET":
            return _json(200, found)
        if method == "PUT":
            found.update(json.loads(request.content))
            return _json(200, found)
        if method == "DELETE":
            self.clientes.remove(found)
            return httpx.Response(status_code=204)
        return _json(405, {"error": "method not allowed"})


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def tokens() -> MemoryTokenStore:
    return MemoryTokenStore("tok-123")


@pytest.fixture
def settings(monkeypatch: pytest.MonkeyPatch) -> Settings:
    for name in ("BASE_URL", "TIMEOUT_S", "TOKEN_PATH", "ON_401", "STALE_AFTER_S", "LOG_LEVEL"):
        monkeypatch.delenv(f"TALLER_{name}", raising=False)
    return Settings(_env_file=None, base_url=BASE_URL)
