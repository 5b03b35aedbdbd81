import asyncio
from typing import Any

import pytest

from conftest import FakeBackend
from taller_client.credentials import MemoryTokenStore
from taller_client.errors import EncodeError, HttpError, ValidationError
from taller_client.executor import NO_CONTENT, RequestExecutor
from taller_client.forms import ClienteForm
from taller_client.keys import RequestKey
from taller_client.mutations import Mutation, MutationExecutor
from taller_client.query_cache import QueryCache
from taller_client.settings import Settings


def test_mutation_declaration_normalizes_fields() -> None:
    mutation = Mutation.define(
        "clientes.update", "put", "/api/clientes/{id}", invalidates=["/api/clientes"]
    )

    assert mutation.method == "PUT"
    assert mutation.invalidates == (RequestKey.of("/api/clientes"),)
    assert mutation.path_params == ["id"]
    assert mutation.url(id=4) == "/api/clientes/4"
    with pytest.raises(ValidationError, match="id: missing path parameter"):
        mutation.url()
    with pytest.raises(ValueError, match="non-write method"):
        Mutation.define("bad", "GET", "/api/clientes")


def _wire(settings: Settings, backend: FakeBackend) -> tuple[RequestExecutor, QueryCache]:
    executor = RequestExecutor(settings, MemoryTokenStore("tok"), transport=backend.transport())
    return executor, QueryCache(executor.execute_key)


def test_success_invalidates_declared_keys_then_calls_back(
    settings: Settings, backend: FakeBackend
) -> None:
    create = Mutation.define(
        "clientes.create", "POST", "/api/clientes", invalidates=["/api/clientes"]
    )
    events: list[Any] = []

    async def scenario() -> None:
        executor, cache = _wire(settings, backend)
        async with executor:
            await cache.read("/api/clientes")
            await cache.read("/api/ordenes")

            def on_success(data: Any) -> None:
                events.append(("success", data["id"], cache.peek("/api/clientes").is_stale))

            result = await MutationExecutor(executor, cache).mutate(
                create, {"nombre": "Acme", "nif": "B12345678"}, on_success=on_success
            )
            assert result.ok
            assert result.invalidated == (RequestKey.of("/api/clientes"),)
            assert not cache.peek("/api/ordenes").is_stale

    asyncio.run(scenario())

    assert events == [("success", 2, True)]


def test_error_calls_on_error_and_leaves_cache(settings: Settings, backend: FakeBackend) -> None:
    delete = Mutation.define(
        "clientes.delete", "DELETE", "/api/clientes/{id}", invalidates=["/api/clientes"]
    )
    errors: list[Exception] = []

    async def scenario() -> None:
        executor, cache = _wire(settings, backend)
        async with executor:
            await cache.read("/api/clientes")

            async def on_error(error: Exception) -> None:
                errors.append(error)

            result = await MutationExecutor(executor, cache).mutate(
                delete, path_params={"id": 99}, on_error=on_error
            )
            assert not result.ok
            assert not cache.peek("/api/clientes").is_stale

    asyncio.run(scenario())

    assert isinstance(errors[0], HttpError)
    assert errors[0].message == "not found"


def test_error_without_callback_is_raised(settings: Settings, backend: FakeBackend) -> None:
    delete = Mutation.define("clientes.delete", "DELETE", "/api/clientes/{id}")

    async def scenario() -> None:
        executor, cache = _wire(settings, backend)
        async with executor:
            await MutationExecutor(executor, cache).mutate(delete, path_params={"id": 99})

    with pytest.raises(HttpError, match="not found"):
        asyncio.run(scenario())


def test_delete_returns_no_content(settings: Settings, backend: FakeBackend) -> None:
    delete = Mutation.define(
        "clientes.delete", "DELETE", "/api/clientes/{id}", invalidates=["/api/clientes"]
    )

    async def scenario() -> Any:
        executor, cache = _wire(settings, backend)
        async with executor:
            result = await MutationExecutor(executor, cache).mutate(delete, path_params={"id": 1})
            return result.data

    assert asyncio.run(scenario()) is NO_CONTENT
    assert backend.clientes == []


def test_form_validation_blocks_network(settings: Settings, backend: FakeBackend) -> None:
    create = Mutation.define(
        "clientes.create",
        "POST",
        "/api/clientes",
        invalidates=["/api/clientes"],
        form=ClienteForm,
    )
    errors: list[Exception] = []

    async def scenario() -> None:
        executor, cache = _wire(settings, backend)
        async with executor:
            await MutationExecutor(executor, cache).mutate(
                create, {"nombre": "", "email": "nope"}, on_error=errors.append
            )

    asyncio.run(scenario())

    assert isinstance(errors[0], ValidationError)
    assert set(errors[0].fields()) == {"nombre", "nif", "email"}
    assert backend.count("POST", "/api/clientes") == 0


def test_subscribed_keys_refetch_after_mutation(settings: Settings, backend: FakeBackend) -> None:
    update = Mutation.define(
        "clientes.update", "PUT", "/api/clientes/{id}", invalidates=["/api/clientes"]
    )
    seen: list[Any] = []

    async def scenario() -> None:
        executor, cache = _wire(settings, backend)
        async with executor:
            cache.subscribe("/api/clientes", lambda key, result: seen.append(result.data))
            await cache.read("/api/clientes")
            await MutationExecutor(executor, cache).mutate(
                update, {"nombre": "Talleres Sur"}, path_params={"id": 1}
            )

    asyncio.run(scenario())

    assert backend.count("GET", "/api/clientes") == 2
    assert seen[-1] == [{"id": 1, "nombre": "Talleres Sur", "nif": "A11111111"}]


def test_client_side_failures_reach_on_error(settings: Settings, backend: FakeBackend) -> None:
    create = Mutation.define("ordenes.create", "POST", "/api/ordenes", invalidates=["/api/ordenes"])
    update = Mutation.define(
        "ordenes.update", "PUT", "/api/ordenes/{id}", invalidates=["/api/ordenes"]
    )
    errors: list[Exception] = []

    async def scenario() -> None:
        executor, cache = _wire(settings, backend)
        async with executor:
            await cache.read("/api/ordenes")
            mutations = MutationExecutor(executor, cache)
            unencodable = await mutations.mutate(
                create, {"pieza": object()}, on_error=errors.append
            )
            no_id = await mutations.mutate(update, {"estado": "cerrada"}, on_error=errors.append)
            assert not unencodable.ok and not no_id.ok
            assert not cache.peek("/api/ordenes").is_stale

    asyncio.run(scenario())

    assert isinstance(errors[0], EncodeError)
    assert isinstance(errors[1], ValidationError)
    assert errors[1].fields() == ["id"]
    assert backend.count("GET", "/api/ordenes") == 1
    assert len(backend.requests) == 1
