import asyncio

from conftest import FakeBackend
from taller_client.credentials import MemoryTokenStore
from taller_client.forms import ListFilters
from taller_client.session import TallerSession
from taller_client.settings import Settings


def test_list_page_tracks_cache_and_stops_after_close(
    settings: Settings, backend: FakeBackend
) -> None:
    async def scenario() -> None:
        async with TallerSession(
            settings, tokens=MemoryTokenStore("tok"), transport=backend.transport()
        ) as session:
            page = session.list_page("clientes")
            await page.load()
            assert [row["nombre"] for row in page.rows()] == ["Talleres Norte"]
            assert page.error_message() is None

            backend.clientes.append({"id": 2, "nombre": "Garaje Centro", "nif": "B2"})
            await session.cache.invalidate_and_refetch("/api/clientes")
            assert len(page.rows()) == 2

            page.close()
            notifications = page.notifications
            session.cache.invalidate("/api/clientes")
            await session.cache.read("/api/clientes")
            assert page.notifications == notifications
            assert page.closed

    asyncio.run(scenario())


def test_list_page_filters_become_key(settings: Settings, backend: FakeBackend) -> None:
    async def scenario() -> None:
        async with TallerSession(
            settings, tokens=MemoryTokenStore("tok"), transport=backend.transport()
        ) as session:
            page = session.list_page("clientes", ListFilters(search="norte"))
            await page.load()
            assert page.key.to_url() == "/api/clientes?search=norte"
            assert len(page.rows()) == 1
            assert page.window().summary() == "Mostrando 1-1 de 1 resultados"

    asyncio.run(scenario())


def test_list_page_read_error_shows_inline_message(
    settings: Settings, backend: FakeBackend
) -> None:
    async def scenario() -> None:
        async with TallerSession(
            settings, tokens=MemoryTokenStore("tok"), transport=backend.transport()
        ) as session:
            page = session.list_page("proveedores")
            await page.load()
            assert page.rows() == []
            assert page.error_message() == "not found"

    asyncio.run(scenario())


def test_form_page_closes_on_success_and_stays_open_on_error(
    settings: Settings, backend: FakeBackend
) -> None:
    async def scenario() -> None:
        async with TallerSession(
            settings, tokens=MemoryTokenStore("tok"), transport=backend.transport()
        ) as session:
            create = session.create_page("clientes")
            create.open()
            await create.submit({"nombre": "Acme", "nif": "B12345678"})
            assert not create.is_open
            assert create.notice.title == "Guardado"
            assert create.created()["id"] == 2

            edit = session.edit_page("clientes")
            edit.open()
            await edit.submit({"nombre": "Nadie", "nif": "X1"}, id=404)
            assert edit.is_open
            assert edit.notice.destructive
            assert edit.notice.description == "not found"

            create.open()
            await create.submit({"nif": "B1"})
            assert create.is_open
            assert "nombre" in create.notice.description

    asyncio.run(scenario())


def test_list_page_ignores_result_landing_after_close(
    settings: Settings, backend: FakeBackend
) -> None:
    async def scenario() -> None:
        async with TallerSession(
            settings, tokens=MemoryTokenStore("tok"), transport=backend.transport()
        ) as session:
            backend.gate = asyncio.Event()
            page = session.list_page("clientes")
            pending = asyncio.ensure_future(page.load())
            for _ in range(5):
                await asyncio.sleep(0)
            assert page.state.is_loading

            page.close()
            backend.gate.set()
            result = await pending

            assert result.is_success
            assert page.state.is_loading
            assert page.rows() == []

    asyncio.run(scenario())


def test_form_page_missing_id_sets_notice(settings: Settings, backend: FakeBackend) -> None:
    async def scenario() -> None:
        async with TallerSession(
            settings, tokens=MemoryTokenStore("tok"), transport=backend.transport()
        ) as session:
            edit = session.edit_page("clientes")
            edit.open()
            result = await edit.submit({"nombre": "Acme", "nif": "B1"})
            assert not result.ok
            assert edit.is_open
            assert edit.notice.destructive
            assert "id: missing path parameter" in edit.notice.description

    asyncio.run(scenario())

    assert backend.requests == []
