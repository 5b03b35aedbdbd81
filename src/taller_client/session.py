"""Composition root wiring settings, executor, cache and mutations together."""

from __future__ import annotations

import httpx

from taller_client.auth import login, logout
from taller_client.credentials import TokenSource, TokenStore
from taller_client.executor import RequestExecutor
from taller_client.forms import ListFilters
from taller_client.mutations import MutationExecutor
from taller_client.pages import FormPage, ListPage
from taller_client.query_cache import QueryCache
from taller_client.resources import ResourceCatalog, default_catalog
from taller_client.settings import Settings


class TallerSession:
    """One explicit instance per application; nothing here is a module global."""

    def __init__(
        self,
        settings: Settings,
        *,
        tokens: TokenSource | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        catalog: ResourceCatalog | None = None,
    ) -> None:
        self.settings = settings
        self.tokens = tokens or TokenStore(settings.resolved_token_path())
        self.executor = RequestExecutor(settings, self.tokens, transport=transport)
        self.cache = QueryCache(
            self.executor.execute_key,
            on_401=settings.on_401,
            stale_after_s=settings.stale_after_s,
        )
        self.mutations = MutationExecutor(self.executor, self.cache)
        self.catalog = catalog or default_catalog()

    async def aclose(self) -> None:
        await self.executor.aclose()

    async def __aenter__(self) -> TallerSession:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    def list_page(self, resource_name: str, filters: ListFilters | None = None) -> ListPage:
        return ListPage(self.cache, self.catalog[resource_name], filters)

    def create_page(self, resource_name: str) -> FormPage:
        return FormPage(self.mutations, self.catalog[resource_name].create())

    def edit_page(self, resource_name: str) -> FormPage:
        return FormPage(self.mutations, self.catalog[resource_name].update())

    async def login(self, username: str, password: str) -> dict:
        return await login(self.executor, self.tokens, username, password)

    def logout(self) -> None:
        logout(self.tokens, self.cache)
