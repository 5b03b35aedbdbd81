"""Page-level observers over the query cache and mutation executor."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from taller_client.executor import NO_CONTENT
from taller_client.forms import ListFilters
from taller_client.keys import RequestKey
from taller_client.mutations import Mutation, MutationExecutor, MutationResult
from taller_client.pagination import PageWindow
from taller_client.query_cache import QueryCache, QueryResult, QueryStatus, Subscription
from taller_client.resources import Resource


class ListPage:
    """A list view bound to one resource and filter state.

    The page subscribes to its key on construction, so invalidations and
    refetches update ``state`` without another ``load``. ``close`` unregisters;
    results arriving afterwards are not delivered.
    """

    def __init__(
        self, cache: QueryCache, resource: Resource, filters: ListFilters | None = None
    ) -> None:
        self.cache = cache
        self.resource = resource
        self.filters = filters or ListFilters()
        self.key: RequestKey = resource.list_key(self.filters.query_params())
        self.state = QueryResult(key=self.key, status=QueryStatus.PENDING)
        self.notifications = 0
        self._subscription: Subscription | None = cache.subscribe(self.key, self._on_change)

    @property
    def closed(self) -> bool:
        return self._subscription is None

    def _on_change(self, key: RequestKey, result: QueryResult) -> None:
        self.state = result
        self.notifications += 1

    async def load(self) -> QueryResult:
        if self.closed:
            raise RuntimeError(f"page for {self.key} is closed")
        result = await self.cache.read(self.key)
        if not self.closed:
            self.state = result
        return result

    def rows(self) -> list[Any]:
        data = self.state.data
        if self.state.is_error or not isinstance(data, list):
            return []
        return data

    def window(self) -> PageWindow:
        return PageWindow(
            total=len(self.rows()), page=self.filters.page, page_size=self.filters.page_size
        )

    def visible_rows(self) -> list[Any]:
        return self.window().slice(self.rows())

    def error_message(self) -> str | None:
        error = self.state.error
        if error is None:
            return None
        return getattr(error, "message", None) or str(error)

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None


@dataclass
class Notice:
    title: str
    description: str = ""
    destructive: bool = False


class FormPage:
    """A create/edit dialog driving one mutation.

    On success the dialog closes and a confirmation notice is set; on failure
    it stays open with the server's message.
    """

    def __init__(
        self, mutations: MutationExecutor, mutation: Mutation, *, success_title: str = "Guardado"
    ) -> None:
        self.mutations = mutations
        self.mutation = mutation
        self.success_title = success_title
        self.is_open = False
        self.notice: Notice | None = None
        self.last_result: MutationResult | None = None

    def open(self) -> None:
        self.is_open = True
        self.notice = None

    def _succeeded(self, data: Any) -> None:
        self.is_open = False
        self.notice = Notice(title=self.success_title)

    def _failed(self, error: Exception) -> None:
        message = getattr(error, "message", None) or str(error)
        self.notice = Notice(title="Error", description=message, destructive=True)

    async def submit(
        self, values: Mapping[str, Any] | None = None, **path_params: Any
    ) -> MutationResult:
        result = await self.mutations.mutate(
            self.mutation,
            values,
            path_params=path_params,
            on_success=self._succeeded,
            on_error=self._failed,
        )
        self.last_result = result
        return result

    def created(self) -> Any:
        if self.last_result is None or self.last_result.data is NO_CONTENT:
            return None
        return self.last_result.data
