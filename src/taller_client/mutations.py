"""Write requests with declared cache invalidation."""

from __future__ import annotations

import inspect
import logging
import string
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

from pydantic import BaseModel

from taller_client.errors import FieldIssue, TallerClientError, ValidationError
from taller_client.executor import RequestExecutor
from taller_client.forms import validate_form
from taller_client.keys import RequestKey
from taller_client.query_cache import QueryCache

logger = logging.getLogger(__name__)

WRITE_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})

Callback = Callable[[Any], Any]


def _template_fields(template: str) -> list[str]:
    return [name for _, name, _, _ in string.Formatter().parse(template) if name]


@dataclass(frozen=True)
class Mutation:
    """A write endpoint plus the read keys it makes stale."""

    name: str
    method: str
    path: str
    invalidates: tuple[RequestKey, ...] = ()
    form: type[BaseModel] | None = None

    def __post_init__(self) -> None:
        verb = self.method.upper()
        if verb not in WRITE_METHODS:
            raise ValueError(f"mutation {self.name!r} has non-write method {self.method!r}")
        object.__setattr__(self, "method", verb)
        object.__setattr__(
            self, "invalidates", tuple(RequestKey.coerce(prefix) for prefix in self.invalidates)
        )

    @classmethod
    def define(
        cls,
        name: str,
        method: str,
        path: str,
        *,
        invalidates: Sequence[RequestKey | str | Sequence[Any]] = (),
        form: type[BaseModel] | None = None,
    ) -> Mutation:
        return cls(
            name=name,
            method=method,
            path=path,
            invalidates=tuple(RequestKey.coerce(prefix) for prefix in invalidates),
            form=form,
        )

    @property
    def path_params(self) -> list[str]:
        return _template_fields(self.path)

    def url(self, **path_params: Any) -> str:
        missing = [name for name in self.path_params if path_params.get(name) in (None, "")]
        if missing:
            raise ValidationError(
                [FieldIssue(field=name, message="missing path parameter") for name in missing]
            )
        quoted = {name: quote(str(value), safe="") for name, value in path_params.items()}
        return self.path.format(**quoted)


@dataclass(frozen=True)
class MutationResult:
    """Outcome of one ``mutate`` call."""

    mutation: Mutation
    data: Any = None
    error: Exception | None = None
    invalidated: tuple[RequestKey, ...] = field(default_factory=tuple)

    @property
    def ok(self) -> bool:
        return self.error is None


async def _invoke(callback: Callback, value: Any) -> None:
    outcome = callback(value)
    if inspect.isawaitable(outcome):
        await outcome


class MutationExecutor:
    """Run mutations pessimistically: the cache changes only after the server confirms."""

    def __init__(self, executor: RequestExecutor, cache: QueryCache) -> None:
        self.executor = executor
        self.cache = cache

    async def mutate(
        self,
        mutation: Mutation,
        body: Mapping[str, Any] | BaseModel | None = None,
        *,
        path_params: Mapping[str, Any] | None = None,
        on_success: Callback | None = None,
        on_error: Callback | None = None,
        invalidate: bool = True,
    ) -> MutationResult:
        """Send ``mutation`` and invalidate its declared keys on success.

        Failures (including client-side validation) go to ``on_error`` and
        leave the cache untouched; without ``on_error`` they are raised.
        """
        try:
            url = mutation.url(**dict(path_params or {}))
            payload: Any = body
            if isinstance(body, BaseModel):
                payload = validate_form(type(body), body.model_dump())
            elif mutation.form is not None and body is not None:
                payload = validate_form(mutation.form, body)
            data = await self.executor.execute(mutation.method, url, payload)
        except TallerClientError as exc:
            logger.info("mutation %s failed: %s", mutation.name, exc)
            if on_error is None:
                raise
            await _invoke(on_error, exc)
            return MutationResult(mutation=mutation, error=exc)

        invalidated: list[RequestKey] = []
        if invalidate:
            for prefix in mutation.invalidates:
                invalidated.extend(await self.cache.invalidate_and_refetch(prefix))
        logger.debug(
            "mutation %s succeeded; invalidated %d key(s)", mutation.name, len(invalidated)
        )
        if on_success is not None:
            await _invoke(on_success, data)
        return MutationResult(mutation=mutation, data=data, invalidated=tuple(invalidated))
