"""Keyed in-memory query cache with deduplicated in-flight fetches."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from taller_client.errors import HttpError
from taller_client.keys import RequestKey, keys_matching

logger = logging.getLogger(__name__)

Fetcher = Callable[[RequestKey], Awaitable[Any]]
KeyLike = RequestKey | str | Sequence[Any]


class QueryStatus(Enum):
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"


class Unauthorized401Policy(Enum):
    """How a 401 answer to a read is reported."""

    RETURN_NONE = "return_none"
    RAISE = "raise"


class _Absent:
    def __repr__(self) -> str:
        return "ABSENT"

    def __bool__(self) -> bool:
        return False


ABSENT: Any = _Absent()


@dataclass(frozen=True)
class QueryResult:
    """Snapshot of one cache entry as seen by a reader."""

    key: RequestKey
    status: QueryStatus
    data: Any = None
    error: Exception | None = None
    has_data: bool = False
    is_stale: bool = False

    @property
    def is_loading(self) -> bool:
        return self.status is QueryStatus.PENDING

    @property
    def is_success(self) -> bool:
        return self.status is QueryStatus.SUCCESS

    @property
    def is_error(self) -> bool:
        return self.status is QueryStatus.ERROR


@dataclass
class CacheEntry:
    """Stored state for one request key."""

    key: RequestKey
    status: QueryStatus = QueryStatus.PENDING
    data: Any = ABSENT
    error: Exception | None = None
    last_fetched_at: float | None = None
    invalidated: bool = False
    fetch_count: int = 0
    fetcher: Fetcher | None = None
    inflight: asyncio.Task[None] | None = field(default=None, repr=False)

    def snapshot(self) -> QueryResult:
        has_data = self.data is not ABSENT
        return QueryResult(
            key=self.key,
            status=self.status,
            data=self.data if has_data else None,
            error=self.error,
            has_data=has_data,
            is_stale=self.invalidated,
        )


Listener = Callable[[RequestKey, QueryResult], None]


class Subscription:
    """Handle returned by ``QueryCache.subscribe``."""

    def __init__(self, cache: QueryCache, key: RequestKey, listener: Listener) -> None:
        self.cache = cache
        self.key = key
        self.listener = listener
        self.active = True

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        self.cache._remove_listener(self)

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.unsubscribe()


class QueryCache:
    """Process-lifetime cache mapping request keys to their last result.

    Entries never expire unless ``stale_after_s`` is set; they go stale only
    through ``invalidate``. At most one fetch per key runs at a time: readers
    arriving while a key is pending wait on the same task.
    """

    def __init__(
        self,
        fetcher: Fetcher | None = None,
        *,
        on_401: Unauthorized401Policy | str = Unauthorized401Policy.RAISE,
        stale_after_s: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._default_fetcher = fetcher
        self.on_401 = Unauthorized401Policy(on_401)
        self.stale_after_s = stale_after_s
        self._clock = clock
        self._entries: dict[RequestKey, CacheEntry] = {}
        self._listeners: dict[RequestKey, list[Subscription]] = {}

    def keys(self) -> list[RequestKey]:
        return list(self._entries)

    def entry(self, key: KeyLike) -> CacheEntry | None:
        return self._entries.get(RequestKey.coerce(key))

    def peek(self, key: KeyLike) -> QueryResult | None:
        found = self.entry(key)
        return found.snapshot() if found is not None else None

    def is_fresh(self, entry: CacheEntry) -> bool:
        if entry.status is not QueryStatus.SUCCESS or entry.invalidated:
            return False
        if self.stale_after_s is None or entry.last_fetched_at is None:
            return True
        return self._clock() - entry.last_fetched_at < self.stale_after_s

    async def read(self, key: KeyLike, fetcher: Fetcher | None = None) -> QueryResult:
        """Resolve ``key`` from cache or by running its fetcher once."""
        resolved = RequestKey.coerce(key)
        entry = self._entries.get(resolved)
        if entry is None:
            entry = CacheEntry(key=resolved)
            self._entries[resolved] = entry
        elif entry.inflight is None and self.is_fresh(entry):
            return entry.snapshot()

        if entry.inflight is None:
            chosen = fetcher or entry.fetcher or self._default_fetcher
            if chosen is None:
                raise ValueError(f"no fetcher configured for {resolved}")
            entry.fetcher = chosen
            entry.inflight = asyncio.ensure_future(self._run_fetch(entry, chosen))
        await asyncio.shield(entry.inflight)
        return entry.snapshot()

    async def fetch(self, key: KeyLike, fetcher: Fetcher | None = None) -> Any:
        """Like ``read`` but returns the data or raises the stored error."""
        result = await self.read(key, fetcher)
        if result.error is not None:
            raise result.error
        return result.data

    async def _run_fetch(self, entry: CacheEntry, fetcher: Fetcher) -> None:
        entry.status = QueryStatus.PENDING
        entry.invalidated = False
        entry.fetch_count += 1
        self._notify(entry)
        try:
            data = await fetcher(entry.key)
        except HttpError as exc:
            if exc.status == 401 and self.on_401 is Unauthorized401Policy.RETURN_NONE:
                self._store_success(entry, None)
            else:
                self._store_error(entry, exc)
        except asyncio.CancelledError:
            entry.status = QueryStatus.SUCCESS if entry.data is not ABSENT else QueryStatus.ERROR
            entry.invalidated = True
            raise
        except Exception as exc:
            self._store_error(entry, exc)
        else:
            self._store_success(entry, data)
        finally:
            entry.inflight = None
        self._notify(entry)

    def _store_success(self, entry: CacheEntry, data: Any) -> None:
        entry.status = QueryStatus.SUCCESS
        entry.data = data
        entry.error = None
        entry.last_fetched_at = self._clock()

    def _store_error(self, entry: CacheEntry, exc: Exception) -> None:
        logger.debug("read %s failed: %s", entry.key, exc)
        entry.status = QueryStatus.ERROR
        entry.error = exc
        entry.last_fetched_at = self._clock()

    def set_data(self, key: KeyLike, data: Any) -> QueryResult:
        """Store ``data`` for ``key`` as a fresh successful result."""
        resolved = RequestKey.coerce(key)
        entry = self._entries.setdefault(resolved, CacheEntry(key=resolved))
        self._store_success(entry, data)
        entry.invalidated = False
        self._notify(entry)
        return entry.snapshot()

    def invalidate(self, prefix: KeyLike) -> list[RequestKey]:
        """Mark every key under ``prefix`` stale; other keys are untouched."""
        matched = keys_matching(self._entries, prefix)
        for key in matched:
            entry = self._entries[key]
            entry.invalidated = True
            self._notify(entry)
        if matched:
            logger.debug("invalidated %d key(s) under %s", len(matched), RequestKey.coerce(prefix))
        return matched

    async def invalidate_and_refetch(self, prefix: KeyLike) -> list[RequestKey]:
        """Invalidate ``prefix`` and refetch the matched keys that have subscribers."""
        matched = self.invalidate(prefix)
        active = [
            key
            for key in matched
            if self._listeners.get(key)
            and (self._entries[key].fetcher is not None or self._default_fetcher is not None)
        ]
        if active:
            await asyncio.gather(*(self.read(key) for key in active))
        return matched

    def clear(self) -> None:
        """Drop every settled entry. Subscriptions stay registered.

        Entries with a fetch in flight are kept, emptied and marked stale so
        readers keep joining that fetch and the key is fetched again after it.
        """
        for key, entry in list(self._entries.items()):
            if entry.inflight is None:
                del self._entries[key]
                continue
            entry.data = ABSENT
            entry.error = None
            entry.invalidated = True

    def subscribe(self, key: KeyLike, listener: Listener) -> Subscription:
        """Register ``listener`` for every state change of ``key``."""
        resolved = RequestKey.coerce(key)
        subscription = Subscription(self, resolved, listener)
        self._listeners.setdefault(resolved, []).append(subscription)
        return subscription

    def subscriber_count(self, key: KeyLike) -> int:
        return len(self._listeners.get(RequestKey.coerce(key), []))

    def _remove_listener(self, subscription: Subscription) -> None:
        listeners = self._listeners.get(subscription.key)
        if not listeners:
            return
        if subscription in listeners:
            listeners.remove(subscription)
        if not listeners:
            del self._listeners[subscription.key]

    def _notify(self, entry: CacheEntry) -> None:
        subscriptions = list(self._listeners.get(entry.key, []))
        if not subscriptions:
            return
        snapshot = entry.snapshot()
        for subscription in subscriptions:
            if not subscription.active:
                continue
            try:
                subscription.listener(entry.key, snapshot)
            except Exception:
                logger.exception("listener for %s raised", entry.key)
