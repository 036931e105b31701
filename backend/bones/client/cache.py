"""
Bones Client — Query Cache
===========================

What:  Read-through, write-invalidating cache over the users API.
Why:   The UI reads the same collections from many places; the cache keeps
       one copy per query key, fetches it at most once at a time, and knows
       which copies a write made stale.
How:   One CacheEntry per QueryKey, each owning at most one asyncio.Task.
       Queries attach to that task; mutations run the write and only then
       apply the declared invalidation rules.

Entry State Machine:
    absent ──query──▶ pending ──ok──▶ fresh ──affecting mutation──▶ stale
                         │                                          │
                         └──fail──▶ error ◀──fail── pending ◀──read─┘

    - fresh:   served as-is
    - stale:   served immediately (tagged stale) while one background
               refetch runs (stale-while-revalidate)
    - pending: a fetch is in flight; readers with no payload to serve
               attach to it, readers of a revalidating entry get the old
               payload tagged stale
    - error:   query() re-raises FetchFailed until the error is older than
               error_retry_delay, then fetches again

Mutation Contract (two-phase):
    1. (optional) apply the optimistic transform to cached payloads
    2. await the write
    3a. success → mark every entry matched by the mutation's rules stale
    3b. failure → roll back optimistic edits, raise MutationFailed,
        touch nothing else. An entry another edit was layered on top of
        cannot be restored exactly; it is marked stale instead.

Concurrency:
    Everything runs on one event loop. Bookkeeping never awaits, so no
    locks are needed; per-key serialization comes from "one task per
    entry". Callers await the shared task through asyncio.shield, so a
    caller that gives up never cancels the fetch other callers share.
"""

import asyncio
import logging
import time
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Set,
    Union,
)

from bones.client.keys import InvalidationRules, KeyPattern, QueryKey
from bones.config import settings
from bones.exceptions import FetchFailed, MutationFailed

logger = logging.getLogger(__name__)

Fetcher = Callable[[QueryKey], Awaitable[Any]]
Mutator = Callable[[Mapping[str, Any]], Awaitable[Any]]
OptimisticTransform = Callable[[QueryKey, Any], Any]


class EntryStatus(str, Enum):
    PENDING = "pending"
    FRESH = "fresh"
    STALE = "stale"
    ERROR = "error"


@dataclass(frozen=True)
class QueryResult:
    """What query() hands back: the payload plus its freshness tag."""

    key: QueryKey
    data: Any
    status: EntryStatus
    updated_at: Optional[datetime]

    @property
    def is_stale(self) -> bool:
        return self.status is not EntryStatus.FRESH


@dataclass(frozen=True)
class EntrySnapshot:
    """Read-only view of an entry, passed to subscribers."""

    key: QueryKey
    status: EntryStatus
    data: Any
    updated_at: Optional[datetime]
    error: Optional[BaseException]
    is_fetching: bool
    fetch_count: int


@dataclass
class CacheEntry:
    key: QueryKey
    status: EntryStatus = EntryStatus.PENDING
    data: Any = None
    updated_at: Optional[datetime] = None
    error: Optional[BaseException] = None
    # monotonic clock reading of the last failure
    error_at: Optional[float] = None
    fetch_count: int = 0
    task: Optional["asyncio.Task[QueryResult]"] = field(default=None, repr=False)
    # set when invalidated while a fetch was in flight; that fetch's result
    # may predate the write, so it lands as stale instead of fresh
    invalidated_in_flight: bool = False

    @property
    def has_data(self) -> bool:
        return self.updated_at is not None

    @property
    def is_fetching(self) -> bool:
        return self.task is not None and not self.task.done()

    def snapshot(self) -> EntrySnapshot:
        return EntrySnapshot(
            key=self.key,
            status=self.status,
            data=self.data,
            updated_at=self.updated_at,
            error=self.error,
            is_fetching=self.is_fetching,
            fetch_count=self.fetch_count,
        )


class QueryClient:
    """
    Keyed query cache with fetch coalescing and declarative invalidation.

    Args:
        fetchers: operation name → coroutine function fetching a key
        mutators: mutation name → coroutine function performing a write
        rules: which keys each mutation makes stale
        error_retry_delay: seconds an errored entry re-raises its error
            before a query may fetch again (settings default)
        refetch_on_invalidate: revalidate invalidated entries immediately
            instead of on next read (settings default)
    """

    def __init__(
        self,
        fetchers: Mapping[str, Fetcher],
        mutators: Optional[Mapping[str, Mutator]] = None,
        rules: Optional[InvalidationRules] = None,
        error_retry_delay: Optional[float] = None,
        refetch_on_invalidate: Optional[bool] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._fetchers = dict(fetchers)
        self._mutators = dict(mutators or {})
        self._rules = rules or InvalidationRules({})
        self.error_retry_delay = (
            settings.cache_error_retry_delay if error_retry_delay is None else error_retry_delay
        )
        self.refetch_on_invalidate = (
            settings.cache_refetch_on_invalidate
            if refetch_on_invalidate is None
            else refetch_on_invalidate
        )
        self._clock = clock
        self._entries: Dict[QueryKey, CacheEntry] = {}
        self._listeners: Dict[QueryKey, List[Callable[[EntrySnapshot], None]]] = defaultdict(list)
        self._tasks: Set["asyncio.Task[QueryResult]"] = set()

    # ── Queries ───────────────────────────────────────────────────────────

    async def query(self, key: QueryKey) -> QueryResult:
        """
        Return the payload for `key`, fetching it if needed.

        Raises:
            FetchFailed: the fetch this call attached to failed, or the
                entry is still inside its error_retry_delay window
            ValueError: no fetcher registered for key.operation
        """
        if key.operation not in self._fetchers:
            raise ValueError(f"No fetcher registered for '{key.operation}'")

        entry = self._entries.get(key)
        if entry is None:
            entry = self._entries[key] = CacheEntry(key=key)
            return await self._attach(self._start_fetch(entry))

        if entry.status is EntryStatus.FRESH:
            return self._result(entry, EntryStatus.FRESH)

        if entry.status is EntryStatus.STALE:
            self._start_fetch(entry)
            return self._result(entry, EntryStatus.STALE)

        if entry.status is EntryStatus.PENDING:
            task = self._start_fetch(entry)
            if entry.has_data:
                return self._result(entry, EntryStatus.STALE)
            return await self._attach(task)

        if not self._error_expired(entry):
            raise FetchFailed(key, entry.error)
        return await self._attach(self._start_fetch(entry))

    async def prefetch(self, key: QueryKey) -> None:
        """Warm the cache for `key`; failures are stored on the entry, not raised."""
        try:
            await self.query(key)
        except FetchFailed:
            logger.debug("Prefetch of %s failed", key)

    def _start_fetch(self, entry: CacheEntry) -> "asyncio.Task[QueryResult]":
        if entry.is_fetching:
            return entry.task

        entry.status = EntryStatus.PENDING
        entry.fetch_count += 1
        entry.invalidated_in_flight = False
        task = asyncio.get_running_loop().create_task(
            self._run_fetch(entry), name=f"fetch {entry.key}"
        )
        entry.task = task
        self._tasks.add(task)
        task.add_done_callback(self._forget)
        self._notify(entry)
        return task

    async def _run_fetch(self, entry: CacheEntry) -> QueryResult:
        key = entry.key
        try:
            data = await self._fetchers[key.operation](key)
        except Exception as exc:
            entry.task = None
            entry.status = EntryStatus.ERROR
            entry.error = exc
            entry.error_at = self._clock()
            logger.warning("Fetch of %s failed: %s", key, exc)
            self._notify(entry)
            raise FetchFailed(key, exc) from exc

        entry.task = None
        entry.data = data
        entry.updated_at = datetime.now(timezone.utc)
        entry.error = None
        entry.error_at = None
        if entry.invalidated_in_flight:
            entry.status = EntryStatus.STALE
        else:
            entry.status = EntryStatus.FRESH
        logger.debug("Fetched %s (%s)", key, entry.status.value)
        self._notify(entry)

        result = self._result(entry, entry.status)
        if entry.status is EntryStatus.STALE and self.refetch_on_invalidate:
            self._start_fetch(entry)
        return result

    async def _attach(self, task: "asyncio.Task[QueryResult]") -> QueryResult:
        # shield: cancelling this caller must not cancel the shared fetch
        return await asyncio.shield(task)

    def _forget(self, task: "asyncio.Task[QueryResult]") -> None:
        self._tasks.discard(task)
        # Background revalidations may fail with nobody awaiting them; the
        # failure is already recorded on the entry
        if not task.cancelled():
            task.exception()

    def _error_expired(self, entry: CacheEntry) -> bool:
        if entry.error_at is None:
            return True
        return self._clock() - entry.error_at >= self.error_retry_delay

    @staticmethod
    def _result(entry: CacheEntry, status: EntryStatus) -> QueryResult:
        return QueryResult(
            key=entry.key,
            data=entry.data,
            status=status,
            updated_at=entry.updated_at,
        )

    # ── Mutations ─────────────────────────────────────────────────────────

    async def mutate(
        self,
        mutation: str,
        payload: Optional[Mapping[str, Any]] = None,
        optimistic: Optional[OptimisticTransform] = None,
    ) -> Any:
        """
        Perform a write, then invalidate the keys it affects.

        Args:
            mutation: registered mutation name
            payload: passed to the mutator and used to resolve rule bindings
            optimistic: transform (key, cached data) → new data applied to
                every affected entry holding data, before the write

        Returns:
            Whatever the mutator returned.

        Raises:
            MutationFailed: the write failed; no entry was invalidated and
                optimistic edits were rolled back
        """
        if mutation not in self._mutators:
            raise ValueError(f"No mutator registered for '{mutation}'")
        payload = payload or {}
        patterns = self._rules.patterns_for(mutation, payload)

        applied = []
        if optimistic is not None:
            try:
                for entry in self._matching(patterns):
                    if not entry.has_data:
                        continue
                    previous = entry.data
                    entry.data = optimistic(entry.key, previous)
                    applied.append((entry, previous, entry.data))
                    self._notify(entry)
            except Exception:
                # the write was never sent; undo the entries already edited
                self._rollback(applied)
                raise

        try:
            result = await self._mutators[mutation](payload)
        except asyncio.CancelledError:
            self._rollback(applied)
            raise
        except Exception as exc:
            self._rollback(applied)
            logger.warning("Mutation %s failed: %s", mutation, exc)
            raise MutationFailed(mutation, exc) from exc

        count = self._invalidate(patterns)
        logger.debug("Mutation %s succeeded; %d entries marked stale", mutation, count)
        return result

    def _rollback(self, applied) -> None:
        """
        Undo optimistic edits of a write that did not happen.

        An entry still holding this edit gets its previous payload back.
        Otherwise something was layered on top (a fetch result, or another
        mutation's edit built from ours), so the payload may still carry
        this edit; it is marked stale instead and refetched.
        """
        for entry, previous, optimistic_data in applied:
            if entry.data is optimistic_data:
                entry.data = previous
                self._notify(entry)
            else:
                self._mark_stale(entry)

    # ── Invalidation and manual cache access ──────────────────────────────

    def invalidate(self, target: Union[QueryKey, KeyPattern]) -> int:
        """Mark matching entries stale by hand. Returns how many matched."""
        if isinstance(target, QueryKey):
            target = KeyPattern(target.operation, target.params)
        return self._invalidate([target])

    def _invalidate(self, patterns: Iterable[KeyPattern]) -> int:
        entries = self._matching(patterns)
        for entry in entries:
            self._mark_stale(entry)
        return len(entries)

    def _mark_stale(self, entry: CacheEntry) -> None:
        if entry.is_fetching:
            entry.invalidated_in_flight = True
            return
        if entry.status is EntryStatus.ERROR:
            # let the next query fetch regardless of error_retry_delay
            entry.error_at = None
            return
        if entry.status is EntryStatus.FRESH:
            entry.status = EntryStatus.STALE
            self._notify(entry)
        if self.refetch_on_invalidate:
            self._start_fetch(entry)

    def _matching(self, patterns: Iterable[KeyPattern]) -> List[CacheEntry]:
        patterns = list(patterns)
        return [
            entry
            for key, entry in self._entries.items()
            if any(pattern.matches(key) for pattern in patterns)
        ]

    def set_query_data(self, key: QueryKey, data: Any) -> None:
        """Store `data` for `key` as fresh, e.g. a record a create just returned."""
        entry = self._entries.get(key)
        if entry is None:
            entry = self._entries[key] = CacheEntry(key=key)
        entry.data = data
        entry.updated_at = datetime.now(timezone.utc)
        entry.error = None
        entry.error_at = None
        if entry.is_fetching:
            entry.invalidated_in_flight = True
        else:
            entry.status = EntryStatus.FRESH
        self._notify(entry)

    def get_entry(self, key: QueryKey) -> Optional[EntrySnapshot]:
        entry = self._entries.get(key)
        return entry.snapshot() if entry is not None else None

    def keys(self) -> List[QueryKey]:
        return list(self._entries)

    async def wait_idle(self) -> None:
        """Wait until no fetch (including background revalidation) is running."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ── Subscriptions ─────────────────────────────────────────────────────

    def subscribe(
        self, key: QueryKey, listener: Callable[[EntrySnapshot], None]
    ) -> Callable[[], None]:
        """
        Call `listener` with a snapshot whenever the entry for `key` changes.

        Returns a function that removes the subscription.
        """
        self._listeners[key].append(listener)

        def unsubscribe() -> None:
            listeners = self._listeners.get(key)
            if listeners and listener in listeners:
                listeners.remove(listener)
                if not listeners:
                    del self._listeners[key]

        return unsubscribe

    def _notify(self, entry: CacheEntry) -> None:
        listeners = self._listeners.get(entry.key)
        if not listeners:
            return
        snapshot = entry.snapshot()
        for listener in list(listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Listener for %s failed", entry.key)
