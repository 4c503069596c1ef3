"""
Query cache: cached async fetches with staleness, retries and invalidation.

Remotes never call backend services directly for reads. They ask the query
client for a key and hand it a fetch function; the client decides whether the
cached value is good enough.

Freshness, by age since the last successful fetch:
- younger than stale_time (5 min): served from cache, no fetch
- between stale_time and gc_time (10 min): served from cache immediately, one
  background refetch is started (stale-while-revalidate)
- older than gc_time, never fetched, or invalidated: fetched and awaited

Design decisions:
- Single event loop, no locks; fetches and retry sleeps are asyncio tasks
- At most one fetch task per key; callers that need the value await that task
- Every fetch gets a sequence number; a result is only written if no
  later-started request has written already (last write wins by request,
  not by network completion order)
- invalidate() cancels in-flight work for matching keys, so retry sleeps
  never lead to a stale write
- Failures never raise out of query()/mutate(); they come back as error values
"""

import asyncio
import inspect
import logging
import time
from contextlib import nullcontext
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, ContextManager, Optional

from query.keys import matches_prefix, normalize_key
from query.retry import FetchFn, Sleep, call_with_retry, retry_delay
from shared.config import QueryDefaults
from shared.errors import describe_error

logger = logging.getLogger("query_client")

ResultListener = Callable[["QueryResult"], None]


class QueryStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class QueryResult:
    """
    What a reader sees for one key.

    Attributes:
        data: Last successfully fetched value (kept when a later fetch fails)
        error: Error from the last fetch, if it failed after all retries
        is_loading: A fetch is running and there is no data yet
        is_fetching: A fetch is running (initial or background)
        is_stale: Data is older than stale_time or was invalidated
    """
    key: tuple
    data: Any = None
    error: Optional[BaseException] = None
    status: QueryStatus = QueryStatus.IDLE
    is_loading: bool = False
    is_fetching: bool = False
    is_stale: bool = False
    fetched_at: Optional[float] = None
    retry_count: int = 0

    @property
    def is_success(self) -> bool:
        return self.status == QueryStatus.SUCCESS

    @property
    def is_error(self) -> bool:
        return self.status == QueryStatus.ERROR

    @property
    def error_message(self) -> Optional[str]:
        return describe_error(self.error) if self.error is not None else None


@dataclass
class QueryOptions:
    """Per-call overrides of the client defaults. None means "use the default"."""
    stale_time: Optional[float] = None
    gc_time: Optional[float] = None
    retry: Optional[int] = None
    enabled: bool = True
    refetch_on_window_focus: Optional[bool] = None
    refetch_on_reconnect: Optional[bool] = None


@dataclass
class MutationOptions:
    retry: Optional[int] = None
    on_success: Optional[Callable[[Any], Any]] = None
    on_error: Optional[Callable[[BaseException], Any]] = None


@dataclass(frozen=True)
class MutationResult:
    data: Any = None
    error: Optional[BaseException] = None
    status: QueryStatus = QueryStatus.IDLE

    @property
    def is_success(self) -> bool:
        return self.status == QueryStatus.SUCCESS

    @property
    def is_error(self) -> bool:
        return self.status == QueryStatus.ERROR


@dataclass
class _ResolvedOptions:
    stale_time: float
    gc_time: float
    retry: int
    enabled: bool
    refetch_on_window_focus: bool
    refetch_on_reconnect: bool


@dataclass
class CacheEntry:
    """
    Internal bookkeeping for one key. Never handed out; readers get QueryResult.
    """
    key: tuple
    fetch_fn: FetchFn
    options: _ResolvedOptions
    data: Any = None
    has_data: bool = False
    error: Optional[BaseException] = None
    fetched_at: Optional[float] = None
    last_used_at: float = 0.0
    invalidated: bool = False
    retry_count: int = 0
    observers: list["QueryObserver"] = field(default_factory=list)
    task: Optional[asyncio.Task] = None
    next_seq: int = 0
    written_seq: int = -1

    @property
    def is_fetching(self) -> bool:
        return self.task is not None and not self.task.done()

    def age(self, now: float) -> Optional[float]:
        if self.fetched_at is None:
            return None
        return now - self.fetched_at

    def is_stale(self, now: float) -> bool:
        if self.invalidated or not self.has_data:
            return True
        # Fresh up to and including stale_time
        return self.age(now) > self.options.stale_time

    def drop_data(self) -> None:
        self.data = None
        self.has_data = False
        self.error = None
        self.fetched_at = None


class QueryClient:
    """
    Process-wide cache of async fetch results.

    Example:
        client = QueryClient()

        result = await client.query(
            QueryKeys.products.detail("p1"),
            lambda: catalog.get_product("p1"),
        )
        if result.is_error:
            show(result.error_message)

        await client.mutate(
            lambda: orders.create(draft),
            MutationOptions(on_success=lambda _: client.invalidate(QueryKeys.orders.lists())),
        )
    """

    def __init__(
        self,
        defaults: Optional[QueryDefaults] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Sleep = asyncio.sleep,
        request_tracker: Optional[Callable[[], ContextManager]] = None,
    ):
        """
        Args:
            defaults: Cache and retry defaults (seconds)
            clock: Monotonic time source in seconds
            sleep: Coroutine used for retry backoff
            request_tracker: Context manager factory wrapped around each network
                attempt sequence, e.g. UISlice.track_request
        """
        self.defaults = defaults or QueryDefaults()
        self._clock = clock
        self._sleep = sleep
        self._request_tracker = request_tracker or nullcontext
        self._entries: dict[tuple, CacheEntry] = {}

    # =========================================================================
    # Options
    # =========================================================================

    def _resolve(self, options: Optional[QueryOptions]) -> _ResolvedOptions:
        options = options or QueryOptions()
        d = self.defaults

        def pick(value, default):
            return default if value is None else value

        return _ResolvedOptions(
            stale_time=pick(options.stale_time, d.stale_time),
            gc_time=pick(options.gc_time, d.gc_time),
            retry=pick(options.retry, d.retry),
            enabled=options.enabled,
            refetch_on_window_focus=pick(options.refetch_on_window_focus, d.refetch_on_window_focus),
            refetch_on_reconnect=pick(options.refetch_on_reconnect, d.refetch_on_reconnect),
        )

    def _delay(self, attempt_index: int) -> float:
        return retry_delay(attempt_index, self.defaults.retry_base_delay, self.defaults.retry_max_delay)

    # =========================================================================
    # Reads
    # =========================================================================

    async def query(self, key, fetch_fn: FetchFn, options: Optional[QueryOptions] = None) -> QueryResult:
        """
        Get the value for `key`, fetching it if the cache can't serve it.

        Args:
            key: Hierarchical key, see query.keys
            fetch_fn: Zero-argument coroutine function producing the value
            options: Per-call overrides

        Returns:
            A QueryResult; errors are reported in it, never raised.
        """
        key = normalize_key(key)
        resolved = self._resolve(options)
        now = self._clock()
        self.collect_garbage()

        entry = self._entries.get(key)
        if entry is None:
            entry = CacheEntry(key=key, fetch_fn=fetch_fn, options=resolved)
            self._entries[key] = entry
        else:
            entry.fetch_fn = fetch_fn
            entry.options = resolved
        entry.last_used_at = now

        if not resolved.enabled:
            return self._result(entry)

        if entry.has_data and not entry.invalidated:
            age = entry.age(now)
            if age <= resolved.stale_time:
                return self._result(entry)
            if age <= resolved.gc_time:
                if not entry.is_fetching:
                    logger.debug(f"Serving stale {key}, refetching in background")
                    self._start_fetch(entry)
                return self._result(entry, is_stale=True)
            logger.debug(f"Entry {key} outlived gc_time, fetching again")
            self._cancel_task(entry)
            entry.drop_data()

        if not entry.is_fetching:
            self._start_fetch(entry)
        await self._wait_for_fetch(entry)

        if self._entries.get(key) is not entry:
            # Dropped by invalidation while we waited
            return await self.query(key, fetch_fn, options)
        return self._result(entry)

    async def prefetch(self, key, fetch_fn: FetchFn, options: Optional[QueryOptions] = None) -> None:
        """Warm the cache. Same rules as query(), result discarded."""
        await self.query(key, fetch_fn, options)

    def get_query_result(self, key) -> QueryResult:
        """Current state of a key without triggering any fetch."""
        key = normalize_key(key)
        entry = self._entries.get(key)
        if entry is None:
            return QueryResult(key=key)
        return self._result(entry)

    def get_query_data(self, key) -> Any:
        entry = self._entries.get(normalize_key(key))
        return entry.data if entry is not None else None

    def set_query_data(self, key, data: Any, fetch_fn: Optional[FetchFn] = None) -> QueryResult:
        """
        Write a value directly (optimistic updates, server push).

        Counts as the most recent request for the key, so fetches that were
        already in flight cannot overwrite it.
        """
        key = normalize_key(key)
        entry = self._entries.get(key)
        if entry is None:
            if fetch_fn is None:
                raise ValueError(f"No cached query for {key}; a fetch_fn is required")
            entry = CacheEntry(key=key, fetch_fn=fetch_fn, options=self._resolve(None))
            self._entries[key] = entry
        entry.last_used_at = self._clock()
        seq = entry.next_seq
        entry.next_seq += 1
        self._write_data(entry, seq, data)
        return self._result(entry)

    def _result(self, entry: CacheEntry, is_stale: Optional[bool] = None) -> QueryResult:
        fetching = entry.is_fetching
        if entry.error is not None:
            status = QueryStatus.ERROR
        elif entry.has_data:
            status = QueryStatus.SUCCESS
        elif fetching:
            status = QueryStatus.LOADING
        else:
            status = QueryStatus.IDLE
        return QueryResult(
            key=entry.key,
            data=entry.data,
            error=entry.error,
            status=status,
            is_loading=fetching and not entry.has_data,
            is_fetching=fetching,
            is_stale=entry.is_stale(self._clock()) if is_stale is None else is_stale,
            fetched_at=entry.fetched_at,
            retry_count=entry.retry_count,
        )

    # =========================================================================
    # Fetching
    # =========================================================================

    def _start_fetch(self, entry: CacheEntry) -> Optional[asyncio.Task]:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop: the next query() will fetch
            return None
        seq = entry.next_seq
        entry.next_seq += 1
        entry.task = loop.create_task(self._run_fetch(entry, seq))
        self._notify(entry)
        return entry.task

    async def _run_fetch(self, entry: CacheEntry, seq: int) -> None:
        def on_retry(attempt: int, error: BaseException) -> None:
            entry.retry_count = attempt + 1

        try:
            with self._request_tracker():
                data = await call_with_retry(
                    entry.fetch_fn,
                    retries=entry.options.retry,
                    sleep=self._sleep,
                    delay=self._delay,
                    on_retry=on_retry,
                )
        except asyncio.CancelledError:
            logger.debug(f"Fetch #{seq} for {entry.key} cancelled")
            raise
        except Exception as e:
            logger.error(f"Fetch for {entry.key} failed: {e!r}")
            self._finish(entry)
            self._write_error(entry, seq, e)
        else:
            self._finish(entry)
            self._write_data(entry, seq, data)

    def _finish(self, entry: CacheEntry) -> None:
        if entry.task is asyncio.current_task():
            entry.task = None

    def _write_data(self, entry: CacheEntry, seq: int, data: Any) -> None:
        if seq < entry.written_seq:
            logger.debug(f"Discarding result #{seq} for {entry.key}; #{entry.written_seq} already written")
            return
        entry.written_seq = seq
        entry.data = data
        entry.has_data = True
        entry.error = None
        entry.fetched_at = self._clock()
        entry.invalidated = False
        entry.retry_count = 0
        self._notify(entry)

    def _write_error(self, entry: CacheEntry, seq: int, error: BaseException) -> None:
        if seq < entry.written_seq:
            return
        entry.written_seq = seq
        entry.error = error
        self._notify(entry)

    async def _wait_for_fetch(self, entry: CacheEntry) -> None:
        # The task can be replaced (invalidate, refetch) while we wait
        while entry.task is not None and not entry.task.done():
            task = entry.task
            try:
                await asyncio.shield(task)
            except asyncio.CancelledError:
                current = asyncio.current_task()
                if current is not None and current.cancelling():
                    raise
                if not task.cancelled():
                    raise

    def _cancel_task(self, entry: CacheEntry) -> None:
        if entry.task is not None and not entry.task.done():
            entry.task.cancel()
        entry.task = None

    async def refetch(self, key, cancel_in_flight: bool = True) -> QueryResult:
        """
        Fetch a cached key again right now and wait for it.

        Args:
            key: A key that has been queried before
            cancel_in_flight: Cancel a fetch that is already running. If False
                the old fetch keeps running but its result is ignored once this
                one has written.
        """
        key = normalize_key(key)
        entry = self._entries.get(key)
        if entry is None:
            return QueryResult(key=key)
        if cancel_in_flight:
            self._cancel_task(entry)
        task = self._start_fetch(entry)
        if task is not None:
            try:
                await asyncio.shield(task)
            except asyncio.CancelledError:
                if not task.cancelled():
                    raise
        return self._result(entry)

    # =========================================================================
    # Mutations
    # =========================================================================

    async def mutate(self, mutation_fn: FetchFn, options: Optional[MutationOptions] = None) -> MutationResult:
        """
        Run a write against a backend, retrying transient failures once.

        Args:
            mutation_fn: Zero-argument coroutine function performing the write
            options: Retry override and success/error callbacks. Callbacks may
                be plain functions or coroutine functions; on_success is where
                callers invalidate the regions their write affected.

        Returns:
            A MutationResult; errors are reported in it, never raised.
        """
        options = options or MutationOptions()
        retries = self.defaults.mutation_retry if options.retry is None else options.retry
        try:
            with self._request_tracker():
                data = await call_with_retry(
                    mutation_fn, retries=retries, sleep=self._sleep, delay=self._delay
                )
        except Exception as e:
            logger.error(f"Mutation failed: {e!r}")
            if options.on_error is not None:
                await self._run_callback(options.on_error, e)
            return MutationResult(error=e, status=QueryStatus.ERROR)

        if options.on_success is not None:
            await self._run_callback(options.on_success, data)
        return MutationResult(data=data, status=QueryStatus.SUCCESS)

    async def _run_callback(self, callback: Callable[[Any], Any], argument: Any) -> None:
        try:
            outcome = callback(argument)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            logger.error(f"Mutation callback failed: {e!r}")

    # =========================================================================
    # Invalidation and refetch triggers
    # =========================================================================

    def invalidate(self, key_prefix) -> int:
        """
        Invalidate every entry whose key starts with `key_prefix`.

        Observed entries are marked stale and refetched in the background.
        Unobserved entries are dropped and fetched again on next access.
        In-flight fetches and retry waits for matching keys are cancelled.

        Returns:
            Number of entries affected
        """
        prefix = normalize_key(key_prefix)
        matched = [entry for key, entry in self._entries.items() if matches_prefix(key, prefix)]
        for entry in matched:
            self._cancel_task(entry)
            if entry.observers:
                entry.invalidated = True
                self._start_fetch(entry)
            else:
                del self._entries[entry.key]
        logger.info(f"Invalidated {len(matched)} entr{'y' if len(matched) == 1 else 'ies'} under {prefix}")
        return len(matched)

    def on_window_focus(self) -> int:
        """The window regained focus: refetch stale observed entries."""
        return self._refetch_stale(lambda options: options.refetch_on_window_focus)

    def on_reconnect(self) -> int:
        """The network came back: refetch stale observed entries."""
        return self._refetch_stale(lambda options: options.refetch_on_reconnect)

    def _refetch_stale(self, enabled: Callable[[_ResolvedOptions], bool]) -> int:
        now = self._clock()
        started = 0
        for entry in list(self._entries.values()):
            if not entry.observers or not entry.options.enabled or not enabled(entry.options):
                continue
            if entry.is_fetching or not entry.is_stale(now):
                continue
            if self._start_fetch(entry) is not None:
                started += 1
        return started

    def collect_garbage(self) -> int:
        """Evict unobserved, idle entries not used for gc_time. Returns the count."""
        now = self._clock()
        expired = [
            entry for entry in self._entries.values()
            if not entry.observers
            and not entry.is_fetching
            and now - entry.last_used_at >= entry.options.gc_time
        ]
        for entry in expired:
            del self._entries[entry.key]
        if expired:
            logger.debug(f"Garbage-collected {len(expired)} cache entr{'y' if len(expired) == 1 else 'ies'}")
        return len(expired)

    def cancel(self, key) -> None:
        """Cancel in-flight work (including retry waits) for one key."""
        entry = self._entries.get(normalize_key(key))
        if entry is not None:
            self._cancel_task(entry)

    def clear(self) -> None:
        """Cancel everything and empty the cache (teardown, tests)."""
        for entry in self._entries.values():
            self._cancel_task(entry)
            entry.observers.clear()
        self._entries.clear()

    def keys(self) -> list[tuple]:
        return list(self._entries)

    # =========================================================================
    # Observation
    # =========================================================================

    async def watch(
        self,
        key,
        fetch_fn: FetchFn,
        listener: Optional[ResultListener] = None,
        options: Optional[QueryOptions] = None,
    ) -> "QueryObserver":
        """
        Observe a key: query it now and be told about every later change.

        Observed entries are kept warm by invalidation, focus and reconnect.
        Call close() on the observer when the consumer goes away.
        """
        observer = QueryObserver(self, normalize_key(key), fetch_fn, listener, options)
        await observer.start()
        return observer

    def _attach(self, observer: "QueryObserver") -> None:
        entry = self._entries.get(observer.key)
        if entry is None:
            entry = CacheEntry(key=observer.key, fetch_fn=observer.fetch_fn, options=self._resolve(observer.options))
            self._entries[observer.key] = entry
        entry.last_used_at = self._clock()
        if observer not in entry.observers:
            entry.observers.append(observer)

    def _detach(self, observer: "QueryObserver") -> None:
        entry = self._entries.get(observer.key)
        if entry is not None and observer in entry.observers:
            entry.observers.remove(observer)
            entry.last_used_at = self._clock()

    def _notify(self, entry: CacheEntry) -> None:
        if not entry.observers:
            return
        result = self._result(entry)
        for observer in list(entry.observers):
            observer._deliver(result)


class QueryObserver:
    """
    A live subscription to one cache key.

    Keeps the entry observed until close() so invalidation refetches it in
    place instead of dropping it.
    """

    def __init__(
        self,
        client: QueryClient,
        key: tuple,
        fetch_fn: FetchFn,
        listener: Optional[ResultListener] = None,
        options: Optional[QueryOptions] = None,
    ):
        self.client = client
        self.key = key
        self.fetch_fn = fetch_fn
        self.listener = listener
        self.options = options
        self.closed = False

    async def start(self) -> QueryResult:
        self.client._attach(self)
        return await self.client.query(self.key, self.fetch_fn, self.options)

    @property
    def result(self) -> QueryResult:
        return self.client.get_query_result(self.key)

    async def refetch(self) -> QueryResult:
        return await self.client.refetch(self.key)

    def _deliver(self, result: QueryResult) -> None:
        if self.closed or self.listener is None:
            return
        try:
            self.listener(result)
        except Exception as e:
            logger.error(f"Query listener for {self.key} failed: {e!r}")

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self.client._detach(self)
