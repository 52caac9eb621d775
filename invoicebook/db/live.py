# invoicebook/db/live.py
"""
Live queries over the store.

A live query runs an async read against the store, remembers which
collections that read touched, and re-runs the whole read after every
committed write to one of them. Subscribers receive the fresh value before
the writing call returns, so nobody sees a stale or half-applied snapshot.

Usage:
    async def unpaid(store):
        return await store.invoices.scan(status="partial")

    query = await store.watch(unpaid)
    unsubscribe = query.subscribe(print)
    ...
    query.close()
"""

import inspect
import logging
from contextvars import ContextVar
from typing import Any, Awaitable, Callable, FrozenSet, Generic, List, Optional, Set, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Reader = Callable[[Any], Awaitable[T]]
Subscriber = Callable[[T], Any]

_reads: ContextVar[Optional[Set[str]]] = ContextVar("invoicebook_live_reads", default=None)


def record_read(collection: str) -> None:
    """Called by the store on every read so the running live query learns its dependencies."""
    reads = _reads.get()
    if reads is not None:
        reads.add(collection)


class ChangeFeed:
    """Open live queries of one store, refreshed after each committed write."""

    def __init__(self) -> None:
        self._queries: Set["LiveQuery"] = set()

    def __len__(self) -> int:
        return len(self._queries)

    def register(self, query: "LiveQuery") -> None:
        self._queries.add(query)

    def unregister(self, query: "LiveQuery") -> None:
        self._queries.discard(query)

    async def publish(self, collection: str) -> None:
        # Snapshot: a subscriber may open or close queries while we iterate
        for query in list(self._queries):
            if collection in query.dependencies:
                await query.refresh()

    def close_all(self) -> None:
        for query in list(self._queries):
            query.close()


class LiveQuery(Generic[T]):
    def __init__(self, store, read: Reader) -> None:
        self._store = store
        self._read = read
        self._subscribers: List[Subscriber] = []
        self._started = False

        self.value: Optional[T] = None
        self.error: Optional[Exception] = None
        self.dependencies: FrozenSet[str] = frozenset()
        self.closed = False

    async def start(self) -> "LiveQuery[T]":
        """Evaluate once and start following writes. Errors here propagate."""
        if self.closed:
            raise RuntimeError("Live query is closed")
        if not self._started:
            await self._evaluate()
            self._store.changes.register(self)
            self._started = True
        return self

    async def _evaluate(self) -> T:
        reads: Set[str] = set()
        token = _reads.set(reads)
        try:
            value = await self._read(self._store)
        finally:
            _reads.reset(token)

        self.dependencies = frozenset(reads)
        self.value = value
        self.error = None
        return value

    async def refresh(self) -> None:
        if self.closed:
            return
        try:
            value = await self._evaluate()
        except Exception as exc:
            # The write that triggered us already committed; keep the last good value
            logger.exception("Live query re-evaluation failed")
            self.error = exc
            return

        for callback in list(self._subscribers):
            try:
                result = callback(value)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Live query subscriber %r failed", callback)

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """
        Register `callback(value)`; returns a function that unregisters it.
        When the last subscriber leaves, the query is closed and stops
        re-running. A query nobody ever subscribed to (read through `value`)
        follows writes until close().
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)
                if not self._subscribers:
                    self.close()

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._store.changes.unregister(self)
        self._subscribers.clear()

    async def __aenter__(self) -> "LiveQuery[T]":
        return await self.start()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()
