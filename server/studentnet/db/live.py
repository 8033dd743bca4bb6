# StudentNetwork/server/studentnet/db/live.py

"""
Live views: standing queries exposed as restartable async streams.

A view is started with `await view.start()` and disposed with `view.close()`.
While open it can be consumed three ways: a callback passed to `start`, the
`latest` attribute, or `async for snapshot in view`. After `close()` returns
no callback fires and iteration ends. Calling `start()` again re-subscribes.

Every snapshot is a full result set, so an iterator only ever needs the most
recent one: unread snapshots are replaced, never queued up.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import AsyncIterator, Callable, Generic, List, Optional, TypeVar

from studentnet.db.store import Document, DocumentStore, Query, Unsubscribe

logger = logging.getLogger(__name__)

T = TypeVar("T")

_CLOSED = object()


class LiveView(ABC, Generic[T]):
    def __init__(self) -> None:
        self.latest: Optional[T] = None
        self._callback: Optional[Callable[[T], None]] = None
        self._error_callback: Optional[Callable[[Exception], None]] = None
        self._queue: Optional[asyncio.Queue] = None
        self._open = False
        self.error: Optional[Exception] = None

    @property
    def is_open(self) -> bool:
        return self._open

    @property
    def pending(self) -> int:
        """Snapshots (and the close marker) waiting for an iterator."""
        return self._queue.qsize() if self._queue is not None else 0

    async def start(
        self,
        on_change: Optional[Callable[[T], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
    ) -> "LiveView[T]":
        if self._open:
            raise RuntimeError(f"{type(self).__name__} is already open")
        self._callback = on_change
        self._error_callback = on_error
        self._queue = asyncio.Queue()
        self.error = None
        self._open = True
        try:
            await self._subscribe()
        except Exception:
            self._open = False
            raise
        return self

    @abstractmethod
    async def _subscribe(self) -> None:
        """Opens the underlying subscription(s); snapshots go through `_emit`."""

    @abstractmethod
    def _unsubscribe(self) -> None:
        """Releases whatever `_subscribe` opened."""

    def _emit(self, value: T) -> None:
        if not self._open or self.error is not None:
            return
        self.latest = value
        if self._callback is not None:
            self._callback(value)
        # keep at most one unread snapshot
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(value)

    def _fail(self, error: Exception) -> None:
        if not self._open or self.error is not None:
            return
        logger.error(f"{type(self).__name__} failed: {error}")
        self.error = error
        self._queue.put_nowait(_CLOSED)
        if self._error_callback is not None:
            self._error_callback(error)

    def close(self) -> None:
        """Disposer. Safe to call more than once."""
        if not self._open:
            return
        self._open = False
        self._unsubscribe()
        self._callback = None
        self._error_callback = None
        self._queue.put_nowait(_CLOSED)

    async def first(self) -> T:
        """Waits for the next snapshot (the initial one right after start)."""
        async for value in self:
            return value
        if self.error is not None:
            raise self.error
        raise RuntimeError(f"{type(self).__name__} closed before delivering a snapshot")

    async def __aiter__(self) -> AsyncIterator[T]:
        queue = self._queue
        if queue is None:
            return
        while True:
            item = await queue.get()
            if item is _CLOSED:
                # leave the marker for any other consumer of the same view
                queue.put_nowait(_CLOSED)
                if self.error is not None:
                    raise self.error
                return
            yield item

    async def __aenter__(self) -> "LiveView[T]":
        if not self._open:
            await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()


class LiveQuery(LiveView[T]):
    """A single store subscription, each snapshot mapped through `transform`."""

    def __init__(self, store: DocumentStore, query: Query, transform: Callable[[List[Document]], T]):
        super().__init__()
        self.store = store
        self.query = query
        self.transform = transform
        self._handle: Optional[Unsubscribe] = None

    async def _subscribe(self) -> None:
        self._handle = await self.store.watch(self.query, self._on_snapshot, self._fail)

    def _on_snapshot(self, docs: List[Document]) -> None:
        self._emit(self.transform(docs))

    def _unsubscribe(self) -> None:
        if self._handle is not None:
            self._handle()
            self._handle = None
