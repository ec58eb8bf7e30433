"""Push-driven streams of query snapshots."""

import asyncio
import logging
from typing import Generic, Protocol, Self

from firestore_records.domain.records import RecordT

_logger = logging.getLogger(__name__)

_END = object()


class Subscription(Protocol):
    """Handle for a live store listener."""

    def unsubscribe(self) -> None:
        """Stop delivering snapshots."""


class SnapshotStream(Generic[RecordT]):
    """Async iterator over full decoded snapshots of a live query.

    Snapshots may be published from any thread. Only the latest undelivered
    snapshot is kept, so a slow consumer skips stale ones. Closing the stream,
    directly or by leaving ``async with``, unregisters the underlying
    subscription exactly once and ends iteration.
    """

    def __init__(self, description: str) -> None:
        self.description = description
        self._loop = asyncio.get_running_loop()
        self._queue: asyncio.Queue[object] = asyncio.Queue()
        self._subscription: Subscription | None = None
        self._closed = False

    @classmethod
    def single(cls, description: str, snapshot: list[RecordT]) -> Self:
        """Return a stream that yields ``snapshot`` once and then ends."""
        stream = cls(description)
        stream._queue.put_nowait(snapshot)
        stream._queue.put_nowait(_END)
        stream._closed = True
        return stream

    @property
    def closed(self) -> bool:
        """Whether the stream has been closed."""
        return self._closed

    def attach(self, subscription: Subscription) -> None:
        """Bind the store listener this stream releases on close."""
        if self._closed:
            subscription.unsubscribe()
            return
        self._subscription = subscription

    def publish(self, snapshot: list[RecordT]) -> None:
        """Queue a snapshot for the consumer."""
        if self._closed or self._loop.is_closed():
            return
        try:
            self._loop.call_soon_threadsafe(self._deliver, snapshot)
        except RuntimeError:
            # event loop closed after the check above
            return

    def _deliver(self, snapshot: list[RecordT]) -> None:
        if self._closed:
            return
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(snapshot)

    def close(self) -> None:
        """Unregister the listener and end iteration."""
        if self._closed:
            return
        self._closed = True
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            subscription.unsubscribe()
            _logger.info("Stopped observing %s", self.description)
        self._queue.put_nowait(_END)

    def __aiter__(self) -> Self:
        return self

    async def __anext__(self) -> list[RecordT]:
        item = await self._queue.get()
        if item is _END:
            self._queue.put_nowait(_END)
            raise StopAsyncIteration
        return item  # type: ignore[return-value]

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *_exc_info: object) -> None:
        self.close()
