"""Live block-event fan-out to streaming subscribers.

One coordinating task per (channel, chaincode) owns the upstream block
subscription and pushes every event to the subscribers registered for that
key. The registry is only touched from the event loop thread and never across
an ``await``, so it needs no lock.
"""

import asyncio
import itertools
import json
import logging
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, suppress
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Protocol

from tracechain_gateway.domain.models import LiveBlockEvent

_logger = logging.getLogger(__name__)


class FeedState(StrEnum):
    """Lifecycle of an upstream block subscription."""

    IDLE = "idle"
    CONNECTING = "connecting"
    STREAMING = "streaming"
    ERROR = "error"


class BlockEventSource(Protocol):
    """Upstream provider of committed-block notifications."""

    def open(
        self, channel: str, chaincode: str
    ) -> AbstractAsyncContextManager[AsyncIterator[LiveBlockEvent]]:
        """Open a block stream; iteration ends or raises on disconnect."""


class SubscriberSink(Protocol):
    """Output channel of one streaming client."""

    def deliver(self, event: LiveBlockEvent) -> None:
        """Write an event; raising marks the write as failed."""

    def close(self, error: str | None = None) -> None:
        """Signal that no more events follow, optionally with an error."""


@dataclass(frozen=True)
class Subscription:
    """Handle returned by subscribe and accepted by unsubscribe."""

    channel: str
    chaincode: str
    subscriber_id: int


@dataclass
class BlockFeed:
    """Shared upstream subscription for one channel/chaincode pair."""

    channel: str
    chaincode: str
    source: BlockEventSource
    reconnect_seconds: float = 5.0
    state: FeedState = FeedState.IDLE
    _subscribers: dict[int, SubscriberSink] = field(default_factory=dict, init=False)
    _ids: itertools.count = field(default_factory=itertools.count, init=False)
    _task: asyncio.Task[None] | None = field(default=None, init=False)

    def subscribe(self, sink: SubscriberSink) -> Subscription:
        """Register a sink, starting the upstream subscription if idle."""
        subscription = Subscription(self.channel, self.chaincode, next(self._ids))
        self._subscribers[subscription.subscriber_id] = sink
        if self._task is None:
            self.state = FeedState.CONNECTING
            self._task = asyncio.create_task(
                self._run(), name=f"block-feed:{self.channel}/{self.chaincode}"
            )
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        """Remove a sink; unknown or already-removed handles are ignored."""
        self._subscribers.pop(subscription.subscriber_id, None)

    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def broadcast(self, event: LiveBlockEvent) -> int:
        """Deliver an event to every subscriber in registration order.

        A sink whose write fails is removed and closed; the others still
        receive the event. Returns the number of successful deliveries.
        """
        delivered = 0
        for subscriber_id, sink in list(self._subscribers.items()):
            try:
                sink.deliver(event)
            except Exception as exc:
                _logger.warning(
                    "Dropping live subscriber %s on %s/%s: %r",
                    subscriber_id,
                    self.channel,
                    self.chaincode,
                    exc,
                )
                self.unsubscribe(
                    Subscription(self.channel, self.chaincode, subscriber_id)
                )
                sink.close("subscriber dropped")
            else:
                delivered += 1
        return delivered

    async def close(self) -> None:
        """Stop the upstream subscription and end every open stream."""
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task
        subscribers = list(self._subscribers.values())
        self._subscribers.clear()
        for sink in subscribers:
            sink.close()
        self.state = FeedState.IDLE

    async def _run(self) -> None:
        while True:
            self.state = FeedState.CONNECTING
            _logger.info("Subscribing to blocks on %s/%s", self.channel, self.chaincode)
            try:
                async with self.source.open(self.channel, self.chaincode) as events:
                    self.state = FeedState.STREAMING
                    async for event in events:
                        self.broadcast(event)
            except Exception as exc:
                reason = str(exc) or type(exc).__name__
            else:
                reason = "upstream block stream closed"
            self.state = FeedState.ERROR
            _logger.warning(
                "Block stream on %s/%s failed: %s; retrying in %ss",
                self.channel,
                self.chaincode,
                reason,
                self.reconnect_seconds,
            )
            self._fail_subscribers(reason)
            await asyncio.sleep(self.reconnect_seconds)
            if not self._subscribers:
                self.state = FeedState.IDLE
                self._task = None
                return

    def _fail_subscribers(self, reason: str) -> None:
        subscribers = list(self._subscribers.values())
        self._subscribers.clear()
        for sink in subscribers:
            sink.close(reason)


@dataclass
class LiveBlockBroadcaster:
    """Registry of lazily started block feeds, one per channel/chaincode."""

    source: BlockEventSource
    reconnect_seconds: float = 5.0
    _feeds: dict[tuple[str, str], BlockFeed] = field(default_factory=dict, init=False)

    def feed(self, channel: str, chaincode: str) -> BlockFeed:
        """Return the feed for a key, creating it in the idle state."""
        key = (channel, chaincode)
        feed = self._feeds.get(key)
        if feed is None:
            feed = BlockFeed(
                channel=channel,
                chaincode=chaincode,
                source=self.source,
                reconnect_seconds=self.reconnect_seconds,
            )
            self._feeds[key] = feed
        return feed

    def subscribe(
        self, channel: str, chaincode: str, sink: SubscriberSink
    ) -> Subscription:
        """Register a sink on the feed for a key."""
        return self.feed(channel, chaincode).subscribe(sink)

    def unsubscribe(self, subscription: Subscription) -> None:
        """Remove a sink from its feed."""
        feed = self._feeds.get((subscription.channel, subscription.chaincode))
        if feed is not None:
            feed.unsubscribe(subscription)

    async def close(self) -> None:
        """Close every feed."""
        for feed in self._feeds.values():
            await feed.close()


@dataclass(frozen=True)
class _EndOfStream:
    error: str | None


@dataclass
class QueueSink:
    """Bounded in-memory sink rendered as Server-Sent Events.

    A full queue counts as a failed write, so a slow consumer is dropped
    instead of stalling the broadcast.
    """

    max_size: int = 100
    retry_ms: int = 5000
    _queue: asyncio.Queue[LiveBlockEvent | _EndOfStream] = field(init=False)
    _closed: bool = field(default=False, init=False)

    def __post_init__(self) -> None:
        self._queue = asyncio.Queue(maxsize=self.max_size)

    @property
    def closed(self) -> bool:
        return self._closed

    def deliver(self, event: LiveBlockEvent) -> None:
        """Queue an event; raises QueueFull for a slow consumer."""
        if self._closed:
            raise RuntimeError("sink is closed")
        self._queue.put_nowait(event)

    def close(self, error: str | None = None) -> None:
        """Queue the end-of-stream marker, discarding backlog if needed."""
        if self._closed:
            return
        self._closed = True
        if self._queue.full():
            while not self._queue.empty():
                self._queue.get_nowait()
        self._queue.put_nowait(_EndOfStream(error))

    async def frames(self) -> AsyncIterator[str]:
        """Yield SSE frames until the sink is closed."""
        yield f"retry: {self.retry_ms}\n\n"
        while True:
            item = await self._queue.get()
            if isinstance(item, _EndOfStream):
                if item.error is not None:
                    yield f"event: error\ndata: {_compact({'error': item.error})}\n\n"
                return
            yield f"data: {_compact(item.to_json())}\n\n"


def _compact(payload: dict[str, object]) -> str:
    return json.dumps(payload, separators=(",", ":"))
