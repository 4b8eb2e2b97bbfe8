"""
In-process change broker.

A channel is a named set of bindings. Each binding selects a table, an
optional operation, and equality filters on the row image. Subscriptions are
async context managers so a channel is always released when its consumer exits.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from .events import BROADCAST, ChangeEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Binding:
    table: str
    event: str = "*"  # INSERT, UPDATE, DELETE or *
    filters: tuple = ()  # ((column, value-or-tuple-of-values), ...)

    @classmethod
    def on(cls, table: str, event: str = "*", **filters: Any) -> "Binding":
        normalized = tuple(
            sorted(
                (column, tuple(value) if isinstance(value, (list, set, tuple)) else value)
                for column, value in filters.items()
            )
        )
        return cls(table=table, event=event, filters=normalized)

    def matches(self, event: ChangeEvent) -> bool:
        if event.table != self.table:
            return False
        if self.event != "*" and event.operation != self.event:
            return False
        row = event.row
        for column, expected in self.filters:
            actual = row.get(column)
            if isinstance(expected, tuple):
                if actual not in expected:
                    return False
            elif actual != expected:
                return False
        return True


@dataclass
class Channel:
    name: str
    bindings: list[Binding] = field(default_factory=list)

    def on(self, table: str, event: str = "*", **filters: Any) -> "Channel":
        self.bindings.append(Binding.on(table, event, **filters))
        return self

    def matches(self, event: ChangeEvent) -> bool:
        if event.operation == BROADCAST:
            return event.channel == self.name
        return any(binding.matches(event) for binding in self.bindings)


class Subscription:
    """Queue of events delivered to one consumer of a channel"""

    def __init__(self, channel: Channel, loop: asyncio.AbstractEventLoop, max_queue: int = 1000):
        self.channel = channel
        self.loop = loop
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=max_queue)
        self.dropped = 0

    def _offer(self, event: ChangeEvent) -> None:
        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(f"⚠️ Realtime queue full on {self.channel.name}; dropped event")

    def deliver(self, event: ChangeEvent) -> None:
        """Thread-safe hand-off onto the subscriber's event loop"""
        if self.loop.is_closed():
            return
        self.loop.call_soon_threadsafe(self._offer, event)

    async def get(self, timeout: Optional[float] = None) -> ChangeEvent:
        if timeout is None:
            return await self.queue.get()
        return await asyncio.wait_for(self.queue.get(), timeout)

    def __aiter__(self):
        return self

    async def __anext__(self) -> ChangeEvent:
        return await self.queue.get()


class ChangeBroker:
    def __init__(self):
        self._subscriptions: list[Subscription] = []
        # Extra sinks (e.g. the Redis relay) receive every locally published event
        self._sinks: list[Callable[[ChangeEvent], None]] = []

    @asynccontextmanager
    async def subscribe(self, channel: Channel):
        subscription = Subscription(channel, asyncio.get_running_loop())
        self._subscriptions.append(subscription)
        logger.info(f"📡 Subscribed to channel {channel.name}")
        try:
            yield subscription
        finally:
            self._subscriptions.remove(subscription)
            logger.info(f"📴 Released channel {channel.name}")

    def subscription_count(self, name: Optional[str] = None) -> int:
        if name is None:
            return len(self._subscriptions)
        return sum(1 for s in self._subscriptions if s.channel.name == name)

    def add_sink(self, sink: Callable[[ChangeEvent], None]) -> None:
        self._sinks.append(sink)

    def remove_sink(self, sink: Callable[[ChangeEvent], None]) -> None:
        if sink in self._sinks:
            self._sinks.remove(sink)

    def dispatch(self, event: ChangeEvent) -> int:
        """Deliver to local subscribers only; returns the number of deliveries"""
        delivered = 0
        for subscription in list(self._subscriptions):
            if subscription.channel.matches(event):
                subscription.deliver(event)
                delivered += 1
        return delivered

    def publish(self, event: ChangeEvent) -> int:
        delivered = self.dispatch(event)
        for sink in list(self._sinks):
            try:
                sink(event)
            except Exception as e:
                logger.error(f"❌ Realtime sink failed for {event.table}: {e}")
        return delivered

    def broadcast(self, channel_name: str, payload: dict) -> int:
        """Ephemeral message to a channel's subscribers, never stored (typing indicators)"""
        return self.publish(ChangeEvent(operation=BROADCAST, table=None, new=payload, channel=channel_name))


broker = ChangeBroker()
