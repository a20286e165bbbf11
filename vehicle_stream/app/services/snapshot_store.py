from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Awaitable, Callable

from vehicle_stream.domain.models.snapshot import PublishedState

logger = logging.getLogger(__name__)


@dataclass(eq=False, slots=True)
class Subscription:
    """One subscriber's mailbox.

    The queue holds at most one pending notification; a newer publish
    replaces an unread one, so a slow reader only ever skips ahead.
    """

    queue: asyncio.Queue[PublishedState] = field(
        default_factory=lambda: asyncio.Queue(maxsize=1)
    )
    last_timestamp: int = 0


@dataclass(slots=True)
class SnapshotPublisher:
    """Registry of live subscribers, fed on every publish."""

    _subscribers: set[Subscription] = field(default_factory=set, init=False)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    @asynccontextmanager
    async def subscribe(self) -> AsyncIterator[Subscription]:
        sub = Subscription()
        self._subscribers.add(sub)
        logger.info("Subscriber connected (%d active)", len(self._subscribers))
        try:
            yield sub
        finally:
            self._subscribers.discard(sub)
            logger.info("Subscriber disconnected (%d active)", len(self._subscribers))

    def notify(self, state: PublishedState) -> None:
        for sub in list(self._subscribers):
            q = sub.queue
            if q.full():
                try:
                    q.get_nowait()
                except asyncio.QueueEmpty:
                    pass
            q.put_nowait(state)


@dataclass(slots=True)
class SnapshotStore:
    """Holds the one current PublishedState.

    Reads and publishes are single reference operations, so readers always
    get a complete state, either the old one or the new one.
    """

    publisher: SnapshotPublisher | None = None
    _state: PublishedState = field(default_factory=PublishedState, init=False)

    def current(self) -> PublishedState:
        return self._state

    def publish(self, state: PublishedState) -> bool:
        """Make `state` current if it is newer than what is stored."""

        if state.timestamp <= self._state.timestamp:
            return False
        self._state = state
        if self.publisher is not None:
            self.publisher.notify(state)
        return True


async def stream_states(
    store: SnapshotStore,
    publisher: SnapshotPublisher,
    is_disconnected: Callable[[], Awaitable[bool]],
    poll_interval_s: float = 1.0,
) -> AsyncIterator[PublishedState]:
    """Yield each newly published state for one subscriber until it disconnects.

    The current state is yielded right away. After that the store is checked
    whenever a publish notification arrives, and at least every
    `poll_interval_s` seconds, which is also how often the connection is
    checked.
    """

    async with publisher.subscribe() as sub:
        while True:
            state = store.current()
            if state.timestamp > sub.last_timestamp:
                sub.last_timestamp = state.timestamp
                yield state

            if await is_disconnected():
                return

            try:
                await asyncio.wait_for(sub.queue.get(), timeout=poll_interval_s)
            except asyncio.TimeoutError:
                pass
