import asyncio
from collections import deque
from typing import Deque, Optional, Set

from pubrelay.models.exceptions import HubClosed, Lagged
from pubrelay.schemas import Envelope
from pubrelay.utilities import HUB_CAPACITY


# ------------ In-memory structures ------------
class Hub:
    ''' Process-wide fan-out of envelopes to every live subscription.

    The hub keeps one bounded ring of the most recent envelopes. Every envelope
    gets a sequence number; a subscription is just a cursor into that sequence,
    so publishing never waits on a subscriber and memory stays bounded by
    `capacity` no matter how slow a subscriber is. A subscription that trails by
    more than `capacity` loses the oldest envelopes and is told how many.
    '''

    def __init__(self, capacity: int = HUB_CAPACITY):
        if capacity < 1:
            raise ValueError("hub capacity must be at least 1")
        self.capacity = capacity
        self._buffer: Deque[Envelope] = deque(maxlen=capacity)
        # sequence number the next published envelope will get
        self._next_seq = 0
        self._subscriptions: Set["Subscription"] = set()
        # replaced on every publish; waiters hold on to the one they saw
        self._changed = asyncio.Event()
        self._closed = False

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    @property
    def published_count(self) -> int:
        return self._next_seq

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def _oldest_seq(self) -> int:
        return self._next_seq - len(self._buffer)

    def publish(self, envelope: Envelope) -> int:
        """Store the envelope and wake every waiting subscription.

        Returns how many subscriptions were live at the time, which may be zero.
        """
        if self._closed:
            raise HubClosed("hub is closed")
        # a full ring drops its oldest envelope here
        self._buffer.append(envelope)
        self._next_seq += 1
        self._wake()
        return len(self._subscriptions)

    def subscribe(self) -> "Subscription":
        if self._closed:
            raise HubClosed("hub is closed")
        sub = Subscription(self, self._next_seq)
        self._subscriptions.add(sub)
        return sub

    def close(self) -> None:
        self._closed = True
        self._wake()

    def _wake(self) -> None:
        self._changed.set()
        self._changed = asyncio.Event()

    def _release(self, sub: "Subscription") -> None:
        self._subscriptions.discard(sub)


class Subscription:
    ''' Independent receive handle on a hub, owned by one consumer.'''

    def __init__(self, hub: Hub, cursor: int):
        self._hub = hub
        self._cursor = cursor
        self.closed = False

    def try_recv(self) -> Optional[Envelope]:
        """Next envelope if one is pending, else None.

        Raises Lagged when envelopes were lost; the cursor then points at the
        oldest envelope still held, so the following call returns it.
        """
        if self.closed:
            raise RuntimeError("subscription is closed")
        hub = self._hub
        oldest = hub._oldest_seq
        if self._cursor < oldest:
            skipped = oldest - self._cursor
            self._cursor = oldest
            raise Lagged(skipped)
        if self._cursor < hub._next_seq:
            envelope = hub._buffer[self._cursor - oldest]
            self._cursor += 1
            return envelope
        if hub.closed:
            raise HubClosed("hub is closed")
        return None

    async def recv(self) -> Envelope:
        while True:
            # grab the event before checking so a publish in between still wakes us
            changed = self._hub._changed
            envelope = self.try_recv()
            if envelope is not None:
                return envelope
            await changed.wait()

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._hub._release(self)

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.close()
