"""
I/O Channels

Unbounded single-producer/single-consumer FIFO used to move integers
into and out of a running machine.
"""

from collections import deque
from typing import Iterable, Iterator, List, Optional
import threading

from .errors import ChannelClosed, ChannelTimeout


class Channel:
    """
    A closable FIFO of integers.

    Sending never blocks. Receiving blocks until a value arrives or the
    channel is closed. Values sent before close stay receivable; only a
    closed and empty channel refuses to receive.
    """

    def __init__(self, values: Iterable[int] = (), name: str = ""):
        self.name = name
        self._queue: deque = deque(values)
        self._closed = False
        self._cond = threading.Condition()

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, value: int):
        """Append a value; raises ChannelClosed if the channel is closed."""
        with self._cond:
            if self._closed:
                raise ChannelClosed(f"Send on closed channel {self.name!r}")
            self._queue.append(value)
            self._cond.notify()

    def receive(self, timeout: Optional[float] = None) -> int:
        """
        Take the oldest value, blocking until one is available.

        Args:
            timeout: Seconds to wait, or None to wait forever

        Returns:
            The next value in FIFO order
        """
        with self._cond:
            ready = self._cond.wait_for(
                lambda: self._queue or self._closed, timeout=timeout
            )
            if not ready:
                raise ChannelTimeout(
                    f"No value on channel {self.name!r} after {timeout}s"
                )
            if self._queue:
                return self._queue.popleft()
            raise ChannelClosed(f"Receive on closed channel {self.name!r}")

    def close(self):
        """Close the channel and wake any blocked receiver."""
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    def empty(self) -> bool:
        with self._cond:
            return not self._queue

    def drain(self) -> List[int]:
        """Remove and return everything buffered, without blocking."""
        with self._cond:
            values = list(self._queue)
            self._queue.clear()
            return values

    def __len__(self) -> int:
        with self._cond:
            return len(self._queue)

    def __iter__(self) -> Iterator[int]:
        """Yield values until the channel is closed and drained."""
        while True:
            try:
                yield self.receive()
            except ChannelClosed:
                return

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"Channel({self.name!r}, {state}, pending={len(self)})"
