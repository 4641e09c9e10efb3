"""
=============================================================================
CONNECTION QUEUE
=============================================================================

The ONE structure shared between the acceptor thread and the workers.
Everything else a worker touches is private to the connection it holds.

    Acceptor                ConnectionQueue (capacity N)          Workers
    ────────                ────────────────────────────          ───────
                          ┌───┬───┬───┬───┬───┬───┐
    push(conn) ─────────► │ 7 │ 6 │ 5 │ 4 │   │   │ ─────────► pop()
                          └───┴───┴───┴───┴───┴───┘
                           newest            oldest
                                              (FIFO)

=============================================================================
BLOCKING, NOT POLLING
=============================================================================

An idle worker must cost nothing. A loop like

    while True:
        with lock:
            if items:
                return items.popleft()      ← spins at 100% CPU

burns a core per worker while the server is idle. Instead a worker waits
on a condition variable and the kernel parks the thread until push()
notifies it:

    pop():   with lock: while empty: not_empty.wait()    ← thread sleeps
    push():  with lock: append; not_empty.notify()       ← wakes ONE popper

One lock guards the deque. Two conditions share that lock, one per
direction, so a push wakes exactly one waiting popper and a pop wakes
exactly one waiting pusher. This is the layout queue.Queue uses; we
write it out because queue.Queue has no way to release blocked getters
on shutdown before Python 3.13.

=============================================================================
BACKPRESSURE AND SHUTDOWN
=============================================================================

    Full queue:     push(block=True)   waits for a free slot
                    push(block=False)  raises QueueFull at once

    close():        every waiter wakes up
                    push()  raises QueueClosed
                    pop()   still returns queued items, then raises
                            QueueClosed once the queue is empty

=============================================================================
"""

import threading
import time
from collections import deque
from typing import Deque, Generic, List, Optional, TypeVar


T = TypeVar("T")


class QueueFull(Exception):
    """Raised by a non-blocking or timed-out push on a full queue."""


class QueueClosed(Exception):
    """
    Terminal signal: the queue is closed.

    Raised by push() after close(), and by pop() once a closed queue has
    been drained.
    """


class ConnectionQueue(Generic[T]):
    """
    Thread-safe bounded FIFO with blocking push and pop.

    Args:
        capacity: Maximum number of queued items. Must be at least 1.
    """

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")

        self._capacity = capacity
        self._items: Deque[T] = deque()
        self._closed = False

        self._lock = threading.Lock()
        self._not_empty = threading.Condition(self._lock)
        self._not_full = threading.Condition(self._lock)

    # =========================================================================
    # PRODUCER SIDE
    # =========================================================================

    def push(self, item: T, block: bool = True, timeout: Optional[float] = None) -> None:
        """
        Append ``item`` at the tail.

        Args:
            item: The connection to queue.
            block: Wait for a free slot when the queue is full.
            timeout: Longest wait in seconds (None waits forever).

        Raises:
            QueueFull: Queue full and not blocking, or the wait timed out.
            QueueClosed: The queue was closed before or during the wait.
        """
        with self._not_full:
            if self._closed:
                raise QueueClosed("Queue is closed")

            if len(self._items) >= self._capacity:
                if not block:
                    raise QueueFull("Queue is full")

                deadline = None if timeout is None else time.monotonic() + timeout
                while len(self._items) >= self._capacity and not self._closed:
                    remaining = None if deadline is None else deadline - time.monotonic()
                    if remaining is not None and remaining <= 0:
                        raise QueueFull("Queue is full")
                    self._not_full.wait(remaining)

                if self._closed:
                    raise QueueClosed("Queue closed while waiting for a free slot")

            self._items.append(item)
            self._not_empty.notify()

    # =========================================================================
    # CONSUMER SIDE
    # =========================================================================

    def pop(self, timeout: Optional[float] = None) -> T:
        """
        Remove and return the oldest item, waiting until one is available.

        Args:
            timeout: Longest wait in seconds (None waits forever).

        Raises:
            QueueClosed: The queue is closed and empty.
            TimeoutError: Nothing arrived within ``timeout``.
        """
        with self._not_empty:
            deadline = None if timeout is None else time.monotonic() + timeout

            while not self._items:
                if self._closed:
                    raise QueueClosed("Queue is closed")
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    raise TimeoutError("No item available")
                self._not_empty.wait(remaining)

            item = self._items.popleft()
            self._not_full.notify()
            return item

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def close(self) -> None:
        """
        Close the queue and wake every blocked push() and pop().

        Idempotent. Items already queued can still be popped.
        """
        with self._lock:
            self._closed = True
            self._not_empty.notify_all()
            self._not_full.notify_all()

    def drain(self) -> List[T]:
        """Remove and return every queued item (oldest first)."""
        with self._lock:
            items = list(self._items)
            self._items.clear()
            self._not_full.notify_all()
            return items

    # =========================================================================
    # MONITORING
    # =========================================================================

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def closed(self) -> bool:
        return self._closed

    def full(self) -> bool:
        with self._lock:
            return len(self._items) >= self._capacity

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
