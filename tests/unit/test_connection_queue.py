"""
Unit tests for the bounded connection queue.
"""

import threading
import time

import pytest

from tinyhttpd.core.connection_queue import ConnectionQueue, QueueClosed, QueueFull


def run_in_thread(target, *args):
    """Start ``target`` in a thread and collect its result or exception."""
    outcome = {}

    def runner():
        try:
            outcome["result"] = target(*args)
        except Exception as e:
            outcome["error"] = e

    thread = threading.Thread(target=runner, daemon=True)
    thread.start()
    return thread, outcome


class TestConnectionQueue:
    """Tests for ConnectionQueue basics."""

    def test_capacity_must_be_positive(self):
        """A queue needs room for at least one item."""
        with pytest.raises(ValueError):
            ConnectionQueue(0)
        assert ConnectionQueue(1).capacity == 1

    def test_fifo_order(self):
        """Items come out in the order they went in."""
        queue = ConnectionQueue(5)
        for i in range(5):
            queue.push(i)

        assert [queue.pop() for _ in range(5)] == [0, 1, 2, 3, 4]

    def test_len_and_full(self):
        """len() and full() track the queue contents."""
        queue = ConnectionQueue(2)
        assert len(queue) == 0
        assert not queue.full()

        queue.push("a")
        queue.push("b")

        assert len(queue) == 2
        assert queue.full()

    def test_non_blocking_push_on_full(self):
        """A non-blocking push on a full queue raises QueueFull."""
        queue = ConnectionQueue(1)
        queue.push("a")

        with pytest.raises(QueueFull):
            queue.push("b", block=False)
        assert len(queue) == 1

    def test_push_timeout(self):
        """A timed push gives up with QueueFull."""
        queue = ConnectionQueue(1)
        queue.push("a")

        started = time.monotonic()
        with pytest.raises(QueueFull):
            queue.push("b", timeout=0.1)
        assert time.monotonic() - started >= 0.09

    def test_pop_timeout(self):
        """A timed pop on an empty queue raises TimeoutError."""
        with pytest.raises(TimeoutError):
            ConnectionQueue(1).pop(timeout=0.05)


class TestBlocking:
    """Tests for blocking behaviour across threads."""

    def test_pop_blocks_until_push(self):
        """A waiting pop is woken by a push and gets the item."""
        queue = ConnectionQueue(1)
        thread, outcome = run_in_thread(queue.pop)

        time.sleep(0.1)
        assert thread.is_alive()  # Still waiting, nothing to pop

        queue.push("conn")
        thread.join(timeout=2.0)

        assert outcome == {"result": "conn"}

    def test_push_blocks_until_pop(self):
        """A push on a full queue waits for a free slot."""
        queue = ConnectionQueue(1)
        queue.push("first")
        thread, outcome = run_in_thread(queue.push, "second")

        time.sleep(0.1)
        assert thread.is_alive()

        assert queue.pop() == "first"
        thread.join(timeout=2.0)

        assert "error" not in outcome
        assert queue.pop() == "second"

    def test_many_producers_many_consumers(self):
        """Every pushed item is popped exactly once."""
        queue = ConnectionQueue(4)
        received = []
        lock = threading.Lock()

        def consume():
            while True:
                try:
                    item = queue.pop()
                except QueueClosed:
                    return
                with lock:
                    received.append(item)

        def produce(start):
            for i in range(start, start + 50):
                queue.push(i)

        consumers = [threading.Thread(target=consume) for _ in range(3)]
        producers = [threading.Thread(target=produce, args=(n * 50,)) for n in range(4)]
        for t in consumers + producers:
            t.start()
        for t in producers:
            t.join(timeout=5.0)
        queue.close()
        for t in consumers:
            t.join(timeout=5.0)

        assert sorted(received) == list(range(200))


class TestClose:
    """Tests for close() and drain()."""

    def test_close_wakes_waiting_pop(self):
        """Closing wakes a blocked pop with QueueClosed."""
        queue = ConnectionQueue(1)
        thread, outcome = run_in_thread(queue.pop)
        time.sleep(0.05)

        queue.close()
        thread.join(timeout=2.0)

        assert not thread.is_alive()
        assert isinstance(outcome["error"], QueueClosed)

    def test_close_wakes_waiting_push(self):
        """Closing wakes a blocked push with QueueClosed."""
        queue = ConnectionQueue(1)
        queue.push("a")
        thread, outcome = run_in_thread(queue.push, "b")
        time.sleep(0.05)

        queue.close()
        thread.join(timeout=2.0)

        assert isinstance(outcome["error"], QueueClosed)

    def test_closed_queue_still_hands_out_items(self):
        """Queued items survive close(); QueueClosed comes once empty."""
        queue = ConnectionQueue(3)
        queue.push("a")
        queue.push("b")
        queue.close()

        assert queue.closed
        assert queue.pop() == "a"
        assert queue.pop() == "b"
        with pytest.raises(QueueClosed):
            queue.pop()

    def test_push_after_close(self):
        """A closed queue accepts nothing."""
        queue = ConnectionQueue(3)
        queue.close()
        queue.close()  # Idempotent

        with pytest.raises(QueueClosed):
            queue.push("a")

    def test_drain(self):
        """drain() empties the queue and returns the items in order."""
        queue = ConnectionQueue(3)
        for item in "abc":
            queue.push(item)

        assert queue.drain() == ["a", "b", "c"]
        assert len(queue) == 0
        assert queue.drain() == []
