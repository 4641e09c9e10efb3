"""
=============================================================================
WORKER POOL
=============================================================================

A fixed set of long-lived threads that take connections off the
ConnectionQueue and process them one at a time.

=============================================================================
WHY A FIXED POOL?
=============================================================================

Thread-per-connection:

    for conn in accept_connections():
        Thread(target=handle, args=(conn,)).start()

has no upper bound. 10,000 slow clients = 10,000 threads = the process
falls over. A fixed pool of N workers plus a bounded queue caps both the
threads and the waiting connections. When both are full the acceptor
waits (or rejects), which is the backpressure signal to the OS backlog
and ultimately to clients.

The worker count never changes after start(). Resource usage is known
in advance, which matters more here than squeezing out throughput.

=============================================================================
ARCHITECTURE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                          WorkerPool                                 │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                     │
    │   ConnectionQueue          ┌──────────┐                             │
    │   ┌───┬───┬───┐   pop()    │ Worker-0 │──► process(conn) ─► close() │
    │   │ c │ b │ a │ ─────────► ├──────────┤                             │
    │   └───┴───┴───┘            │ Worker-1 │──► process(conn) ─► close() │
    │                            ├──────────┤                             │
    │   blocks when empty,       │ Worker-N │    (each worker finishes    │
    │   no spinning              └──────────┘     one conn before the     │
    │                                             next pop)               │
    │                                                                     │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
FAILURE ISOLATION
=============================================================================

If process(conn) raises, the exception is logged with its traceback,
the connection is closed, and the worker goes back to pop(). One bad
request can cost one connection, never a worker thread.

=============================================================================
"""

import logging
import threading
import time
from enum import Enum
from typing import Callable, List, Optional

from .connection import Connection
from .connection_queue import ConnectionQueue, QueueClosed


logger = logging.getLogger(__name__)


ProcessFunc = Callable[[Connection], None]


class WorkerState(Enum):
    """Worker thread states, used for monitoring."""

    IDLE = "idle"        # Blocked in queue.pop()
    BUSY = "busy"        # Processing a connection
    STOPPED = "stopped"  # Thread exited


class Worker(threading.Thread):
    """
    One worker thread.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        Worker Loop                                  │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                     │
    │   1. conn = queue.pop()        (thread sleeps until there is one)   │
    │          │                                                          │
    │          ├── QueueClosed → exit loop, thread terminates             │
    │          │                                                          │
    │   2. process(conn)             parse → handler → write              │
    │          │                                                          │
    │          └── exception → log it, do NOT die                         │
    │                                                                     │
    │   3. conn.close()              always, success or failure           │
    │          │                                                          │
    │          └── back to step 1                                         │
    │                                                                     │
    └─────────────────────────────────────────────────────────────────────┘
    """

    def __init__(
        self,
        queue: ConnectionQueue,
        process: ProcessFunc,
        worker_id: int,
    ):
        # daemon=True: a stuck worker never keeps the process alive
        super().__init__(name=f"Worker-{worker_id}", daemon=True)

        self.queue = queue
        self.process = process
        self.worker_id = worker_id

        self.state = WorkerState.IDLE
        self.connections_handled = 0
        self.connections_failed = 0

    def run(self):
        logger.debug(f"Worker {self.worker_id} started")

        while True:
            try:
                conn = self.queue.pop()
            except QueueClosed:
                break
            self._handle(conn)

        self.state = WorkerState.STOPPED
        logger.debug(f"Worker {self.worker_id} stopped")

    def _handle(self, conn: Connection):
        self.state = WorkerState.BUSY
        start_time = time.monotonic()

        try:
            self.process(conn)
            self.connections_handled += 1
        except Exception as e:
            # The per-connection boundary: log, count, keep the thread alive
            elapsed = time.monotonic() - start_time
            self.connections_failed += 1
            logger.exception(
                f"Worker {self.worker_id} failed on [{conn.id}] "
                f"after {elapsed:.3f}s: {e}"
            )
        finally:
            try:
                conn.close()
            except Exception:
                logger.exception(f"Worker {self.worker_id} could not close [{conn.id}]")
            self.state = WorkerState.IDLE


class WorkerPool:
    """
    Fixed-size pool of Worker threads fed by a ConnectionQueue.

        queue = ConnectionQueue(capacity=64)
        pool = WorkerPool(size=10, queue=queue, process=server.process_connection)
        pool.start()
        ...
        pool.shutdown(timeout=10.0)

    Args:
        size: Number of worker threads. Fixed for the pool's lifetime.
        queue: Where connections come from. Shared with the acceptor.
        process: Called with each connection. Must not close it; the
                 worker does that.
    """

    def __init__(self, size: int, queue: ConnectionQueue, process: ProcessFunc):
        if size < 1:
            raise ValueError(f"size must be >= 1, got {size}")

        self.size = size
        self.queue = queue
        self.process = process

        self._workers: List[Worker] = []
        self._started = False

    def start(self):
        """Spawn exactly ``size`` workers. Calling it twice is a no-op."""
        if self._started:
            return

        logger.info(f"Starting worker pool with {self.size} workers")

        for worker_id in range(self.size):
            worker = Worker(self.queue, self.process, worker_id)
            self._workers.append(worker)
            worker.start()

        self._started = True

    def shutdown(self, timeout: Optional[float] = None) -> bool:
        """
        Stop the pool.

        Closes the queue, which is the terminal signal for every worker:
        idle workers wake up and exit at once, busy workers finish their
        current connection and whatever is still queued, then exit.

        Args:
            timeout: Longest total wait for the workers, in seconds.

        Returns:
            True if every worker exited within the timeout.
        """
        if not self._started:
            return True

        logger.info("Shutting down worker pool...")
        self.queue.close()

        deadline = None if timeout is None else time.monotonic() + timeout
        for worker in self._workers:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            worker.join(remaining)

        stuck = [w.name for w in self._workers if w.is_alive()]
        if stuck:
            logger.warning(f"Workers still running after shutdown timeout: {', '.join(stuck)}")
            return False

        self._started = False
        logger.info("Worker pool shutdown complete")
        return True

    # =========================================================================
    # MONITORING
    # =========================================================================

    @property
    def workers(self) -> List[Worker]:
        return list(self._workers)

    @property
    def alive_workers(self) -> int:
        return sum(1 for w in self._workers if w.is_alive())

    @property
    def busy_workers(self) -> int:
        return sum(1 for w in self._workers if w.state == WorkerState.BUSY)

    @property
    def stats(self) -> dict:
        """Worker and connection counts, for logs and health checks."""
        return {
            "workers": {
                "total": len(self._workers),
                "alive": self.alive_workers,
                "busy": self.busy_workers,
            },
            "connections": {
                "queued": len(self.queue),
                "handled": sum(w.connections_handled for w in self._workers),
                "failed": sum(w.connections_failed for w in self._workers),
            },
        }
