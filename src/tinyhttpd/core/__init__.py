"""
=============================================================================
CORE: CONNECTIONS, QUEUE, WORKERS, LISTENER
=============================================================================

The dispatch model of the server, with no knowledge of HTTP syntax:

    SocketServer ──push──► ConnectionQueue ──pop──► WorkerPool
    (1 thread)             (bounded FIFO)           (N threads)

    socket_server.py     Binds the port, accepts, wraps sockets
    connection.py        One client socket: timeout, reader, send, close
    connection_queue.py  Blocking bounded FIFO, the only shared structure
    worker_pool.py       Fixed set of threads draining the queue

=============================================================================
"""

from .connection import Connection, ConnectionState
from .connection_queue import ConnectionQueue, QueueClosed, QueueFull
from .socket_server import SocketServer
from .worker_pool import Worker, WorkerPool, WorkerState

__all__ = [
    "SocketServer",
    "Connection",
    "ConnectionState",
    "ConnectionQueue",
    "QueueClosed",
    "QueueFull",
    "Worker",
    "WorkerPool",
    "WorkerState",
]
