"""
=============================================================================
CLIENT CONNECTION
=============================================================================

A Connection wraps one accepted client socket for its whole (short) life:

    accept()  ──►  queued  ──►  one worker  ──►  read / write  ──►  close()
    Acceptor       Queue        owns it          idle timeout        exactly
    creates it     holds it     exclusively      bounds each op      once

=============================================================================
OWNERSHIP
=============================================================================

At any moment exactly one component holds a Connection:

    1. The acceptor, between accept() and push()
    2. The queue, between push() and pop()
    3. One worker, from pop() until close()

No two workers ever see the same Connection, so nothing in here locks.

=============================================================================
IDLE TIMEOUT
=============================================================================

The socket gets settimeout(idle_timeout). A client that connects and then
goes quiet would otherwise hold a worker forever; with the timeout every
recv()/send() gives up after ``idle_timeout`` seconds of silence and the
parser or writer reports an HTTPConnectionError.

=============================================================================
REQUEST DEADLINE
=============================================================================

The idle timeout alone is not enough: a client trickling one byte every
few seconds resets it on every recv() and can keep a worker busy for
hours. So reading the request also has a total budget, request_timeout,
starting when the worker first reads:

    recv  recv  recv  recv  recv
    ─┬─────┬─────┬─────┬─────┬───────────────►  time
     │◄───►│ each wait ≤ idle_timeout
     │◄─────────────────────────────►│ all of them ≤ request_timeout

Before every recv() the socket timeout is lowered to what is left of the
budget; once nothing is left the read fails with TimeoutError.

=============================================================================
"""

import io
import logging
import socket
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import BinaryIO, Optional, Tuple

from ..http.errors import HTTPConnectionError


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Connection lifecycle states, for logging and debugging."""

    NEW = "new"                # Accepted, not yet queued
    QUEUED = "queued"          # Waiting in the ConnectionQueue
    READING = "reading"        # Worker is parsing the request
    PROCESSING = "processing"  # Handler is running
    WRITING = "writing"        # Sending the response
    CLOSED = "closed"          # Socket released


class _DeadlineSocketReader(io.RawIOBase):
    """Raw stream over a connection's socket that re-arms the timeout per recv()."""

    def __init__(self, connection: "Connection"):
        self._connection = connection

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        self._connection.arm_read_timeout()
        return self._connection.socket.recv_into(buffer)


@dataclass
class Connection:
    """
    An accepted client socket plus the bookkeeping a worker needs.

    Attributes:
        socket: The client socket.
        address: Client's (ip, port) tuple.
        timeout: Idle timeout in seconds for every read and write.
        buffer_size: Read buffer size of the stream handed to the parser.
        linger_timeout: How long close() waits for the client to finish.
        request_timeout: Total time allowed to receive the request, counted
                         from the first read. None means no limit.
        id: Short identifier used as a log prefix.
    """

    socket: socket.socket
    address: Tuple[str, int]
    timeout: Optional[float] = 30.0
    buffer_size: int = 8192
    linger_timeout: float = 0.5
    request_timeout: Optional[float] = None

    id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.monotonic)
    read_deadline: Optional[float] = field(default=None, repr=False)

    _reader: Optional[BinaryIO] = field(default=None, repr=False)

    def __post_init__(self):
        self.socket.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    @property
    def age(self) -> float:
        """Seconds since the connection was accepted."""
        return time.monotonic() - self.created_at

    @property
    def closed(self) -> bool:
        return self.state == ConnectionState.CLOSED

    # =========================================================================
    # READING
    # =========================================================================

    @property
    def reader(self) -> BinaryIO:
        """
        Buffered binary stream over the socket, created on first use.

        Creating it starts the request deadline. The request parser calls
        readline()/read() on it; timeouts surface from those calls as
        OSError (TimeoutError).
        """
        if self._reader is None:
            self.state = ConnectionState.READING
            if self.request_timeout is not None:
                self.read_deadline = time.monotonic() + self.request_timeout
            self._reader = io.BufferedReader(_DeadlineSocketReader(self), self.buffer_size)
        return self._reader

    def arm_read_timeout(self) -> None:
        """
        Set the socket timeout for the next recv().

        Raises:
            TimeoutError: The request deadline has already passed.
        """
        if self.read_deadline is None:
            return

        remaining = self.read_deadline - time.monotonic()
        if remaining <= 0:
            raise TimeoutError(f"Request not received within {self.request_timeout}s")

        if self.timeout is not None:
            remaining = min(remaining, self.timeout)
        self.socket.settimeout(remaining)

    # =========================================================================
    # WRITING
    # =========================================================================

    def send_response(self, data: bytes) -> None:
        """
        Send ``data`` in full.

        sendall() keeps calling send() until every byte is handed to the
        kernel; a plain send() may write only part of a large response.

        Raises:
            HTTPConnectionError: Peer closed or reset, or the send timed out.
        """
        self.state = ConnectionState.WRITING
        try:
            # Reading may have left a shortened timeout behind
            self.socket.settimeout(self.timeout)
            self.socket.sendall(data)
        except OSError as e:
            raise HTTPConnectionError(f"[{self.id}] Send failed: {e}") from e

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self) -> None:
        """
        Close the connection. Safe to call more than once.

        ┌─────────────────────────────────────────────────────────────────┐
        │                    Close Sequence                               │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                 │
        │   1. shutdown(SHUT_WR)   FIN to client: "response complete"     │
        │   2. recv() until EOF    Drain what the client still sends,     │
        │      (linger_timeout)    so close() does not turn unread bytes  │
        │                          into a RST that destroys the response  │
        │                          before the client has read it          │
        │   3. close()             Release the file descriptor            │
        │                                                                 │
        └─────────────────────────────────────────────────────────────────┘
        """
        if self.state == ConnectionState.CLOSED:
            return

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # Peer already gone

        # settimeout() bounds each recv(); the deadline bounds the total
        deadline = time.monotonic() + self.linger_timeout
        try:
            self.socket.settimeout(self.linger_timeout)
            while self.socket.recv(4096) and time.monotonic() < deadline:
                pass
        except OSError:
            pass  # Timed out or reset; closing anyway

        if self._reader is not None:
            try:
                self._reader.close()
            except OSError:
                pass
            self._reader = None

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.age:.3f}s")

    def __enter__(self) -> "Connection":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
