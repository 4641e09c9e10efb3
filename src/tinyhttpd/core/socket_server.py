"""
=============================================================================
LISTENER / ACCEPTOR
=============================================================================

The SocketServer owns the listening socket. Its only job is to accept
connections and hand each one to a callback, which pushes it onto the
ConnectionQueue. It never reads a byte of HTTP itself.

SOCKET LIFECYCLE (Server Side):
────────────────────────────────

    1. socket()    Create the listening socket
    2. bind()      Reserve IP:PORT            ← the ONLY fatal failure:
    3. listen()    Kernel starts queueing        nothing accepted yet,
                   handshakes (backlog)          nothing to clean up
    4. accept()    One new socket per client
    5. close()     On shutdown

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         SocketServer                                │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                     │
    │    bind()          socket + bind + listen, records the real port    │
    │                                                                     │
    │    serve(cb)       accept loop (blocks here)                        │
    │        └──► while running:                                          │
    │                accept()         waits in the kernel                 │
    │                Connection()     wrap with idle timeout              │
    │                cb(conn)         → ConnectionQueue.push()            │
    │                                                                     │
    │    shutdown()      stop flag; the loop notices within poll_interval │
    │                                                                     │
    └─────────────────────────────────────────────────────────────────────┘

accept() is given a short timeout (poll_interval) only so the loop can
notice shutdown(). While waiting, the thread sleeps in the kernel; it is
not spinning.

=============================================================================
"""

import logging
import signal
import socket
import threading
import time
from typing import Callable, Optional, Tuple

from ..config import ServerConfig
from .connection import Connection


logger = logging.getLogger(__name__)


class SocketServer:
    """
    TCP listener that feeds accepted connections to a callback.

        server = SocketServer(config)
        server.bind()                     # raises OSError if the port is taken
        server.serve(queue_connection)    # blocks until shutdown()

    Args:
        config: host, port, backlog, idle_timeout and buffer settings.
        poll_interval: accept() timeout used to check the stop flag.
    """

    def __init__(self, config: ServerConfig, poll_interval: float = 0.5):
        self.config = config
        self.poll_interval = poll_interval

        self._socket: Optional[socket.socket] = None
        self._address: Tuple[str, int] = (config.host, config.port)
        self._running = False

        self._ready = threading.Event()
        self._stopped = threading.Event()

        self._original_handlers: dict = {}

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """The bound (host, port). After bind(), port 0 is the real port."""
        return self._address

    # =========================================================================
    # SETUP
    # =========================================================================

    def _create_socket(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)

        # SO_REUSEADDR: restart without waiting out TIME_WAIT
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

        # TCP_NODELAY: send responses immediately (Nagle off)
        try:
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        except OSError:
            pass

        sock.settimeout(self.poll_interval)
        return sock

    def bind(self) -> Tuple[str, int]:
        """
        Create, bind and listen.

        Returns:
            The bound (host, port).

        Raises:
            OSError: The address is in use or not permitted. Logged here,
                     re-raised for the caller to abort startup.
        """
        sock = self._create_socket()
        try:
            sock.bind((self.config.host, self.config.port))
        except OSError as e:
            logger.error(f"Failed to bind to {self.config.host}:{self.config.port}: {e}")
            sock.close()
            raise

        sock.listen(self.config.backlog)
        self._socket = sock
        self._address = sock.getsockname()[:2]

        logger.info(f"Listening on {self._address[0]}:{self._address[1]}")
        return self._address

    def _setup_signals(self):
        """
        Route SIGTERM (docker stop, systemd) and SIGINT (Ctrl+C) to shutdown().

        signal.signal() only works in the main thread; when the server runs
        in a background thread (tests, embedding) signals are left alone.
        """
        if threading.current_thread() is not threading.main_thread():
            return

        def shutdown_handler(signum, frame):
            logger.info(f"Received {signal.Signals(signum).name}, initiating shutdown...")
            self.shutdown()

        for sig in (signal.SIGTERM, signal.SIGINT):
            self._original_handlers[sig] = signal.signal(sig, shutdown_handler)

    def _restore_signals(self):
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    # =========================================================================
    # ACCEPT LOOP
    # =========================================================================

    def serve(self, on_connection: Callable[[Connection], None]):
        """
        Accept connections until shutdown() is called.

        Binds first if bind() was not called yet. ``on_connection`` runs in
        this thread for every accepted connection and takes ownership of it.
        """
        if self._socket is None:
            self.bind()

        self._running = True
        self._stopped.clear()
        self._setup_signals()
        self._ready.set()

        try:
            self._accept_loop(on_connection)
        finally:
            self._cleanup()

    def _accept_loop(self, on_connection: Callable[[Connection], None]):
        while self._running:
            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                continue  # Check the stop flag, then wait again
            except OSError as e:
                if not self._running:
                    break
                # EMFILE and friends: transient, back off instead of dying
                logger.error(f"Accept error: {e}")
                time.sleep(self.poll_interval)
                continue

            conn = Connection(
                socket=client_socket,
                address=client_address[:2],
                timeout=self.config.idle_timeout,
                request_timeout=self.config.request_timeout,
                buffer_size=self.config.buffer_size,
            )
            logger.debug(f"[{conn.id}] Accepted connection from {conn.client_ip}:{client_address[1]}")

            on_connection(conn)

    # =========================================================================
    # SHUTDOWN
    # =========================================================================

    def shutdown(self):
        """Ask the accept loop to stop. Idempotent, callable from any thread."""
        if self._running:
            logger.info("Shutting down listener...")
        self._running = False

    def _cleanup(self):
        self._running = False
        self._restore_signals()

        if self._socket:
            try:
                self._socket.close()
            except OSError:
                pass
            self._socket = None

        self._ready.clear()
        self._stopped.set()
        logger.info("Listener stopped")

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the accept loop is running. False on timeout."""
        return self._ready.wait(timeout)

    def wait_for_shutdown(self, timeout: Optional[float] = None) -> bool:
        """Block until the accept loop has exited. False on timeout."""
        return self._stopped.wait(timeout)
