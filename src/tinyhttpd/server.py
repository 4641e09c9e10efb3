"""
=============================================================================
HTTP SERVER
=============================================================================

HTTPServer builds the pieces once, wires them together and owns their
lifecycle:

    ┌──────────────┐  push   ┌─────────────────┐  pop   ┌──────────────┐
    │ SocketServer │ ──────► │ ConnectionQueue │ ─────► │  WorkerPool  │
    │  (acceptor)  │         │  (created ONCE, │        │  N threads   │
    └──────────────┘         │  injected into  │        └──────┬───────┘
                             │  both sides)    │               │
                             └─────────────────┘               ▼
                                                    process_connection(conn)
                                                               │
          ┌────────────────────────────────────────────────────┘
          ▼
    RequestParser ──► handler (dispatch) ──► ResponseWriter ──► close

=============================================================================
ONE REQUEST PER CONNECTION
=============================================================================

Each accepted connection carries at most one request/response pair. The
server always answers with "Connection: close" and closes the socket,
whatever the client's Connection header says.

=============================================================================
ERROR POLICY
=============================================================================

    Framing error (ParseError)     → 4xx JSON response, handler NOT called
    Peer sent nothing at all       → close silently
    Read failed / timed out        → close silently (logged)
    Handler raised / bad return    → 500 (see http.handler.dispatch)
    Write failed (peer went away)  → logged as a warning, swallowed
    Anything else in the pipeline  → caught by the worker, logged, closed

    Bind failure at startup        → the ONLY fatal error, raised from run()

=============================================================================
"""

import logging
import time
from typing import Optional

from .config import ServerConfig
from .core import (
    Connection,
    ConnectionQueue,
    ConnectionState,
    QueueClosed,
    QueueFull,
    SocketServer,
    WorkerPool,
)
from .http import (
    Handler,
    HTTPConnectionError,
    HTTPRequest,
    HTTPResponse,
    HTTPStatus,
    ParseError,
    RequestParser,
    ResponseWriter,
    Router,
    UnexpectedEof,
    dispatch,
    error_response,
)


logger = logging.getLogger(__name__)
access_logger = logging.getLogger("tinyhttpd.access")


class HTTPServer:
    """
    Multi-threaded HTTP/1.1 server, one request per connection.

    =========================================================================
    USAGE
    =========================================================================

        server = HTTPServer(ServerConfig(port=8000))

        @server.get("/")
        def index(request):
            return ok("Hello World")

        server.run()                    # blocks until Ctrl+C / SIGTERM

    Or with any Handler callable:

        server = HTTPServer(config, handler=my_app)

    =========================================================================
    """

    def __init__(self, config: Optional[ServerConfig] = None, handler: Optional[Handler] = None):
        self.config = config or ServerConfig()
        self.config.validate()  # Fail fast on invalid config

        # ─────────────────────────────────────────────────────────────────
        # APPLICATION
        # ─────────────────────────────────────────────────────────────────
        # Without an explicit handler, requests go to the built-in router
        self.router = Router()
        self.handler: Handler = handler or self.router.handle

        # ─────────────────────────────────────────────────────────────────
        # CORE COMPONENTS
        # ─────────────────────────────────────────────────────────────────
        # The queue is the only state shared between threads
        self._queue: ConnectionQueue[Connection] = ConnectionQueue(self.config.queue_capacity)

        self._socket_server = SocketServer(self.config)
        self._pool = WorkerPool(self.config.workers, self._queue, self.process_connection)

        self._parser = RequestParser(
            max_line_size=self.config.max_line_size,
            max_header_count=self.config.max_header_count,
            max_body_size=self.config.max_body_size,
        )
        self._writer = ResponseWriter(server_name=self.config.server_name)

        self._running = False

    # =========================================================================
    # ROUTE REGISTRATION (built-in router)
    # =========================================================================

    def route(self, path: str, method: Optional[str] = None):
        """Register a handler for ``path`` on the built-in router."""
        return self.router.route(path, method)

    def get(self, path: str):
        return self.router.get(path)

    def post(self, path: str):
        return self.router.post(path)

    # =========================================================================
    # INTROSPECTION
    # =========================================================================

    @property
    def address(self):
        """(host, port) actually bound; port is resolved after startup."""
        return self._socket_server.address

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def stats(self) -> dict:
        return self._pool.stats

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def run(self):
        """
        Bind, start the workers and accept connections until shutdown.

        Raises:
            OSError: The port could not be bound. Nothing has been started
                     at that point, so there is nothing to clean up.
        """
        self._setup_logging()

        self._socket_server.bind()

        self._running = True
        self._pool.start()

        host, port = self.address
        logger.info(
            f"{self.config.server_name} serving on http://{host}:{port} "
            f"({self.config.workers} workers, queue {self.config.queue_capacity}, "
            f"policy {self.config.queue_policy})"
        )

        try:
            self._socket_server.serve(self._enqueue)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def shutdown(self):
        """Stop accepting; run() then drains the workers and returns."""
        self._socket_server.shutdown()

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the server accepts connections. False on timeout."""
        return self._socket_server.wait_until_ready(timeout)

    def wait_for_shutdown(self, timeout: Optional[float] = None) -> bool:
        """Block until the server has stopped accepting connections. False on timeout."""
        return self._socket_server.wait_for_shutdown(timeout)

    def _setup_logging(self):
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        # No-op when the application already configured the root logger
        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.getLogger("tinyhttpd").setLevel(level)

    def _shutdown(self):
        """
        Graceful shutdown.

        1. The listener has stopped (no new connections)
        2. Close the queue: idle workers exit, busy ones finish their
           connection and what is still queued
        3. Wait for workers, up to shutdown_timeout
        4. Close anything still queued if workers did not get to it
        """
        logger.info("Shutting down server...")
        self._running = False

        self._pool.shutdown(timeout=self.config.shutdown_timeout)

        leftovers = self._queue.drain()
        for conn in leftovers:
            conn.close()
        if leftovers:
            logger.warning(f"Closed {len(leftovers)} queued connections without serving them")

        logger.info("Server stopped")

    # =========================================================================
    # ACCEPTOR SIDE
    # =========================================================================

    def _enqueue(self, conn: Connection):
        """
        Hand an accepted connection to the queue (runs in the acceptor).

        "block" policy: wait for a free slot, re-checking now and then
        whether the server is shutting down.
        "reject" policy: answer 503 right here when the queue is full.
        """
        conn.state = ConnectionState.QUEUED

        if self.config.queue_policy == "reject":
            try:
                self._queue.push(conn, block=False)
            except QueueFull:
                self._reject(conn)
            except QueueClosed:
                conn.close()
            return

        while True:
            try:
                self._queue.push(conn, timeout=self._socket_server.poll_interval)
                return
            except QueueFull:
                if not self._socket_server.is_running:
                    conn.close()
                    return
                logger.debug(f"[{conn.id}] Queue full, acceptor waiting")
            except QueueClosed:
                conn.close()
                return

    def _reject(self, conn: Connection):
        logger.warning(f"[{conn.id}] Queue full, rejecting connection from {conn.client_ip}")
        try:
            self._writer.write(conn, error_response(HTTPStatus.SERVICE_UNAVAILABLE, "Server overloaded"))
        except HTTPConnectionError as e:
            logger.debug(f"[{conn.id}] Could not send 503: {e}")
        finally:
            conn.close()

    # =========================================================================
    # WORKER SIDE
    # =========================================================================

    def process_connection(self, conn: Connection):
        """
        Serve the single request on ``conn`` (runs in a worker thread).

        The worker closes the connection afterwards; this method only
        reads, dispatches and writes.
        """
        started = time.monotonic()
        request: Optional[HTTPRequest] = None

        try:
            request = self._parser.parse(conn.reader, conn.address)
        except UnexpectedEof as e:
            if e.empty:
                logger.debug(f"[{conn.id}] Client closed without sending a request")
                return
            response = self._parse_error_response(conn, e)
        except ParseError as e:
            response = self._parse_error_response(conn, e)
        except HTTPConnectionError as e:
            logger.info(f"[{conn.id}] Read failed: {e}")
            return
        else:
            conn.state = ConnectionState.PROCESSING
            response = dispatch(self.handler, request)

        try:
            sent = self._writer.write(conn, response)
        except HTTPConnectionError as e:
            # Classic "peer already closed the socket": not our problem
            logger.warning(f"[{conn.id}] Could not send response: {e}")
            return

        self._log_access(conn, request, response, sent, started)

    def _parse_error_response(self, conn: Connection, error: ParseError) -> HTTPResponse:
        logger.info(f"[{conn.id}] Bad request from {conn.client_ip}: {error}")
        return error_response(int(error.status_code), str(error))

    def _log_access(
        self,
        conn: Connection,
        request: Optional[HTTPRequest],
        response: HTTPResponse,
        sent: int,
        started: float,
    ):
        elapsed_ms = (time.monotonic() - started) * 1000
        line = f"{request.method} {request.target} {request.version}" if request else "-"
        access_logger.info(
            f'{conn.client_ip} "{line}" {int(response.status_code)} {sent} {elapsed_ms:.1f}ms'
        )


def create_app(config: Optional[ServerConfig] = None, handler: Optional[Handler] = None) -> HTTPServer:
    """Factory for HTTPServer instances."""
    return HTTPServer(config, handler)
