"""
=============================================================================
TINYHTTPD - Minimal Multi-threaded HTTP/1.1 Server
=============================================================================

A small HTTP/1.1 server on raw sockets: one request per connection, a
strict framing parser, and a fixed pool of workers fed by a bounded
connection queue.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        TINYHTTPD AT A GLANCE                        │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                     │
    │   1. FRAMING PARSER                                                 │
    │      - Request line, headers, exact Content-Length body             │
    │      - Case-insensitive headers, original spelling kept             │
    │      - Size limits on lines, header count and body                  │
    │                                                                     │
    │   2. DISPATCH MODEL                                                 │
    │      - One acceptor thread, N fixed worker threads                  │
    │      - Bounded FIFO queue in between, blocking on both ends         │
    │      - Backpressure: block the acceptor, or answer 503              │
    │                                                                     │
    │   3. HANDLER INTERFACE                                              │
    │      - Any callable HTTPRequest → HTTPResponse                      │
    │      - NotFound / ServerError map to default responses              │
    │                                                                     │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    tinyhttpd/
    ├── __init__.py             # Package exports
    ├── __main__.py             # CLI entry point (python -m tinyhttpd)
    ├── server.py               # HTTPServer: wiring and lifecycle
    ├── config.py               # ServerConfig dataclass
    ├── core/                   # Connections and concurrency
    │   ├── connection.py
    │   ├── connection_queue.py
    │   ├── socket_server.py
    │   └── worker_pool.py
    └── http/                   # Protocol
        ├── errors.py
        ├── handler.py
        ├── request.py
        ├── response.py
        ├── router.py
        └── status_codes.py

=============================================================================
QUICK START
=============================================================================

    from tinyhttpd import HTTPServer, ServerConfig, NotFound, ok

    server = HTTPServer(ServerConfig(port=8080, workers=4))

    @server.get("/")
    def index(request):
        return ok("Hello, World!")

    server.run()

=============================================================================
"""

__version__ = "1.0.0"

from .config import ServerConfig
from .http import (
    Handler,
    HandlerError,
    Headers,
    HTTPRequest,
    HTTPResponse,
    HTTPStatus,
    NotFound,
    Router,
    ServerError,
    error_response,
    json_response,
    ok,
)
from .server import HTTPServer, create_app

__all__ = [
    "HTTPServer",
    "ServerConfig",
    "create_app",
    "Handler",
    "HandlerError",
    "NotFound",
    "ServerError",
    "Headers",
    "HTTPRequest",
    "HTTPResponse",
    "HTTPStatus",
    "Router",
    "ok",
    "json_response",
    "error_response",
    "__version__",
]
