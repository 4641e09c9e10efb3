"""
pytest configuration and fixtures.
"""

import socket
import threading
from typing import Callable, Dict, Generator, Optional, Tuple

import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from tinyhttpd import HTTPServer, ServerConfig, create_app
from tinyhttpd.http import HTTPRequest, HTTPResponse, Router, ok


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request with a query string."""
    return (
        b"GET /hello?x=1 HTTP/1.1\r\n"
        b"Host: a\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample HTTP POST request with a body."""
    body = b'{"name": "John"}'
    return (
        b"POST /api/users HTTP/1.1\r\n"
        b"Host: localhost:7878\r\n"
        b"Content-Type: application/json\r\n"
        + f"Content-Length: {len(body)}\r\n".encode()
        + b"\r\n"
    ) + body


@pytest.fixture
def config() -> ServerConfig:
    """Default test server configuration."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,  # Let OS pick a free port
        workers=2,
        queue_capacity=8,
        idle_timeout=5.0,
        shutdown_timeout=5.0,
        log_level="WARNING",
    )


# =============================================================================
# CLIENT HELPERS
# =============================================================================

def send_raw(port: int, data: bytes, timeout: float = 5.0, shut_write: bool = True) -> bytes:
    """Send raw bytes, then read until the server closes the connection."""
    with socket.create_connection(("127.0.0.1", port), timeout=timeout) as s:
        s.sendall(data)
        if shut_write:
            s.shutdown(socket.SHUT_WR)
        chunks = []
        while True:
            chunk = s.recv(65536)
            if not chunk:
                break
            chunks.append(chunk)
    return b"".join(chunks)


def parse_response(data: bytes) -> Tuple[int, str, Dict[str, str], bytes]:
    """Split a raw response into (status, reason, lowercased headers, body)."""
    head, _, body = data.partition(b"\r\n\r\n")
    lines = head.decode("iso-8859-1").split("\r\n")
    _version, status, reason = lines[0].split(" ", 2)
    headers = {}
    for line in lines[1:]:
        name, _, value = line.partition(":")
        headers[name.strip().lower()] = value.strip()
    return int(status), reason, headers, body


class TestServer:
    """Test server helper that runs in a background thread."""

    __test__ = False  # Not a test class despite the name

    def __init__(self, server: HTTPServer):
        self.server = server
        self._thread: Optional[threading.Thread] = None

    @property
    def port(self) -> int:
        return self.server.address[1]

    def start(self):
        """Start server in background thread and wait until it accepts."""
        self._thread = threading.Thread(target=self.server.run, daemon=True)
        self._thread.start()

        if not self.server.wait_until_ready(timeout=5.0):
            raise RuntimeError("Server failed to start")

    def stop(self):
        """Stop the server and wait for run() to return."""
        self.server.shutdown()
        if not self.server.wait_for_shutdown(timeout=10.0):
            raise RuntimeError("Server did not stop accepting")
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=10.0)

    def request(self, data: bytes, **kwargs) -> bytes:
        return send_raw(self.port, data, **kwargs)


def demo_router() -> Router:
    router = Router()

    @router.get("/hello")
    def hello(request: HTTPRequest) -> HTTPResponse:
        return ok(f"hello {request.raw_query}")

    @router.route("/echo")
    def echo(request: HTTPRequest) -> HTTPResponse:
        return ok(request.body, content_type="application/octet-stream").set_header(
            "X-Method", request.method
        )

    @router.get("/crash")
    def crash(request: HTTPRequest) -> HTTPResponse:
        raise RuntimeError("boom")

    return router


@pytest.fixture
def make_server(config: ServerConfig) -> Generator[Callable[..., TestServer], None, None]:
    """Factory fixture: start servers with custom config/handler, stop them after."""
    started = []

    def factory(handler=None, **overrides) -> TestServer:
        for key, value in overrides.items():
            setattr(config, key, value)
        server = create_app(config, handler or demo_router().handle)
        test_srv = TestServer(server)
        test_srv.start()
        started.append(test_srv)
        return test_srv

    yield factory

    for test_srv in started:
        test_srv.stop()


@pytest.fixture
def test_server(make_server) -> TestServer:
    """A running server with the demo routes."""
    return make_server()
