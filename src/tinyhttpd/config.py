"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Every knob the server has, in one dataclass. Nothing in here is part of
the HTTP contract; it is startup configuration.

    config = ServerConfig(port=8000, workers=4)         # in code
    config = ServerConfig.from_env()                    # 12-factor style
    HTTP_PORT=8000 HTTP_WORKERS=4 python -m tinyhttpd   # from the shell

=============================================================================
SIZING THE POOL AND THE QUEUE
=============================================================================

    workers          How many connections are processed AT THE SAME TIME.
                     Handlers here are I/O bound, so a few times the core
                     count is reasonable.

    queue_capacity   How many accepted connections may WAIT for a worker.
                     Beyond that, queue_policy decides:

                        "block"   the acceptor stops accepting until a
                                  slot frees up; new clients wait in the
                                  kernel's listen backlog
                        "reject"  the acceptor answers 503 immediately

    idle_timeout     How long a single read or write may stall before
                     the connection is dropped. Without it, one silent
                     client pins a worker forever.

    request_timeout  How long receiving the whole request may take. A
                     client trickling bytes resets idle_timeout on every
                     read; this caps the total.

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional


QUEUE_POLICIES = ("block", "reject")


@dataclass
class ServerConfig:
    """Configuration for the HTTP server."""

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK
    # ─────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"
    """Address to bind. "0.0.0.0" listens on all interfaces (containers)."""

    port: int = 7878
    """Port to listen on. 0 lets the OS pick a free one (tests)."""

    backlog: int = 128
    """Kernel listen backlog: handshakes queued before accept()."""

    buffer_size: int = 8192
    """Read buffer of the stream the parser reads from."""

    idle_timeout: Optional[float] = 30.0
    """Per read/write timeout on client sockets, in seconds."""

    request_timeout: Optional[float] = 60.0
    """Total time to receive one request, in seconds. None disables it."""

    # ─────────────────────────────────────────────────────────────────────
    # DISPATCH
    # ─────────────────────────────────────────────────────────────────────

    workers: int = 10
    """Number of worker threads. Fixed for the server's lifetime."""

    queue_capacity: int = 64
    """Accepted connections allowed to wait for a worker."""

    queue_policy: str = "block"
    """What the acceptor does when the queue is full: "block" or "reject"."""

    shutdown_timeout: float = 10.0
    """How long shutdown waits for workers to finish, in seconds."""

    # ─────────────────────────────────────────────────────────────────────
    # REQUEST LIMITS
    # ─────────────────────────────────────────────────────────────────────

    max_line_size: int = 8192
    """Longest request line or header line, in bytes."""

    max_header_count: int = 100
    """Most header lines per request."""

    max_body_size: Optional[int] = 10 * 1024 * 1024
    """Largest accepted Content-Length. None disables the limit."""

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING / IDENTITY
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """DEBUG, INFO, WARNING, ERROR or CRITICAL."""

    server_name: str = "tinyhttpd/1.0"
    """Value of the Server response header."""

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Build a configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        HTTP_HOST            Bind address        (default: 127.0.0.1)
        HTTP_PORT            Port                (default: 7878)
        HTTP_WORKERS         Worker threads      (default: 10)
        HTTP_QUEUE_CAPACITY  Queue capacity      (default: 64)
        HTTP_QUEUE_POLICY    block | reject      (default: block)
        HTTP_IDLE_TIMEOUT    Seconds             (default: 30)
        HTTP_REQUEST_TIMEOUT Seconds             (default: 60)
        HTTP_LOG_LEVEL       Logging level       (default: INFO)

        =====================================================================
        """
        defaults = cls()
        return cls(
            host=os.getenv("HTTP_HOST", defaults.host),
            port=int(os.getenv("HTTP_PORT", str(defaults.port))),
            workers=int(os.getenv("HTTP_WORKERS", str(defaults.workers))),
            queue_capacity=int(os.getenv("HTTP_QUEUE_CAPACITY", str(defaults.queue_capacity))),
            queue_policy=os.getenv("HTTP_QUEUE_POLICY", defaults.queue_policy),
            idle_timeout=float(os.getenv("HTTP_IDLE_TIMEOUT", str(defaults.idle_timeout))),
            request_timeout=float(os.getenv("HTTP_REQUEST_TIMEOUT", str(defaults.request_timeout))),
            log_level=os.getenv("HTTP_LOG_LEVEL", defaults.log_level),
        )

    def validate(self) -> None:
        """
        Check every value at startup and raise ValueError on the first bad one.

        Fail fast: a typo in HTTP_WORKERS should stop the process at boot,
        not surface hours later under load.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")
        if self.workers < 1:
            raise ValueError("workers must be >= 1")
        if self.queue_capacity < 1:
            raise ValueError("queue_capacity must be >= 1")
        if self.queue_policy not in QUEUE_POLICIES:
            raise ValueError(
                f"queue_policy must be one of {', '.join(QUEUE_POLICIES)}, "
                f"got {self.queue_policy!r}"
            )
        if self.backlog < 1:
            raise ValueError("backlog must be >= 1")
        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")
        if self.idle_timeout is not None and self.idle_timeout <= 0:
            raise ValueError("idle_timeout must be > 0")
        if self.request_timeout is not None and self.request_timeout <= 0:
            raise ValueError("request_timeout must be > 0")
        if self.shutdown_timeout <= 0:
            raise ValueError("shutdown_timeout must be > 0")
        if self.max_line_size < 64:
            raise ValueError("max_line_size must be >= 64")
        if self.max_header_count < 1:
            raise ValueError("max_header_count must be >= 1")
        if self.max_body_size is not None and self.max_body_size < 0:
            raise ValueError("max_body_size must be >= 0")
        if self.log_level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log_level: {self.log_level!r}")
