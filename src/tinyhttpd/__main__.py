"""
=============================================================================
TINYHTTPD CLI ENTRY POINT
=============================================================================

    # Run with defaults (127.0.0.1:7878, 10 workers)
    python -m tinyhttpd

    # Custom port, all interfaces (containers)
    python -m tinyhttpd --host 0.0.0.0 --port 8080

    # Small pool, small queue, shed load with 503 instead of waiting
    python -m tinyhttpd --workers 2 --queue-capacity 4 --queue-policy reject

Every option falls back to the matching HTTP_* environment variable (see
ServerConfig.from_env), then to the built-in default.

=============================================================================
DEMO APPLICATION
=============================================================================

    GET  /        greeting
    *    /echo    the parsed request, echoed back as plain text
    *             404

=============================================================================
"""

import argparse
import logging
import sys
from typing import List, Optional

from . import __version__
from .config import QUEUE_POLICIES, ServerConfig
from .http import HTTPRequest, HTTPResponse, Router, ok
from .server import HTTPServer


logger = logging.getLogger("tinyhttpd")


def build_demo_router() -> Router:
    """The routes served by ``python -m tinyhttpd``."""
    router = Router()

    @router.get("/")
    def index(request: HTTPRequest) -> HTTPResponse:
        return ok("Hello from tinyhttpd!\n")

    @router.route("/echo")
    def echo(request: HTTPRequest) -> HTTPResponse:
        return ok(describe_request(request)).set_header("X-Echo", "tinyhttpd")

    return router


def describe_request(request: HTTPRequest) -> str:
    """Plain-text rendering of a parsed request, as /echo sends it back."""
    lines = [
        f"method: {request.method}",
        f"path: {request.path}",
        f"query: {request.raw_query}",
        f"version: {request.version}",
        "headers:",
    ]
    lines.extend(f"  {name}: {value}" for name, value in request.headers.items())
    lines.append(f"body ({len(request.body)} bytes):")
    lines.append(request.body.decode("utf-8", errors="replace"))
    return "\n".join(lines) + "\n"


def build_parser(defaults: ServerConfig) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tinyhttpd",
        description="Minimal multi-threaded HTTP/1.1 server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m tinyhttpd                            # Run with defaults
  python -m tinyhttpd --port 3000                # Custom port
  python -m tinyhttpd --host 0.0.0.0             # Listen on all interfaces
  python -m tinyhttpd -w 4 -q 16 --queue-policy reject
        """,
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--host", "-H",
        default=defaults.host,
        help=f"Host to bind to (default: {defaults.host}, use 0.0.0.0 for containers)",
    )
    parser.add_argument(
        "--port", "-p",
        type=int,
        default=defaults.port,
        help=f"Port to listen on (default: {defaults.port})",
    )
    parser.add_argument(
        "--idle-timeout", "-t",
        type=float,
        default=defaults.idle_timeout,
        help=f"Seconds a client read/write may stall (default: {defaults.idle_timeout})",
    )
    parser.add_argument(
        "--request-timeout",
        type=float,
        default=defaults.request_timeout,
        help=f"Seconds allowed to receive a whole request (default: {defaults.request_timeout})",
    )

    # ─────────────────────────────────────────────────────────────────────
    # DISPATCH ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--workers", "-w",
        type=int,
        default=defaults.workers,
        help=f"Number of worker threads (default: {defaults.workers})",
    )
    parser.add_argument(
        "--queue-capacity", "-q",
        type=int,
        default=defaults.queue_capacity,
        help=f"Connections allowed to wait for a worker (default: {defaults.queue_capacity})",
    )
    parser.add_argument(
        "--queue-policy",
        choices=QUEUE_POLICIES,
        default=defaults.queue_policy,
        help=f"What to do when the queue is full (default: {defaults.queue_policy})",
    )

    # ─────────────────────────────────────────────────────────────────────
    # META ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--log-level", "-l",
        type=str.upper,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=defaults.log_level.upper(),
        help=f"Logging level (default: {defaults.log_level})",
    )
    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"tinyhttpd {__version__}",
    )

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Parse arguments, build the server and run it until shutdown.

    Returns:
        Process exit code: 0 after a clean shutdown, 1 when the server
        could not start (bad configuration, port unavailable).
    """
    try:
        defaults = ServerConfig.from_env()
    except ValueError as e:
        print(f"Error: invalid environment configuration: {e}", file=sys.stderr)
        return 1

    args = build_parser(defaults).parse_args(argv)

    config = ServerConfig(
        host=args.host,
        port=args.port,
        idle_timeout=args.idle_timeout,
        request_timeout=args.request_timeout,
        workers=args.workers,
        queue_capacity=args.queue_capacity,
        queue_policy=args.queue_policy,
        log_level=args.log_level,
    )

    try:
        server = HTTPServer(config, handler=build_demo_router().handle)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        server.run()
    except OSError as e:
        logger.critical(f"Could not start server on {config.host}:{config.port}: {e}")
        return 1

    return 0


# =============================================================================
# ENTRY POINT
# =============================================================================
# python -m tinyhttpd

if __name__ == "__main__":
    sys.exit(main())
