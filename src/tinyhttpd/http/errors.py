"""
=============================================================================
ERROR TAXONOMY
=============================================================================

Every failure the server can meet while handling ONE connection falls into
one of two families:

    FRAMING ERRORS (ParseError)            I/O ERRORS (HTTPConnectionError)
    ───────────────────────────            ────────────────────────────────
    The bytes arrived, but they do         The bytes never arrived, or could
    not form a valid HTTP request.         not be sent. The peer is gone,
                                           reset the socket, or went quiet
    → answer with a 4xx and close          past the idle timeout.

                                           → log it and close, nothing to say

    ┌──────────────────────────┬────────┬──────────────────────────────────┐
    │ Exception                │ Status │ Raised when                      │
    ├──────────────────────────┼────────┼──────────────────────────────────┤
    │ MalformedRequestLine     │  400   │ request line is not 3 tokens     │
    │ InvalidContentLength     │  400   │ Content-Length not a number ≥ 0  │
    │ UnexpectedEof            │  400   │ stream ended inside the headers  │
    │ TruncatedBody            │  400   │ stream ended inside the body     │
    │ LineTooLong              │414/431 │ line or header count over limit  │
    │ PayloadTooLarge          │  413   │ Content-Length over body limit   │
    └──────────────────────────┴────────┴──────────────────────────────────┘

None of these ever escapes the worker that is handling the connection.
The only fatal error in the whole server is failing to bind the port.

=============================================================================
"""

from typing import Optional


class ParseError(Exception):
    """
    Base class for request framing errors.

    Carries the HTTP status code the worker should answer with. Custom
    exceptions with metadata keep the worker's error handling to a single
    ``except ParseError`` clause.
    """

    status_code = 400

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code


class MalformedRequestLine(ParseError):
    """Request line did not split into method, target and version."""


class InvalidContentLength(ParseError):
    """Content-Length header is not a non-negative integer."""


class UnexpectedEof(ParseError):
    """
    The stream ended before the blank line that terminates the headers.

    ``empty`` is True when the peer closed without sending a single byte.
    Load balancer probes and port scanners do this all the time, so the
    worker closes such connections silently instead of answering 400.
    """

    def __init__(self, message: str, empty: bool = False):
        super().__init__(message)
        self.empty = empty


class TruncatedBody(ParseError):
    """The stream ended before Content-Length body bytes were read."""

    def __init__(self, expected: int, received: int):
        super().__init__(
            f"Incomplete body: expected {expected} bytes, got {received}"
        )
        self.expected = expected
        self.received = received


class LineTooLong(ParseError):
    """A request line or header section exceeded the configured limits."""

    status_code = 431  # Request Header Fields Too Large


class PayloadTooLarge(ParseError):
    """Content-Length announces a body larger than the configured limit."""

    status_code = 413


class HTTPConnectionError(ConnectionError):
    """
    I/O failure while reading from or writing to a client socket.

    Wraps the underlying OSError (timeout, reset, broken pipe) so callers
    can catch one type for "the peer is unusable". Subclassing the builtin
    ConnectionError keeps ``except ConnectionError`` working too.
    """
