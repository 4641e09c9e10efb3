"""
=============================================================================
HTTP RESPONSE SERIALIZATION
=============================================================================

HTTPResponse is what a handler returns. ResponseWriter turns it into the
exact bytes that go on the wire and sends them.

=============================================================================
WIRE FORMAT
=============================================================================

    HTTP/1.1 200 OK\r\n                   ← Status line (server's version)
    Server: tinyhttpd/1.0\r\n             ┐
    Date: Mon, 19 Oct 2026 12:00:00 GMT\r\n│ Server-injected headers first
    Connection: close\r\n                 ┘
    Content-Type: text/plain\r\n          ← Handler headers, merged over them
    Content-Length: 5\r\n                 ← ALWAYS computed from the body
    \r\n                                  ← Single blank separator line
    hello                                 ← Body bytes, unmodified

=============================================================================
WHY IS CONTENT-LENGTH ALWAYS RECOMPUTED?
=============================================================================

Content-Length is what tells the client where the body ends. If a handler
sets it to 10 and then returns 12 bytes, the client either hangs waiting
for bytes that never come or reads the tail as garbage. The writer is the
last place that sees the final body, so it is the only place that can get
this number right. Any handler-supplied value is dropped.

=============================================================================
HEADER SAFETY
=============================================================================

The head is plain text joined with CRLF, so a header value holding "\r\n"
would start a new header line of the handler's (or a client's) choosing:

    X-Note: hi\r\nSet-Cookie: admin=1      ← one value ...
    X-Note: hi                             ┐ ... two headers on the wire
    Set-Cookie: admin=1                    ┘

HTTPResponse.validate() rejects that, names that are not tokens, and text
that ISO-8859-1 cannot encode. The handler boundary runs it on every
handler response and answers 500 instead.

=============================================================================
"""

import json
import re
from dataclasses import dataclass, field
from email.utils import formatdate
from typing import Any, Optional, Union

from .request import MutableHeaders
from .status_codes import HTTPStatus, reason_phrase


# RFC 7230 token: the characters allowed in a header name
_TOKEN = re.compile(r"[!#$%&'*+\-.^_`|~0-9A-Za-z]+")


@dataclass
class HTTPResponse:
    """
    A response under construction.

    Mutable on purpose: handlers build it step by step, then the worker
    hands it to ResponseWriter exactly once.

        response = HTTPResponse(status_code=201)
        response.set_header("Location", "/items/7").set_body("created")

    ``status_message`` defaults to the standard reason phrase of
    ``status_code`` ("OK" for the default 200).
    """

    status_code: int = HTTPStatus.OK
    status_message: Optional[str] = None
    headers: MutableHeaders = field(default_factory=MutableHeaders)
    body: bytes = b""

    def __post_init__(self):
        if self.status_message is None:
            self.status_message = reason_phrase(self.status_code)
        if not isinstance(self.headers, MutableHeaders):
            self.headers = MutableHeaders(self.headers)
        if isinstance(self.body, str):
            self.body = self.body.encode("utf-8")

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        """Set a response header. Returns self for chaining."""
        self.headers[name] = value
        return self

    def set_body(self, body: Union[str, bytes]) -> "HTTPResponse":
        """Set the body; strings are encoded as UTF-8. Returns self."""
        self.body = body.encode("utf-8") if isinstance(body, str) else body
        return self

    def validate(self) -> None:
        """
        Check that the response can be written without corrupting the head.

        Raises:
            ValueError: Status code outside 100-999, or a status message,
                header name or header value that is unsafe on the wire.
        """
        if not 100 <= int(self.status_code) <= 999:
            raise ValueError(f"Status code out of range: {self.status_code!r}")
        _check_text("status message", str(self.status_message))

        for name, value in self.headers.items():
            if not _TOKEN.fullmatch(str(name)):
                raise ValueError(f"Invalid header name: {name!r}")
            _check_text(f"value of header {name}", str(value))

        if not isinstance(self.body, (bytes, bytearray)):
            raise ValueError(f"Body must be bytes, not {type(self.body).__name__}")


class ResponseWriter:
    """
    Serializes HTTPResponse objects and writes them to connections.

    One writer is shared by all workers. It holds no per-response state,
    so no locking is needed.

    Args:
        server_name: Value of the injected Server header.
        version: Protocol on every status line. Fixed to the server's own
                 version, whatever the client asked with.
    """

    def __init__(self, server_name: str = "tinyhttpd/1.0", version: str = "HTTP/1.1"):
        self.server_name = server_name
        self.version = version

    def default_headers(self) -> MutableHeaders:
        """Headers the server adds to every response, in output order."""
        return MutableHeaders([
            ("Server", self.server_name),
            ("Date", format_http_date()),
            # One request per connection: tell the client not to wait
            ("Connection", "close"),
        ])

    def serialize(self, response: HTTPResponse) -> bytes:
        """
        Produce the complete wire representation of ``response``.

        Order: status line, merged headers (server defaults first, handler
        values win on conflict), computed Content-Length, blank line, body.
        """
        headers = self.default_headers()
        for name, value in response.headers.items():
            headers[name] = value

        if "Content-Length" in headers:
            del headers["Content-Length"]
        headers["Content-Length"] = str(len(response.body))

        lines = [f"{self.version} {int(response.status_code)} {response.status_message}"]
        lines.extend(f"{name}: {value}" for name, value in headers.items())

        # Header text is ISO-8859-1 on the wire, same as the parser reads it
        head = ("\r\n".join(lines) + "\r\n\r\n").encode("iso-8859-1")
        return head + response.body

    def write(self, connection, response: HTTPResponse) -> int:
        """
        Serialize ``response`` and send it on ``connection``.

        Returns:
            Number of bytes written.

        Raises:
            HTTPConnectionError: The peer is gone or the send timed out.
                The caller logs it and closes the connection; it is never
                fatal.
        """
        data = self.serialize(response)
        connection.send_response(data)
        return len(data)


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

def _check_text(what: str, text: str) -> None:
    if "\r" in text or "\n" in text:
        raise ValueError(f"Line break in {what}: {text!r}")
    try:
        text.encode("iso-8859-1")
    except UnicodeEncodeError as e:
        raise ValueError(f"{what.capitalize()} is not ISO-8859-1: {text!r}") from e


def format_http_date(timestamp: Optional[float] = None) -> str:
    """
    Format a timestamp as an HTTP-date (RFC 7231), always in GMT.

    Example: Mon, 19 Oct 2026 12:00:00 GMT
    """
    return formatdate(timestamp, usegmt=True)


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def ok(body: Union[str, bytes] = b"", content_type: Optional[str] = None) -> HTTPResponse:
    """200 OK. String bodies default to text/plain."""
    response = HTTPResponse(body=body)
    if content_type is None and isinstance(body, str):
        content_type = "text/plain; charset=utf-8"
    if content_type:
        response.set_header("Content-Type", content_type)
    return response


def error_response(status_code: int, message: Optional[str] = None) -> HTTPResponse:
    """
    An error response with a small JSON body: {"error": "<message>"}.

    Used for framing errors and for queue rejection, where no handler is
    involved.
    """
    message = message or reason_phrase(status_code) or "Error"
    body = json.dumps({"error": message}).encode("utf-8")
    return HTTPResponse(
        status_code=status_code,
        headers=MutableHeaders([("Content-Type", "application/json; charset=utf-8")]),
        body=body,
    )


def empty_response(status_code: int, body: bytes = b"", content_type: Optional[str] = None) -> HTTPResponse:
    """A bare response for handler outcomes: the collaborator owns the body."""
    response = HTTPResponse(status_code=status_code, body=body)
    if content_type:
        response.set_header("Content-Type", content_type)
    return response


def json_response(data: Any, status_code: int = HTTPStatus.OK) -> HTTPResponse:
    """A JSON response; non-ASCII characters are kept as UTF-8."""
    body = json.dumps(data, ensure_ascii=False).encode("utf-8")
    return HTTPResponse(
        status_code=status_code,
        headers=MutableHeaders([("Content-Type", "application/json; charset=utf-8")]),
        body=body,
    )
