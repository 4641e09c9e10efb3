"""
=============================================================================
HTTP REQUEST PARSING
=============================================================================

This module turns the raw byte stream of a client connection into an
HTTPRequest object.

=============================================================================
HTTP REQUEST STRUCTURE
=============================================================================

    POST /hello?x=1 HTTP/1.1\r\n          ← Request line
    Host: example.com\r\n                 ← Header
    Content-Length: 5\r\n                 ← Header (frames the body!)
    \r\n                                  ← Blank line: end of headers
    hello                                 ← Body: exactly 5 bytes

Everything up to the blank line is LINE oriented. Everything after it is
OPAQUE BINARY whose length is given by Content-Length, and nothing else.

=============================================================================
WHY READ FROM A STREAM, LINE BY LINE?
=============================================================================

A tempting approach is to keep one growing buffer, append every recv()
into it, and slice it by offsets accumulated across reads:

    buffer += sock.recv(n)
    line = buffer[offset:offset + bytes_read]     ← offset drifts when
    offset += bytes_read                            a read returns a
                                                    different count

As soon as one read returns a different number of bytes than the code
assumed, every following slice is shifted and the request is silently
corrupted. Instead we hand the parser a buffered binary stream and
treat every readline() result as self-contained:

    line = stream.readline(limit)     ← one complete line, or EOF
    body = stream.read(content_length) ← exactly N bytes, or EOF

The buffering lives inside io.BufferedReader, which already gets the
byte accounting right. The parser never indexes into shared state.

=============================================================================
HEADER POLICY
=============================================================================

    - Lookup is case-insensitive:  Content-Length == content-length
    - Original key text is kept for re-emission and introspection
    - Duplicate keys: LAST VALUE WINS (every raw pair is still kept,
      see Headers.get_all and Headers.raw_items)
    - A header line without ":" is ignored, not an error

=============================================================================
"""

from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass, field
from io import BytesIO
from typing import BinaryIO, Dict, Iterable, Iterator, List, Optional, Tuple, Union
from urllib.parse import parse_qs

from .errors import (
    HTTPConnectionError,
    InvalidContentLength,
    LineTooLong,
    MalformedRequestLine,
    PayloadTooLarge,
    TruncatedBody,
    UnexpectedEof,
)
from .status_codes import HTTPStatus


HeaderItems = Union[Mapping, Iterable[Tuple[str, str]]]


class Headers(Mapping):
    """
    Read-only, ordered, case-insensitive header mapping.

    ┌────────────────────────────────────────────────────────────────────┐
    │  Wire                         Headers                              │
    ├────────────────────────────────────────────────────────────────────┤
    │  Host: a                      headers["HOST"]        → "a"         │
    │  X-Tag: one                   headers["x-tag"]       → "two"       │
    │  X-Tag: two                   headers.get_all("x-tag")             │
    │                                                 → ["one", "two"]   │
    │                               list(headers)  → ["Host", "X-Tag"]   │
    └────────────────────────────────────────────────────────────────────┘

    A duplicate key keeps the position of its first occurrence and takes
    the key text and value of its last occurrence.
    """

    def __init__(self, items: Optional[HeaderItems] = None):
        # lowercase name → (original name, value)
        self._store: Dict[str, Tuple[str, str]] = {}
        # every (name, value) pair in arrival order
        self._raw: List[Tuple[str, str]] = []

        if items is not None:
            if isinstance(items, Mapping):
                items = items.items()
            for name, value in items:
                self._add(name, value)

    def _add(self, name: str, value: str) -> None:
        self._raw.append((name, value))
        self._store[name.lower()] = (name, value)

    def __getitem__(self, name: str) -> str:
        return self._store[name.lower()][1]

    def __iter__(self) -> Iterator[str]:
        return (name for name, _ in self._store.values())

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._store

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Mapping):
            return NotImplemented
        return _folded(self) == _folded(other)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({dict(self.items())!r})"

    def get_all(self, name: str) -> List[str]:
        """Every value received for ``name``, in arrival order."""
        lowered = name.lower()
        return [value for key, value in self._raw if key.lower() == lowered]

    def raw_items(self) -> List[Tuple[str, str]]:
        """All (name, value) pairs exactly as received, duplicates included."""
        return list(self._raw)

    def copy(self) -> "MutableHeaders":
        """A mutable copy, keeping order and key text."""
        return MutableHeaders(self.items())


class MutableHeaders(Headers, MutableMapping):
    """
    Headers that can be modified, used for responses.

    Assigning to an existing key (in any case) replaces the value and the
    key text but keeps the original position, so merging handler headers
    over server defaults never reorders the output.
    """

    def __setitem__(self, name: str, value: str) -> None:
        lowered = name.lower()
        self._raw = [(k, v) for k, v in self._raw if k.lower() != lowered]
        self._add(name, str(value))

    def __delitem__(self, name: str) -> None:
        lowered = name.lower()
        del self._store[lowered]
        self._raw = [(k, v) for k, v in self._raw if k.lower() != lowered]


def _folded(headers: Mapping) -> Dict[str, str]:
    return {str(name).lower(): value for name, value in headers.items()}


@dataclass(frozen=True)
class HTTPRequest:
    """
    A parsed HTTP request. Immutable once constructed.

    =========================================================================
    ATTRIBUTES
    =========================================================================

        method:         Request method token ("GET", "POST", ...)

        path:           Target before the first "?", verbatim. No
                        percent-decoding. May be the empty string.

        raw_query:      Target after the first "?", verbatim. Empty
                        when the target has no "?".

        version:        Protocol string from the request line ("HTTP/1.1")

        headers:        Headers mapping (case-insensitive, last wins)

        body:           Exactly Content-Length bytes, or b"" without one

        client_address: (ip, port) of the peer, for logging

    =========================================================================
    """

    method: str
    path: str
    raw_query: str = ""
    version: str = "HTTP/1.1"
    headers: Headers = field(default_factory=Headers)
    body: bytes = b""
    client_address: Tuple[str, int] = ("", 0)

    def __post_init__(self):
        # Accept plain dicts from handlers and tests
        if not isinstance(self.headers, Headers):
            object.__setattr__(self, "headers", Headers(self.headers))

    @property
    def target(self) -> str:
        """The request target as it appeared on the request line."""
        if self.raw_query:
            return f"{self.path}?{self.raw_query}"
        return self.path

    @property
    def content_length(self) -> Optional[int]:
        """Content-Length as an integer, or None when the header is absent."""
        value = self.headers.get("content-length")
        return int(value) if value is not None else None

    @property
    def query_params(self) -> Dict[str, List[str]]:
        """
        The query string parsed into a dict of lists.

        "?a=1&a=2&b=3" → {"a": ["1", "2"], "b": ["3"]}

        Computed on demand; ``raw_query`` itself is never altered.
        """
        return parse_qs(self.raw_query, keep_blank_values=True)

    def get_header(self, name: str, default: str = "") -> str:
        """Get a header value (case-insensitive lookup)."""
        return self.headers.get(name, default)


class RequestParser:
    """
    Parses one HTTP request from a binary stream.

    ==========================================================================
    PARSER ARCHITECTURE
    ==========================================================================

        stream (socket.makefile("rb") or io.BytesIO)
              │
              ▼
        ┌───────────────────────────────────────────────────────────────────┐
        │  1. Request line ── readline() ─────────────────────────────────► │
        │     │  EOF before any byte  → UnexpectedEof(empty=True)           │
        │     │  not 3 tokens         → MalformedRequestLine                │
        │     ▼                                                             │
        │  2. Target ── split on first "?" ───────────────────────────────► │
        │     │  path, raw_query (both verbatim)                            │
        │     ▼                                                             │
        │  3. Headers ── readline() until blank line ─────────────────────► │
        │     │  no ":"               → line ignored                        │
        │     │  bad Content-Length   → InvalidContentLength                │
        │     │  EOF                  → UnexpectedEof                       │
        │     ▼                                                             │
        │  4. Body ── read(Content-Length) ───────────────────────────────► │
        │     │  fewer bytes at EOF   → TruncatedBody                       │
        │     ▼                                                             │
        │  5. HTTPRequest                                                   │
        └───────────────────────────────────────────────────────────────────┘

    ==========================================================================
    LIMITS
    ==========================================================================

    An unbounded readline() lets a client send a 2 GB "line" and exhaust
    memory, so every read is capped:

        max_line_size     Longest request or header line, terminator
                          included. 414 for the request line, 431 for
                          a header line.
        max_header_count  Most header lines per request (431).
        max_body_size     Largest Content-Length accepted (413). Checked
                          BEFORE reading, so nothing is buffered.
                          None disables the check.

    ==========================================================================
    """

    def __init__(
        self,
        max_line_size: int = 8192,
        max_header_count: int = 100,
        max_body_size: Optional[int] = 10 * 1024 * 1024,
    ):
        self.max_line_size = max_line_size
        self.max_header_count = max_header_count
        self.max_body_size = max_body_size

    def parse(
        self,
        stream: BinaryIO,
        client_address: Tuple[str, int] = ("", 0),
    ) -> HTTPRequest:
        """
        Read exactly one request from ``stream``.

        Args:
            stream: Binary file-like object with readline(limit) and read(n).
            client_address: Peer (ip, port), stored on the request.

        Returns:
            The parsed HTTPRequest. Nothing past the end of the body is
            consumed from the stream.

        Raises:
            ParseError: A subclass naming the framing problem.
            HTTPConnectionError: The underlying read failed or timed out.
        """
        method, path, raw_query, version = self._read_request_line(stream)
        headers, content_length = self._read_headers(stream)
        body = self._read_body(stream, content_length)

        return HTTPRequest(
            method=method,
            path=path,
            raw_query=raw_query,
            version=version,
            headers=headers,
            body=body,
            client_address=client_address,
        )

    # =========================================================================
    # STEP 1 + 2: Request line and target
    # =========================================================================

    def _read_request_line(self, stream: BinaryIO) -> Tuple[str, str, str, str]:
        line = self._readline(stream, HTTPStatus.URI_TOO_LONG)

        if not line:
            raise UnexpectedEof("Connection closed before request line", empty=True)
        if not line.endswith(b"\n"):
            raise UnexpectedEof("Connection closed inside request line")

        # ISO-8859-1 maps every byte to one code point, so the path is
        # passed through verbatim whatever bytes the client sent.
        text = _strip_terminator(line).decode("iso-8859-1")

        # Format: METHOD SP REQUEST-TARGET SP HTTP-VERSION
        parts = text.split(" ")
        if len(parts) != 3 or not parts[0] or not parts[2]:
            raise MalformedRequestLine(f"Malformed request line: {text!r}")

        method, target, version = parts
        path, _, raw_query = target.partition("?")
        return method, path, raw_query, version

    # =========================================================================
    # STEP 3: Headers
    # =========================================================================

    def _read_headers(self, stream: BinaryIO) -> Tuple[Headers, Optional[int]]:
        pairs: List[Tuple[str, str]] = []
        content_length: Optional[int] = None
        line_count = 0

        while True:
            line = self._readline(stream, HTTPStatus.REQUEST_HEADER_FIELDS_TOO_LARGE)

            # Empty or unterminated: the peer closed before the blank line
            if not line.endswith(b"\n"):
                raise UnexpectedEof("Connection closed before end of headers")

            if line in (b"\r\n", b"\n"):
                break

            line_count += 1
            if line_count > self.max_header_count:
                raise LineTooLong(
                    f"Too many header lines (limit {self.max_header_count})",
                    status_code=HTTPStatus.REQUEST_HEADER_FIELDS_TOO_LARGE,
                )

            text = _strip_terminator(line).decode("iso-8859-1")
            name, colon, value = text.partition(":")
            if not colon:
                continue  # Lenient: skip lines that are not "Name: value"

            name = name.strip()
            value = value.strip()

            if name.lower() == "content-length":
                content_length = self._parse_content_length(value)

            pairs.append((name, value))

        return Headers(pairs), content_length

    @staticmethod
    def _parse_content_length(value: str) -> int:
        # int() alone would accept "-1", " 7", "+7" and "1_000"
        if not (value.isascii() and value.isdigit()):
            raise InvalidContentLength(f"Invalid Content-Length: {value!r}")
        return int(value)

    # =========================================================================
    # STEP 4: Body
    # =========================================================================

    def _read_body(self, stream: BinaryIO, content_length: Optional[int]) -> bytes:
        if not content_length:
            return b""

        if self.max_body_size is not None and content_length > self.max_body_size:
            raise PayloadTooLarge(
                f"Request body too large: {content_length} bytes "
                f"(limit {self.max_body_size})"
            )

        try:
            # BufferedReader.read(n) keeps reading until n bytes or EOF
            body = stream.read(content_length) or b""
        except OSError as e:
            raise HTTPConnectionError(f"Failed to read request body: {e}") from e

        if len(body) < content_length:
            raise TruncatedBody(content_length, len(body))
        return body

    def _readline(self, stream: BinaryIO, too_long_status: int) -> bytes:
        try:
            line = stream.readline(self.max_line_size + 1)
        except OSError as e:
            raise HTTPConnectionError(f"Failed to read request: {e}") from e

        if len(line) > self.max_line_size:
            raise LineTooLong(
                f"Line exceeds {self.max_line_size} bytes",
                status_code=too_long_status,
            )
        return line


def _strip_terminator(line: bytes) -> bytes:
    # CRLF is the terminator; a bare LF is tolerated (RFC 9112 §2.2)
    if line.endswith(b"\r\n"):
        return line[:-2]
    return line[:-1]


# =============================================================================
# CONVENIENCE FUNCTION
# =============================================================================

def parse_request(
    data: bytes,
    client_address: Tuple[str, int] = ("", 0),
    **limits,
) -> HTTPRequest:
    """
    Parse a complete request held in memory.

    Wraps ``data`` in a BytesIO and runs a RequestParser over it. Keyword
    arguments are passed to RequestParser (max_line_size, ...).
    """
    return RequestParser(**limits).parse(BytesIO(data), client_address)
