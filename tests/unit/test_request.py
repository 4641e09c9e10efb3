"""
Unit tests for HTTP request parsing.
"""

import io

import pytest

from tinyhttpd.http.errors import (
    HTTPConnectionError,
    InvalidContentLength,
    LineTooLong,
    MalformedRequestLine,
    ParseError,
    PayloadTooLarge,
    TruncatedBody,
    UnexpectedEof,
)
from tinyhttpd.http.request import (
    Headers,
    HTTPRequest,
    MutableHeaders,
    RequestParser,
    parse_request,
)


class TestRequestParser:
    """Tests for RequestParser class."""

    def test_parse_get_with_query(self, sample_get_request: bytes):
        """GET /hello?x=1 splits into path and raw query."""
        request = RequestParser().parse(io.BytesIO(sample_get_request), ("127.0.0.1", 12345))

        assert request.method == "GET"
        assert request.path == "/hello"
        assert request.raw_query == "x=1"
        assert request.version == "HTTP/1.1"
        assert request.headers["host"] == "a"
        assert request.body == b""
        assert request.client_address == ("127.0.0.1", 12345)

    def test_parse_without_content_length(self):
        """No Content-Length means an empty body and an empty query."""
        request = parse_request(b"GET / HTTP/1.1\r\n\r\n")

        assert request.method == "GET"
        assert request.path == "/"
        assert request.raw_query == ""
        assert len(request.headers) == 0
        assert request.body == b""
        assert request.content_length is None

    def test_parse_post_with_body(self, sample_post_request: bytes):
        """The body is exactly Content-Length bytes."""
        request = parse_request(sample_post_request)

        assert request.method == "POST"
        assert request.path == "/api/users"
        assert request.body == b'{"name": "John"}'
        assert request.content_length == len(request.body)

    def test_body_is_binary(self):
        """Body bytes are opaque: CR, LF and NUL pass through unchanged."""
        body = b"\x00\r\n\r\n\xff\xfe"
        raw = b"PUT /blob HTTP/1.1\r\nContent-Length: 8\r\n\r\n" + body

        assert parse_request(raw).body == body

    def test_does_not_read_past_body(self):
        """Bytes after the body stay in the stream."""
        stream = io.BytesIO(b"POST / HTTP/1.1\r\nContent-Length: 3\r\n\r\nabcEXTRA")

        request = RequestParser().parse(stream)

        assert request.body == b"abc"
        assert stream.read() == b"EXTRA"

    def test_content_length_zero(self):
        """Content-Length: 0 gives an empty body."""
        request = parse_request(b"POST / HTTP/1.1\r\nContent-Length: 0\r\n\r\n")

        assert request.body == b""
        assert request.content_length == 0

    def test_path_is_not_decoded(self):
        """Path and query are kept verbatim, no percent-decoding."""
        request = parse_request(b"GET /a%20b?q=hello%20world&x HTTP/1.1\r\n\r\n")

        assert request.path == "/a%20b"
        assert request.raw_query == "q=hello%20world&x"
        assert request.query_params == {"q": ["hello world"], "x": [""]}
        assert request.raw_query == "q=hello%20world&x"

    def test_split_on_first_question_mark(self):
        """Only the first "?" separates path from query."""
        request = parse_request(b"GET /p?a=1?b=2 HTTP/1.1\r\n\r\n")

        assert request.path == "/p"
        assert request.raw_query == "a=1?b=2"
        assert request.target == "/p?a=1?b=2"

    def test_bare_lf_tolerated(self):
        """Lines terminated by LF alone are accepted."""
        request = parse_request(b"GET /x HTTP/1.0\nHost: h\n\n")

        assert request.path == "/x"
        assert request.version == "HTTP/1.0"
        assert request.headers["Host"] == "h"

    def test_non_ascii_bytes_in_path(self):
        """Non-ASCII bytes survive as ISO-8859-1 code points."""
        request = parse_request(b"GET /caf\xe9 HTTP/1.1\r\n\r\n")

        assert request.path == "/caf\xe9"
        assert request.path.encode("iso-8859-1") == b"/caf\xe9"


class TestRequestLineErrors:
    """Tests for malformed request lines."""

    @pytest.mark.parametrize("line", [
        b"GET /\r\n",
        b"GET\r\n",
        b"GET / HTTP/1.1 extra\r\n",
        b"GET  / HTTP/1.1\r\n",
        b" / HTTP/1.1\r\n",
        b"GET / \r\n",
    ])
    def test_malformed_request_line(self, line: bytes):
        """Anything but exactly three non-empty tokens is rejected."""
        with pytest.raises(MalformedRequestLine) as exc_info:
            parse_request(line + b"\r\n")

        assert exc_info.value.status_code == 400

    def test_empty_path_allowed(self):
        """An empty target is the empty path, not an error."""
        request = parse_request(b"GET  HTTP/1.1\r\n\r\n")

        assert request.path == ""
        assert request.raw_query == ""

    def test_eof_before_anything(self):
        """A peer that sends nothing produces an 'empty' EOF."""
        with pytest.raises(UnexpectedEof) as exc_info:
            parse_request(b"")

        assert exc_info.value.empty is True

    def test_eof_inside_request_line(self):
        """An unterminated request line is a non-empty EOF."""
        with pytest.raises(UnexpectedEof) as exc_info:
            parse_request(b"GET / HTT")

        assert exc_info.value.empty is False
        assert exc_info.value.status_code == 400

    def test_request_line_too_long(self):
        """An over-long request line is 414."""
        parser = RequestParser(max_line_size=64)
        raw = b"GET /" + b"a" * 100 + b" HTTP/1.1\r\n\r\n"

        with pytest.raises(LineTooLong) as exc_info:
            parser.parse(io.BytesIO(raw))

        assert exc_info.value.status_code == 414


class TestHeaderParsing:
    """Tests for header section parsing."""

    def test_case_insensitive_lookup(self):
        """Lookup ignores case, iteration keeps the original key text."""
        request = parse_request(b"GET / HTTP/1.1\r\nCONTENT-TYPE: text/html\r\n\r\n")

        assert request.headers["content-type"] == "text/html"
        assert request.get_header("Content-Type") == "text/html"
        assert "Content-type" in request.headers
        assert list(request.headers) == ["CONTENT-TYPE"]

    def test_value_whitespace_trimmed(self):
        """Whitespace around names and values is stripped."""
        request = parse_request(b"GET / HTTP/1.1\r\nX-A :   spaced out  \r\n\r\n")

        assert request.headers["X-A"] == "spaced out"

    def test_value_may_contain_colon(self):
        """Only the first colon separates name from value."""
        request = parse_request(b"GET / HTTP/1.1\r\nHost: localhost:7878\r\n\r\n")

        assert request.headers["Host"] == "localhost:7878"

    def test_line_without_colon_ignored(self):
        """A header line without a colon is skipped."""
        request = parse_request(b"GET / HTTP/1.1\r\nnonsense\r\nHost: a\r\n\r\n")

        assert dict(request.headers) == {"Host": "a"}

    def test_duplicate_header_last_wins(self):
        """On duplicates the last value wins; every value stays available."""
        raw = b"GET / HTTP/1.1\r\nX-Tag: one\r\nHost: a\r\nx-tag: two\r\n\r\n"
        headers = parse_request(raw).headers

        assert headers["X-TAG"] == "two"
        assert list(headers) == ["x-tag", "Host"]
        assert headers.get_all("x-tag") == ["one", "two"]
        assert headers.raw_items() == [("X-Tag", "one"), ("Host", "a"), ("x-tag", "two")]

    @pytest.mark.parametrize("value", [b"-1", b"abc", b"", b"+5", b"1.5", b"\xd9\xa3"])
    def test_invalid_content_length(self, value: bytes):
        """Content-Length must be ASCII digits only."""
        raw = b"POST / HTTP/1.1\r\nContent-Length: " + value + b"\r\n\r\n"

        with pytest.raises(InvalidContentLength) as exc_info:
            parse_request(raw)

        assert exc_info.value.status_code == 400

    def test_content_length_name_case_insensitive(self):
        """content-length in any case frames the body."""
        request = parse_request(b"POST / HTTP/1.1\r\ncOnTeNt-LeNgTh: 2\r\n\r\nhi")

        assert request.body == b"hi"

    def test_duplicate_content_length_last_wins(self):
        """Every Content-Length is validated; the last one frames the body."""
        request = parse_request(
            b"POST / HTTP/1.1\r\nContent-Length: 10\r\nContent-Length: 2\r\n\r\nok"
        )
        assert request.body == b"ok"

        with pytest.raises(InvalidContentLength):
            parse_request(b"POST / HTTP/1.1\r\nContent-Length: x\r\nContent-Length: 2\r\n\r\nok")

    def test_eof_before_blank_line(self):
        """Headers cut off before the blank line are an EOF error."""
        with pytest.raises(UnexpectedEof) as exc_info:
            parse_request(b"GET / HTTP/1.1\r\nHost: a\r\n")

        assert exc_info.value.empty is False

    def test_header_line_too_long(self):
        """An over-long header line is 431."""
        parser = RequestParser(max_line_size=64)
        raw = b"GET / HTTP/1.1\r\nX-Large: " + b"A" * 200 + b"\r\n\r\n"

        with pytest.raises(LineTooLong) as exc_info:
            parser.parse(io.BytesIO(raw))

        assert exc_info.value.status_code == 431

    def test_too_many_headers(self):
        """More header lines than allowed is 431."""
        parser = RequestParser(max_header_count=3)
        raw = b"GET / HTTP/1.1\r\n" + b"".join(b"X-%d: v\r\n" % i for i in range(4)) + b"\r\n"

        with pytest.raises(LineTooLong) as exc_info:
            parser.parse(io.BytesIO(raw))

        assert exc_info.value.status_code == 431


class TestBodyErrors:
    """Tests for body framing errors."""

    def test_truncated_body(self):
        """Content-Length: 10 with only 4 bytes before EOF."""
        raw = b"POST /x HTTP/1.1\r\nContent-Length: 10\r\n\r\nabcd"

        with pytest.raises(TruncatedBody) as exc_info:
            parse_request(raw)

        assert exc_info.value.expected == 10
        assert exc_info.value.received == 4
        assert exc_info.value.status_code == 400

    def test_body_too_large(self):
        """A Content-Length above the limit is 413 before reading."""
        parser = RequestParser(max_body_size=5)
        raw = b"POST / HTTP/1.1\r\nContent-Length: 6\r\n\r\n"

        with pytest.raises(PayloadTooLarge) as exc_info:
            parser.parse(io.BytesIO(raw))

        assert exc_info.value.status_code == 413

    def test_body_limit_disabled(self):
        """max_body_size=None accepts any length."""
        parser = RequestParser(max_body_size=None)
        body = b"x" * 100_000
        raw = b"POST / HTTP/1.1\r\nContent-Length: 100000\r\n\r\n" + body

        assert parser.parse(io.BytesIO(raw)).body == body

    def test_all_framing_errors_are_parse_errors(self):
        """Every framing error shares the ParseError base."""
        for exc_type in (MalformedRequestLine, InvalidContentLength, UnexpectedEof,
                         TruncatedBody, LineTooLong, PayloadTooLarge):
            assert issubclass(exc_type, ParseError)


class TestStreamFailures:
    """Tests for I/O errors raised by the underlying stream."""

    class FailingStream:
        """Stream whose reads fail like a timed-out socket."""

        def readline(self, limit=-1):
            raise TimeoutError("timed out")

        def read(self, n=-1):
            raise ConnectionResetError("reset")

    def test_read_failure_is_connection_error(self):
        """OSError from readline surfaces as HTTPConnectionError."""
        with pytest.raises(HTTPConnectionError) as exc_info:
            RequestParser().parse(self.FailingStream())

        assert isinstance(exc_info.value.__cause__, TimeoutError)

    def test_body_read_failure_is_connection_error(self):
        """OSError while reading the body surfaces as HTTPConnectionError."""
        class BodyFails(self.FailingStream):
            def __init__(self):
                self._lines = io.BytesIO(b"POST / HTTP/1.1\r\nContent-Length: 3\r\n\r\n")

            def readline(self, limit=-1):
                return self._lines.readline(limit)

        with pytest.raises(HTTPConnectionError):
            RequestParser().parse(BodyFails())


class TestHTTPRequest:
    """Tests for HTTPRequest dataclass."""

    def test_get_header_default(self):
        """get_header falls back to the default."""
        request = HTTPRequest(method="GET", path="/")

        assert request.get_header("X-Missing") == ""
        assert request.get_header("X-Missing", "default") == "default"

    def test_dict_headers_converted(self):
        """Plain dict headers become a case-insensitive Headers."""
        request = HTTPRequest(method="GET", path="/", headers={"Host": "a"})

        assert isinstance(request.headers, Headers)
        assert request.headers["HOST"] == "a"

    def test_immutable(self):
        """Requests cannot be modified after parsing."""
        request = HTTPRequest(method="GET", path="/")

        with pytest.raises(AttributeError):
            request.path = "/other"

    def test_query_params_multi_value(self):
        """Repeated query keys collect into a list."""
        request = HTTPRequest(method="GET", path="/", raw_query="a=1&a=2&b=3")

        assert request.query_params == {"a": ["1", "2"], "b": ["3"]}


class TestHeaders:
    """Tests for Headers and MutableHeaders."""

    def test_equality_ignores_case(self):
        """Headers compare equal to mappings regardless of key case."""
        assert Headers([("Host", "a")]) == {"host": "a"}
        assert Headers([("Host", "a")]) != {"host": "b"}

    def test_mutable_set_keeps_position(self):
        """Overwriting a key keeps its position but takes the new key text."""
        headers = MutableHeaders([("Server", "x"), ("Date", "d")])
        headers["SERVER"] = "y"

        assert list(headers.items()) == [("SERVER", "y"), ("Date", "d")]
        assert headers.raw_items() == [("Date", "d"), ("SERVER", "y")]

    def test_mutable_delete(self):
        """Deleting removes the key in any case."""
        headers = MutableHeaders([("Content-Length", "3"), ("A", "b")])
        del headers["content-length"]

        assert "Content-Length" not in headers
        assert headers.get_all("content-length") == []
        with pytest.raises(KeyError):
            del headers["content-length"]

    def test_copy_is_mutable(self):
        """copy() returns an independent MutableHeaders."""
        original = Headers([("A", "1")])
        copied = original.copy()
        copied["B"] = "2"

        assert isinstance(copied, MutableHeaders)
        assert "B" not in original
