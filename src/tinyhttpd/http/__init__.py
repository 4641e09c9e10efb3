"""
=============================================================================
HTTP PROTOCOL LAYER
=============================================================================

Everything that knows what HTTP looks like on the wire:

    request.py       Bytes → HTTPRequest (RequestParser, Headers)
    response.py      HTTPResponse → bytes (ResponseWriter)
    errors.py        Framing and I/O error taxonomy
    handler.py       The handler interface and its outcome signals
    router.py        A small exact-path router implementing a Handler
    status_codes.py  HTTPStatus enum with reason phrases

None of these modules touch threads or listening sockets; that is the
job of ``tinyhttpd.core``.

=============================================================================
"""

from .errors import (
    HTTPConnectionError,
    InvalidContentLength,
    LineTooLong,
    MalformedRequestLine,
    ParseError,
    PayloadTooLarge,
    TruncatedBody,
    UnexpectedEof,
)
from .handler import Handler, HandlerError, NotFound, ServerError, dispatch
from .request import Headers, HTTPRequest, MutableHeaders, RequestParser, parse_request
from .response import (
    HTTPResponse,
    ResponseWriter,
    empty_response,
    error_response,
    format_http_date,
    json_response,
    ok,
)
from .router import Route, Router
from .status_codes import HTTPStatus, reason_phrase

__all__ = [
    # Requests
    "Headers",
    "MutableHeaders",
    "HTTPRequest",
    "RequestParser",
    "parse_request",
    # Responses
    "HTTPResponse",
    "ResponseWriter",
    "ok",
    "json_response",
    "error_response",
    "empty_response",
    "format_http_date",
    # Errors
    "ParseError",
    "MalformedRequestLine",
    "InvalidContentLength",
    "UnexpectedEof",
    "TruncatedBody",
    "LineTooLong",
    "PayloadTooLarge",
    "HTTPConnectionError",
    # Handlers
    "Handler",
    "HandlerError",
    "NotFound",
    "ServerError",
    "dispatch",
    "Route",
    "Router",
    # Status codes
    "HTTPStatus",
    "reason_phrase",
]
