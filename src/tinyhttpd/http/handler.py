"""
=============================================================================
HANDLER INTERFACE
=============================================================================

The server core never generates content. It hands a parsed HTTPRequest to
a handler and sends back whatever HTTPResponse comes out:

    Handler = Callable[[HTTPRequest], HTTPResponse]

How a handler finishes decides what the client gets:

    ┌───────────────────────────┬────────────────────────────────────────┐
    │ Handler does              │ Client gets                            │
    ├───────────────────────────┼────────────────────────────────────────┤
    │ return HTTPResponse(...)  │ that response                          │
    │ raise NotFound(body=...)  │ 404 with the given body (or empty)     │
    │ raise ServerError(...)    │ 500 with the given body (or empty)     │
    │ raise anything else       │ 500, empty body, traceback in the log  │
    │ return something else     │ 500, empty body, error in the log      │
    │ return a bad header       │ 500, empty body, error in the log      │
    │ (CR/LF, non-Latin-1 ...)  │                                        │
    └───────────────────────────┴────────────────────────────────────────┘

Rendering pretty 404/500 pages (templates etc.) is the handler's job: it
passes the rendered bytes in ``body``.

=============================================================================
"""

import logging
from typing import Callable, Optional, Union

from .request import HTTPRequest
from .response import HTTPResponse, empty_response
from .status_codes import HTTPStatus


logger = logging.getLogger(__name__)


Handler = Callable[[HTTPRequest], HTTPResponse]


class HandlerError(Exception):
    """
    A handler outcome that maps to a default error response.

    Args:
        body: Optional response body supplied by the collaborator.
        content_type: Content-Type for ``body``, if any.
    """

    status_code = HTTPStatus.INTERNAL_SERVER_ERROR

    def __init__(
        self,
        body: Union[str, bytes] = b"",
        content_type: Optional[str] = None,
    ):
        super().__init__(f"{int(self.status_code)} {self.status_code.phrase}")
        self.body = body.encode("utf-8") if isinstance(body, str) else body
        self.content_type = content_type

    def to_response(self) -> HTTPResponse:
        return empty_response(self.status_code, self.body, self.content_type)


class NotFound(HandlerError):
    """No resource for this request: 404."""

    status_code = HTTPStatus.NOT_FOUND


class ServerError(HandlerError):
    """The handler failed in a way it chose to report: 500."""

    status_code = HTTPStatus.INTERNAL_SERVER_ERROR


def dispatch(handler: Handler, request: HTTPRequest) -> HTTPResponse:
    """
    Run ``handler`` on ``request`` and always come back with a response.

    This is the boundary between the server core and application code:
    nothing the handler does, short of killing the process, escapes it.
    """
    try:
        response = handler(request)
    except HandlerError as e:
        return e.to_response()
    except Exception:
        logger.exception(f"Handler failed for {request.method} {request.target}")
        return empty_response(HTTPStatus.INTERNAL_SERVER_ERROR)

    if not isinstance(response, HTTPResponse):
        logger.error(
            f"Handler returned {type(response).__name__} for "
            f"{request.method} {request.target}, expected HTTPResponse"
        )
        return empty_response(HTTPStatus.INTERNAL_SERVER_ERROR)

    try:
        response.validate()
    except ValueError as e:
        logger.error(f"Handler returned an unwritable response for {request.method} {request.target}: {e}")
        return empty_response(HTTPStatus.INTERNAL_SERVER_ERROR)

    return response
