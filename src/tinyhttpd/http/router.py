"""
=============================================================================
ROUTER
=============================================================================

A deliberately small router: exact path match, optional method filter.

    router = Router()

    @router.get("/")
    def index(request):
        return ok("Hello")

    @router.route("/echo")            # any method
    def echo(request):
        return ok(request.body)

    server = HTTPServer(config, handler=router.handle)

Router.handle is itself a Handler, so the server core does not know
routing exists. When nothing matches it raises NotFound and the core
answers 404.

=============================================================================
"""

from dataclasses import dataclass
from typing import Callable, List, Optional

from .handler import Handler, NotFound
from .request import HTTPRequest
from .response import HTTPResponse


@dataclass
class Route:
    """A path (and optional method) bound to a handler."""

    path: str                  # Exact request path, e.g. "/hello"
    method: Optional[str]      # "GET", "POST", ... or None for any
    handler: Handler

    def matches(self, method: str, path: str) -> bool:
        if self.method and self.method != method.upper():
            return False
        return self.path == path


class Router:
    """
    Maps (method, path) pairs to handlers.

    Routes are tried in registration order; the first match wins.
    """

    def __init__(self, not_found_body: bytes = b""):
        self._routes: List[Route] = []
        self.not_found_body = not_found_body

    @property
    def routes(self) -> List[Route]:
        return list(self._routes)

    def add_route(self, path: str, handler: Handler, method: Optional[str] = None) -> Route:
        """Register ``handler`` for ``path`` (and ``method``, if given)."""
        route = Route(path=path, method=method.upper() if method else None, handler=handler)
        self._routes.append(route)
        return route

    def route(self, path: str, method: Optional[str] = None) -> Callable[[Handler], Handler]:
        """Decorator form of add_route."""
        def decorator(handler: Handler) -> Handler:
            self.add_route(path, handler, method)
            return handler
        return decorator

    def get(self, path: str):
        return self.route(path, "GET")

    def post(self, path: str):
        return self.route(path, "POST")

    def put(self, path: str):
        return self.route(path, "PUT")

    def delete(self, path: str):
        return self.route(path, "DELETE")

    def match(self, method: str, path: str) -> Optional[Route]:
        for route in self._routes:
            if route.matches(method, path):
                return route
        return None

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """Dispatch ``request`` to the matching route, or raise NotFound."""
        route = self.match(request.method, request.path)
        if route is None:
            raise NotFound(body=self.not_found_body)
        return route.handler(request)
