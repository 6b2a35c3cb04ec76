"""
=============================================================================
ROUTE TABLE
=============================================================================

Maps (method, path) to a handler, with optional ":name" path parameters.

=============================================================================
TABLE LAYOUT
=============================================================================

One dictionary per supported method, keyed by the route string exactly as
it was registered:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        ROUTER                                       │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   GET    { "/"           → index        (sync)                       │
    │            "/route/:id"  → show_route   (sync)                       │
    │            "/slow"       → slow         (async) }                    │
    │   POST   { "/echo"       → echo         (sync)  }                    │
    │   PUT    { }                                                         │
    │   PATCH  { }                                                         │
    │   DELETE { }                                                         │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Registering the same (method, path) twice keeps the last handler, and the
route takes the position of that last registration.

=============================================================================
MATCHING
=============================================================================

    GET /route/42
        │
        ├── 1. exact key "/route/42" in GET table?        no
        │
        └── 2. first pattern with ":" segments where
               - segment counts are equal                 "/route/:id" (2 == 2)
               - static segments are identical            "route" == "route"
               - every ":name" segment is non-empty       "42"
                                                          ─────────────────
                                                          params {"id": "42"}

An exact key always wins over a pattern, so "/route/me" registered
alongside "/route/:id" answers requests for "/route/me". Anything that
fits neither rule is a miss (404 at the dispatcher).

=============================================================================
"""

from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Dict, Iterator, List, Optional, Union
import inspect

from .request import HTTPMethod, HTTPRequest
from .response import HTTPResponse


# =============================================================================
# TYPE ALIASES
# =============================================================================

SyncHandler = Callable[[HTTPRequest], HTTPResponse]
AsyncHandler = Callable[[HTTPRequest], Awaitable[HTTPResponse]]
Handler = Union[SyncHandler, AsyncHandler]

# Middleware sees the request and a mutable mapping shared with the later
# middleware and the handler. Returning a response skips the handler.
MiddlewareData = Dict[str, str]
SyncMiddleware = Callable[[HTTPRequest, MiddlewareData], Optional[HTTPResponse]]
AsyncMiddleware = Callable[[HTTPRequest, MiddlewareData], Awaitable[Optional[HTTPResponse]]]
Middleware = Union[SyncMiddleware, AsyncMiddleware]


class HandlerKind(Enum):
    """How the dispatcher must invoke a handler."""

    SYNC = "sync"      # called directly
    ASYNC = "async"    # awaited on the connection task


@dataclass(frozen=True)
class RouteEntry:
    """
    A registered route.

        @router.get("/route/:id")
        def show_route(request): ...

        RouteEntry(
            method=HTTPMethod.GET,
            path="/route/:id",
            handler=show_route,
            kind=HandlerKind.SYNC,
        )
    """

    method: HTTPMethod
    path: str
    handler: Handler
    kind: HandlerKind = HandlerKind.SYNC

    @property
    def is_dynamic(self) -> bool:
        """True when the path has at least one ":name" segment."""
        return any(segment.startswith(":") for segment in self.path.split("/"))


@dataclass(frozen=True)
class MiddlewareEntry:
    """
    A registered middleware function.

        @router.use
        def stamp(request, data):
            data["seen"] = "yes"

        MiddlewareEntry(func=stamp, kind=HandlerKind.SYNC)
    """

    func: Middleware
    kind: HandlerKind = HandlerKind.SYNC

    @property
    def name(self) -> str:
        """Function name, for logging."""
        return getattr(self.func, "__name__", type(self.func).__name__)


@dataclass(frozen=True)
class RouteMatch:
    """
    Result of a successful lookup.

    Example:
        Pattern: /route/:id
        Path:    /route/42
        Result:  RouteMatch(entry=<RouteEntry>, params={"id": "42"})
    """

    entry: RouteEntry
    params: Dict[str, str]


class Router:
    """
    Per-method route table.

    ==========================================================================
    REGISTRATION
    ==========================================================================

    Decorator style:

        router = Router()

        @router.get("/")
        def index(request):
            return ok("Hello world")

        @router.get("/slow")
        async def slow(request):
            await asyncio.sleep(1)
            return ok("done")

    Direct style (handy inside a registration callback):

        router.get("/", index)
        router.add_route("POST", "/echo", echo)

    Coroutine functions are registered as ASYNC handlers, everything else
    as SYNC. Pass ``kind`` to ``add_route`` to override the detection, e.g.
    for a callable object whose ``__call__`` is a coroutine.

    ==========================================================================
    """

    def __init__(self):
        self._tables: Dict[HTTPMethod, Dict[str, RouteEntry]] = {
            HTTPMethod.GET: {},
            HTTPMethod.POST: {},
            HTTPMethod.PUT: {},
            HTTPMethod.PATCH: {},
            HTTPMethod.DELETE: {},
        }
        self._middleware: List[MiddlewareEntry] = []

    # =========================================================================
    # ROUTE REGISTRATION
    # =========================================================================

    def add_route(
        self,
        method: Union[HTTPMethod, str],
        path: str,
        handler: Handler,
        kind: Optional[HandlerKind] = None,
    ) -> RouteEntry:
        """
        Register a handler for (method, path).

        Args:
            method: One of GET, POST, PUT, PATCH, DELETE.
            path: Literal route, optionally with ":name" segments.
            handler: Sync or async callable taking an HTTPRequest.
            kind: Invocation style; inferred from ``handler`` when omitted.

        Returns:
            The stored RouteEntry.

        Raises:
            ValueError: If the method has no route table.
        """
        http_method = HTTPMethod.from_token(
            method.value if isinstance(method, HTTPMethod) else method.upper()
        )
        if http_method is HTTPMethod.UNSUPPORTED:
            raise ValueError(f"Cannot register routes for method {method!r}")

        if kind is None:
            kind = HandlerKind.ASYNC if inspect.iscoroutinefunction(handler) else HandlerKind.SYNC

        entry = RouteEntry(method=http_method, path=path, handler=handler, kind=kind)
        table = self._tables[http_method]
        # Re-registration moves the route to the end of the pattern order
        table.pop(path, None)
        table[path] = entry
        return entry

    def get(self, path: str, handler: Optional[Handler] = None):
        """Register a GET route. Works as a decorator or a direct call."""
        return self._register(HTTPMethod.GET, path, handler)

    def post(self, path: str, handler: Optional[Handler] = None):
        """Register a POST route."""
        return self._register(HTTPMethod.POST, path, handler)

    def put(self, path: str, handler: Optional[Handler] = None):
        """Register a PUT route."""
        return self._register(HTTPMethod.PUT, path, handler)

    def patch(self, path: str, handler: Optional[Handler] = None):
        """Register a PATCH route."""
        return self._register(HTTPMethod.PATCH, path, handler)

    def delete(self, path: str, handler: Optional[Handler] = None):
        """Register a DELETE route."""
        return self._register(HTTPMethod.DELETE, path, handler)

    def _register(self, method: HTTPMethod, path: str, handler: Optional[Handler]):
        if handler is not None:
            self.add_route(method, path, handler)
            return handler

        def decorator(func: Handler) -> Handler:
            self.add_route(method, path, func)
            return func

        return decorator

    # =========================================================================
    # MIDDLEWARE
    # =========================================================================

    def use(self, middleware: Middleware, kind: Optional[HandlerKind] = None) -> Middleware:
        """
        Register middleware that runs before every matched handler.

        ==========================================================================
        EXECUTION ORDER
        ==========================================================================

            router.use(authenticate)     # runs first
            router.use(load_profile)     # runs second, sees authenticate's data

            GET /route/42
                ├── authenticate(request, data)
                ├── load_profile(request, data)
                └── handler(request)     request.middleware_data == data

        A middleware that returns an HTTPResponse ends the chain; that
        response is sent and the handler never runs. Misses (404) and
        unsupported methods (405) are answered without running middleware.

        ==========================================================================

        Works as a decorator. Coroutine functions are registered as ASYNC,
        everything else as SYNC, unless ``kind`` says otherwise.

        Returns:
            ``middleware`` unchanged.
        """
        if kind is None:
            kind = HandlerKind.ASYNC if inspect.iscoroutinefunction(middleware) else HandlerKind.SYNC

        self._middleware.append(MiddlewareEntry(func=middleware, kind=kind))
        return middleware

    @property
    def middleware(self) -> List[MiddlewareEntry]:
        """Registered middleware, in execution order."""
        return list(self._middleware)

    # =========================================================================
    # LOOKUP
    # =========================================================================

    def match(self, method: HTTPMethod, path: str) -> Optional[RouteMatch]:
        """
        Resolve a request's method and path to a route.

        Patterns are tried in the order of their latest registration.

        Returns:
            RouteMatch, or None when nothing is registered for the path (or
            the method has no table at all).
        """
        table = self._tables.get(method)
        if table is None:
            return None

        entry = table.get(path)
        if entry is not None:
            return RouteMatch(entry=entry, params={})

        for entry in table.values():
            if not entry.is_dynamic:
                continue
            params = _match_pattern(entry.path, path)
            if params is not None:
                return RouteMatch(entry=entry, params=params)

        return None

    def routes(self, method: Optional[HTTPMethod] = None) -> List[RouteEntry]:
        """List registered routes, in registration order per method."""
        if method is not None:
            return list(self._tables.get(method, {}).values())
        return [entry for table in self._tables.values() for entry in table.values()]

    def __iter__(self) -> Iterator[RouteEntry]:
        return iter(self.routes())

    def __len__(self) -> int:
        return sum(len(table) for table in self._tables.values())

    def __repr__(self) -> str:
        return f"Router(routes={len(self)})"


# =============================================================================
# PATH PARAMETERS
# =============================================================================

def extract_path_params(pattern: str, path: str) -> Dict[str, str]:
    """
    Walk a pattern and a path segment by segment and collect ":name" values.

        >>> extract_path_params("/route/:id", "/route/42")
        {'id': '42'}
        >>> extract_path_params("/route/:id", "/route/42/extra")
        {}

    Static segments are not compared here; see ``Router.match`` for that.
    Different segment counts yield no parameters.
    """
    pattern_segments = pattern.split("/")
    path_segments = path.split("/")
    if len(pattern_segments) != len(path_segments):
        return {}

    return {
        segment[1:]: value
        for segment, value in zip(pattern_segments, path_segments)
        if segment.startswith(":")
    }


def _match_pattern(pattern: str, path: str) -> Optional[Dict[str, str]]:
    pattern_segments = pattern.split("/")
    path_segments = path.split("/")
    if len(pattern_segments) != len(path_segments):
        return None

    for segment, value in zip(pattern_segments, path_segments):
        if segment.startswith(":"):
            if not value:
                return None
        elif segment != value:
            return None

    return extract_path_params(pattern, path)
