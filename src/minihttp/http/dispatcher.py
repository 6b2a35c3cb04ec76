"""
=============================================================================
DISPATCHER
=============================================================================

Connects a decoded request to the handler that produces its response.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        DISPATCH FLOW                                │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   HTTPRequest                                                        │
    │        │                                                             │
    │        ├── method UNSUPPORTED ──► 405 {"error":"This method is      │
    │        │                                   not allowed"}             │
    │        ▼                                                             │
    │   router.match(method, path)                                         │
    │        │                                                             │
    │        ├── no match ────────────► 404 {"error":"Page not found"}     │
    │        ▼                                                             │
    │   router.middleware, in order                                        │
    │        │                                                             │
    │        ├── one returns a response ──► that response                  │
    │        ▼                                                             │
    │   RouteEntry.kind                                                    │
    │        ├── SYNC  ──► handler(request)                                │
    │        └── ASYNC ──► await handler(request)   ← task suspends here   │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Async handlers run on the connection's own task with no timeout; a slow
handler holds only its own connection.

=============================================================================
"""

from dataclasses import replace
from typing import List, Optional
import logging

from .request import HTTPMethod, HTTPRequest
from .response import HTTPResponse, method_not_allowed, not_found
from .router import HandlerKind, MiddlewareData, MiddlewareEntry, Router


logger = logging.getLogger(__name__)


async def dispatch(request: HTTPRequest, router: Router) -> HTTPResponse:
    """
    Produce the response for ``request``.

    Args:
        request: The decoded request.
        router: Route table built for this connection.

    Returns:
        The handler's response, a middleware's early response, or the
        fixed 404/405 response.

    Raises:
        TypeError: If a handler returns something other than HTTPResponse,
                   or a middleware returns something other than None or
                   an HTTPResponse.
        Exception: Whatever a handler or middleware raises is propagated
                   unchanged.
    """
    if request.method is HTTPMethod.UNSUPPORTED:
        logger.debug(f"Unsupported method for {request.path}")
        return method_not_allowed()

    route_match = router.match(request.method, request.path)
    if route_match is None:
        logger.debug(f"No route for {request.method.value} {request.path}")
        return not_found()

    entry = route_match.entry
    if route_match.params:
        request = replace(request, path_params=route_match.params)

    middleware = router.middleware
    if middleware:
        data: MiddlewareData = {}
        early = await run_middleware(middleware, request, data)
        if early is not None:
            return early
        request = replace(request, middleware_data=data)

    if entry.kind is HandlerKind.ASYNC:
        response = await entry.handler(request)
    else:
        response = entry.handler(request)

    if not isinstance(response, HTTPResponse):
        raise TypeError(
            f"Handler for {entry.method.value} {entry.path} returned "
            f"{type(response).__name__}, expected HTTPResponse"
        )

    return response


async def run_middleware(
    middleware: List[MiddlewareEntry],
    request: HTTPRequest,
    data: MiddlewareData,
) -> Optional[HTTPResponse]:
    """
    Run middleware in order against one shared ``data`` mapping.

    Returns:
        The first HTTPResponse a middleware returns, or None when every
        middleware let the request through.
    """
    for mw in middleware:
        if mw.kind is HandlerKind.ASYNC:
            result = await mw.func(request, data)
        else:
            result = mw.func(request, data)

        if result is None:
            continue
        if not isinstance(result, HTTPResponse):
            raise TypeError(
                f"Middleware {mw.name} returned {type(result).__name__}, "
                f"expected HTTPResponse or None"
            )
        logger.debug(f"Middleware {mw.name} answered {request.method.value} {request.path}")
        return result

    return None
