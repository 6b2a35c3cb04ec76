"""
=============================================================================
MINIHTTP: AN EMBEDDABLE HTTP/1.1 ENGINE
=============================================================================

A small HTTP server built directly on sockets and asyncio. It accepts TCP
connections, decodes one request per connection, routes it to a sync or
async handler, and writes the encoded response back.

=============================================================================
ARCHITECTURE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   App ── ServerConfig                                                │
    │    │                                                                 │
    │    └── ConnectionSupervisor            (minihttp.core)               │
    │           │   listening socket, accept loop                          │
    │           │                                                          │
    │           └── Connection task (one per client)                       │
    │                  │                                                   │
    │                  ├── RequestParser     bytes → HTTPRequest           │
    │                  ├── Router            built by your callback        │
    │                  ├── dispatch          handler or 404 / 405          │
    │                  └── HTTPResponse      → bytes                       │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
QUICK START
=============================================================================

    from minihttp import App, ok

    app = App()

    @app.endpoints
    def routes(router):
        router.get("/", lambda request: ok("Hello world"))
        router.get("/route/:id", lambda request: ok(f"Hello, {request.get_param('id')}"))

    app.run(port=3000)

Limits: one request per connection, one read per request, no chunked
bodies, no TLS.

=============================================================================
"""

__version__ = "1.0.0"

from .app import App, create_app
from .config import ServerConfig
from .core import ConnectionSupervisor, ServerError
from .http import (
    HTTPMethod,
    HTTPRequest,
    HTTPResponse,
    HTTPStatus,
    ResponseBuilder,
    Router,
    ok,
    created,
    no_content,
    bad_request,
    not_found,
    method_not_allowed,
    internal_error,
    send_file,
)

__all__ = [
    "App",
    "create_app",
    "ServerConfig",
    "ConnectionSupervisor",
    "ServerError",
    "HTTPMethod",
    "HTTPRequest",
    "HTTPResponse",
    "HTTPStatus",
    "ResponseBuilder",
    "Router",
    "ok",
    "created",
    "no_content",
    "bad_request",
    "not_found",
    "method_not_allowed",
    "internal_error",
    "send_file",
    "__version__",
]
