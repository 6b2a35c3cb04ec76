"""
=============================================================================
HTTP PROTOCOL LAYER
=============================================================================

Everything between socket bytes and handler code:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   bytes ──► request.py ──► HTTPRequest                               │
    │                               │                                      │
    │                               ▼                                      │
    │                 router.py + dispatcher.py ──► handler                │
    │                                                  │                   │
    │                                                  ▼                   │
    │   bytes ◄── response.py ◄────────────────── HTTPResponse             │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Nothing in this package touches a socket; see ``minihttp.core`` for that.

=============================================================================
"""

from .request import (
    HTTPMethod,
    HTTPRequest,
    RequestParser,
    parse_body,
    parse_query_string,
    parse_request,
)
from .response import (
    HTTPResponse,
    ResponseBuilder,
    load_file,
    read_file,
    ok,
    created,
    no_content,
    bad_request,
    not_found,
    method_not_allowed,
    internal_error,
    send_file,
)
from .router import (
    HandlerKind,
    MiddlewareData,
    MiddlewareEntry,
    RouteEntry,
    RouteMatch,
    Router,
    extract_path_params,
)
from .dispatcher import dispatch, run_middleware
from .status_codes import HTTPStatus, reason_phrase
from .mime_types import get_mime_type, get_content_type


__all__ = [
    # Request decoding
    "HTTPMethod",
    "HTTPRequest",
    "RequestParser",
    "parse_body",
    "parse_query_string",
    "parse_request",

    # Response encoding
    "HTTPResponse",
    "ResponseBuilder",
    "load_file",
    "read_file",

    # Response convenience functions
    "ok",
    "created",
    "no_content",
    "bad_request",
    "not_found",
    "method_not_allowed",
    "internal_error",
    "send_file",

    # Routing and dispatch
    "HandlerKind",
    "MiddlewareData",
    "MiddlewareEntry",
    "RouteEntry",
    "RouteMatch",
    "Router",
    "extract_path_params",
    "dispatch",
    "run_middleware",

    # Status codes
    "HTTPStatus",
    "reason_phrase",

    # MIME types
    "get_mime_type",
    "get_content_type",
]
