"""
=============================================================================
HTTP STATUS CODES
=============================================================================

Status codes and the reason phrases written on the response status line:

    HTTP/1.1 404 Not Found
             ─┬─ ────┬────
              │      │
           status  reason phrase

Handlers may build responses with any integer status. When they do not
supply a reason phrase, the encoder looks one up here. Codes missing from
the table render as "Unknown" so the status line is always well formed.

    ┌────────┬───────────────────────────────────────────────────────────┐
    │  1xx   │ Informational                                             │
    │  2xx   │ Success           200 OK, 201 Created, 204 No Content     │
    │  3xx   │ Redirection       301, 302, 304                           │
    │  4xx   │ Client error      400, 404 Page not found, 405 method     │
    │  5xx   │ Server error      500 handler crashed                     │
    └────────┴───────────────────────────────────────────────────────────┘

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status codes used by the engine and its convenience responses.

    IntEnum members compare equal to plain integers, so handlers can pass
    either ``HTTPStatus.OK`` or ``200``:

        >>> HTTPStatus.NOT_FOUND == 404
        True
        >>> HTTPStatus.NOT_FOUND.phrase
        'Not Found'
    """

    # 1xx
    CONTINUE = 100
    SWITCHING_PROTOCOLS = 101

    # 2xx
    OK = 200
    CREATED = 201
    ACCEPTED = 202
    NO_CONTENT = 204
    PARTIAL_CONTENT = 206

    # 3xx
    MOVED_PERMANENTLY = 301
    FOUND = 302
    SEE_OTHER = 303
    NOT_MODIFIED = 304
    TEMPORARY_REDIRECT = 307
    PERMANENT_REDIRECT = 308

    # 4xx
    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    FORBIDDEN = 403
    NOT_FOUND = 404
    METHOD_NOT_ALLOWED = 405
    NOT_ACCEPTABLE = 406
    REQUEST_TIMEOUT = 408
    CONFLICT = 409
    GONE = 410
    LENGTH_REQUIRED = 411
    PAYLOAD_TOO_LARGE = 413
    URI_TOO_LONG = 414
    UNSUPPORTED_MEDIA_TYPE = 415
    IM_A_TEAPOT = 418
    UNPROCESSABLE_ENTITY = 422
    TOO_MANY_REQUESTS = 429

    # 5xx
    INTERNAL_SERVER_ERROR = 500
    NOT_IMPLEMENTED = 501
    BAD_GATEWAY = 502
    SERVICE_UNAVAILABLE = 503
    GATEWAY_TIMEOUT = 504
    HTTP_VERSION_NOT_SUPPORTED = 505

    @property
    def phrase(self) -> str:
        """Reason phrase for the status line (e.g. ``"Not Found"``)."""
        return _STATUS_PHRASES.get(self, "Unknown")

    @property
    def is_error(self) -> bool:
        """True for 4xx and 5xx codes."""
        return self >= 400


_STATUS_PHRASES = {
    HTTPStatus.CONTINUE: "Continue",
    HTTPStatus.SWITCHING_PROTOCOLS: "Switching Protocols",
    HTTPStatus.OK: "OK",
    HTTPStatus.CREATED: "Created",
    HTTPStatus.ACCEPTED: "Accepted",
    HTTPStatus.NO_CONTENT: "No Content",
    HTTPStatus.PARTIAL_CONTENT: "Partial Content",
    HTTPStatus.MOVED_PERMANENTLY: "Moved Permanently",
    HTTPStatus.FOUND: "Found",
    HTTPStatus.SEE_OTHER: "See Other",
    HTTPStatus.NOT_MODIFIED: "Not Modified",
    HTTPStatus.TEMPORARY_REDIRECT: "Temporary Redirect",
    HTTPStatus.PERMANENT_REDIRECT: "Permanent Redirect",
    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.UNAUTHORIZED: "Unauthorized",
    HTTPStatus.FORBIDDEN: "Forbidden",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.METHOD_NOT_ALLOWED: "Method Not Allowed",
    HTTPStatus.NOT_ACCEPTABLE: "Not Acceptable",
    HTTPStatus.REQUEST_TIMEOUT: "Request Timeout",
    HTTPStatus.CONFLICT: "Conflict",
    HTTPStatus.GONE: "Gone",
    HTTPStatus.LENGTH_REQUIRED: "Length Required",
    HTTPStatus.PAYLOAD_TOO_LARGE: "Payload Too Large",
    HTTPStatus.URI_TOO_LONG: "URI Too Long",
    HTTPStatus.UNSUPPORTED_MEDIA_TYPE: "Unsupported Media Type",
    HTTPStatus.IM_A_TEAPOT: "I'm a teapot",
    HTTPStatus.UNPROCESSABLE_ENTITY: "Unprocessable Entity",
    HTTPStatus.TOO_MANY_REQUESTS: "Too Many Requests",
    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
    HTTPStatus.NOT_IMPLEMENTED: "Not Implemented",
    HTTPStatus.BAD_GATEWAY: "Bad Gateway",
    HTTPStatus.SERVICE_UNAVAILABLE: "Service Unavailable",
    HTTPStatus.GATEWAY_TIMEOUT: "Gateway Timeout",
    HTTPStatus.HTTP_VERSION_NOT_SUPPORTED: "HTTP Version Not Supported",
}


def reason_phrase(status: int) -> str:
    """
    Look up the reason phrase for an arbitrary integer status.

    Args:
        status: Any status code, known or not.

    Returns:
        The standard phrase, or "Unknown" for codes outside the table.
    """
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return "Unknown"
