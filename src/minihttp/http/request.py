"""
=============================================================================
HTTP REQUEST DECODER
=============================================================================

Turns the bytes of one socket read into an immutable HTTPRequest.

=============================================================================
WHAT ONE READ LOOKS LIKE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     ONE 4096-BYTE READ                              │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   POST /users?page=2 HTTP/1.1\r\n        ← request line              │
    │   Host: localhost:3000\r\n               ← interpreted header        │
    │   X-Trace: abc\r\n                       ← ignored header            │
    │   Content-Length: 13\r\n                 ← interpreted header        │
    │   \r\n                                   ← blank separator           │
    │   name=ada&age=36                        ← body (form encoded)       │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The decoder works on exactly what one read delivered. A request larger than
the buffer, or one split across several TCP segments, is decoded from the
part that arrived. Content-Length is recorded, never used to read more.

=============================================================================
DEGRADE, DON'T FAIL
=============================================================================

Decoding never raises. Every malformed piece falls back to a default so
the connection still produces a response:

    empty request line       → GET /
    missing path             → /
    unknown method token     → HTTPMethod.UNSUPPORTED (answered with 405)
    header without ": "      → ignored
    bad Content-Length       → 0
    invalid UTF-8            → U+FFFD replacement characters

=============================================================================
BODY POLICY (first rule that applies wins)
=============================================================================

    1. contains "=" and "&"  → URL-encoded form      {"a": "1", "b": "2"}
    2. valid JSON            → top-level object keys  {"n": "1", "s": "x"}
                               (other JSON documents → {})
    3. anything else         → {"body": <raw text>}

An empty body decodes to an empty mapping.

=============================================================================
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional
from urllib.parse import unquote
import json


class HTTPMethod(str, Enum):
    """
    The closed set of methods the route table knows about.

    Anything else a client sends (HEAD, OPTIONS, lowercase "get", garbage)
    becomes UNSUPPORTED and is answered with 405 by the dispatcher.
    """

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"
    UNSUPPORTED = "UNSUPPORTED"

    @classmethod
    def from_token(cls, token: str) -> "HTTPMethod":
        """Map a request-line token to a member (case-sensitive)."""
        if token in SUPPORTED_METHODS:
            return cls(token)
        return cls.UNSUPPORTED


SUPPORTED_METHODS = frozenset({"GET", "POST", "PUT", "PATCH", "DELETE"})


@dataclass(frozen=True)
class HTTPRequest:
    """
    A decoded HTTP request.

    Built once per accepted connection and read-only afterwards. The
    dispatcher hands handlers a copy with ``path_params`` and
    ``middleware_data`` filled in (``dataclasses.replace``) instead of
    mutating this one.

    =========================================================================
    ATTRIBUTES
    =========================================================================

        method:          HTTPMethod member (UNSUPPORTED for unknown tokens)
        path:            Path without the query string, always starts with /
        host, user_agent, accept, connection:
                         Values of the only headers the decoder interprets
        content_length:  Declared body length, 0 when missing or invalid
        raw:             The bytes received, kept for diagnostics
        body:            Decoded body mapping (see module docstring)
        query:           Decoded query-string mapping
        path_params:     Values captured by ":name" route segments
        middleware_data: Values the route's middleware stored for the handler
        client_address:  (ip, port) of the peer, for logging

    =========================================================================
    """

    method: HTTPMethod = HTTPMethod.GET
    path: str = "/"

    host: str = ""
    user_agent: str = ""
    accept: str = ""
    connection: str = "keep-alive"
    content_length: int = 0

    raw: bytes = field(default=b"", repr=False)
    body: Dict[str, str] = field(default_factory=dict)
    query: Dict[str, str] = field(default_factory=dict)
    path_params: Dict[str, str] = field(default_factory=dict)
    middleware_data: Dict[str, str] = field(default_factory=dict)

    client_address: tuple[str, int] = ("", 0)

    def get_query(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """
        Get a query-string value.

        Example:
            # GET /search?q=hello%20world
            request.get_query("q")  # "hello world"
        """
        return self.query.get(name, default)

    def get_body(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Get a decoded body value (form field or top-level JSON key)."""
        return self.body.get(name, default)

    def get_param(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """
        Get a path parameter captured by the router.

        Example:
            # Route "/users/:id", request "/users/42"
            request.get_param("id")  # "42"
        """
        return self.path_params.get(name, default)

    def get_data(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Get a value stored by middleware that ran before the handler."""
        return self.middleware_data.get(name, default)


class RequestParser:
    """
    Decodes raw request bytes into HTTPRequest objects.

    ==========================================================================
    DECODING STEPS
    ==========================================================================

        raw bytes
            │  UTF-8 decode (invalid sequences replaced)
            ▼
        text.split("\\r\\n")
            │
            ├── line 0 ─────────► method, path, query
            │
            ├── lines 1..blank ─► host, user-agent, accept,
            │                     connection, content-length
            │
            └── rest ───────────► "\\r\\n".join(...) → body mapping

    ==========================================================================
    """

    # Headers the decoder keeps, mapped to HTTPRequest field names.
    INTERPRETED_HEADERS = {
        "host": "host",
        "user-agent": "user_agent",
        "accept": "accept",
        "connection": "connection",
        "content-length": "content_length",
    }

    def __init__(self, buffer_size: int = 4096):
        """
        Args:
            buffer_size: Size of the single socket read. Data beyond this
                         many bytes is never seen by the decoder.
        """
        self.buffer_size = buffer_size

    def parse(
        self,
        data: bytes,
        client_address: tuple[str, int] = ("", 0),
    ) -> HTTPRequest:
        """
        Decode one read's worth of request bytes.

        Args:
            data: Bytes from a single socket read (may be empty).
            client_address: Peer (ip, port) for diagnostics.

        Returns:
            The decoded request. Never raises for malformed input.
        """
        data = data[:self.buffer_size]
        text = data.decode("utf-8", errors="replace")
        lines = iter(text.split("\r\n"))

        # ---------------------------------------------------------------------
        # Request line: METHOD SP PATH[?QUERY] SP VERSION (version ignored)
        # ---------------------------------------------------------------------
        method, path, query = self._parse_request_line(next(lines, ""))

        # ---------------------------------------------------------------------
        # Headers up to the first blank line
        # ---------------------------------------------------------------------
        headers: Dict[str, Any] = {}
        for line in lines:
            if not line:
                break
            self._parse_header(line, headers)

        # ---------------------------------------------------------------------
        # Whatever is left is the body
        # ---------------------------------------------------------------------
        body = parse_body("\r\n".join(lines))

        return HTTPRequest(
            method=method,
            path=path,
            query=query,
            body=body,
            raw=data,
            client_address=client_address,
            **headers,
        )

    def _parse_request_line(self, line: str) -> tuple[HTTPMethod, str, Dict[str, str]]:
        """
        Split the request line into method, path and query mapping.

        Only whitespace separates the tokens; the HTTP version is ignored.
        """
        parts = line.split()
        method = HTTPMethod.from_token(parts[0]) if parts else HTTPMethod.GET
        target = parts[1] if len(parts) > 1 else "/"

        path, _, query_string = target.partition("?")
        if not path.startswith("/"):
            path = "/" + path

        return method, path, parse_query_string(query_string)

    def _parse_header(self, line: str, headers: Dict[str, Any]) -> None:
        """Record ``line`` in ``headers`` if it is one of the interpreted headers."""
        name, _, value = line.partition(": ")
        field_name = self.INTERPRETED_HEADERS.get(name.lower())
        if field_name is None:
            return  # Unrecognized headers are dropped

        if field_name == "content_length":
            headers[field_name] = _parse_content_length(value)
        else:
            headers[field_name] = value


# =============================================================================
# BODY AND QUERY HELPERS
# =============================================================================

def parse_query_string(query_string: str) -> Dict[str, str]:
    """
    Decode ``a=1&b=hello%20world`` into ``{"a": "1", "b": "hello world"}``.

    Each pair splits at its first "=", pairs without "=" are skipped, and
    "+" is left alone (it is not a space here).
    """
    return _parse_pairs(query_string) if query_string else {}


def parse_body(body: str) -> Dict[str, str]:
    """
    Decode a request body into a string mapping.

    Args:
        body: Body text (everything after the blank separator line).

    Returns:
        Mapping decoded per the form → JSON → raw policy.

    Example:
        >>> parse_body("a=1&b=2")
        {'a': '1', 'b': '2'}
        >>> parse_body('{"n": 1, "s": "x"}')
        {'n': '1', 's': 'x'}
        >>> parse_body("plain text")
        {'body': 'plain text'}
    """
    if not body:
        return {}

    if "=" in body and "&" in body:
        return _parse_pairs(body)

    try:
        document = json.loads(body)
    except ValueError:
        return {"body": body}

    if not isinstance(document, dict):
        return {}

    return {
        key: value if isinstance(value, str) else _compact_json(value)
        for key, value in document.items()
    }


def _parse_pairs(encoded: str) -> Dict[str, str]:
    pairs: Dict[str, str] = {}
    for item in encoded.split("&"):
        key, sep, value = item.partition("=")
        if not sep:
            continue
        pairs[unquote(key)] = unquote(value)
    return pairs


def _compact_json(value: Any) -> str:
    # Same text a compact JSON serializer produces: 1, true, null, [1,2]
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def _parse_content_length(value: str) -> int:
    try:
        length = int(value)
    except ValueError:
        return 0
    return length if length >= 0 else 0


# =============================================================================
# CONVENIENCE FUNCTION
# =============================================================================

def parse_request(
    data: bytes,
    client_address: tuple[str, int] = ("", 0),
    buffer_size: int = 4096,
) -> HTTPRequest:
    """
    Decode request bytes in one call.

    Use RequestParser directly when decoding many requests with the same
    buffer size.
    """
    return RequestParser(buffer_size=buffer_size).parse(data, client_address)
