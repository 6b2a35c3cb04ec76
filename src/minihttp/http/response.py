"""
=============================================================================
HTTP RESPONSE ENCODER
=============================================================================

Builds HTTPResponse values and serializes them onto the wire.

=============================================================================
WIRE LAYOUT
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     ENCODED RESPONSE                                │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   HTTP/1.1 200 OK\r\n                          ← status line         │
    │   Set-Cookie: session=abc; HttpOnly; ...\r\n   ← one per cookie      │
    │   Content-Type: text/plain\r\n                                       │
    │   Content-Disposition: attachment; ...\r\n     ← file responses only │
    │   Content-Length: 12\r\n                       ← payload byte count  │
    │   \r\n                                                               │
    │   Hello, World                                 ← payload             │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Header order is fixed. Content-Length is computed from the payload as it is
finally written, after any file-payload unescaping.

=============================================================================
FILE RESPONSES
=============================================================================

A file response keeps its body as one string, tagged by ``is_file``:

    "<filename>:<content>"

``content`` is the file's UTF-8 text, or base64 of its bytes when the file
is not valid UTF-8. While stored in the body, CRLF pairs are kept as the
literal characters ``\\r\\n`` and quotes as ``\\"``. The encoder splits at the
first ":" and reverses both escapes before measuring the payload, so a text
file goes out byte for byte.

=============================================================================
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union
import base64
import json
import logging

from .mime_types import DEFAULT_MIME_TYPE, get_content_type, get_mime_type, is_text_type
from .status_codes import HTTPStatus, reason_phrase


logger = logging.getLogger(__name__)

COOKIE_DOMAIN = "example.com"
COOKIE_MAX_AGE = 3600

NOT_FOUND_BODY = {"error": "Page not found"}
METHOD_NOT_ALLOWED_BODY = {"error": "This method is not allowed"}


@dataclass
class HTTPResponse:
    """
    A response produced by a handler and consumed once by ``to_bytes()``.

    =========================================================================
    RESPONSE LIFECYCLE
    =========================================================================

        handler(request)  ──►  HTTPResponse  ──►  to_bytes()  ──►  socket
                                    │
                                    └── never retained after writing

    =========================================================================

    Attributes:
        status:       Integer status code (conventionally 100-599)
        status_text:  Custom reason phrase; empty means the standard one
        content_type: Content-Type header value
        body:         Text payload, or a tagged file payload when is_file
        cookies:      name → value, each rendered as a Set-Cookie header
        is_file:      Serve the body as a file attachment
    """

    status: int = HTTPStatus.OK
    status_text: str = ""
    content_type: str = "text/plain"
    body: str = ""
    cookies: Dict[str, str] = field(default_factory=dict)
    is_file: bool = False

    @property
    def reason(self) -> str:
        """The explicit ``status_text``, else the standard phrase for ``status``."""
        return self.status_text or reason_phrase(self.status)

    @property
    def status_line(self) -> str:
        """``HTTP/1.1 <status> <reason>``"""
        return f"HTTP/1.1 {int(self.status)} {self.reason}"

    @property
    def filename(self) -> Optional[str]:
        """Attachment filename for file responses, None otherwise."""
        if not self.is_file:
            return None
        return split_file_payload(self.body)[0]

    def payload(self) -> bytes:
        """
        The bytes written after the blank line.

        Characters UTF-8 cannot carry (lone surrogates decoded from JSON
        ``\\ud800`` escapes) are written as ``?``.
        """
        if self.is_file:
            return encode_text(split_file_payload(self.body)[1])
        return encode_text(self.body)

    def set_cookie(self, name: str, value: str) -> "HTTPResponse":
        """Add a cookie. Returns self for chaining."""
        self.cookies[name] = value
        return self

    def to_bytes(
        self,
        cookie_domain: str = COOKIE_DOMAIN,
        cookie_max_age: int = COOKIE_MAX_AGE,
    ) -> bytes:
        """
        Serialize the response for ``sock_sendall``.

        Args:
            cookie_domain: Domain attribute of every Set-Cookie header.
            cookie_max_age: Max-Age attribute of every Set-Cookie header.

        Returns:
            Status line, headers, blank line and payload as bytes.
        """
        lines = [self.status_line]

        for name, value in self.cookies.items():
            lines.append(
                f"Set-Cookie: {name}={value}; HttpOnly; Path=/; "
                f"Domain={cookie_domain}; Max-Age={cookie_max_age}"
            )

        lines.append(f"Content-Type: {self.content_type}")

        if self.is_file:
            lines.append(f'Content-Disposition: attachment; filename="{self.filename}"')

        payload = self.payload()
        lines.append(f"Content-Length: {len(payload)}")

        head = "\r\n".join(lines) + "\r\n\r\n"
        return encode_text(head) + payload


class ResponseBuilder:
    """
    Fluent builder for HTTPResponse.

    ==========================================================================
    USAGE
    ==========================================================================

        # Plain text
        ResponseBuilder().text("Hello, World").build()

        # JSON with a cookie
        (ResponseBuilder()
            .status(HTTPStatus.CREATED)
            .json({"id": 7})
            .cookie("session", "abc")
            .build())

        # File download
        ResponseBuilder().file("reports/q3.csv").build()

    ==========================================================================
    """

    def __init__(self):
        self._status: int = HTTPStatus.OK
        self._status_text: str = ""
        self._content_type: str = "text/plain"
        self._body: str = ""
        self._cookies: Dict[str, str] = {}
        self._is_file: bool = False

    # =========================================================================
    # STATUS AND HEADERS
    # =========================================================================

    def status(self, status: int, text: Optional[str] = None) -> "ResponseBuilder":
        """
        Set the status code and, optionally, a custom reason phrase.

        Without ``text`` the standard phrase for ``status`` is used.
        """
        self._status = status
        self._status_text = text or ""
        return self

    def content_type(self, content_type: str) -> "ResponseBuilder":
        """Override the Content-Type header."""
        self._content_type = content_type
        return self

    def cookie(self, name: str, value: str) -> "ResponseBuilder":
        """Add one cookie."""
        self._cookies[name] = value
        return self

    def cookies(self, cookies: Dict[str, str]) -> "ResponseBuilder":
        """Add several cookies at once."""
        self._cookies.update(cookies)
        return self

    # =========================================================================
    # BODY
    # =========================================================================

    def text(self, text: str, content_type: str = "text/plain") -> "ResponseBuilder":
        """Set a text body."""
        self._body = text
        self._content_type = content_type
        self._is_file = False
        return self

    def html(self, html: str) -> "ResponseBuilder":
        """Set an HTML body."""
        return self.text(html, content_type="text/html")

    def json(self, data: Any, pretty: bool = False) -> "ResponseBuilder":
        """
        Set a JSON body.

        Compact separators by default, so ``{"error": "x"}`` goes out as
        ``{"error":"x"}``.
        """
        if pretty:
            body = json.dumps(data, indent=2, ensure_ascii=False)
        else:
            body = json.dumps(data, separators=(",", ":"), ensure_ascii=False)
        return self.text(body, content_type="application/json")

    def file(self, path: Union[str, Path], content_type: Optional[str] = None) -> "ResponseBuilder":
        """
        Serve a file from disk as an attachment.

        Read failures are logged and produce an empty payload; see
        ``load_file``. A base64 payload never gets a text Content-Type,
        so an undecodable ``.txt`` goes out as application/octet-stream.

        Args:
            path: File to read.
            content_type: Override the extension-based Content-Type.
        """
        filename, content, is_base64 = read_file(path)
        self._body = make_file_payload(filename, content)
        if content_type:
            self._content_type = content_type
        elif is_base64:
            mime_type = get_mime_type(filename)
            self._content_type = DEFAULT_MIME_TYPE if is_text_type(mime_type) else mime_type
        else:
            self._content_type = get_content_type(filename)
        self._is_file = True
        return self

    # =========================================================================
    # BUILD
    # =========================================================================

    def build(self) -> HTTPResponse:
        """Construct the HTTPResponse."""
        return HTTPResponse(
            status=self._status,
            status_text=self._status_text,
            content_type=self._content_type,
            body=self._body,
            cookies=dict(self._cookies),
            is_file=self._is_file,
        )

    def to_bytes(self) -> bytes:
        """Build and serialize in one step."""
        return self.build().to_bytes()


# =============================================================================
# FILE PAYLOADS
# =============================================================================

def encode_text(text: str) -> bytes:
    """UTF-8 encode, writing unencodable characters as ``?``."""
    return text.encode("utf-8", errors="replace")


def load_file(path: Union[str, Path]) -> tuple[str, str]:
    """
    Read a file for a file response.

    =========================================================================
    READ STRATEGY
    =========================================================================

        read as UTF-8 text ──ok──────────────► (name, text)
              │
              └─ UnicodeDecodeError ─► read bytes ─► (name, base64 text)

        any OSError ─► logged at ERROR ─► (name, "")

    =========================================================================

    Text is read with ``newline=""`` so CRLF line endings survive.

    Returns:
        (filename, content) where filename is the path's final component.
    """
    filename, content, _ = read_file(path)
    return filename, content


def read_file(path: Union[str, Path]) -> tuple[str, str, bool]:
    """
    Same as ``load_file``, plus whether the content is base64.
    """
    path = Path(path)
    filename = path.name

    try:
        with open(path, "r", encoding="utf-8", newline="") as f:
            return filename, f.read(), False
    except UnicodeDecodeError:
        pass
    except OSError as e:
        logger.error(f"Failed to read file {path}: {e}")
        return filename, "", False

    try:
        return filename, base64.b64encode(path.read_bytes()).decode("ascii"), True
    except OSError as e:
        logger.error(f"Failed to read file {path}: {e}")
        return filename, "", False


def make_file_payload(filename: str, content: str) -> str:
    """Pack a filename and its content into the tagged body string."""
    escaped = content.replace('"', '\\"').replace("\r\n", "\\r\\n")
    return f"{filename}:{escaped}"


def split_file_payload(body: str) -> tuple[str, str]:
    """
    Unpack a tagged file body into (filename, payload text).

    Splits at the first ":", strips quotes around the filename, and turns
    literal ``\\r\\n`` and ``\\"`` sequences back into CRLF and quotes.
    """
    filename, _, content = body.partition(":")
    filename = filename.strip('"') or "file.txt"
    content = content.replace("\\r\\n", "\r\n").replace('\\"', '"')
    return filename, content


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================
#
#     return ok("Hello world")
#     return ok({"id": 1})
#     return not_found()
#     return send_file("exports/report.csv")
#
# =============================================================================

def ok(body: Union[str, dict, list] = "", content_type: Optional[str] = None) -> HTTPResponse:
    """
    Create a 200 OK response.

    dict/list bodies become JSON, strings become text/plain (or
    ``content_type`` when given).
    """
    builder = ResponseBuilder().status(HTTPStatus.OK)
    if isinstance(body, (dict, list)):
        builder.json(body)
    else:
        builder.text(body, content_type or "text/plain")
    return builder.build()


def created(body: Union[str, dict, list] = "") -> HTTPResponse:
    """Create a 201 Created response."""
    builder = ResponseBuilder().status(HTTPStatus.CREATED)
    if isinstance(body, (dict, list)):
        builder.json(body)
    else:
        builder.text(body)
    return builder.build()


def no_content() -> HTTPResponse:
    """Create a 204 No Content response."""
    return ResponseBuilder().status(HTTPStatus.NO_CONTENT).build()


def bad_request(message: str = "Bad Request") -> HTTPResponse:
    """Create a 400 response with an ``{"error": ...}`` body."""
    return ResponseBuilder().status(HTTPStatus.BAD_REQUEST).json({"error": message}).build()


def not_found(message: Optional[str] = None) -> HTTPResponse:
    """
    Create a 404 response.

    With no message this is the engine's route-miss response,
    ``{"error":"Page not found"}``.
    """
    body = {"error": message} if message else NOT_FOUND_BODY
    return ResponseBuilder().status(HTTPStatus.NOT_FOUND).json(body).build()


def method_not_allowed(message: Optional[str] = None) -> HTTPResponse:
    """
    Create a 405 response.

    With no message this is the engine's unsupported-method response,
    ``{"error":"This method is not allowed"}``.
    """
    body = {"error": message} if message else METHOD_NOT_ALLOWED_BODY
    return ResponseBuilder().status(HTTPStatus.METHOD_NOT_ALLOWED).json(body).build()


def internal_error(message: str = "Internal Server Error") -> HTTPResponse:
    """Create a 500 response. Keep ``message`` generic."""
    return (ResponseBuilder()
        .status(HTTPStatus.INTERNAL_SERVER_ERROR)
        .json({"error": message})
        .build())


def send_file(path: Union[str, Path], content_type: Optional[str] = None) -> HTTPResponse:
    """Create a 200 file-attachment response for ``path``."""
    return ResponseBuilder().file(path, content_type).build()
