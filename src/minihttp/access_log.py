"""
=============================================================================
ACCESS LOG
=============================================================================

One line per completed request, written to the ``minihttp.access`` logger
after the response has been sent.

    text:  127.0.0.1 - - [19/Oct/2026:10:15:02 +0000] "GET /" 200 11 0.42ms
    json:  {"request_id": "9f1c2a7e", "method": "GET", "path": "/", ...}

Route the access log separately from the engine's own diagnostics with the
usual logging configuration:

    logging.getLogger("minihttp.access").addHandler(file_handler)

=============================================================================
"""

from dataclasses import dataclass
import json
import logging
import time

from .http.request import HTTPRequest
from .http.response import HTTPResponse


logger = logging.getLogger("minihttp.access")


@dataclass
class RequestLog:
    """
    Structured access log entry.

    Fields:
        request_id:     Connection identifier, matches the engine's debug lines
        method:         Method token (UNSUPPORTED for unknown methods)
        path:           Request path without query string
        client_ip:      Peer address
        user_agent:     User-Agent header or "-"
        status_code:    Response status
        content_length: Payload size in bytes
        duration_ms:    Parse to write completion
        timestamp:      Apache-style local time
    """

    request_id: str
    method: str
    path: str
    client_ip: str
    user_agent: str
    status_code: int
    content_length: int
    duration_ms: float
    timestamp: str

    def to_dict(self) -> dict:
        """Convert to a dictionary for JSON output."""
        return {
            "request_id": self.request_id,
            "method": self.method,
            "path": self.path,
            "client_ip": self.client_ip,
            "user_agent": self.user_agent,
            "status_code": self.status_code,
            "content_length": self.content_length,
            "duration_ms": round(self.duration_ms, 2),
            "timestamp": self.timestamp,
        }

    def to_text(self) -> str:
        """Format as an Apache common-log style line with the duration appended."""
        return (
            f'{self.client_ip} - - [{self.timestamp}] '
            f'"{self.method} {self.path}" {self.status_code} '
            f'{self.content_length} {self.duration_ms:.2f}ms'
        )


def build_entry(
    request_id: str,
    request: HTTPRequest,
    response: HTTPResponse,
    duration_ms: float,
) -> RequestLog:
    """Collect the access log fields for one request/response pair."""
    return RequestLog(
        request_id=request_id,
        method=request.method.value,
        path=request.path,
        client_ip=request.client_address[0] or "-",
        user_agent=request.user_agent or "-",
        status_code=int(response.status),
        content_length=len(response.payload()),
        duration_ms=duration_ms,
        timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
    )


def log_request(
    request_id: str,
    request: HTTPRequest,
    response: HTTPResponse,
    duration_ms: float,
    log_format: str = "text",
) -> RequestLog:
    """
    Emit one access log line at INFO level.

    Args:
        request_id: Identifier of the connection that served the request.
        request: The decoded request.
        response: The response that was written.
        duration_ms: Time from parse to write completion.
        log_format: "text" or "json".

    Returns:
        The entry that was logged.
    """
    entry = build_entry(request_id, request, response, duration_ms)
    if log_format == "json":
        logger.info(json.dumps(entry.to_dict()))
    else:
        logger.info(entry.to_text())
    return entry
