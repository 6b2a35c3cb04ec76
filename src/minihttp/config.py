"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Everything the engine needs to know before it binds a socket.

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── python -m minihttp --port 8000                            │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── HTTP_PORT=8000 python -m minihttp                         │
    │                                                                      │
    │   3. Default values (in this dataclass)                            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Configuration is validated once, when the App is created, so a bad port or
log format fails before anything touches the network.

=============================================================================
"""

import os
from dataclasses import dataclass


LOG_FORMATS = ("text", "json")


@dataclass
class ServerConfig:
    """
    Configuration for the HTTP engine.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    NETWORK
    - host, port, backlog, buffer_size

    COOKIES
    - cookie_domain, cookie_max_age (attributes of every Set-Cookie line)

    LOGGING
    - log_level, log_format

    =========================================================================
    """

    host: str = "0.0.0.0"
    """Address to bind. The engine listens on all interfaces by default."""

    port: int = 3000
    """TCP port. Use 0 to let the OS pick a free port (see bound_port)."""

    backlog: int = 128
    """Maximum number of queued, not yet accepted, connections."""

    buffer_size: int = 4096
    """
    Size of the single read per connection.
    Requests larger than this are decoded from their first buffer_size bytes.
    """

    cookie_domain: str = "example.com"
    """Domain attribute written on every Set-Cookie header."""

    cookie_max_age: int = 3600
    """Max-Age attribute written on every Set-Cookie header, in seconds."""

    log_level: str = "INFO"
    """Logging level (DEBUG, INFO, WARNING, ERROR)."""

    log_format: str = "text"
    """
    Access log format: 'text' or 'json'.
    JSON is better for log aggregators.
    """

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        HTTP_HOST           Bind address (default: 0.0.0.0)
        HTTP_PORT           Port (default: 3000)
        HTTP_LOG_LEVEL      Logging level (default: INFO)
        HTTP_LOG_FORMAT     Access log format (default: text)
        HTTP_COOKIE_DOMAIN  Set-Cookie Domain attribute (default: example.com)

        =====================================================================

        Raises:
            ValueError: HTTP_PORT is not an integer.
        """
        return cls(
            host=os.getenv("HTTP_HOST", "0.0.0.0"),
            port=int(os.getenv("HTTP_PORT", "3000")),
            log_level=os.getenv("HTTP_LOG_LEVEL", "INFO"),
            log_format=os.getenv("HTTP_LOG_FORMAT", "text"),
            cookie_domain=os.getenv("HTTP_COOKIE_DOMAIN", "example.com"),
        )

    def validate(self) -> None:
        """
        Validate configuration values.

        Raises:
            ValueError: On the first invalid value found.
        """
        # Port 0 asks the OS for an ephemeral port
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 1-65535 (or 0 for any).")

        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")

        if self.backlog < 1:
            raise ValueError("backlog must be >= 1")

        if self.log_format not in LOG_FORMATS:
            raise ValueError(f"log_format must be one of {', '.join(LOG_FORMATS)}")

        if self.cookie_max_age < 0:
            raise ValueError("cookie_max_age must be >= 0")
