"""
=============================================================================
COMMAND-LINE ENTRY POINT
=============================================================================

Runs a demo application:

    python -m minihttp
    python -m minihttp --port 8000 --log-level DEBUG
    python -m minihttp --file ./report.pdf      # served at GET /download

Demo routes:

    GET  /            → Hello world
    GET  /route/:id   → Hello, <id>
    POST /echo        → the decoded body as JSON
    GET  /slow        → done (async handler, sleeps briefly)
    GET  /cookie      → sets a "session" cookie

=============================================================================
"""

from typing import Optional
import argparse
import asyncio
import sys

from . import __version__
from .app import App
from .config import LOG_FORMATS, ServerConfig
from .core.socket_server import Endpoints, ServerError
from .http.request import HTTPRequest
from .http.response import HTTPResponse, ResponseBuilder, ok, send_file
from .http.router import Router


def index(request: HTTPRequest) -> HTTPResponse:
    return ok("Hello world")


def show_route(request: HTTPRequest) -> HTTPResponse:
    return ok(f"Hello, {request.get_param('id', '')}")


def echo(request: HTTPRequest) -> HTTPResponse:
    return ok(request.body)


async def slow(request: HTTPRequest) -> HTTPResponse:
    await asyncio.sleep(0.5)
    return ok("done")


def cookie(request: HTTPRequest) -> HTTPResponse:
    return ResponseBuilder().text("cookie set").cookie("session", "abc").build()


def build_endpoints(download: Optional[str] = None) -> Endpoints:
    """
    Create the demo registration callback.

    Args:
        download: Optional file path exposed at GET /download.
    """
    def endpoints(router: Router) -> None:
        router.get("/", index)
        router.get("/route/:id", show_route)
        router.post("/echo", echo)
        router.get("/slow", slow)
        router.get("/cookie", cookie)
        if download:
            router.get("/download", lambda request: send_file(download))

    return endpoints


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="minihttp",
        description="Minimal embeddable HTTP/1.1 server (demo application)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m minihttp                        # Run with defaults (port 3000)
  python -m minihttp --port 8000            # Custom port
  python -m minihttp --log-format json      # JSON access log
  python -m minihttp --file ./notes.txt     # Serve a file at /download
        """
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--host", "-H",
        default=None,
        help="Host to bind to (default: HTTP_HOST or 0.0.0.0)"
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        default=None,
        help="Port to listen on (default: HTTP_PORT or 3000)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: HTTP_LOG_LEVEL or INFO)"
    )

    parser.add_argument(
        "--log-format",
        choices=list(LOG_FORMATS),
        default=None,
        help="Access log format (default: HTTP_LOG_FORMAT or text)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # DEMO ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--file", "-f",
        default=None,
        help="File to serve as an attachment at GET /download"
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"minihttp {__version__}"
    )

    return parser


def build_config(args: argparse.Namespace) -> ServerConfig:
    """Environment first, then command-line overrides."""
    config = ServerConfig.from_env()
    if args.host is not None:
        config.host = args.host
    if args.port is not None:
        config.port = args.port
    if args.log_level is not None:
        config.log_level = args.log_level
    if args.log_format is not None:
        config.log_format = args.log_format
    return config


def main(argv: Optional[list[str]] = None) -> int:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    try:
        app = App(build_config(args))
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    app.endpoints(build_endpoints(args.file))

    try:
        app.run()
    except ServerError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
