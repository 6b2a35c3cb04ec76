"""
pytest configuration and fixtures.
"""

import asyncio
import socket
import threading
import time
from pathlib import Path
from typing import Generator, Optional

import pytest

from minihttp import App, ServerConfig
from minihttp.http import HTTPRequest, HTTPResponse, ResponseBuilder, Router, ok, send_file


TEXT_FILE_CONTENT = 'line one\r\nsays "hi"\r\nline: three\n'
BINARY_FILE_CONTENT = bytes([0xFF, 0xFE, 0x00, 0x80, 0x41])


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request."""
    return (
        b"GET /api/users?page=1&limit=10 HTTP/1.1\r\n"
        b"Host: localhost:3000\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: application/json\r\n"
        b"Connection: close\r\n"
        b"X-Trace: abc\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample HTTP POST request with JSON body."""
    body = b'{"name": "Ada", "age": 36, "admin": true}'
    return (
        b"POST /api/users HTTP/1.1\r\n"
        b"Host: localhost:3000\r\n"
        b"Content-Type: application/json\r\n"
        + f"Content-Length: {len(body)}\r\n".encode()
        + b"\r\n"
    ) + body


@pytest.fixture
def config() -> ServerConfig:
    """Default test server configuration."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,  # Let OS pick a free port
        log_level="WARNING",
    )


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture
def text_file(tmp_path: Path) -> Path:
    """A UTF-8 file with CRLF line endings and quotes."""
    path = tmp_path / "notes.txt"
    path.write_bytes(TEXT_FILE_CONTENT.encode("utf-8"))
    return path


@pytest.fixture
def binary_file(tmp_path: Path) -> Path:
    """A file that is not valid UTF-8."""
    path = tmp_path / "blob.bin"
    path.write_bytes(BINARY_FILE_CONTENT)
    return path


def send_raw(port: int, data: bytes, timeout: float = 5.0) -> bytes:
    """Send raw bytes and read until the server closes the connection."""
    with socket.create_connection(("127.0.0.1", port), timeout=timeout) as s:
        s.sendall(data)
        chunks = []
        while True:
            chunk = s.recv(4096)
            if not chunk:
                break
            chunks.append(chunk)
    return b"".join(chunks)


class TestServer:
    """Test server helper that runs an App on its own event loop in a thread."""

    __test__ = False  # Not a test class

    def __init__(self, app: App):
        self.app = app
        self.port: Optional[int] = None
        self._thread: Optional[threading.Thread] = None

    def start(self):
        """Start server in background thread."""
        self._thread = threading.Thread(
            target=asyncio.run,
            args=(self.app.serve(),),
            daemon=True,
        )
        self._thread.start()

        # Wait for the socket to be bound
        for _ in range(50):  # 5 seconds max
            if self.app.bound_port:
                self.port = self.app.bound_port
                return
            time.sleep(0.1)

        raise RuntimeError("Server failed to start")

    def request(self, data: bytes) -> bytes:
        """Send raw bytes to the server and return the raw response."""
        return send_raw(self.port, data)

    def stop(self):
        """Stop the server."""
        self.app.shutdown()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)


def register_test_routes(router: Router, files: dict) -> None:
    """Routes used by the live server tests."""

    @router.get("/")
    def index(request: HTTPRequest) -> HTTPResponse:
        return ok("Hello world")

    @router.get("/hello")
    def hello(request: HTTPRequest) -> HTTPResponse:
        return ok("Hello, World")

    @router.get("/route/:id")
    def show_route(request: HTTPRequest) -> HTTPResponse:
        return ok(f"Hello, {request.get_param('id')}")

    @router.post("/echo")
    def echo(request: HTTPRequest) -> HTTPResponse:
        return ok(request.body)

    @router.get("/slow")
    async def slow(request: HTTPRequest) -> HTTPResponse:
        await asyncio.sleep(0.3)
        return ok("slow done")

    @router.get("/fast")
    async def fast(request: HTTPRequest) -> HTTPResponse:
        return ok("fast done")

    @router.get("/cookie")
    def cookie(request: HTTPRequest) -> HTTPResponse:
        return ResponseBuilder().text("cookie set").cookie("session", "abc").build()

    @router.get("/boom")
    def boom(request: HTTPRequest) -> HTTPResponse:
        raise RuntimeError("handler exploded")

    router.get("/download/text", lambda request: send_file(files["text"]))
    router.get("/download/binary", lambda request: send_file(files["binary"]))


@pytest.fixture
def test_server(
    config: ServerConfig,
    text_file: Path,
    binary_file: Path,
) -> Generator[TestServer, None, None]:
    """Create a live test server on an OS-assigned port."""
    app = App(config, state={"text": text_file, "binary": binary_file})
    app.endpoints(register_test_routes)

    test_srv = TestServer(app)
    test_srv.start()

    yield test_srv

    test_srv.stop()
