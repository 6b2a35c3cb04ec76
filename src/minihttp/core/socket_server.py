"""
=============================================================================
CONNECTION SUPERVISOR
=============================================================================

Owns the listening socket and runs every accepted connection through one
read → parse → dispatch → encode → write → close cycle.

=============================================================================
SCHEDULING MODEL
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        EVENT LOOP                                   │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   accept loop (sequential)                                           │
    │       │                                                              │
    │       ├── await sock_accept() ──► conn 1 ──► create_task ─┐          │
    │       ├── await sock_accept() ──► conn 2 ──► create_task ─┼─┐        │
    │       └── await sock_accept() ...                         │ │        │
    │                                                            ▼ ▼        │
    │                                      ┌──────────────────────────────┐ │
    │                                      │ connection task (one each)   │ │
    │                                      │                              │ │
    │                                      │  await sock_recv    ◄─ suspends │
    │                                      │  parse                       │ │
    │                                      │  endpoints(Router())         │ │
    │                                      │  await dispatch     ◄─ suspends │
    │                                      │  to_bytes                    │ │
    │                                      │  await sock_sendall ◄─ suspends │
    │                                      │  close                       │ │
    │                                      └──────────────────────────────┘ │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The accept loop never waits on a connection task. Each task builds its own
Router from the registration callback, so connection tasks share nothing
except the application state object the caller chose to pass in.

=============================================================================
FAILURE HANDLING
=============================================================================

    bind / listen / accept fails  → ServerError, the server stops
    read or write fails           → WARNING, only that connection ends
    handler (or callback) raises  → traceback logged, 500 sent
    response cannot be encoded    → traceback logged, 500 sent
    request is malformed          → decoded with defaults, normal response

There are no retries and no timeouts. A stalled client holds only its own
task.

=============================================================================
SOCKET OPTIONS
=============================================================================

SO_REUSEADDR lets a restarted server bind immediately instead of waiting
out TIME_WAIT. TCP_NODELAY disables Nagle's algorithm so a small response
is sent at once.

=============================================================================
"""

from typing import Any, Callable, Optional, Set
import asyncio
import logging
import socket
import time

from ..access_log import log_request
from ..config import ServerConfig
from ..http.dispatcher import dispatch
from ..http.request import HTTPRequest, RequestParser
from ..http.response import HTTPResponse, internal_error
from ..http.router import Router
from .connection import Connection, ConnectionState


logger = logging.getLogger(__name__)

# Registration callback: callback(router) or callback(router, state)
Endpoints = Callable[..., None]


class ServerError(Exception):
    """The listening socket could not be bound or stopped accepting."""


class ConnectionSupervisor:
    """
    Accepts connections and drives each one on its own asyncio task.

    ==========================================================================
    USAGE
    ==========================================================================

        def endpoints(router):
            router.get("/", lambda request: ok("Hello world"))

        supervisor = ConnectionSupervisor(ServerConfig(port=3000), endpoints)
        asyncio.run(supervisor.serve())

    ``shutdown()`` may be called from any thread. The accept loop stops,
    the listening socket is closed, and connections already accepted are
    allowed to finish before ``serve()`` returns.

    ==========================================================================
    """

    def __init__(
        self,
        config: ServerConfig,
        endpoints: Endpoints,
        state: Optional[Any] = None,
    ):
        """
        Args:
            config: Network, cookie and logging settings.
            endpoints: Registration callback, run once per connection.
            state: Shared application state handed to the callback. The
                   supervisor never locks or copies it.
        """
        self.config = config
        self.endpoints = endpoints
        self.state = state

        self._parser = RequestParser(buffer_size=config.buffer_size)
        self._socket: Optional[socket.socket] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._accept_task: Optional[asyncio.Future] = None
        self._tasks: Set[asyncio.Task] = set()
        self._running = False
        self._bound_port: Optional[int] = None

    @property
    def is_running(self) -> bool:
        """True while the accept loop is active."""
        return self._running

    @property
    def bound_port(self) -> Optional[int]:
        """The port actually bound (useful with port 0), None before bind."""
        return self._bound_port

    @property
    def active_connections(self) -> int:
        """Number of connection tasks still in flight."""
        return len(self._tasks)

    # =========================================================================
    # LISTENING SOCKET
    # =========================================================================

    def _create_socket(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        sock.setblocking(False)
        return sock

    def _bind(self) -> None:
        host, port = self.config.host, self.config.port
        self._socket = self._create_socket()
        try:
            self._socket.bind((host, port))
            self._socket.listen(self.config.backlog)
        except OSError as e:
            logger.error(f"Failed to bind to {host}:{port}: {e}")
            self._close_listener()
            raise ServerError(f"Failed to bind to {host}:{port}: {e}") from e

        self._bound_port = self._socket.getsockname()[1]

    def _close_listener(self) -> None:
        if self._socket is not None:
            try:
                self._socket.close()
            except OSError:
                pass  # Already closed
            self._socket = None

    # =========================================================================
    # ACCEPT LOOP
    # =========================================================================

    async def serve(self) -> None:
        """
        Bind, print the startup line and accept connections until shutdown.

        Raises:
            ServerError: Bind, listen or accept failed.
        """
        self._loop = asyncio.get_running_loop()
        self._bind()
        self._running = True

        print(f"Server is running at: http://localhost:{self._bound_port}", flush=True)
        logger.info(f"Listening on {self.config.host}:{self._bound_port}")

        try:
            await self._accept_loop()
        finally:
            self._running = False
            self._close_listener()
            if self._tasks:
                logger.info(f"Waiting for {len(self._tasks)} connection(s) to finish")
                await asyncio.gather(*self._tasks, return_exceptions=True)
            logger.info("Server stopped")

    async def _accept_loop(self) -> None:
        """
        Accept connections one at a time and hand each to a new task.

            while running:
                sock, addr = await sock_accept()
                create_task(handle(Connection(sock, addr)))
        """
        loop = asyncio.get_running_loop()

        while self._running:
            self._accept_task = asyncio.ensure_future(loop.sock_accept(self._socket))
            try:
                client_socket, client_address = await self._accept_task
            except asyncio.CancelledError:
                if self._running:
                    raise
                break  # shutdown() cancelled the pending accept
            except OSError as e:
                if not self._running:
                    break
                logger.error(f"Accept error: {e}")
                raise ServerError(f"Accept failed: {e}") from e
            finally:
                self._accept_task = None

            logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")

            conn = Connection(
                socket=client_socket,
                address=client_address,
                buffer_size=self.config.buffer_size,
            )
            task = asyncio.create_task(self.handle_connection(conn))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    # =========================================================================
    # CONNECTION TASK
    # =========================================================================

    async def handle_connection(self, conn: Connection) -> None:
        """
        Run one connection through its whole lifecycle.

        The socket is closed on every exit path. Read and write failures end
        this task only.
        """
        async with conn:
            try:
                data = await conn.read_request()
            except OSError as e:
                logger.warning(f"[{conn.id}] Read failed: {e}")
                return

            started = time.perf_counter()
            request = self._parser.parse(data, conn.address)
            conn.mark(ConnectionState.PARSED)

            conn.mark(ConnectionState.DISPATCHING)
            response = await self._respond(conn, request)

            try:
                payload = self._encode(response)
            except Exception:
                logger.exception(
                    f"[{conn.id}] Encoding failed for {request.method.value} {request.path}"
                )
                response = internal_error()
                payload = self._encode(response)

            try:
                await conn.send_response(payload)
            except OSError as e:
                logger.warning(f"[{conn.id}] Write failed: {e}")
                return

            duration_ms = (time.perf_counter() - started) * 1000
            log_request(conn.id, request, response, duration_ms, self.config.log_format)

    async def _respond(self, conn: Connection, request: HTTPRequest) -> HTTPResponse:
        try:
            router = self.build_router()
            return await dispatch(request, router)
        except Exception:
            logger.exception(
                f"[{conn.id}] Handler failed for {request.method.value} {request.path}"
            )
            return internal_error()

    def _encode(self, response: HTTPResponse) -> bytes:
        return response.to_bytes(
            cookie_domain=self.config.cookie_domain,
            cookie_max_age=self.config.cookie_max_age,
        )

    def build_router(self) -> Router:
        """Build a fresh route table by running the registration callback."""
        router = Router()
        if self.state is None:
            self.endpoints(router)
        else:
            self.endpoints(router, self.state)
        return router

    # =========================================================================
    # SHUTDOWN
    # =========================================================================

    def shutdown(self) -> None:
        """
        Stop accepting connections. Safe to call from any thread, and more
        than once.
        """
        loop = self._loop
        if loop is None or loop.is_closed():
            self._running = False
            return

        logger.info("Shutting down server...")
        loop.call_soon_threadsafe(self._stop)

    def _stop(self) -> None:
        self._running = False
        if self._accept_task is not None and not self._accept_task.done():
            self._accept_task.cancel()
