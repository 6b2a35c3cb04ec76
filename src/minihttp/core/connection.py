"""
=============================================================================
CONNECTION
=============================================================================

Wraps one accepted client socket for exactly one request/response cycle.

=============================================================================
CONNECTION LIFECYCLE
=============================================================================

    ┌──────────┐   read_request()   ┌─────────┐   parsed    ┌────────┐
    │ ACCEPTED │ ─────────────────► │ READING │ ──────────► │ PARSED │
    └──────────┘                    └─────────┘             └────────┘
                                         │                       │
                                         │ OSError               ▼
                                         │               ┌─────────────┐
                                         │               │ DISPATCHING │
                                         │               └─────────────┘
                                         │                       │
                                         │    send_response()    ▼
                                         │               ┌─────────────┐
                                         │      OSError  │   WRITING   │
                                         │   ┌────────── └─────────────┘
                                         ▼   ▼                   │
                                    ┌──────────┐    close()      │
                                    │  CLOSED  │ ◄───────────────┘
                                    └──────────┘

Every path ends in CLOSED exactly once. ``close()`` is idempotent and the
class is an async context manager, so the connection task cannot leak the
socket whichever way it exits.

There is no keep-alive: after one response the socket is shut down.

=============================================================================
I/O MODEL
=============================================================================

The socket is non-blocking and driven by the running event loop:

    read   →  await loop.sock_recv(sock, buffer_size)   (one call, no loop)
    write  →  await loop.sock_sendall(sock, data)

Both suspend only the owning task. Errors (``ConnectionResetError``,
``BrokenPipeError`` and other ``OSError``) propagate to the caller.

=============================================================================
"""

from dataclasses import dataclass, field
from enum import Enum
import asyncio
import logging
import socket
import time
import uuid


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Where a connection is in its single request/response cycle."""

    ACCEPTED = "accepted"        # Returned by accept(), nothing read yet
    READING = "reading"          # Waiting on the single recv
    PARSED = "parsed"            # Request decoded
    DISPATCHING = "dispatching"  # Handler running (possibly suspended)
    WRITING = "writing"          # Sending the encoded response
    CLOSED = "closed"            # Socket released


@dataclass
class Connection:
    """
    One accepted client connection.

    Attributes:
        socket: The client socket (switched to non-blocking).
        address: Client's (ip, port) tuple.
        buffer_size: Size of the single read.
        id: Short identifier used in log lines.
        state: Current lifecycle state.
        created_at: Accept timestamp.
    """

    socket: socket.socket
    address: tuple[str, int]
    buffer_size: int = 4096

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.ACCEPTED
    created_at: float = field(default_factory=time.time)

    def __post_init__(self):
        self.socket.setblocking(False)

    @property
    def client_ip(self) -> str:
        """Get the client IP address."""
        return self.address[0]

    @property
    def age(self) -> float:
        """Seconds since the connection was accepted."""
        return time.time() - self.created_at

    # =========================================================================
    # I/O
    # =========================================================================

    async def read_request(self) -> bytes:
        """
        Read the request with exactly one receive call.

        Whatever the client managed to send in that read (up to
        ``buffer_size`` bytes) is the whole request; an early close by the
        client yields ``b""``.

        Raises:
            OSError: The read failed.
        """
        self.state = ConnectionState.READING
        loop = asyncio.get_running_loop()
        data = await loop.sock_recv(self.socket, self.buffer_size)
        logger.debug(f"[{self.id}] Read {len(data)} bytes from {self.client_ip}")
        return data

    async def send_response(self, data: bytes) -> None:
        """
        Write the full encoded response.

        Raises:
            OSError: The client went away or the write failed.
        """
        self.state = ConnectionState.WRITING
        loop = asyncio.get_running_loop()
        await loop.sock_sendall(self.socket, data)

    def mark(self, state: ConnectionState) -> None:
        """Record a state reached outside this class (PARSED, DISPATCHING)."""
        self.state = state

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self) -> None:
        """
        Shut down and release the socket. Safe to call more than once.

            shutdown(SHUT_WR)  → FIN to the client, response is complete
            close()            → file descriptor released
        """
        if self.state is ConnectionState.CLOSED:
            return

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # Peer already gone

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.age * 1000:.1f}ms")

    async def __aenter__(self) -> "Connection":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False
