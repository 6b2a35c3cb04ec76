"""
=============================================================================
CORE: SOCKETS AND CONNECTION TASKS
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   ConnectionSupervisor  ── owns the listening socket                 │
    │           │                                                          │
    │           └── Connection (one per accepted socket, one task each)    │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Concurrency comes from asyncio: one task per connection on a single event
loop, with the socket reads and writes as the only suspension points
besides async handlers.

=============================================================================
"""

from .socket_server import ConnectionSupervisor, ServerError
from .connection import Connection, ConnectionState

__all__ = [
    "ConnectionSupervisor",  # Accept loop and per-connection pipeline
    "ServerError",           # Bind/accept failure
    "Connection",            # One accepted socket
    "ConnectionState",       # Connection lifecycle states
]
