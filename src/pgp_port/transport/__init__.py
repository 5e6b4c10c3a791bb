"""Transport abstraction layer.

A transport is the named message pipe underneath an Endpoint:
- memory - In-process pairs opened through a MemoryHost
- stdio - Newline-delimited JSON over a pair of byte streams
- WebSocket - One channel per socket, server (starlette) and client (websockets)

Endpoints only depend on the Transport interface, so the same UI and
background code runs over any of them.
"""

from .base import (
    Connector,
    Transport,
    TransportMode,
    TransportState,
)
from .memory import MemoryHost, MemoryTransport
from .stdio import StdioTransport

# Note: websocket is imported separately so the core does not require starlette
# Use: from pgp_port.transport.websocket import WebSocketClientTransport

__all__ = [
    # Base abstractions
    "Connector",
    "Transport",
    "TransportMode",
    "TransportState",
    # memory implementation
    "MemoryHost",
    "MemoryTransport",
    # stdio implementation
    "StdioTransport",
]
