"""Transport abstraction base classes.

A transport is one named, bidirectional message pipe between two execution
contexts. It knows nothing about events or replies: it posts JSON objects and
hands received JSON objects to its listeners.

Semantics shared by all implementations:
- ``post_message`` is synchronous and never blocks; delivery is asynchronous
- Delivery is in order and at most once per direction
- ``disconnect()`` is idempotent; the *remote* side's disconnect listeners fire,
  the local side's do not
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from enum import Enum
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

MessageListener = Callable[[dict[str, Any]], None]
DisconnectListener = Callable[[], None]


class TransportMode(str, Enum):
    """Available transport modes."""

    MEMORY = "memory"  # In-process pair (tests, embedded hosts)
    STDIO = "stdio"  # Newline-delimited JSON over streams
    WEBSOCKET = "websocket"  # One channel per WebSocket


class TransportState(str, Enum):
    """Connection state machine."""

    CONNECTED = "connected"
    CLOSED = "closed"


class Transport(ABC):
    """Abstract named message pipe."""

    mode: TransportMode

    def __init__(self, name: str):
        self.name = name
        self._state = TransportState.CONNECTED
        self._message_listeners: list[MessageListener] = []
        self._disconnect_listeners: list[DisconnectListener] = []

    @property
    def state(self) -> TransportState:
        """Current connection state."""
        return self._state

    @property
    def is_connected(self) -> bool:
        """Check if the transport can still post messages."""
        return self._state == TransportState.CONNECTED

    def add_message_listener(self, listener: MessageListener) -> None:
        """Register a callback invoked with every received message."""
        self._message_listeners.append(listener)

    def add_disconnect_listener(self, listener: DisconnectListener) -> None:
        """Register a callback invoked once when the remote side goes away."""
        self._disconnect_listeners.append(listener)

    def post_message(self, message: dict[str, Any]) -> None:
        """Send a JSON-serializable message to the remote side.

        Raises:
            ConnectionError: If the transport is closed
            TypeError: If the message is not JSON-serializable
        """
        if not self.is_connected:
            raise ConnectionError(f"Transport {self.name!r} is closed")
        self._post(message)

    def disconnect(self) -> None:
        """Close the transport. Safe to call more than once."""
        if self._state == TransportState.CLOSED:
            return
        self._state = TransportState.CLOSED
        self._close()
        logger.debug(f"Transport {self.name!r} disconnected")

    @abstractmethod
    def _post(self, message: dict[str, Any]) -> None:
        """Implementation-specific send logic."""
        ...

    @abstractmethod
    def _close(self) -> None:
        """Implementation-specific close logic."""
        ...

    def _deliver(self, message: dict[str, Any]) -> None:
        """Hand a received message to the listeners."""
        if not self.is_connected:
            logger.debug(f"Dropping message on closed transport {self.name!r}")
            return
        for listener in list(self._message_listeners):
            try:
                listener(message)
            except Exception:
                logger.exception(f"Error in message listener on {self.name!r}")

    def _remote_closed(self) -> None:
        """Mark the transport closed by the remote side and notify listeners."""
        if self._state == TransportState.CLOSED:
            return
        self._state = TransportState.CLOSED
        self._close()
        logger.debug(f"Transport {self.name!r} closed by remote side")
        for listener in list(self._disconnect_listeners):
            try:
                listener()
            except Exception:
                logger.exception(f"Error in disconnect listener on {self.name!r}")


@runtime_checkable
class Connector(Protocol):
    """Host environment that opens named transports.

    The analogue of the browser runtime: UI contexts call ``connect(name)``,
    the privileged side receives the other end of the pipe.
    """

    def connect(self, name: str) -> Transport:
        """Open a transport under ``name``.

        Raises:
            ConnectionError: If the host refuses the connection
        """
        ...
