"""In-process transport.

``MemoryHost`` plays the part of the browser runtime inside one event loop:
UI-side code calls ``host.connect(name)`` and gets one half of a linked pair,
the background's connect listener receives the other half.

Messages are cloned through JSON on post, so anything that could not cross a
real structured-message boundary fails here too, and are delivered with
``loop.call_soon`` to keep delivery asynchronous and in order.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from typing import Any

from .base import Transport, TransportMode

logger = logging.getLogger(__name__)

ConnectListener = Callable[[Transport], None]


class MemoryTransport(Transport):
    """One half of an in-process transport pair."""

    mode = TransportMode.MEMORY

    def __init__(self, name: str, loop: asyncio.AbstractEventLoop | None = None):
        super().__init__(name)
        self._loop = loop
        self._peer: MemoryTransport | None = None

    @classmethod
    def pair(
        cls, name: str, loop: asyncio.AbstractEventLoop | None = None
    ) -> tuple[MemoryTransport, MemoryTransport]:
        """Create two linked transports sharing ``name``."""
        local = cls(name, loop)
        remote = cls(name, loop)
        local._peer = remote
        remote._peer = local
        return local, remote

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def _post(self, message: dict[str, Any]) -> None:
        clone = json.loads(json.dumps(message))
        peer = self._peer
        if peer is None:
            raise ConnectionError(f"Transport {self.name!r} has no peer")
        self._get_loop().call_soon(peer._deliver, clone)

    def _close(self) -> None:
        peer = self._peer
        if peer is not None and peer.is_connected:
            # Scheduled after any messages already in flight
            self._get_loop().call_soon(peer._remote_closed)


class MemoryHost:
    """In-process host environment that opens named transport pairs.

    Usage:
        host = MemoryHost()
        background.attach(host)
        endpoint = Endpoint.connect("app-1", connector=host)
    """

    def __init__(self) -> None:
        self._connect_listeners: list[ConnectListener] = []

    def add_connect_listener(self, listener: ConnectListener) -> None:
        """Register the privileged side's callback for new channels."""
        self._connect_listeners.append(listener)

    def remove_connect_listener(self, listener: ConnectListener) -> None:
        if listener in self._connect_listeners:
            self._connect_listeners.remove(listener)

    def connect(self, name: str) -> MemoryTransport:
        """Open a channel under ``name`` and return the caller's half.

        Raises:
            ConnectionError: If nobody listens or a listener refuses the channel
        """
        if not self._connect_listeners:
            raise ConnectionError(f"No listener accepts channel {name!r}")

        local, remote = MemoryTransport.pair(name)
        for listener in list(self._connect_listeners):
            try:
                listener(remote)
            except Exception as e:
                # Unlink first so neither half notifies the other
                local._peer = remote._peer = None
                local.disconnect()
                remote.disconnect()
                logger.warning(f"Channel {name!r} refused: {e}")
                raise ConnectionError(f"Channel {name!r} refused: {e}") from e

        logger.debug(f"Opened channel {name!r}")
        return local
