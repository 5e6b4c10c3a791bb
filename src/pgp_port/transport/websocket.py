"""WebSocket transport.

One channel per WebSocket. The server exposes ``/ws/{channel}``; the client
connects to the channel it wants to open. Each text frame carries one
envelope as a JSON object.

``post_message`` stays synchronous: outgoing frames are queued and written by
a background task, so a slow socket never blocks the caller.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from abc import abstractmethod
from typing import Any

from starlette.websockets import WebSocket, WebSocketDisconnect, WebSocketState

from .base import Transport, TransportMode

logger = logging.getLogger(__name__)

# Application close code sent when the background refuses a channel
CLOSE_CHANNEL_REFUSED = 4003


def to_ws_url(base_url: str) -> str:
    """Convert an HTTP base URL to its WebSocket form."""
    return base_url.replace("http://", "ws://").replace("https://", "wss://").rstrip("/")


class _QueuedTransport(Transport):
    """Shared outgoing queue and frame parsing for WebSocket transports."""

    mode = TransportMode.WEBSOCKET

    def __init__(self, name: str):
        super().__init__(name)
        self._outgoing: asyncio.Queue[str | None] = asyncio.Queue()
        self._writer_task: asyncio.Task[None] | None = None

    def _post(self, message: dict[str, Any]) -> None:
        self._outgoing.put_nowait(json.dumps(message))

    def _close(self) -> None:
        # Writer drains queued frames, then closes the socket
        self._outgoing.put_nowait(None)

    def _start_writer(self) -> None:
        if self._writer_task is None:
            self._writer_task = asyncio.create_task(self._write_loop())

    async def _stop_writer(self) -> None:
        if self._writer_task is not None and not self._writer_task.done():
            self._writer_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._writer_task

    async def _write_loop(self) -> None:
        try:
            while True:
                data = await self._outgoing.get()
                if data is None:
                    await self._close_socket()
                    return
                await self._send_text(data)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"WebSocket send failed on {self.name!r}: {e}")
            self._remote_closed()

    def _handle_frame(self, data: str | bytes) -> None:
        try:
            message = json.loads(data)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"Invalid WebSocket message on {self.name!r}: {e}")
            return
        if not isinstance(message, dict):
            logger.warning(f"Ignoring non-object WebSocket message on {self.name!r}")
            return
        self._deliver(message)

    @abstractmethod
    async def _send_text(self, data: str) -> None:
        """Write one text frame to the socket."""
        ...

    @abstractmethod
    async def _close_socket(self) -> None:
        """Close the underlying socket."""
        ...


class WebSocketServerTransport(_QueuedTransport):
    """Server-side transport for one accepted WebSocket.

    Usage (inside a starlette WebSocket route):
        await websocket.accept()
        transport = WebSocketServerTransport(websocket, channel)
        background.add_port(transport)
        await transport.run()
    """

    def __init__(self, websocket: WebSocket, name: str):
        super().__init__(name)
        self._websocket = websocket

    async def run(self) -> None:
        """Receive frames until the client disconnects."""
        self._start_writer()
        try:
            while self.is_connected:
                data = await self._websocket.receive_text()
                self._handle_frame(data)
        except WebSocketDisconnect:
            logger.info(f"WebSocket channel {self.name!r} disconnected")
        except Exception as e:
            logger.exception(f"WebSocket receive error on {self.name!r}: {e}")
        finally:
            self._remote_closed()
            # Let the writer flush and close
            if self._writer_task is not None:
                with contextlib.suppress(asyncio.CancelledError, Exception):
                    await asyncio.wait_for(self._writer_task, timeout=5.0)

    async def _send_text(self, data: str) -> None:
        if self._websocket.client_state == WebSocketState.CONNECTED:
            await self._websocket.send_text(data)

    async def _close_socket(self) -> None:
        if self._websocket.client_state == WebSocketState.CONNECTED:
            with contextlib.suppress(RuntimeError):
                await self._websocket.close()


class WebSocketClientTransport(_QueuedTransport):
    """Client-side transport that opens a channel on a remote background.

    Usage:
        transport = await WebSocketClientTransport.open("http://localhost:4097", "app-1")
        endpoint = Endpoint(transport)
    """

    def __init__(self, websocket: Any, name: str):
        super().__init__(name)
        self._websocket = websocket  # websockets ClientConnection
        self._reader_task: asyncio.Task[None] | None = None

    @classmethod
    async def open(
        cls, base_url: str, name: str, *, open_timeout: float = 10.0
    ) -> WebSocketClientTransport:
        """Connect to ``{base_url}/ws/{name}``.

        Raises:
            ConnectionError: If the server cannot be reached or refuses the channel
        """
        import websockets

        url = f"{to_ws_url(base_url)}/ws/{name}"
        try:
            websocket = await websockets.connect(url, open_timeout=open_timeout)
        except Exception as e:
            raise ConnectionError(f"Failed to open channel {name!r} at {url}: {e}") from e

        transport = cls(websocket, name)
        transport._start_writer()
        transport._reader_task = asyncio.create_task(transport._read_loop())
        logger.info(f"WebSocket channel {name!r} connected to {url}")
        return transport

    async def wait_closed(self) -> None:
        """Wait until the reader and writer tasks finished."""
        tasks = [t for t in (self._reader_task, self._writer_task) if t is not None]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _read_loop(self) -> None:
        try:
            async for data in self._websocket:
                self._handle_frame(data)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.info(f"WebSocket channel {self.name!r} closed: {e}")
        finally:
            self._remote_closed()

    async def _send_text(self, data: str) -> None:
        await self._websocket.send(data)

    async def _close_socket(self) -> None:
        await self._websocket.close()
