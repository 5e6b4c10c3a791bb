"""WebSocket endpoint for port channels.

URL: /ws/{channel}

Protocol:
1. Client connects with the channel name (``<surface>-<instanceId>``) in the URL
2. The background attaches the channel to a controller, or the socket is
   closed with code 4003 if the channel is refused
3. Each text frame carries one envelope as a JSON object, both directions
4. Closing the socket disconnects the channel
"""

from __future__ import annotations

import logging

from starlette.routing import WebSocketRoute
from starlette.websockets import WebSocket

from ..errors import PermissionDeniedError
from ..transport.websocket import CLOSE_CHANNEL_REFUSED, WebSocketServerTransport

logger = logging.getLogger(__name__)


async def websocket_channel_endpoint(websocket: WebSocket) -> None:
    """Serve one channel for the lifetime of the socket."""
    channel = websocket.path_params.get("channel", "")
    background = websocket.app.state.background

    await websocket.accept()
    transport = WebSocketServerTransport(websocket, channel)

    try:
        background.add_port(transport)
    except (PermissionDeniedError, ValueError) as e:
        logger.warning(f"Refused channel {channel!r}: {e}")
        await websocket.close(code=CLOSE_CHANNEL_REFUSED, reason=str(e))
        return

    await transport.run()


# Route definitions
websocket_routes = [
    WebSocketRoute("/ws/{channel}", websocket_channel_endpoint),
]
