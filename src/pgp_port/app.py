"""pgp-port server application.

Creates the Starlette ASGI application that exposes a Background over
WebSockets.

Route organization:
- /health - Health check endpoint
- /ws/{channel} - One port channel per WebSocket
"""

from __future__ import annotations

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.routing import Route, WebSocketRoute

from .background import Background
from .config import PortConfig
from .controllers import create_default_factory
from .routes import health_routes, websocket_routes


def create_app(
    background: Background | None = None,
    config: PortConfig | None = None,
) -> Starlette:
    """Create the pgp-port server application.

    Args:
        background: Router for incoming channels; one with the built-in
            controllers is created if omitted
        config: Configuration, read from the environment if omitted

    Returns:
        Configured Starlette application
    """
    config = config or PortConfig.from_env()
    if background is None:
        background = Background(create_default_factory(config), config)

    routes: list[Route | WebSocketRoute] = []
    routes.extend(health_routes)
    routes.extend(websocket_routes)

    # CORS middleware for local development
    middleware = [
        Middleware(
            CORSMiddleware,
            allow_origins=["http://localhost:*", "http://127.0.0.1:*"],
            allow_methods=["*"],
            allow_headers=["*"],
        ),
    ]

    app = Starlette(routes=routes, middleware=middleware)
    app.state.background = background
    app.state.config = config
    return app
