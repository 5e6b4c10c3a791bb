"""Health check endpoint."""

from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from .. import __version__


async def health_check(request: Request) -> JSONResponse:
    """Health check endpoint."""
    background = getattr(request.app.state, "background", None)
    controllers = len(background.controllers) if background is not None else 0
    return JSONResponse({"status": "ok", "version": __version__, "controllers": controllers})


health_routes = [
    Route("/health", health_check, methods=["GET"]),
]
