"""pgp-port CLI.

Usage:
    pgp-port serve                          # WebSocket server on 127.0.0.1:4097
    pgp-port serve --port 8080 --reload     # Custom port, auto-reload
    pgp-port stdio --channel app-<id>       # Serve one channel over stdin/stdout
    pgp-port health                         # Check server health
    pgp-port call get-version               # Send a request and print the result
    pgp-port call decrypt-message --data '{"armored": "..."}'

Configuration comes from PGP_PORT_* environment variables; options override
them. Logs always go to stderr.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from typing import Any

import click
import httpx

from .config import PortConfig

logger = logging.getLogger(__name__)


def _configure_logging(level: str) -> None:
    # stdout is reserved for the wire in stdio mode
    logging.basicConfig(
        stream=sys.stderr,
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@click.group()
@click.option("--log-level", default=None, help="Log level (default: PGP_PORT_LOG_LEVEL or WARNING)")
@click.pass_context
def main(ctx: click.Context, log_level: str | None) -> None:
    """pgp-port - event and request/reply channels for the background process."""
    try:
        config = PortConfig.from_env()
    except ValueError as e:
        raise click.ClickException(str(e)) from e
    if log_level:
        config.log_level = log_level.upper()
    _configure_logging(config.log_level)
    ctx.obj = config


@main.command()
@click.option("--host", default=None, help="Host to bind to (default: PGP_PORT_HOST)")
@click.option("--port", default=None, type=int, help="Port to bind to (default: PGP_PORT_PORT)")
@click.option("--reload", is_flag=True, help="Enable auto-reload for development")
@click.pass_obj
def serve(config: PortConfig, host: str | None, port: int | None, reload: bool) -> None:
    """Run the WebSocket server."""
    import uvicorn

    host = host or config.host
    port = port or config.port

    click.echo(f"Starting pgp-port on http://{host}:{port}", err=True)
    click.echo("  Channels: /ws/{channel}", err=True)
    click.echo("Press Ctrl+C to stop", err=True)

    uvicorn.run(
        "pgp_port.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=config.log_level.lower(),
    )


@main.command()
@click.option("--channel", required=True, help="Channel name, e.g. app-apptopframeid")
@click.pass_obj
def stdio(config: PortConfig, channel: str) -> None:
    """Serve one channel over stdin/stdout (newline-delimited JSON)."""
    click.echo(f"Serving channel {channel} on stdio", err=True)
    try:
        asyncio.run(_serve_stdio(config, channel))
    except KeyboardInterrupt:
        click.echo("\nShutting down", err=True)


async def _serve_stdio(config: PortConfig, channel: str) -> None:
    from .background import Background
    from .controllers import create_default_factory
    from .errors import PermissionDeniedError
    from .transport.stdio import StdioTransport

    background = Background(create_default_factory(config), config)
    transport = StdioTransport(channel)
    try:
        endpoint = background.add_port(transport)
    except (PermissionDeniedError, ValueError) as e:
        raise click.ClickException(f"Channel refused: {e}") from e

    await transport.run()
    await endpoint.drain()


@main.command()
@click.option("--url", default=None, help="Server URL (default: http://localhost:PGP_PORT_PORT)")
@click.pass_obj
def health(config: PortConfig, url: str | None) -> None:
    """Check server health."""
    url = (url or f"http://localhost:{config.port}").rstrip("/")

    async def check() -> None:
        try:
            async with httpx.AsyncClient() as client:
                response = await client.get(f"{url}/health")
                if response.status_code == 200:
                    data = response.json()
                    click.echo(f"Server is healthy: {data}")
                else:
                    click.echo(f"Server returned {response.status_code}", err=True)
                    sys.exit(1)
        except httpx.ConnectError:
            click.echo(f"Cannot connect to server at {url}", err=True)
            sys.exit(1)

    asyncio.run(check())


@main.command()
@click.argument("event")
@click.option("--channel", default=None, help="Channel to open (default: app-<top frame id>)")
@click.option("--url", default=None, help="Server URL (default: http://localhost:PGP_PORT_PORT)")
@click.option("--data", "data", default=None, help="Payload as a JSON object")
@click.option("--timeout", default=None, type=float, help="Seconds to wait for the reply")
@click.pass_obj
def call(
    config: PortConfig,
    event: str,
    channel: str | None,
    url: str | None,
    data: str | None,
    timeout: float | None,
) -> None:
    """Send EVENT as a request over a WebSocket channel and print the result.

    Examples:

        pgp-port call get-version

        pgp-port call get-prefs --channel appCont-1 --timeout 5
    """
    payload = _parse_payload(data)
    channel = channel or f"app-{config.top_frame_id}"
    url = url or f"http://localhost:{config.port}"
    if timeout is None:
        timeout = config.reply_timeout

    result = asyncio.run(_call(url, channel, event, payload, timeout))
    click.echo(json.dumps(result, indent=2, ensure_ascii=False))


def _parse_payload(data: str | None) -> dict[str, Any] | None:
    if data is None:
        return None
    try:
        payload = json.loads(data)
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"not valid JSON: {e}", param_hint="--data") from e
    if not isinstance(payload, dict):
        raise click.BadParameter("must be a JSON object", param_hint="--data")
    return payload


async def _call(
    url: str,
    channel: str,
    event: str,
    payload: dict[str, Any] | None,
    timeout: float | None,
) -> Any:
    from .endpoint import Endpoint
    from .errors import PortError, RemoteError
    from .transport.websocket import WebSocketClientTransport

    try:
        transport = await WebSocketClientTransport.open(url, channel)
    except ConnectionError as e:
        raise click.ClickException(str(e)) from e

    endpoint = Endpoint(transport, reply_timeout=timeout)
    try:
        return await endpoint.send(event, payload)
    except RemoteError as e:
        raise click.ClickException(f"[{e.code}] {e.message}") from e
    except (PortError, ConnectionError, TimeoutError) as e:
        raise click.ClickException(str(e)) from e
    finally:
        endpoint.disconnect()
        await transport.wait_closed()
