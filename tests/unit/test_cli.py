"""Tests for the pgp-port CLI."""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock, patch

import httpx
import pytest
from click.testing import CliRunner

from pgp_port import __version__
from pgp_port.cli import main
from pgp_port.endpoint import Endpoint
from pgp_port.errors import CodedError
from pgp_port.transport import MemoryTransport
from pgp_port.transport.websocket import WebSocketClientTransport


class ClosableMemoryTransport(MemoryTransport):
    """Memory transport with the client transport's ``wait_closed``."""

    async def wait_closed(self) -> None:
        return None


def json_lines(text: str) -> list[dict]:
    return [json.loads(line) for line in text.splitlines() if line.startswith("{")]


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


class TestMain:
    def test_help(self, runner: CliRunner) -> None:
        result = runner.invoke(main, ["--help"])
        assert result.exit_code == 0
        for command in ("serve", "stdio", "health", "call"):
            assert command in result.output

    def test_invalid_environment(self, runner: CliRunner) -> None:
        result = runner.invoke(main, ["health"], env={"PGP_PORT_PORT": "abc"})
        assert result.exit_code == 1
        assert "PGP_PORT_PORT" in result.output


class TestServe:
    def test_runs_uvicorn_factory(self, runner: CliRunner) -> None:
        with patch("uvicorn.run") as run:
            result = runner.invoke(main, ["serve", "--port", "8123"])

        assert result.exit_code == 0
        args, kwargs = run.call_args
        assert args == ("pgp_port.app:create_app",)
        assert kwargs["factory"] is True
        assert kwargs["port"] == 8123
        assert kwargs["host"] == "127.0.0.1"


class TestStdio:
    def test_answers_request(self, runner: CliRunner) -> None:
        result = runner.invoke(
            main,
            ["stdio", "--channel", "app-apptopframeid"],
            input='{"event": "get-version", "_reply": 1}\n',
        )

        assert result.exit_code == 0
        assert {"event": "_reply", "_reply": 1, "result": __version__} in json_lines(
            result.stdout
        )

    def test_refused_channel(self, runner: CliRunner) -> None:
        result = runner.invoke(main, ["stdio", "--channel", "app-embedded"], input="")

        assert result.exit_code == 1
        assert "Channel refused" in result.output


class TestHealth:
    def test_healthy(self, runner: CliRunner) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/health"
            return httpx.Response(200, json={"status": "ok"})

        real_client = httpx.AsyncClient

        def client_factory() -> httpx.AsyncClient:
            return real_client(transport=httpx.MockTransport(handler))

        with patch("pgp_port.cli.httpx.AsyncClient", side_effect=client_factory):
            result = runner.invoke(main, ["health", "--url", "http://localhost:4097"])

        assert result.exit_code == 0
        assert "Server is healthy" in result.output

    def test_unhealthy(self, runner: CliRunner) -> None:
        real_client = httpx.AsyncClient

        def client_factory() -> httpx.AsyncClient:
            return real_client(transport=httpx.MockTransport(lambda r: httpx.Response(503)))

        with patch("pgp_port.cli.httpx.AsyncClient", side_effect=client_factory):
            result = runner.invoke(main, ["health"])

        assert result.exit_code == 1
        assert "503" in result.output


class TestCall:
    def _patch_open(self, remote_setup: Callable[[Endpoint], None]) -> Any:
        local, remote = ClosableMemoryTransport.pair("app-apptopframeid")
        remote_setup(Endpoint(remote))
        return patch.object(WebSocketClientTransport, "open", new=AsyncMock(return_value=local))

    def test_prints_result(self, runner: CliRunner) -> None:
        def setup(background: Endpoint) -> None:
            background.on("get-prefs", lambda msg: {"echo": msg["key"]})

        with self._patch_open(setup) as open_mock:
            result = runner.invoke(main, ["call", "get-prefs", "--data", '{"key": "theme"}'])

        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout) == {"echo": "theme"}
        assert open_mock.call_args[0] == ("http://localhost:4097", "app-apptopframeid")

    def test_remote_error(self, runner: CliRunner) -> None:
        def setup(background: Endpoint) -> None:
            def decrypt(msg: dict) -> None:
                raise CodedError("No key found", "NO_KEY_FOUND")

            background.on("decrypt-message", decrypt)

        with self._patch_open(setup):
            result = runner.invoke(main, ["call", "decrypt-message"])

        assert result.exit_code == 1
        assert "[NO_KEY_FOUND] No key found" in result.output

    def test_timeout(self, runner: CliRunner) -> None:
        with self._patch_open(lambda background: None):
            result = runner.invoke(main, ["call", "terminate", "--timeout", "0.05"])

        assert result.exit_code == 1
        assert "No reply" in result.output

    @pytest.mark.parametrize("data", ["not json", "[1, 2]"])
    def test_invalid_data(self, runner: CliRunner, data: str) -> None:
        result = runner.invoke(main, ["call", "get-prefs", "--data", data])
        assert result.exit_code == 2
