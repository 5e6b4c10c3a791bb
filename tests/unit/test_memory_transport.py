"""Unit tests for the in-process transport and host."""

from __future__ import annotations

import asyncio
import logging

import pytest

from pgp_port.transport import MemoryHost, MemoryTransport, Transport, TransportState
from pgp_port.transport.base import Connector


async def settle(rounds: int = 5) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


class TestMemoryTransport:
    @pytest.mark.anyio
    async def test_delivery_is_async_and_ordered(self) -> None:
        local, remote = MemoryTransport.pair("app-1")
        received: list[dict] = []
        remote.add_message_listener(received.append)

        for n in range(3):
            local.post_message({"event": "n", "n": n})
        assert received == []

        await settle()
        assert [m["n"] for m in received] == [0, 1, 2]

    @pytest.mark.anyio
    async def test_messages_are_cloned(self) -> None:
        local, remote = MemoryTransport.pair("app-1")
        received: list[dict] = []
        remote.add_message_listener(received.append)
        message = {"event": "x", "items": [1, 2]}

        local.post_message(message)
        message["items"].append(3)
        await settle()

        assert received == [{"event": "x", "items": [1, 2]}]

    @pytest.mark.anyio
    async def test_unserializable_message_rejected(self) -> None:
        local, _ = MemoryTransport.pair("app-1")
        with pytest.raises(TypeError):
            local.post_message({"event": "x", "value": object()})

    @pytest.mark.anyio
    async def test_disconnect_notifies_remote_after_queued_messages(self) -> None:
        local, remote = MemoryTransport.pair("app-1")
        events: list[str] = []
        remote.add_message_listener(lambda m: events.append(m["event"]))
        remote.add_disconnect_listener(lambda: events.append("closed"))
        local.add_disconnect_listener(lambda: events.append("local closed"))

        local.post_message({"event": "last"})
        local.disconnect()
        await settle()

        assert events == ["last", "closed"]
        assert remote.state == TransportState.CLOSED

    @pytest.mark.anyio
    async def test_post_after_disconnect(self) -> None:
        local, _ = MemoryTransport.pair("app-1")
        local.disconnect()
        local.disconnect()

        with pytest.raises(ConnectionError):
            local.post_message({"event": "x"})

    @pytest.mark.anyio
    async def test_listener_errors_are_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        local, remote = MemoryTransport.pair("app-1")
        received: list[dict] = []

        def broken(message: dict) -> None:
            raise RuntimeError("listener failed")

        remote.add_message_listener(broken)
        remote.add_message_listener(received.append)

        with caplog.at_level(logging.ERROR, logger="pgp_port.transport.base"):
            local.post_message({"event": "x"})
            await settle()

        assert received == [{"event": "x"}]
        assert "Error in message listener" in caplog.text


class TestMemoryHost:
    def test_is_connector(self) -> None:
        assert isinstance(MemoryHost(), Connector)

    def test_no_listener_refuses(self) -> None:
        with pytest.raises(ConnectionError):
            MemoryHost().connect("app-1")

    @pytest.mark.anyio
    async def test_connect_hands_remote_half_to_listener(self) -> None:
        host = MemoryHost()
        accepted: list[Transport] = []
        host.add_connect_listener(accepted.append)

        local = host.connect("dDialog-1")

        assert len(accepted) == 1
        assert accepted[0].name == local.name == "dDialog-1"

        received: list[dict] = []
        accepted[0].add_message_listener(received.append)
        local.post_message({"event": "hello"})
        await settle()
        assert received == [{"event": "hello"}]

    def test_listener_refusal(self) -> None:
        host = MemoryHost()
        accepted: list[Transport] = []

        def refuse(transport: Transport) -> None:
            accepted.append(transport)
            raise PermissionError("not allowed")

        host.add_connect_listener(refuse)

        with pytest.raises(ConnectionError, match="not allowed"):
            host.connect("editor-1")
        assert not accepted[0].is_connected

    def test_remove_listener(self) -> None:
        host = MemoryHost()
        listener = lambda transport: None  # noqa: E731
        host.add_connect_listener(listener)
        host.remove_connect_listener(listener)
        host.remove_connect_listener(listener)

        with pytest.raises(ConnectionError):
            host.connect("app-1")
