"""Tests for channel names and event names."""

from __future__ import annotations

import pytest

from pgp_port.protocol import ChannelName, EventType, SurfaceType, event_name, is_valid_event


class TestChannelName:
    def test_parse(self) -> None:
        channel = ChannelName.parse("dDialog-8f3a")
        assert channel.type == "dDialog"
        assert channel.id == "8f3a"
        assert str(channel) == "dDialog-8f3a"

    def test_parse_splits_at_first_dash(self) -> None:
        channel = ChannelName.parse("app-1234-abcd")
        assert channel.type == "app"
        assert channel.id == "1234-abcd"

    @pytest.mark.parametrize("name", ["", "app", "app-", "-1234"])
    def test_parse_invalid(self, name: str) -> None:
        with pytest.raises(ValueError):
            ChannelName.parse(name)

    def test_create_with_surface_enum(self) -> None:
        channel = ChannelName.create(SurfaceType.PWD_DIALOG, "abc")
        assert str(channel) == "pwdDialog-abc"

    def test_create_mints_id(self) -> None:
        first = ChannelName.create("editor")
        second = ChannelName.create("editor")
        assert first.type == "editor"
        assert first.id
        assert first.id != second.id
        assert ChannelName.parse(str(first)) == first

    def test_create_rejects_dash_in_surface(self) -> None:
        with pytest.raises(ValueError):
            ChannelName.create("bad-type", "1")


class TestEventNames:
    def test_event_name(self) -> None:
        assert event_name(EventType.DECRYPT_MESSAGE) == "decrypt-message"
        assert event_name("custom") == "custom"

    @pytest.mark.parametrize("event", ["get-version", EventType.TERMINATE, "x"])
    def test_valid(self, event: object) -> None:
        assert is_valid_event(event)

    @pytest.mark.parametrize("event", ["", "_reply", None, 1, b"bytes"])
    def test_invalid(self, event: object) -> None:
        assert not is_valid_event(event)
