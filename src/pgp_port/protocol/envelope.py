"""Message envelopes exchanged over a channel.

An envelope is a flat JSON object:

    {"event": "decrypt-message", "armored": "-----BEGIN PGP...", "_reply": 3}

- ``event`` names the handler on the receiving side (required)
- ``_reply`` is the correlation id, present only on request/response traffic.
  It must be a JSON integer; ``0`` means "no reply wanted", like an absent key
- every other key is payload, defined per event

Replies reuse the same shape with the reserved event name:

    {"event": "_reply", "_reply": 3, "result": {...}}
    {"event": "_reply", "_reply": 3, "error": {"message": "No key found", "code": "NO_KEY_FOUND"}}
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..errors import map_error
from .events import REPLY_EVENT, EventType, event_name


class Envelope(BaseModel):
    """An incoming or outgoing message.

    Payload fields are kept as extra fields; ``payload()`` returns them.
    """

    model_config = ConfigDict(extra="allow")

    event: str
    reply: int | None = Field(default=None, alias=REPLY_EVENT, ge=0, strict=True)

    @field_validator("event")
    @classmethod
    def _event_not_empty(cls, value: str) -> str:
        if not value:
            raise ValueError("event must be a non-empty string")
        return value

    @field_validator("reply")
    @classmethod
    def _zero_means_no_reply(cls, value: int | None) -> int | None:
        return value or None

    @property
    def is_reply(self) -> bool:
        """Check if this envelope answers a request."""
        return self.event == REPLY_EVENT

    @property
    def expects_reply(self) -> bool:
        """Check if the sender awaits a reply to this envelope."""
        return not self.is_reply and self.reply is not None

    def payload(self) -> dict[str, Any]:
        """Payload fields without ``event`` and ``_reply``."""
        return dict(self.model_extra or {})

    def to_wire(self) -> dict[str, Any]:
        """Flat dict ready for ``Transport.post_message``."""
        message: dict[str, Any] = dict(self.model_extra or {})
        message["event"] = self.event
        if self.reply is not None:
            message[REPLY_EVENT] = self.reply
        return message

    @classmethod
    def create(
        cls,
        event: str | EventType,
        payload: Mapping[str, Any] | BaseModel | None = None,
        reply: int | None = None,
    ) -> Envelope:
        """Factory method for creating envelopes.

        ``payload`` may be a mapping or a pydantic model; its fields are merged
        into the envelope. ``event`` and ``_reply`` keys in the payload are
        overwritten.
        """
        fields = _payload_fields(payload)
        fields["event"] = event_name(event)
        fields[REPLY_EVENT] = reply
        return cls.model_validate(fields)

    # =========================================================================
    # Reply factories
    # =========================================================================

    @classmethod
    def result(cls, reply: int, result: Any) -> Envelope:
        """Create a successful reply envelope. ``result`` may be None."""
        if isinstance(result, BaseModel):
            result = result.model_dump(mode="json")
        return cls.model_validate({"event": REPLY_EVENT, REPLY_EVENT: reply, "result": result})

    @classmethod
    def error(cls, reply: int, error: BaseException) -> Envelope:
        """Create a failed reply envelope from an exception."""
        return cls.model_validate({"event": REPLY_EVENT, REPLY_EVENT: reply, "error": map_error(error)})


def _payload_fields(payload: Mapping[str, Any] | BaseModel | None) -> dict[str, Any]:
    if payload is None:
        return {}
    if isinstance(payload, BaseModel):
        return payload.model_dump(mode="json")
    if isinstance(payload, Mapping):
        return dict(payload)
    raise TypeError(f"Payload must be a mapping or a pydantic model, got {type(payload).__name__}")
