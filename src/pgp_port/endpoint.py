"""Endpoint: events and request/reply over one transport.

An Endpoint is one side of a named channel. It owns:
- a handler table (event name -> handler, last registration wins)
- a pending-reply table (correlation id -> future, removed on first use)
- a correlation counter (starts at 0, strictly increasing, never reused)

Three operations:
- ``on(event, handler)`` registers a handler for incoming envelopes
- ``emit(event, payload)`` sends a one-way notification
- ``send(event, payload)`` sends a request and returns a future for the reply

Dispatch rules for incoming envelopes:
- ``_reply``: settle the matching pending future, drop it if there is none
- registered event with ``_reply``: call the handler, send exactly one reply
- registered event without ``_reply``: call the handler, log failures
- anything else: log "Unknown event", send nothing

Example:
    endpoint = Endpoint.connect("dDialog-8f3a", connector=host)
    endpoint.on(EventType.DECRYPTED_MESSAGE, show_message)
    version = await endpoint.send(EventType.GET_VERSION)
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import types
from collections.abc import Awaitable, Callable, Coroutine, Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ValidationError

from .errors import (
    InvalidEventError,
    InvalidHandlerError,
    InvalidPayloadError,
    RemoteError,
    ReplyTimeoutError,
    TransportClosedError,
)
from .protocol.envelope import Envelope
from .protocol.events import EventType, event_name, is_valid_event
from .transport.base import Connector, DisconnectListener, Transport

logger = logging.getLogger(__name__)

Handler = Callable[[Any], Any]
Payload = Mapping[str, Any] | BaseModel | None

# Sentinel for "use the endpoint's reply timeout"
_DEFAULT = object()


@dataclass
class HandlerEntry:
    """A registered handler and the optional schema for its payload."""

    callback: Handler
    schema: type[BaseModel] | None = None


@dataclass
class PendingReply:
    """Continuation of one outstanding ``send()``."""

    future: asyncio.Future[Any]
    event: str
    timer: asyncio.TimerHandle | None = None


class Endpoint:
    """One side of a named message channel."""

    def __init__(
        self,
        transport: Transport | None = None,
        handlers: dict[str, HandlerEntry] | None = None,
        *,
        context: Any = None,
        connector: Connector | None = None,
        reply_timeout: float | None = None,
    ):
        """Initialize an endpoint.

        Args:
            transport: Transport to wrap; can be set later with ``init_transport``
            handlers: Handler table shared with other endpoints (e.g. all ports
                of one controller); a private table is created if omitted
            context: Object that plain ``(context, msg)`` functions registered
                with ``on`` are bound to; defaults to the endpoint itself
            connector: Host used to reopen the channel after a remote disconnect
            reply_timeout: Seconds to wait for replies; None waits forever
        """
        self._handlers: dict[str, HandlerEntry] = handlers if handlers is not None else {}
        self._context = context
        self._connector = connector
        self._reply_timeout = reply_timeout

        self._pending: dict[int, PendingReply] = {}
        self._reply_count = 0

        self._transport: Transport | None = None
        self._name: str | None = None
        self._closed = False
        self._disconnect_listeners: list[DisconnectListener] = []
        self._tasks: set[asyncio.Task[None]] = set()

        if transport is not None:
            self.init_transport(transport)

    @classmethod
    def connect(
        cls,
        name: str,
        context: Any = None,
        *,
        connector: Connector,
        handlers: dict[str, HandlerEntry] | None = None,
        reply_timeout: float | None = None,
    ) -> Endpoint:
        """Open a channel named ``name`` and wrap it in an endpoint.

        Sends nothing. The endpoint reopens the channel through ``connector``
        on the next ``emit``/``send`` if the remote side disconnects.

        Raises:
            ConnectionError: If the host refuses the connection
        """
        transport = connector.connect(name)
        return cls(
            transport,
            handlers,
            context=context,
            connector=connector,
            reply_timeout=reply_timeout,
        )

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def name(self) -> str | None:
        """Channel name."""
        return self._name

    @property
    def context(self) -> Any:
        """Object handlers execute against: the bound context or the endpoint."""
        return self._context if self._context is not None else self

    @property
    def is_connected(self) -> bool:
        return (
            not self._closed and self._transport is not None and self._transport.is_connected
        )

    @property
    def pending_count(self) -> int:
        """Number of requests still waiting for a reply."""
        return len(self._pending)

    @property
    def reply_count(self) -> int:
        """Last correlation id minted by ``send``."""
        return self._reply_count

    def has_handler(self, event: str | EventType) -> bool:
        return event_name(event) in self._handlers

    # =========================================================================
    # Channel lifecycle
    # =========================================================================

    def init_transport(self, transport: Transport) -> None:
        """Attach a transport and route its messages to this endpoint."""
        self._transport = transport
        self._name = transport.name
        transport.add_message_listener(self.handle_message)
        transport.add_disconnect_listener(lambda: self._on_transport_closed(transport))

    def disconnect(self) -> None:
        """Close the channel. Safe to call more than once.

        Outstanding requests fail with ``TransportClosedError``.
        """
        if self._closed:
            return
        self._closed = True
        transport, self._transport = self._transport, None
        if transport is not None:
            transport.disconnect()
        self._fail_pending(TransportClosedError(f"Channel {self._name!r} disconnected"))

    def add_disconnect_listener(self, listener: DisconnectListener) -> None:
        """Register a callback for when the remote side closes the channel."""
        self._disconnect_listeners.append(listener)

    async def drain(self) -> None:
        """Wait for handler tasks still running on this endpoint."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _on_transport_closed(self, transport: Transport) -> None:
        if transport is not self._transport:
            return
        self._transport = None
        logger.info(f"Channel {self._name!r} closed by remote side")
        self._fail_pending(TransportClosedError(f"Channel {self._name!r} closed by remote side"))
        for listener in list(self._disconnect_listeners):
            try:
                listener()
            except Exception:
                logger.exception(f"Error in disconnect listener on {self._name!r}")

    def _ensure_transport(self) -> Transport:
        if self._closed:
            raise ConnectionError(f"Channel {self._name!r} is disconnected")
        if self._transport is not None and self._transport.is_connected:
            return self._transport
        if self._connector is None or self._name is None:
            raise ConnectionError(f"Channel {self._name!r} has no open transport")
        logger.info(f"Reopening channel {self._name!r}")
        transport = self._connector.connect(self._name)
        self.init_transport(transport)
        return transport

    def _fail_pending(self, error: Exception) -> None:
        pending, self._pending = self._pending, {}
        for entry in pending.values():
            if entry.timer is not None:
                entry.timer.cancel()
            if not entry.future.done():
                entry.future.set_exception(error)

    # =========================================================================
    # Registration
    # =========================================================================

    def on(
        self,
        event: str | EventType,
        handler: Handler,
        *,
        schema: type[BaseModel] | None = None,
    ) -> None:
        """Register ``handler`` for ``event``, replacing any previous handler.

        The handler receives the whole envelope as a dict (``event`` and
        ``_reply`` included), or an instance of ``schema`` validated from it.
        It may return a value or an awaitable.

        Raises:
            InvalidHandlerError: If the event name is empty, not a string or
                reserved, or the handler is not callable
        """
        if not is_valid_event(event) or not callable(handler):
            raise InvalidHandlerError(f"Invalid event handler for {event!r}")
        if schema is not None and not (isinstance(schema, type) and issubclass(schema, BaseModel)):
            raise InvalidHandlerError(f"Schema for {event!r} must be a pydantic model")
        self._handlers[event_name(event)] = HandlerEntry(self._bind(handler), schema)

    def _bind(self, handler: Handler) -> Handler:
        # Plain functions taking (context, msg) become methods of the context
        if not inspect.isfunction(handler):
            return handler
        positional = [
            p
            for p in inspect.signature(handler).parameters.values()
            if p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD)
        ]
        if len(positional) < 2:
            return handler
        return types.MethodType(handler, self.context)

    # =========================================================================
    # Sending
    # =========================================================================

    def emit(self, event: str | EventType, payload: Payload = None) -> None:
        """Send a one-way notification. No reply is expected.

        Raises:
            InvalidEventError: If the event name is invalid (nothing is sent)
            ConnectionError: If the channel is closed and cannot be reopened
        """
        if not is_valid_event(event):
            raise InvalidEventError(f"Invalid event: {event!r}")
        envelope = Envelope.create(event, payload)
        self._ensure_transport().post_message(envelope.to_wire())

    def send(
        self,
        event: str | EventType,
        payload: Payload = None,
        *,
        timeout: Any = _DEFAULT,
    ) -> asyncio.Future[Any]:
        """Send a request and return a future for the reply.

        The future resolves with the remote handler's result or fails with
        ``RemoteError`` carrying the marshalled ``message`` and ``code``.
        Without a timeout it stays pending until a reply arrives.

        Args:
            event: Event name
            payload: Mapping or pydantic model merged into the envelope
            timeout: Seconds to wait (overrides the endpoint default, None waits forever)

        Must be called from a running event loop.
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future[Any] = loop.create_future()

        if not is_valid_event(event):
            future.set_exception(InvalidEventError(f"Invalid event: {event!r}"))
            return future

        try:
            transport = self._ensure_transport()
        except ConnectionError as e:
            future.set_exception(e)
            return future

        self._reply_count += 1
        reply_id = self._reply_count
        name = event_name(event)

        try:
            envelope = Envelope.create(event, payload, reply=reply_id)
        except (TypeError, ValueError) as e:
            future.set_exception(e)
            return future

        # Registered before transmission so an early reply is never lost
        entry = PendingReply(future=future, event=name)
        self._pending[reply_id] = entry
        future.add_done_callback(lambda f: self._forget(reply_id, f))

        if timeout is _DEFAULT:
            timeout = self._reply_timeout
        if timeout is not None:
            entry.timer = loop.call_later(timeout, self._expire, reply_id, timeout)

        try:
            transport.post_message(envelope.to_wire())
        except Exception as e:
            self._pending.pop(reply_id, None)
            if entry.timer is not None:
                entry.timer.cancel()
            future.set_exception(e)
        return future

    def _forget(self, reply_id: int, future: asyncio.Future[Any]) -> None:
        # Only relevant when the caller cancelled the future
        entry = self._pending.get(reply_id)
        if entry is not None and entry.future is future:
            del self._pending[reply_id]
            if entry.timer is not None:
                entry.timer.cancel()

    def _expire(self, reply_id: int, timeout: float) -> None:
        entry = self._pending.pop(reply_id, None)
        if entry is None or entry.future.done():
            return
        logger.warning(f"No reply to {entry.event!r} on {self._name!r} within {timeout}s")
        entry.future.set_exception(
            ReplyTimeoutError(f"No reply to {entry.event!r} within {timeout}s")
        )

    # =========================================================================
    # Dispatch
    # =========================================================================

    def handle_message(self, message: Any) -> None:
        """Dispatch one incoming envelope."""
        try:
            envelope = Envelope.model_validate(message)
        except ValidationError as e:
            logger.warning(f"Malformed envelope on {self._name!r}: {e.error_count()} error(s)")
            return

        if envelope.is_reply:
            self._handle_reply(envelope)
            return

        entry = self._handlers.get(envelope.event)
        if entry is None:
            logger.warning(f"Unknown event on {self._name!r}: {message!r}")
            return

        if envelope.reply is not None:
            self._respond(entry, message, envelope.reply)
        else:
            self._notify(entry, message)

    def _handle_reply(self, envelope: Envelope) -> None:
        entry = self._pending.pop(envelope.reply, None) if envelope.reply is not None else None
        if entry is None:
            logger.debug(f"Dropping reply {envelope.reply} on {self._name!r}: no pending request")
            return
        if entry.timer is not None:
            entry.timer.cancel()
        if entry.future.done():
            return

        payload = envelope.payload()
        error = payload.get("error")
        if error:
            entry.future.set_exception(RemoteError.from_wire(error))
        else:
            entry.future.set_result(payload.get("result"))

    def _invoke(self, entry: HandlerEntry, message: dict[str, Any]) -> Any:
        argument: Any = message
        if entry.schema is not None:
            try:
                argument = entry.schema.model_validate(message)
            except ValidationError as e:
                raise InvalidPayloadError(
                    f"Invalid payload for {message.get('event')!r}: {e.error_count()} error(s)"
                ) from e
        return entry.callback(argument)

    def _respond(self, entry: HandlerEntry, message: dict[str, Any], reply_id: int) -> None:
        # Handler is called now so handlers run in arrival order
        try:
            result = self._invoke(entry, message)
        except Exception as e:
            logger.debug(f"Handler for {message.get('event')!r} failed: {e}")
            self._post_reply(reply_id, Envelope.error(reply_id, e))
            return

        if inspect.isawaitable(result):
            self._spawn(self._reply_when_done(reply_id, message.get("event"), result))
        else:
            self._post_reply(reply_id, Envelope.result(reply_id, result))

    async def _reply_when_done(self, reply_id: int, event: Any, result: Awaitable[Any]) -> None:
        try:
            value = await result
        except Exception as e:
            logger.debug(f"Handler for {event!r} failed: {e}")
            self._post_reply(reply_id, Envelope.error(reply_id, e))
            return
        self._post_reply(reply_id, Envelope.result(reply_id, value))

    def _post_reply(self, reply_id: int, envelope: Envelope) -> None:
        transport = self._transport
        if transport is None or not transport.is_connected:
            logger.warning(f"Dropping reply {reply_id} on {self._name!r}: channel closed")
            return
        try:
            transport.post_message(envelope.to_wire())
        except (TypeError, ValueError) as e:
            # Result could not be serialized; the requester still gets one reply
            logger.warning(f"Reply {reply_id} on {self._name!r} not serializable: {e}")
            transport.post_message(Envelope.error(reply_id, e).to_wire())

    def _notify(self, entry: HandlerEntry, message: dict[str, Any]) -> None:
        event = message.get("event")
        try:
            result = self._invoke(entry, message)
        except Exception:
            logger.exception(f"Error in handler for {event!r} on {self._name!r}")
            return
        if inspect.isawaitable(result):
            self._spawn(self._await_notification(event, result))

    async def _await_notification(self, event: Any, result: Awaitable[Any]) -> None:
        try:
            await result
        except Exception:
            logger.exception(f"Error in handler for {event!r} on {self._name!r}")

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    # =========================================================================
    # Context manager
    # =========================================================================

    async def __aenter__(self) -> Endpoint:
        return self

    async def __aexit__(self, *args: Any) -> None:
        self.disconnect()

    def __repr__(self) -> str:
        state = "connected" if self.is_connected else "disconnected"
        return f"<Endpoint {self._name!r} {state} pending={len(self._pending)}>"
