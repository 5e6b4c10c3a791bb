"""Background-side controllers.

A controller is the background's counterpart of one UI instance. All channels
opened with the same instance id (``dFrame-8f3a``, ``dDialog-8f3a``) are
attached to the same controller as ports keyed by surface type. The ports
share the controller's handler table, so a handler registered once answers on
whichever port the event arrives.

Handlers are declared with the ``handler`` decorator:

    class DecryptController(SubController):
        @handler(EventType.DECRYPT_MESSAGE)
        async def decrypt(self, msg):
            ...
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, TypeVar

from pydantic import BaseModel

from .endpoint import Endpoint, Handler, HandlerEntry, Payload
from .errors import InvalidHandlerError
from .protocol.channel import ChannelName
from .protocol.events import EventType, event_name, is_valid_event

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

_HANDLER_ATTR = "__port_events__"


def handler(event: str | EventType, *, schema: type[BaseModel] | None = None) -> Callable[[F], F]:
    """Mark a controller method as the handler for ``event``.

    Can be stacked to handle several events with one method.
    """
    if not is_valid_event(event):
        raise InvalidHandlerError(f"Invalid event handler for {event!r}")

    def decorator(func: F) -> F:
        events = list(getattr(func, _HANDLER_ATTR, []))
        events.append((event_name(event), schema))
        setattr(func, _HANDLER_ATTR, events)
        return func

    return decorator


class SubController:
    """Controller for one UI instance.

    Attributes:
        main_type: Surface type of the channel that created the controller
        id: Instance id shared by all channels of this controller
        ports: Open endpoints keyed by surface type
    """

    # Only one controller of this type may exist; a new one replaces the old
    singleton: bool = False

    def __init__(self, channel: ChannelName | None = None):
        self.ports: dict[str, Endpoint] = {}
        self.main_type: str | None = channel.type if channel else None
        self.id: str | None = channel.id if channel else None
        self._handlers: dict[str, HandlerEntry] = {}
        self._register_decorated()

    @property
    def handlers(self) -> dict[str, HandlerEntry]:
        """Handler table shared by all ports of this controller."""
        return self._handlers

    def _register_decorated(self) -> None:
        for attr in dir(type(self)):
            func = getattr(type(self), attr, None)
            events = getattr(func, _HANDLER_ATTR, None)
            if not events:
                continue
            bound = getattr(self, attr)
            for name, schema in events:
                self.on(name, bound, schema=schema)

    def on(
        self,
        event: str | EventType,
        callback: Handler,
        *,
        schema: type[BaseModel] | None = None,
    ) -> None:
        """Register a handler on all current and future ports."""
        if not is_valid_event(event) or not callable(callback):
            raise InvalidHandlerError(f"Invalid event handler for {event!r}")
        self._handlers[event_name(event)] = HandlerEntry(callback, schema)

    # =========================================================================
    # Ports
    # =========================================================================

    def add_port(self, surface_type: str, endpoint: Endpoint) -> None:
        """Attach an endpoint for ``surface_type``, replacing an older one."""
        previous = self.ports.get(surface_type)
        if previous is not None and previous is not endpoint:
            logger.info(f"Replacing {surface_type!r} port of controller {self.id!r}")
            previous.disconnect()
        self.ports[surface_type] = endpoint

    def remove_port(self, surface_type: str, endpoint: Endpoint | None = None) -> bool:
        """Detach a port.

        Returns:
            True if this was the last port and the controller can be deleted.
            A controller without ports is never reported as empty here.
        """
        if not self.ports:
            return False
        current = self.ports.get(surface_type)
        if current is not None and (endpoint is None or current is endpoint):
            del self.ports[surface_type]
        return not self.ports

    def emit(self, surface_type: str, event: str | EventType, payload: Payload = None) -> bool:
        """Emit on the port for ``surface_type`` if it is open.

        Returns:
            True if the event was sent
        """
        port = self.ports.get(surface_type)
        if port is None or not port.is_connected:
            logger.debug(f"No open {surface_type!r} port on controller {self.id!r} for {event!r}")
            return False
        port.emit(event, payload)
        return True

    def on_close(self) -> None:
        """Called after the last port of the controller went away."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.main_type}-{self.id} ports={sorted(self.ports)}>"
