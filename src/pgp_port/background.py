"""Background router.

The privileged side of every channel. Accepts transports from a host, finds
or creates the controller for the channel's instance id, and wraps the
transport in an Endpoint that dispatches into the controller's handlers.

Lifecycle:
- first channel of an instance id creates the controller (create permission)
- further channels with the same id join it (connect permission)
- a remote disconnect removes the port; the last port removed deletes the
  controller and calls its ``on_close()``
"""

from __future__ import annotations

import logging

from .config import PortConfig
from .controller import SubController
from .endpoint import Endpoint
from .factory import ControllerFactory
from .protocol.channel import ChannelName
from .transport.base import Transport
from .transport.memory import MemoryHost

logger = logging.getLogger(__name__)


class Background:
    """Routes named channels to controllers."""

    def __init__(self, factory: ControllerFactory, config: PortConfig | None = None):
        self.factory = factory
        self.config = config or PortConfig()
        self._controllers: dict[str, SubController] = {}

    def attach(self, host: MemoryHost) -> None:
        """Accept every channel opened on ``host``."""
        host.add_connect_listener(self.add_port)

    def add_port(self, transport: Transport) -> Endpoint:
        """Accept a new channel.

        Raises:
            ValueError: If the channel name is not ``<surface>-<id>``
            PermissionDeniedError: If the channel may not create or join a controller
        """
        channel = ChannelName.parse(transport.name)
        controller = self._controllers.get(channel.id)
        if controller is not None:
            self.factory.verify_connect_permission(controller.main_type, channel)
        else:
            controller = self.factory.create(channel)
            self._store(controller)

        endpoint = Endpoint(
            transport,
            controller.handlers,
            context=controller,
            reply_timeout=self.config.reply_timeout,
        )
        controller.add_port(channel.type, endpoint)
        endpoint.add_disconnect_listener(lambda: self.remove_port(channel, endpoint))
        logger.info(f"Channel {channel} attached to {type(controller).__name__}")
        return endpoint

    def remove_port(self, channel: ChannelName, endpoint: Endpoint | None = None) -> None:
        """Detach a channel, deleting its controller after the last port."""
        controller = self._controllers.get(channel.id)
        if controller is None:
            return
        if controller.remove_port(channel.type, endpoint):
            del self._controllers[channel.id]
            logger.info(f"Controller {type(controller).__name__} {channel.id!r} closed")
            try:
                controller.on_close()
            except Exception:
                logger.exception(f"Error closing controller {channel.id!r}")

    def register_controller(self, controller: SubController) -> None:
        """Add a controller created without a port (e.g. a password prompt).

        Raises:
            ValueError: If the controller has no id
        """
        if not controller.id:
            raise ValueError("Controller instantiated without port requires id.")
        self._store(controller)

    def _store(self, controller: SubController) -> None:
        if controller.id is None:
            raise ValueError(f"{type(controller).__name__} has no id")
        if controller.singleton:
            # New instance replaces the old one
            for existing in self.by_main_type(controller.main_type):
                if existing.id is not None and existing is not controller:
                    self._controllers.pop(existing.id, None)
                    for port in list(existing.ports.values()):
                        port.disconnect()
        self._controllers[controller.id] = controller

    def get(self, controller_id: str) -> SubController | None:
        return self._controllers.get(controller_id)

    def by_main_type(self, main_type: str | None) -> list[SubController]:
        return [c for c in self._controllers.values() if c.main_type == main_type]

    def is_active(self, main_type: str) -> bool:
        return bool(self.by_main_type(main_type))

    @property
    def controllers(self) -> list[SubController]:
        return list(self._controllers.values())

    def close(self) -> None:
        """Disconnect every port of every controller."""
        for controller in list(self._controllers.values()):
            for port in list(controller.ports.values()):
                port.disconnect()
        self._controllers.clear()
