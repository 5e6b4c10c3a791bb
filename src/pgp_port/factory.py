"""Controller registry.

Maps the surface type of a connecting channel to the controller class that
serves it, and decides which channels may create a controller or join an
existing one.

Registration:
    factory = ControllerFactory()
    factory.register("dFrame", DecryptController, allowed_secondary_types=["dDialog"])
    factory.register("app", AppController, top_frame_only=True)

- ``allowed_secondary_types``: surfaces allowed to attach to a controller of
  this type (same instance id)
- ``top_frame_only``: only the top frame instance id may create it
- ``connect_only``: the surface may never create a controller itself
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from .config import DEFAULT_TOP_FRAME_ID
from .controller import SubController
from .errors import PermissionDeniedError
from .protocol.channel import ChannelName, SurfaceType

logger = logging.getLogger(__name__)


@dataclass
class ControllerRegistration:
    """Registry entry for one surface type."""

    controller_cls: type[SubController]
    allowed_secondary_types: frozenset[str] = field(default_factory=frozenset)
    top_frame_only: bool = False
    connect_only: bool = False


class ControllerFactory:
    """Registry of controller classes by surface type."""

    def __init__(self, top_frame_id: str = DEFAULT_TOP_FRAME_ID):
        self.top_frame_id = top_frame_id
        self._repo: dict[str, ControllerRegistration] = {}

    def register(
        self,
        surface_type: str | SurfaceType,
        controller_cls: type[SubController],
        allowed_secondary_types: Iterable[str | SurfaceType] = (),
        *,
        top_frame_only: bool = False,
        connect_only: bool = False,
    ) -> None:
        """Register the controller class for a surface type.

        Raises:
            ValueError: If the surface type is already registered
        """
        key = _surface(surface_type)
        if key in self._repo:
            raise ValueError(f"Controller class already registered for {key!r}")
        self._repo[key] = ControllerRegistration(
            controller_cls=controller_cls,
            allowed_secondary_types=frozenset(_surface(t) for t in allowed_secondary_types),
            top_frame_only=top_frame_only,
            connect_only=connect_only,
        )

    def is_registered(self, surface_type: str | SurfaceType) -> bool:
        return _surface(surface_type) in self._repo

    def get_registration(self, surface_type: str | SurfaceType) -> ControllerRegistration:
        key = _surface(surface_type)
        if key not in self._repo:
            raise PermissionDeniedError(f"No controller found for view type: {key}")
        return self._repo[key]

    def create(self, channel: ChannelName) -> SubController:
        """Create the controller for a channel opening a new instance.

        Raises:
            PermissionDeniedError: If the channel may not create a controller
        """
        self.verify_create_permission(channel)
        registration = self._repo[channel.type]
        logger.debug(f"Creating {registration.controller_cls.__name__} for {channel}")
        return registration.controller_cls(channel)

    def verify_create_permission(self, channel: ChannelName) -> None:
        """Check that ``channel`` may create a new controller.

        Raises:
            PermissionDeniedError: For unregistered surface types, surfaces that
                may only join an existing controller, and top-frame-only
                surfaces opened from another frame
        """
        registration = self.get_registration(channel.type)
        if registration.connect_only:
            raise PermissionDeniedError(
                f"View {channel.type} not allowed to directly create controller."
            )
        if registration.top_frame_only and channel.id != self.top_frame_id:
            raise PermissionDeniedError(
                f"View {channel.type} in embedded frame not allowed to directly create controller."
            )

    def verify_connect_permission(self, main_type: str | None, channel: ChannelName) -> None:
        """Check that ``channel`` may join a controller created by ``main_type``.

        Raises:
            PermissionDeniedError: If the surface is not an allowed secondary type
        """
        if main_type is None or main_type == channel.type:
            return
        registration = self.get_registration(main_type)
        if channel.type not in registration.allowed_secondary_types:
            raise PermissionDeniedError(
                f"View type {channel.type} not allowed to connect to controller."
            )


def _surface(surface_type: str | SurfaceType) -> str:
    return surface_type.value if isinstance(surface_type, SurfaceType) else surface_type
