"""Controller for the app surface (options/settings page)."""

from __future__ import annotations

import logging
from typing import Any

from ..config import PortConfig
from ..controller import SubController, handler
from ..factory import ControllerFactory
from ..protocol.channel import SurfaceType
from ..protocol.events import EventType

logger = logging.getLogger(__name__)


class AppController(SubController):
    """Answers app page requests."""

    @handler(EventType.GET_VERSION)
    def get_version(self, msg: dict[str, Any]) -> str:
        from .. import __version__

        return __version__


def create_default_factory(config: PortConfig | None = None) -> ControllerFactory:
    """Factory with the built-in controllers registered.

    The app page creates its controller only from the top frame. Embedded in
    another page it is opened by an app container, which creates the
    controller the page then attaches to.
    """
    config = config or PortConfig()
    factory = ControllerFactory(top_frame_id=config.top_frame_id)
    factory.register(SurfaceType.APP, AppController, top_frame_only=True)
    factory.register(SurfaceType.APP_CONTAINER, AppController, [SurfaceType.APP])
    logger.debug(f"Default controllers registered (top frame id {config.top_frame_id!r})")
    return factory
