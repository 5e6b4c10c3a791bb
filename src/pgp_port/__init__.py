"""pgp-port: event and request/reply channels between isolated contexts.

Quick start:
    host = MemoryHost()
    background = Background(create_default_factory())
    background.attach(host)

    endpoint = Endpoint.connect("app-apptopframeid", connector=host)
    version = await endpoint.send(EventType.GET_VERSION)
"""

__version__ = "0.1.0"

from .background import Background
from .config import PortConfig
from .controller import SubController, handler
from .controllers import AppController, create_default_factory
from .endpoint import Endpoint
from .errors import (
    CodedError,
    ErrorCode,
    InvalidEventError,
    InvalidHandlerError,
    InvalidPayloadError,
    PermissionDeniedError,
    PortError,
    RemoteError,
    ReplyTimeoutError,
    TransportClosedError,
)
from .factory import ControllerFactory
from .protocol import REPLY_EVENT, ChannelName, Envelope, EventType, SurfaceType
from .transport import MemoryHost, MemoryTransport, StdioTransport, Transport

__all__ = [
    "__version__",
    # Core
    "Endpoint",
    "Envelope",
    "EventType",
    "REPLY_EVENT",
    # Routing
    "Background",
    "ChannelName",
    "ControllerFactory",
    "SubController",
    "SurfaceType",
    "handler",
    "AppController",
    "create_default_factory",
    # Transports
    "MemoryHost",
    "MemoryTransport",
    "StdioTransport",
    "Transport",
    # Config
    "PortConfig",
    # Errors
    "CodedError",
    "ErrorCode",
    "InvalidEventError",
    "InvalidHandlerError",
    "InvalidPayloadError",
    "PermissionDeniedError",
    "PortError",
    "RemoteError",
    "ReplyTimeoutError",
    "TransportClosedError",
]
