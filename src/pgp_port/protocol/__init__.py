"""Wire protocol for port channels.

Defines what travels over a channel, independent of the transport:
- Envelopes: flat JSON objects with an ``event`` name and payload fields
- Correlation: requests carry ``_reply``, replies echo it back
- Channel names: ``<surface>-<instanceId>`` addressing
"""

from .channel import ChannelName, SurfaceType
from .envelope import Envelope
from .events import REPLY_EVENT, EventType, event_name, is_valid_event

__all__ = [
    "ChannelName",
    "SurfaceType",
    "Envelope",
    "EventType",
    "REPLY_EVENT",
    "event_name",
    "is_valid_event",
]
