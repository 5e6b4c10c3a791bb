"""Channel names.

Every channel is opened under a ``<surface>-<instanceId>`` name, e.g.
``dDialog-8f3a``. The surface type selects the controller class in the
background, the instance id groups the channels of one UI instance onto one
controller (a decrypt frame and its dialog share an id).
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from enum import Enum


class SurfaceType(str, Enum):
    """UI surface types that open channels."""

    APP = "app"
    APP_CONTAINER = "appCont"
    DECRYPT_FRAME = "dFrame"
    DECRYPT_CONTAINER = "decryptCont"
    DECRYPT_DIALOG = "dDialog"
    DECRYPT_POPUP = "dPopup"
    EDITOR = "editor"
    EDITOR_CONTAINER = "editorCont"
    ENCRYPT_FRAME = "eFrame"
    IMPORT_FRAME = "imFrame"
    KEY_BACKUP_CONTAINER = "keyBackupCont"
    KEY_BACKUP_DIALOG = "keyBackupDialog"
    KEY_GEN_CONTAINER = "keyGenCont"
    KEY_GEN_DIALOG = "keyGenDialog"
    MAIN_CONTENT_SCRIPT = "mainCS"
    PWD_DIALOG = "pwdDialog"
    VERIFY_FRAME = "vFrame"
    VERIFY_DIALOG = "vDialog"


@dataclass(frozen=True)
class ChannelName:
    """Parsed ``<surface>-<instanceId>`` channel name."""

    type: str
    id: str

    def __str__(self) -> str:
        return f"{self.type}-{self.id}"

    @classmethod
    def parse(cls, name: str) -> ChannelName:
        """Split a channel name at its first dash.

        Raises:
            ValueError: If the name has no surface type or no instance id
        """
        surface, sep, instance_id = name.partition("-")
        if not sep or not surface or not instance_id:
            raise ValueError(f"Invalid channel name: {name!r}")
        return cls(type=surface, id=instance_id)

    @classmethod
    def create(cls, surface: str | SurfaceType, instance_id: str | None = None) -> ChannelName:
        """Build a channel name, minting a fresh instance id if none is given."""
        surface_type = surface.value if isinstance(surface, SurfaceType) else surface
        if not surface_type or "-" in surface_type:
            raise ValueError(f"Invalid surface type: {surface_type!r}")
        return cls(type=surface_type, id=instance_id or uuid.uuid4().hex[:12])
