"""Event names used on the wire.

Event names are plain strings on the wire. ``EventType`` lists the names the
UI surfaces and the background exchange, so call sites can use the enum and
get a typo caught at import time instead of an "Unknown event" log line at
runtime. Any non-empty string is still accepted.
"""

from __future__ import annotations

from enum import Enum

# Reserved for reply envelopes, owned by the dispatch mechanism
REPLY_EVENT = "_reply"


class EventType(str, Enum):
    """Known event names."""

    # Lifecycle
    TERMINATE = "terminate"
    GET_VERSION = "get-version"

    # Preferences
    GET_PREFS = "get-prefs"
    SET_PREFS = "set-prefs"

    # Keyring
    GET_ACTIVE_KEYRING = "get-active-keyring"
    SET_ACTIVE_KEYRING = "set-active-keyring"
    GET_ALL_KEYRING_ATTR = "get-all-keyring-attr"
    SET_KEYRING_ATTR = "set-keyring-attr"
    GET_ALL_KEY_DATA = "get-all-key-data"
    RELOAD_KEYSTORE = "reload-keystore"
    AUTO_LOCATE = "auto-locate"

    # Decrypt dialog
    DECRYPT_MESSAGE = "decrypt-message"
    DECRYPT_MESSAGE_INIT = "decrypt-message-init"
    DECRYPTED_MESSAGE = "decrypted-message"
    SIGNATURE_VERIFICATION = "signature-verification"
    DIALOG_CANCEL = "dialog-cancel"
    REMOVE_DIALOG = "remove-dialog"

    # Password dialog
    PWD_DIALOG_INIT = "pwd-dialog-init"
    PWD_DIALOG_OK = "pwd-dialog-ok"
    PWD_DIALOG_CANCEL = "pwd-dialog-cancel"
    WRONG_PASSWORD = "wrong-password"
    SHOW_PWD_DIALOG = "show-pwd-dialog"

    # Editor
    OPEN_EDITOR = "open-editor"
    SET_TEXT = "set-text"
    SIGN_ONLY = "sign-only"

    # Generic UI
    SET_INIT_DATA = "set-init-data"
    ERROR_MESSAGE = "error-message"
    OPEN_APP = "open-app"
    OPEN_SECURITY_SETTINGS = "open-security-settings"


def event_name(event: str | EventType) -> str:
    """Wire name of an event given as string or enum member."""
    if isinstance(event, EventType):
        return event.value
    return event


def is_valid_event(event: object) -> bool:
    """Check an event name for application use: a non-empty, unreserved string."""
    return isinstance(event, str) and bool(event) and event_name(event) != REPLY_EVENT
