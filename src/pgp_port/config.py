"""Runtime configuration.

Settings come from ``PGP_PORT_*`` environment variables with defaults
suitable for a local background process.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

ENV_PREFIX = "PGP_PORT_"

# Instance id reserved for the top-level app frame
DEFAULT_TOP_FRAME_ID = "apptopframeid"


@dataclass
class PortConfig:
    """Port layer configuration."""

    # Seconds to wait for a reply; None waits forever
    reply_timeout: float | None = None

    # HTTP/WebSocket server
    host: str = "127.0.0.1"
    port: int = 4097

    log_level: str = "WARNING"

    top_frame_id: str = DEFAULT_TOP_FRAME_ID

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> PortConfig:
        """Build a config from environment variables.

        Raises:
            ValueError: If a numeric variable cannot be parsed
        """
        env = os.environ if environ is None else environ
        config = cls()

        timeout = env.get(f"{ENV_PREFIX}REPLY_TIMEOUT", "").strip()
        if timeout:
            config.reply_timeout = _parse_float(f"{ENV_PREFIX}REPLY_TIMEOUT", timeout)
            if config.reply_timeout <= 0:
                config.reply_timeout = None

        config.host = env.get(f"{ENV_PREFIX}HOST", config.host)

        port = env.get(f"{ENV_PREFIX}PORT", "").strip()
        if port:
            try:
                config.port = int(port)
            except ValueError as e:
                raise ValueError(f"{ENV_PREFIX}PORT must be an integer, got {port!r}") from e

        config.log_level = env.get(f"{ENV_PREFIX}LOG_LEVEL", config.log_level).upper()
        config.top_frame_id = env.get(f"{ENV_PREFIX}TOP_FRAME_ID", config.top_frame_id)
        return config


def _parse_float(name: str, value: str) -> float:
    try:
        return float(value)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {value!r}") from e
