"""stdio transport.

Carries one channel over a pair of byte streams, typically the stdin/stdout of
a subprocess (the shape of a browser native-messaging host).

Wire format (newline-delimited JSON, UTF-8 encoded):
- One envelope per line, e.g. {"event": "get-version", "_reply": 1}
- Output lines always end in LF
- Input accepts LF and CRLF, a leading BOM, and skips blank lines
- Lines that are not JSON objects are logged and skipped
- EOF on input means the remote side went away

Logging must go to stderr: stdout belongs to the wire.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from typing import Any, BinaryIO

from .base import Transport, TransportMode

logger = logging.getLogger(__name__)

# UTF-8 encoding for all JSON operations
ENCODING = "utf-8"

# Newline character (always LF for cross-platform consistency)
NEWLINE = "\n"


class StdioTransport(Transport):
    """Transport over binary input/output streams.

    Usage:
        transport = StdioTransport("app-1")
        endpoint = Endpoint(transport)
        await transport.run()  # Blocks until stdin closes
    """

    mode = TransportMode.STDIO

    def __init__(
        self,
        name: str,
        stdin: BinaryIO | None = None,
        stdout: BinaryIO | None = None,
    ):
        super().__init__(name)
        # Streams are borrowed, never closed here
        self._stdin = stdin if stdin is not None else sys.stdin.buffer
        self._stdout = stdout if stdout is not None else sys.stdout.buffer

    async def run(self) -> None:
        """Read envelopes until EOF, then report the remote side closed."""
        try:
            while self.is_connected:
                line = await self._read_line()
                if line is None:
                    break

                line = line.strip()
                if not line:
                    continue

                if line.startswith("\ufeff"):
                    line = line[1:]

                self._process_line(line)
        except asyncio.CancelledError:
            logger.info(f"stdio transport {self.name!r} cancelled")
            raise
        finally:
            self._remote_closed()

    async def _read_line(self) -> str | None:
        loop = asyncio.get_running_loop()
        try:
            raw = await loop.run_in_executor(None, self._stdin.readline)
        except (OSError, ValueError) as e:
            logger.warning(f"stdio read failed on {self.name!r}: {e}")
            return None
        if not raw:
            return None
        return raw.decode(ENCODING, errors="replace")

    def _process_line(self, line: str) -> None:
        try:
            message = json.loads(line)
        except json.JSONDecodeError as e:
            logger.warning(f"Skipping non-JSON line on {self.name!r}: {e} (line: {line[:50]})")
            return
        if not isinstance(message, dict):
            logger.warning(f"Skipping non-object message on {self.name!r}: {line[:50]}")
            return
        self._deliver(message)

    def _post(self, message: dict[str, Any]) -> None:
        json_str = json.dumps(message, ensure_ascii=False)
        self._stdout.write((json_str + NEWLINE).encode(ENCODING))
        self._stdout.flush()

    def _close(self) -> None:
        try:
            self._stdout.flush()
        except (OSError, ValueError) as e:
            logger.debug(f"stdio flush on close failed: {e}")
