"""Terminal backend for the process's controlling terminal (/dev/tty).

Input and output are opened as two separate file objects and attached to
the event loop as pipes, so reading keystrokes never blocks writes of
agent output.
"""

from __future__ import annotations

import asyncio
import logging
import termios
import tty

from tmuxcatch.domain.models import StreamPair
from tmuxcatch.terminal.base import Terminal, TerminalError

logger = logging.getLogger(__name__)


class TtyTerminal(Terminal):
    """Binds to the controlling terminal.

    Args:
        tty_path: Terminal device to open.
        raw_mode: Switch the terminal to raw mode while open, so keys like
            Ctrl+C reach the agent instead of this process. The previous
            mode is restored on close.
    """

    def __init__(self, tty_path: str = "/dev/tty", raw_mode: bool = False) -> None:
        self._tty_path = tty_path
        self._raw_mode = raw_mode
        self._input = None
        self._output = None
        self._streams: StreamPair | None = None
        self._saved_mode: list | None = None
        self._read_transport: asyncio.ReadTransport | None = None

    @property
    def is_open(self) -> bool:
        return self._streams is not None

    async def open(self) -> StreamPair:
        if self._streams is not None:
            return self._streams

        try:
            self._input = open(self._tty_path, "rb", buffering=0)
            self._output = open(self._tty_path, "wb", buffering=0)
        except OSError as e:
            await self.close()
            raise TerminalError(f"Cannot open {self._tty_path}: {e}") from e

        if self._raw_mode:
            fd = self._input.fileno()
            try:
                self._saved_mode = termios.tcgetattr(fd)
                tty.setraw(fd)
            except termios.error as e:
                await self.close()
                raise TerminalError(f"Cannot set raw mode on {self._tty_path}: {e}") from e

        loop = asyncio.get_running_loop()
        reader = asyncio.StreamReader()
        self._read_transport, _ = await loop.connect_read_pipe(
            lambda: asyncio.StreamReaderProtocol(reader), self._input
        )
        transport, protocol = await loop.connect_write_pipe(
            asyncio.streams.FlowControlMixin, self._output
        )
        writer = asyncio.StreamWriter(transport, protocol, None, loop)

        self._streams = StreamPair(reader, writer, name="terminal")
        logger.debug("Opened terminal %s (raw=%s)", self._tty_path, self._raw_mode)
        return self._streams

    async def close(self) -> None:
        if self._saved_mode is not None and self._input is not None:
            try:
                termios.tcsetattr(self._input.fileno(), termios.TCSAFLUSH, self._saved_mode)
            except (termios.error, ValueError) as e:
                logger.debug("Restoring terminal mode failed: %s", e)
            self._saved_mode = None

        if self._streams is not None:
            self._streams.writer.close()
            self._streams = None
        if self._read_transport is not None:
            self._read_transport.close()
            self._read_transport = None

        for f in (self._input, self._output):
            if f is not None:
                try:
                    f.close()
                except OSError:
                    pass
        self._input = None
        self._output = None
