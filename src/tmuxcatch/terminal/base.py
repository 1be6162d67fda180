"""Abstract base class for the operator's interactive terminal.

The bridge role reads operator keystrokes from the terminal's input and
writes agent output to the terminal's output. Both are exposed as a
StreamPair so the same relay used between sockets can drive them.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from tmuxcatch.domain.models import StreamPair


class Terminal(ABC):
    """Interface to an interactive terminal.

    Example usage::

        async with TtyTerminal() as streams:
            streams.writer.write(b"hello\\n")
            line = await streams.reader.readline()
    """

    @abstractmethod
    async def open(self) -> StreamPair:
        """Open the terminal.

        Returns:
            A StreamPair whose reader yields typed input and whose writer
            prints to the terminal.

        Raises:
            TerminalError: If the terminal cannot be opened.
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release the terminal. Safe to call more than once."""
        ...

    async def __aenter__(self) -> StreamPair:
        return await self.open()

    async def __aexit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        await self.close()


class TerminalError(Exception):
    """Raised when the terminal cannot be opened or configured."""
