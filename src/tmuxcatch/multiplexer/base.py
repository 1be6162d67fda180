"""Abstract base class for the terminal multiplexer.

The router only needs four operations from a multiplexer, so tmux can be
swapped for an in-memory fake in tests without touching routing code.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class Multiplexer(ABC):
    """Interface to a terminal multiplexer holding sessions of windows."""

    @abstractmethod
    async def session_exists(self, name: str) -> bool:
        """Return True if a session with exactly this name exists.

        Raises:
            MultiplexerError: The multiplexer could not be queried at all.
        """
        ...

    @abstractmethod
    async def new_session(self, name: str) -> None:
        """Create a detached session.

        Raises:
            MultiplexerError: If the session could not be created.
        """
        ...

    @abstractmethod
    async def new_window(self, session: str, name: str) -> str:
        """Create a window in ``session`` and return its primary pane id.

        Raises:
            MultiplexerError: If the window could not be created.
        """
        ...

    @abstractmethod
    async def exec_in_pane(self, pane_id: str, command: str) -> None:
        """Type ``command`` into the pane and press Enter.

        Raises:
            MultiplexerError: If the keys could not be sent.
        """
        ...


class MultiplexerError(Exception):
    """Raised when a multiplexer command fails."""

    def __init__(self, message: str, command: list[str] | None = None, stderr: str = "") -> None:
        super().__init__(message)
        self.command = command or []
        self.stderr = stderr
