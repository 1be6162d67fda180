"""Core domain models for tmuxcatch.

These models represent the data flowing through the listener role: the
identity an agent reports when it calls back, the tmux session and window
that identity is routed to, and the per-connection lifecycle state.
"""

from __future__ import annotations

import asyncio
import enum
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class ConnectionState(str, enum.Enum):
    """Lifecycle of one accepted agent connection."""

    ACCEPTED = "accepted"
    IDENTITY_READ = "identity_read"
    ROUTED = "routed"
    BRIDGE_DIALED = "bridge_dialed"
    RELAYING = "relaying"
    CLOSED = "closed"  # Relay finished
    ABANDONED = "abandoned"  # Failed before relaying


# ---------------------------------------------------------------------------
# Agent / Routing Models
# ---------------------------------------------------------------------------


class AgentIdentity(BaseModel):
    """Hostname and username an agent reports, already sanitized."""

    model_config = ConfigDict(frozen=True)

    hostname: str
    username: str


class Window(BaseModel):
    """A tmux window created for one callback.

    ``pane_id`` is the window's primary pane, or None when tmux did not
    report one (window creation failed but routing carried on).
    """

    model_config = ConfigDict(frozen=True)

    session: str
    name: str
    pane_id: str | None = None


class Session(BaseModel):
    """Cached handle to a tmux session named after an agent host.

    ``window_count`` is the number of windows this process has created in
    the session. Window numbers are reserved under the session's lock so
    they are never handed out twice.
    """

    name: str
    window_count: int = Field(default=0, ge=0)

    _lock: asyncio.Lock = PrivateAttr(default_factory=asyncio.Lock)

    async def reserve_window_name(self, username: str) -> str:
        """Return the next ``<username>.<n>`` window name for this session."""
        async with self._lock:
            self.window_count += 1
            return f"{username}.{self.window_count}"


# ---------------------------------------------------------------------------
# Streams
# ---------------------------------------------------------------------------


@dataclass
class StreamPair:
    """The two halves of a duplex byte stream.

    ``writer`` only needs ``write``, ``drain``, ``close`` and
    ``wait_closed``, so anything shaped like an ``asyncio.StreamWriter``
    fits.
    """

    reader: asyncio.StreamReader
    writer: asyncio.StreamWriter
    name: str = "stream"
