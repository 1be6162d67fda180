"""Domain models for tmuxcatch."""

from tmuxcatch.domain.models import (
    AgentIdentity,
    ConnectionState,
    Session,
    StreamPair,
    Window,
)

__all__ = [
    "AgentIdentity",
    "ConnectionState",
    "Session",
    "StreamPair",
    "Window",
]
