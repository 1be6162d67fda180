"""Exceptions raised while catching and handing off agent connections.

Everything except a failure to bind the TLS or Unix listener is local to
one connection: the listener logs it, drops that connection and keeps
accepting.
"""

from __future__ import annotations


class RendezvousError(Exception):
    """Base class for per-connection failures."""


class HandshakeError(RendezvousError):
    """The agent closed, stalled or sent garbage before both identity lines."""


class RoutingError(RendezvousError):
    """tmux could not be queried or no rendezvous path could be allocated."""


class DialError(RendezvousError):
    """The bridge's Unix socket never became reachable."""

    def __init__(self, message: str, path: str = "", attempts: int = 0) -> None:
        super().__init__(message)
        self.path = path
        self.attempts = attempts


class RelayError(RendezvousError):
    """One direction of a relay failed.

    The relay treats this as the normal end of a session; it is only
    surfaced in debug logs.
    """
