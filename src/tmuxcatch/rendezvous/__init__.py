"""Callback catching, routing and handoff between the two roles."""

from tmuxcatch.rendezvous.bridge import relay
from tmuxcatch.rendezvous.endpoint import BridgeEndpoint
from tmuxcatch.rendezvous.errors import (
    DialError,
    HandshakeError,
    RelayError,
    RendezvousError,
    RoutingError,
)
from tmuxcatch.rendezvous.identity import read_identity, sanitize_for_tmux
from tmuxcatch.rendezvous.listener import RendezvousListener, load_tls_context
from tmuxcatch.rendezvous.router import SessionRouter

__all__ = [
    "BridgeEndpoint",
    "DialError",
    "HandshakeError",
    "RelayError",
    "RendezvousError",
    "RendezvousListener",
    "RoutingError",
    "SessionRouter",
    "load_tls_context",
    "read_identity",
    "relay",
    "sanitize_for_tmux",
]
