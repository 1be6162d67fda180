"""Reads the two-line identity handshake an agent sends on connect."""

from __future__ import annotations

import asyncio
import logging

from tmuxcatch.domain.models import AgentIdentity
from tmuxcatch.rendezvous.errors import HandshakeError

logger = logging.getLogger(__name__)

# tmux names cannot contain "." or spaces, and Windows agents report users
# as DOMAIN\user.
_REPLACEMENTS = (
    (".", "_"),
    ("\\", "_"),
    (" ", "-"),
    ("$", "_"),
)


def sanitize_for_tmux(value: str) -> str:
    """Strip the line terminator and replace characters tmux rejects.

    Both ``\\n`` and ``\\r\\n`` terminators are removed. Sanitizing an
    already sanitized string is a no-op.
    """
    value = value.rstrip("\r\n")
    for char, replacement in _REPLACEMENTS:
        value = value.replace(char, replacement)
    return value


async def _read_line(reader: asyncio.StreamReader, field: str) -> str:
    try:
        line = await reader.readuntil(b"\n")
    except asyncio.IncompleteReadError as e:
        raise HandshakeError(f"{field} read failed: connection closed") from e
    except asyncio.LimitOverrunError as e:
        raise HandshakeError(f"{field} read failed: line too long") from e
    except (ConnectionError, OSError) as e:
        raise HandshakeError(f"{field} read failed: {e}") from e
    return line.decode("utf-8", errors="replace")


async def read_identity(
    reader: asyncio.StreamReader,
    timeout: float | None = None,
) -> AgentIdentity:
    """Read hostname then username from a freshly accepted connection.

    Args:
        reader: The agent side of the connection.
        timeout: Seconds allowed for both lines. None waits forever.

    Raises:
        HandshakeError: The stream ended, errored, overran its buffer
            limit or timed out before both lines arrived.
    """

    async def _read_both() -> AgentIdentity:
        hostname = await _read_line(reader, "hostname")
        username = await _read_line(reader, "username")
        return AgentIdentity(
            hostname=sanitize_for_tmux(hostname),
            username=sanitize_for_tmux(username),
        )

    try:
        identity = await asyncio.wait_for(_read_both(), timeout)
    except asyncio.TimeoutError as e:
        raise HandshakeError(f"identity not received within {timeout}s") from e

    logger.debug("Agent identity: host=%s user=%s", identity.hostname, identity.username)
    return identity
