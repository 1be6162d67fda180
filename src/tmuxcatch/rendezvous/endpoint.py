"""Bridge role: one-shot Unix socket joined to the operator's terminal.

Started inside a tmux pane by the listener. It binds the rendezvous path,
accepts exactly one connection (the listener's dial) and relays it to the
pane's terminal until either side goes away.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from tmuxcatch.domain.models import StreamPair
from tmuxcatch.rendezvous.bridge import close_stream, relay
from tmuxcatch.terminal.base import Terminal

logger = logging.getLogger(__name__)


class BridgeEndpoint:
    """Accepts a single connection on ``path`` and binds it to ``terminal``.

    Args:
        path: Rendezvous socket path to bind.
        terminal: Operator terminal to relay to.
        close_timeout: Passed through to the relay.
    """

    def __init__(self, path: Path | str, terminal: Terminal, close_timeout: float = 1.0) -> None:
        self._path = Path(path)
        self._terminal = terminal
        self._close_timeout = close_timeout
        self._server: asyncio.Server | None = None
        self._accepted: asyncio.Future[StreamPair] | None = None

    @property
    def path(self) -> Path:
        return self._path

    async def start(self) -> None:
        """Bind the socket. Failure here is fatal to the bridge role.

        Raises:
            OSError: The path could not be bound.
        """
        self._accepted = asyncio.get_running_loop().create_future()
        self._server = await asyncio.start_unix_server(self._on_connect, path=str(self._path))
        logger.info("Bridge listening on %s", self._path)

    async def _on_connect(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        conn = StreamPair(reader, writer, name="socket")
        if self._accepted is None or self._accepted.done():
            logger.warning("Rejecting extra connection on %s", self._path)
            await close_stream(conn, self._close_timeout)
            return
        self._accepted.set_result(conn)

    async def serve(self) -> None:
        """Accept one connection and relay it until it ends."""
        if self._server is None:
            await self.start()

        try:
            conn = await self._accepted
        finally:
            # Single use: stop listening whether or not a connection arrived
            self._server.close()

        logger.info("Incoming shell on %s", self._path)
        try:
            streams = await self._terminal.open()
        except Exception:
            await close_stream(conn, self._close_timeout)
            raise
        try:
            await relay(conn, streams, close_timeout=self._close_timeout)
        finally:
            await self._terminal.close()
        logger.info("Shell on %s closed", self._path)
