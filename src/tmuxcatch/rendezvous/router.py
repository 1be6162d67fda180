"""Routes an agent identity to a tmux window and a rendezvous path.

Each agent host gets one tmux session; each callback gets a new window in
it named ``<user>.<n>``. The window's pane is told to relaunch this
program in the bridge role against a fresh Unix socket path, which is
returned so the listener can dial it.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shlex
import tempfile
from pathlib import Path

from tmuxcatch.domain.models import AgentIdentity, Session, Window
from tmuxcatch.multiplexer.base import Multiplexer, MultiplexerError
from tmuxcatch.rendezvous.errors import RoutingError

logger = logging.getLogger(__name__)

BELL_COMMAND = "printf '\\a'"


class SessionCache:
    """Sessions known to this process, keyed by sanitized hostname.

    The existence check and the insert happen under a per-host lock, so
    concurrent callbacks from one host create the tmux session once.
    """

    def __init__(self, multiplexer: Multiplexer) -> None:
        self._mux = multiplexer
        self._sessions: dict[str, Session] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def __contains__(self, hostname: str) -> bool:
        return hostname in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def get(self, hostname: str) -> Session | None:
        return self._sessions.get(hostname)

    async def get_or_create(self, hostname: str) -> Session:
        """Return the cached session for ``hostname``, creating it if needed.

        Raises:
            RoutingError: tmux could not be asked whether the session exists.
        """
        lock = self._locks.setdefault(hostname, asyncio.Lock())
        async with lock:
            try:
                exists = await self._mux.session_exists(hostname)
            except MultiplexerError as e:
                raise RoutingError(f"session check for {hostname} failed: {e}") from e

            if not exists:
                logger.info("New host connected, creating session %s", hostname)
                try:
                    await self._mux.new_session(hostname)
                except MultiplexerError as e:
                    logger.warning("Creating session %s: %s", hostname, e)
                self._sessions[hostname] = Session(name=hostname)
            elif hostname not in self._sessions:
                # Left over from an earlier run of the listener
                logger.debug("Adopting existing tmux session %s", hostname)
                self._sessions[hostname] = Session(name=hostname)

            return self._sessions[hostname]


class SessionRouter:
    """Turns an agent identity into a prepared tmux pane and socket path.

    Args:
        multiplexer: Where sessions and windows are created.
        state_dir: Directory that holds rendezvous sockets.
        bridge_command: argv prefix that starts this program; the router
            appends ``--socket <path>``.
        bell: Ring the terminal bell in each new pane first.
    """

    def __init__(
        self,
        multiplexer: Multiplexer,
        state_dir: Path | str = ".state",
        bridge_command: list[str] | None = None,
        bell: bool = True,
    ) -> None:
        self._mux = multiplexer
        self._state_dir = Path(state_dir)
        self._bridge_command = bridge_command or ["tmuxcatch"]
        self._bell = bell
        self.sessions = SessionCache(multiplexer)

    async def route(self, identity: AgentIdentity) -> Path:
        """Prepare a pane for ``identity`` and return its rendezvous path.

        Raises:
            RoutingError: The session check or the path allocation failed.
                Every other tmux failure is logged and routing continues.
        """
        session = await self.sessions.get_or_create(identity.hostname)
        window = await self._open_window(session, identity.username)
        path = self.allocate_path(identity.username)

        if window.pane_id is None:
            logger.warning(
                "No pane for window %s:%s, start the bridge by hand: %s",
                session.name, window.name, self.bridge_shell_command(path),
            )
        else:
            if self._bell:
                await self._exec(window, BELL_COMMAND)
            await self._exec(window, self.bridge_shell_command(path))

        logger.info("New shell in tmux: session=%s window=%s", session.name, window.name)
        return path

    async def _open_window(self, session: Session, username: str) -> Window:
        name = await session.reserve_window_name(username)
        try:
            pane_id = await self._mux.new_window(session.name, name)
        except MultiplexerError as e:
            logger.warning("Adding window %s to session %s: %s", name, session.name, e)
            pane_id = None
        return Window(session=session.name, name=name, pane_id=pane_id)

    async def _exec(self, window: Window, command: str) -> None:
        try:
            await self._mux.exec_in_pane(window.pane_id, command)
        except MultiplexerError as e:
            logger.warning(
                "Exec in %s:%s failed (%s): %s", window.session, window.name, command, e
            )

    def allocate_path(self, username: str) -> Path:
        """Reserve a unique, not yet existing socket path under the state dir.

        A temp file is created only to claim a unique name and is deleted
        straight away; the bridge binds its socket at that path.

        Raises:
            RoutingError: The temp file could not be created.
        """
        try:
            fd, name = tempfile.mkstemp(prefix=f"{username}.", suffix=".sock", dir=self._state_dir)
        except OSError as e:
            raise RoutingError(f"temp file failed: {e}") from e
        os.close(fd)
        os.unlink(name)
        return Path(name).resolve()

    def bridge_shell_command(self, path: Path) -> str:
        return shlex.join([*self._bridge_command, "--socket", str(path)])
