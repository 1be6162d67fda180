"""tmux backend for the Multiplexer interface.

Every operation is a single tmux invocation run as an asyncio subprocess,
so a slow tmux server only stalls the connection being routed.
"""

from __future__ import annotations

import asyncio
import logging

from tmuxcatch.multiplexer.base import Multiplexer, MultiplexerError

logger = logging.getLogger(__name__)


class TmuxMultiplexer(Multiplexer):
    """Drives a tmux server through its command line.

    Args:
        binary: tmux executable to run.
        socket_path: Optional server socket, passed as ``-S``.
        timeout: Seconds to wait for any single tmux command.
    """

    def __init__(
        self,
        binary: str = "tmux",
        socket_path: str | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._binary = binary
        self._socket_path = socket_path
        self._timeout = timeout

    def _command(self, *args: str) -> list[str]:
        cmd = [self._binary]
        if self._socket_path:
            cmd += ["-S", self._socket_path]
        cmd.extend(args)
        return cmd

    async def _run(self, *args: str) -> tuple[int, str, str]:
        """Run one tmux command, returning (exit code, stdout, stderr)."""
        cmd = self._command(*args)
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise MultiplexerError(f"Cannot run {self._binary}: {e}", command=cmd) from e

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), self._timeout)
        except asyncio.TimeoutError as e:
            proc.kill()
            await proc.wait()
            raise MultiplexerError(
                f"tmux timed out after {self._timeout}s", command=cmd
            ) from e

        logger.debug("%s -> %d", " ".join(cmd), proc.returncode)
        return (
            proc.returncode,
            stdout.decode("utf-8", errors="replace").strip(),
            stderr.decode("utf-8", errors="replace").strip(),
        )

    async def _check(self, *args: str) -> str:
        code, out, err = await self._run(*args)
        if code != 0:
            raise MultiplexerError(
                f"tmux {args[0]} failed: {err or 'exit code %d' % code}",
                command=self._command(*args),
                stderr=err,
            )
        return out

    async def session_exists(self, name: str) -> bool:
        # has-session exits 1 both for a missing session and for no server
        code, _, _ = await self._run("has-session", "-t", f"={name}")
        return code == 0

    async def new_session(self, name: str) -> None:
        await self._check("new-session", "-d", "-s", name)
        logger.debug("Created tmux session %s", name)

    async def new_window(self, session: str, name: str) -> str:
        pane_id = await self._check(
            "new-window", "-d", "-P", "-F", "#{pane_id}",
            "-t", f"={session}:", "-n", name,
        )
        if not pane_id:
            raise MultiplexerError(
                f"tmux did not report a pane for window {name}",
                command=self._command("new-window"),
            )
        return pane_id

    async def exec_in_pane(self, pane_id: str, command: str) -> None:
        await self._check("send-keys", "-t", pane_id, "-l", command)
        await self._check("send-keys", "-t", pane_id, "Enter")
