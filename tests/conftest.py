"""Shared test fixtures for the tmuxcatch test suite.

Provides an in-memory multiplexer, an in-memory operator terminal and
helpers that turn socket pairs into StreamPairs.
"""

from __future__ import annotations

import asyncio
import shlex
import shutil
import socket
import subprocess
from pathlib import Path

import pytest

from tmuxcatch.config.settings import ListenerConfig, RendezvousConfig
from tmuxcatch.domain.models import AgentIdentity, StreamPair
from tmuxcatch.multiplexer.base import Multiplexer, MultiplexerError
from tmuxcatch.rendezvous.endpoint import BridgeEndpoint
from tmuxcatch.terminal.base import Terminal


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeMultiplexer(Multiplexer):
    """Records every call and keeps sessions in a dict.

    ``delay`` makes each call yield to the event loop so concurrent
    callers interleave the way they would against a real tmux.
    """

    def __init__(self, delay: float = 0.0) -> None:
        self.delay = delay
        self.sessions: dict[str, list[str]] = {}
        self.calls: list[tuple] = []
        self.fail_exists = False
        self.fail_new_session = False
        self.fail_new_window = False
        self.fail_exec: set[str] = set()
        self.on_exec = None
        self._panes = 0

    async def session_exists(self, name: str) -> bool:
        self.calls.append(("session_exists", name))
        await asyncio.sleep(self.delay)
        if self.fail_exists:
            raise MultiplexerError("no tmux", command=["tmux", "has-session"])
        return name in self.sessions

    async def new_session(self, name: str) -> None:
        self.calls.append(("new_session", name))
        await asyncio.sleep(self.delay)
        if self.fail_new_session:
            raise MultiplexerError("duplicate session")
        self.sessions[name] = []

    async def new_window(self, session: str, name: str) -> str:
        self.calls.append(("new_window", session, name))
        await asyncio.sleep(self.delay)
        if self.fail_new_window:
            raise MultiplexerError("can't find session")
        self.sessions.setdefault(session, []).append(name)
        self._panes += 1
        return f"%{self._panes}"

    async def exec_in_pane(self, pane_id: str, command: str) -> None:
        self.calls.append(("exec_in_pane", pane_id, command))
        if any(marker in command for marker in self.fail_exec):
            raise MultiplexerError(f"send-keys failed for {pane_id}")
        if self.on_exec is not None:
            self.on_exec(pane_id, command)

    def count(self, op: str) -> int:
        return sum(1 for call in self.calls if call[0] == op)


class MemoryWriter:
    """StreamWriter stand-in that collects written bytes."""

    def __init__(self) -> None:
        self.data = bytearray()
        self.closed = False
        self.changed = asyncio.Event()

    def write(self, data: bytes) -> None:
        if self.closed:
            raise ConnectionResetError("writer closed")
        self.data += data
        self.changed.set()

    async def drain(self) -> None:
        pass

    def close(self) -> None:
        self.closed = True
        self.changed.set()

    def is_closing(self) -> bool:
        return self.closed

    async def wait_closed(self) -> None:
        pass

    def get_extra_info(self, name: str, default=None):
        return default


class FakeTerminal(Terminal):
    """Operator terminal kept in memory.

    Bytes fed with ``type`` appear on the input side; everything relayed
    to the terminal lands in ``output``.
    """

    def __init__(self) -> None:
        self.input = asyncio.StreamReader()
        self.output = MemoryWriter()
        self.opened = False
        self.closed = False

    def type(self, data: bytes) -> None:
        self.input.feed_data(data)

    async def open(self) -> StreamPair:
        self.opened = True
        return StreamPair(self.input, self.output, name="terminal")

    async def close(self) -> None:
        self.closed = True


async def wait_for_output(writer: MemoryWriter, size: int, timeout: float = 5.0) -> bytes:
    """Wait until ``writer`` has collected at least ``size`` bytes."""

    async def _wait() -> None:
        while len(writer.data) < size:
            writer.changed.clear()
            await writer.changed.wait()

    await asyncio.wait_for(_wait(), timeout)
    return bytes(writer.data)


class BridgeSpawner:
    """Plays the part of tmux running the bridge command in a pane.

    Hook ``spawn`` into FakeMultiplexer.on_exec: when the pane is told to
    run ``... --socket PATH`` a BridgeEndpoint with a FakeTerminal is
    started on PATH, after an optional startup delay.
    """

    def __init__(self, startup_delay: float = 0.0) -> None:
        self.startup_delay = startup_delay
        self.terminals: list[FakeTerminal] = []
        self.tasks: list[asyncio.Task] = []
        self.paths: list[Path] = []

    def spawn(self, pane_id: str, command: str) -> None:
        argv = shlex.split(command)
        if "--socket" not in argv:
            return
        path = Path(argv[argv.index("--socket") + 1])
        terminal = FakeTerminal()
        self.paths.append(path)
        self.terminals.append(terminal)
        self.tasks.append(asyncio.create_task(self._run(path, terminal)))

    async def _run(self, path: Path, terminal: FakeTerminal) -> None:
        await asyncio.sleep(self.startup_delay)
        await BridgeEndpoint(path, terminal, close_timeout=0.2).serve()


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_mux() -> FakeMultiplexer:
    return FakeMultiplexer()


@pytest.fixture
def sample_identity() -> AgentIdentity:
    return AgentIdentity(hostname="victim-host", username="DOMAIN_bob")


@pytest.fixture
def state_dir(tmp_path: Path) -> Path:
    path = tmp_path / "state"
    path.mkdir(mode=0o700)
    return path


@pytest.fixture
def fast_config() -> RendezvousConfig:
    """Rendezvous timings short enough for tests."""
    return RendezvousConfig(
        handshake_timeout=2.0,
        dial_grace=0.0,
        dial_attempts=20,
        dial_interval=0.02,
        dial_backoff=1.5,
        dial_max_interval=0.2,
        close_timeout=0.2,
    )


@pytest.fixture
def loopback() -> ListenerConfig:
    return ListenerConfig(host="127.0.0.1", port=0)


@pytest.fixture
def socket_streams():
    """Factory for connected (local StreamPair, remote StreamPair) tuples."""
    opened: list[socket.socket] = []

    async def _make(name: str = "stream") -> tuple[StreamPair, StreamPair]:
        left, right = socket.socketpair()
        opened.extend((left, right))
        local = StreamPair(*await asyncio.open_connection(sock=left), name=name)
        remote = StreamPair(*await asyncio.open_connection(sock=right), name=f"{name}-peer")
        return local, remote

    yield _make
    for sock in opened:
        sock.close()


@pytest.fixture
def tls_files(tmp_path: Path) -> tuple[Path, Path]:
    """Throwaway self-signed certificate and key, made with openssl."""
    openssl = shutil.which("openssl")
    if openssl is None:
        pytest.skip("openssl not available")
    cert = tmp_path / "server.pem"
    key = tmp_path / "server.key"
    subprocess.run(
        [
            openssl, "req", "-x509", "-newkey", "rsa:2048", "-nodes",
            "-keyout", str(key), "-out", str(cert),
            "-days", "1", "-subj", "/CN=localhost",
        ],
        check=True,
        capture_output=True,
    )
    return cert, key
