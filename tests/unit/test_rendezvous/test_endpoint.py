"""Tests for the bridge role's one-shot socket endpoint."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from tmuxcatch.rendezvous.endpoint import BridgeEndpoint

from tests.conftest import FakeTerminal, wait_for_output


@pytest.fixture
def sock_path(state_dir: Path) -> Path:
    return state_dir / "bob.x1y2.sock"


class TestBridgeEndpoint:
    @pytest.mark.asyncio
    async def test_relays_between_socket_and_terminal(self, sock_path: Path) -> None:
        terminal = FakeTerminal()
        endpoint = BridgeEndpoint(sock_path, terminal, close_timeout=0.1)
        await endpoint.start()
        assert sock_path.exists()
        task = asyncio.create_task(endpoint.serve())

        reader, writer = await asyncio.open_unix_connection(str(sock_path))
        writer.write(b"uid=0(root)\n")
        await writer.drain()
        assert await wait_for_output(terminal.output, 12) == b"uid=0(root)\n"

        terminal.type(b"whoami\n")
        assert await reader.readexactly(7) == b"whoami\n"

        writer.close()
        await asyncio.wait_for(task, 3.0)
        assert terminal.opened and terminal.closed

    @pytest.mark.asyncio
    async def test_accepts_only_one_connection(self, sock_path: Path) -> None:
        terminal = FakeTerminal()
        endpoint = BridgeEndpoint(sock_path, terminal, close_timeout=0.1)
        await endpoint.start()
        task = asyncio.create_task(endpoint.serve())

        _, first = await asyncio.open_unix_connection(str(sock_path))
        await asyncio.sleep(0.05)
        with pytest.raises((ConnectionRefusedError, FileNotFoundError)):
            await asyncio.open_unix_connection(str(sock_path))

        first.close()
        await asyncio.wait_for(task, 3.0)

    @pytest.mark.asyncio
    async def test_bind_failure_propagates(self, tmp_path: Path) -> None:
        endpoint = BridgeEndpoint(tmp_path / "missing-dir" / "x.sock", FakeTerminal())
        with pytest.raises(OSError):
            await endpoint.start()
