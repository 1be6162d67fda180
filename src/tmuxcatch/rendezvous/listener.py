"""TLS accept loop of the listener role.

Every accepted connection runs in its own task through::

    accepted -> identity read -> routed -> bridge dialed -> relaying -> closed

Any failure before relaying abandons only that connection; the server
keeps accepting.
"""

from __future__ import annotations

import asyncio
import logging
import ssl
from pathlib import Path

from tmuxcatch.config.settings import ListenerConfig, RendezvousConfig
from tmuxcatch.domain.models import ConnectionState, StreamPair
from tmuxcatch.rendezvous.bridge import close_stream, relay
from tmuxcatch.rendezvous.errors import DialError, RendezvousError
from tmuxcatch.rendezvous.identity import read_identity
from tmuxcatch.rendezvous.router import SessionRouter

logger = logging.getLogger(__name__)


def load_tls_context(cert_path: Path | str, key_path: Path | str) -> ssl.SSLContext:
    """Build a server-side TLS context from a PEM certificate and key.

    Raises:
        OSError: A file is missing or unreadable.
        ssl.SSLError: The files do not hold a matching key pair.
    """
    ctx = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    ctx.load_cert_chain(certfile=str(cert_path), keyfile=str(key_path))
    return ctx


class RendezvousListener:
    """Accepts agent callbacks over TLS and hands them to tmux panes.

    Usage::

        listener = RendezvousListener(router, ssl_context, config)
        await listener.start()
        await listener.serve_forever()
    """

    def __init__(
        self,
        router: SessionRouter,
        ssl_context: ssl.SSLContext | None,
        listener_config: ListenerConfig | None = None,
        rendezvous_config: RendezvousConfig | None = None,
    ) -> None:
        self._router = router
        self._ssl = ssl_context
        self._listen = listener_config or ListenerConfig()
        self._config = rendezvous_config or RendezvousConfig()
        self._server: asyncio.Server | None = None
        self._handlers: set[asyncio.Task[ConnectionState]] = set()

    @property
    def sockets(self) -> list:
        return list(self._server.sockets) if self._server else []

    @property
    def port(self) -> int:
        """Port actually bound, useful when configured with port 0."""
        return self.sockets[0].getsockname()[1]

    async def start(self) -> None:
        """Bind the TLS endpoint. Failure here is fatal to the listener role."""
        self._server = await asyncio.start_server(
            self._on_connect,
            host=self._listen.host,
            port=self._listen.port,
            ssl=self._ssl,
        )
        logger.info("Listener started on %s:%d", self._listen.host, self.port)

    async def serve_forever(self) -> None:
        if self._server is None:
            await self.start()
        await self._server.serve_forever()

    async def close(self) -> None:
        if self._server is not None:
            self._server.close()
        for task in list(self._handlers):
            task.cancel()
        await asyncio.gather(*self._handlers, return_exceptions=True)
        if self._server is not None:
            await self._server.wait_closed()
        logger.info("Listener stopped")

    async def _on_connect(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        task = asyncio.current_task()
        self._handlers.add(task)
        agent = StreamPair(reader, writer, name="agent")
        try:
            await self.handle_connection(agent)
        except Exception:
            logger.exception("Unexpected error handling connection")
        finally:
            # Idempotent; also covers cancellation by close()
            agent.writer.close()
            self._handlers.discard(task)

    async def handle_connection(self, agent: StreamPair) -> ConnectionState:
        """Drive one accepted connection to CLOSED or ABANDONED.

        Until the relay takes over, any exit (failure or cancellation)
        closes the agent stream and removes the rendezvous path.
        """
        peer = agent.writer.get_extra_info("peername")
        state = ConnectionState.ACCEPTED
        logger.debug("Incoming connection from %s", peer)
        path: Path | None = None
        handed_off = False
        try:
            identity = await read_identity(agent.reader, timeout=self._config.handshake_timeout)
            state = ConnectionState.IDENTITY_READ

            path = await self._router.route(identity)
            state = ConnectionState.ROUTED

            bridge = await self.dial_bridge(path)
            state = ConnectionState.BRIDGE_DIALED
            handed_off = True
        except RendezvousError as e:
            logger.error("Abandoning connection from %s after %s: %s", peer, state.value, e)
            await close_stream(agent, self._config.close_timeout)
            return ConnectionState.ABANDONED
        finally:
            if not handed_off:
                agent.writer.close()
                if path is not None:
                    path.unlink(missing_ok=True)

        state = ConnectionState.RELAYING
        logger.debug("Relaying %s <-> %s", peer, path)
        await relay(agent, bridge, cleanup_path=path, close_timeout=self._config.close_timeout)
        logger.info("Connection from %s closed", peer)
        return ConnectionState.CLOSED

    async def dial_bridge(self, path: Path) -> StreamPair:
        """Connect to the bridge's Unix socket, retrying with backoff.

        Raises:
            DialError: The socket did not accept within the allowed attempts.
        """
        cfg = self._config
        await asyncio.sleep(cfg.dial_grace)
        interval = cfg.dial_interval
        last_error: Exception | None = None
        for attempt in range(1, cfg.dial_attempts + 1):
            try:
                reader, writer = await asyncio.open_unix_connection(str(path))
            except (FileNotFoundError, ConnectionRefusedError) as e:
                last_error = e
                logger.debug("Bridge %s not ready (attempt %d): %s", path, attempt, e)
            except OSError as e:
                raise DialError(f"failed to dial {path}: {e}", path=str(path), attempts=attempt) from e
            else:
                return StreamPair(reader, writer, name="bridge")

            if attempt < cfg.dial_attempts:
                await asyncio.sleep(interval)
                interval = min(interval * cfg.dial_backoff, cfg.dial_max_interval)

        raise DialError(
            f"failed to dial {path} after {cfg.dial_attempts} attempts: {last_error}",
            path=str(path),
            attempts=cfg.dial_attempts,
        )
