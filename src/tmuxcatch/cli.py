"""Command-line interface for tmuxcatch.

Without ``--socket`` the program runs in the listener role and catches
TLS callbacks. With ``--socket PATH`` it runs in the bridge role, which is
how the listener relaunches it inside each new tmux pane.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
import ssl
import sys
from pathlib import Path

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="tmuxcatch",
        description="Catch TLS shell callbacks into tmux windows",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to YAML configuration file (default: config/tmuxcatch.yaml)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "-i", "--host",
        default=None,
        help="Interface address on which to bind (default: 127.0.0.1)",
    )
    parser.add_argument(
        "-p", "--port",
        type=int, default=None,
        help="Port on which to bind (default: 8443)",
    )
    parser.add_argument(
        "-k", "--keys",
        type=Path, default=None,
        help="Path to folder with server.{pem,key} (default: ./certs)",
    )
    parser.add_argument(
        "-s", "--socket",
        type=Path, default=None,
        help="Unix socket to bridge to this terminal (bridge role)",
    )
    return parser.parse_args(argv)


def self_command(config_path: Path | None = None, verbose: bool = False) -> list[str]:
    """Build the argv that relaunches this program, minus ``--socket``."""
    argv0 = sys.argv[0] if sys.argv else ""
    if argv0 and not argv0.endswith("__main__.py") and os.access(argv0, os.X_OK):
        cmd = [os.path.abspath(argv0)]
    else:
        cmd = [sys.executable, "-m", "tmuxcatch"]
    if config_path is not None:
        cmd += ["--config", str(Path(config_path).resolve())]
    if verbose:
        cmd.append("--verbose")
    return cmd


def ensure_state_dir(path: Path) -> None:
    """Create the rendezvous socket directory, owner-only, if missing."""
    if not path.exists():
        path.mkdir(mode=0o700, parents=True)
        logger.debug("Created state directory %s", path)


async def _run_listener(settings, bridge_command: list[str]) -> None:
    """Bind the TLS endpoint and catch callbacks until interrupted."""
    from tmuxcatch.multiplexer.tmux import TmuxMultiplexer
    from tmuxcatch.rendezvous.listener import RendezvousListener, load_tls_context
    from tmuxcatch.rendezvous.router import SessionRouter

    ssl_context = load_tls_context(settings.listener.cert_path, settings.listener.key_path)

    multiplexer = TmuxMultiplexer(
        binary=settings.tmux.binary,
        socket_path=settings.tmux.socket_path,
    )
    router = SessionRouter(
        multiplexer,
        state_dir=settings.rendezvous.state_dir,
        bridge_command=bridge_command,
        bell=settings.tmux.bell,
    )
    listener = RendezvousListener(
        router,
        ssl_context,
        listener_config=settings.listener,
        rendezvous_config=settings.rendezvous,
    )
    await listener.start()

    main_task = asyncio.current_task()
    asyncio.get_running_loop().add_signal_handler(signal.SIGTERM, main_task.cancel)
    try:
        await listener.serve_forever()
    except asyncio.CancelledError:
        logger.info("Shutting down")
    finally:
        await listener.close()


async def _run_bridge(settings, socket_path: Path) -> None:
    """Accept the listener's single connection and bind it to this tty."""
    from tmuxcatch.rendezvous.endpoint import BridgeEndpoint
    from tmuxcatch.terminal.devtty import TtyTerminal

    terminal = TtyTerminal(
        tty_path=settings.bridge.tty_path,
        raw_mode=settings.bridge.raw_mode,
    )
    endpoint = BridgeEndpoint(
        socket_path,
        terminal,
        close_timeout=settings.rendezvous.close_timeout,
    )
    await endpoint.start()
    await endpoint.serve()


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the tmuxcatch CLI."""
    args = parse_args(argv)

    from tmuxcatch.config.settings import load_settings
    from tmuxcatch.terminal.base import TerminalError
    from tmuxcatch.utils.logging import setup_logging

    settings = load_settings(args.config)

    if args.host is not None:
        settings.listener.host = args.host
    if args.port is not None:
        settings.listener.port = args.port
    if args.keys is not None:
        settings.listener.keys_dir = args.keys

    setup_logging(
        settings.logging,
        role="bridge" if args.socket is not None else "listener",
        verbose=args.verbose,
    )

    if args.socket is not None:
        try:
            asyncio.run(_run_bridge(settings, args.socket))
        except (OSError, TerminalError) as e:
            logger.error("Bridge on %s failed: %s", args.socket, e)
            sys.exit(1)
        except KeyboardInterrupt:
            pass
        return

    ensure_state_dir(settings.rendezvous.state_dir)
    bridge_command = self_command(args.config, verbose=args.verbose)
    try:
        asyncio.run(_run_listener(settings, bridge_command))
    except (OSError, ssl.SSLError) as e:
        logger.error("Listener failed: %s", e)
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Interrupted")


if __name__ == "__main__":
    main()
