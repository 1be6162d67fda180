"""Bidirectional byte relay between two duplex streams.

Both directions are copied concurrently. When either one stops, both
streams are closed so the other direction unblocks as well, and the
relay returns once both copies have ended.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from pathlib import Path

from tmuxcatch.domain.models import StreamPair
from tmuxcatch.rendezvous.errors import RelayError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


async def copy_stream(src: StreamPair, dst: StreamPair) -> int:
    """Copy ``src`` into ``dst`` until EOF; return the number of bytes copied.

    Raises:
        RelayError: Reading or writing failed.
    """
    total = 0
    try:
        while True:
            data = await src.reader.read(CHUNK_SIZE)
            if not data:
                break
            dst.writer.write(data)
            await dst.writer.drain()
            total += len(data)
    except (ConnectionError, OSError, RuntimeError) as e:
        raise RelayError(f"{src.name} -> {dst.name}: {e}") from e
    return total


async def close_stream(stream: StreamPair, timeout: float = 1.0) -> None:
    """Close a stream's writer, waiting at most ``timeout`` for it to finish.

    Errors from an already dead peer are ignored.
    """
    stream.writer.close()
    with contextlib.suppress(ConnectionError, OSError, RuntimeError, asyncio.TimeoutError):
        await asyncio.wait_for(stream.writer.wait_closed(), timeout)


async def relay(
    a: StreamPair,
    b: StreamPair,
    cleanup_path: Path | str | None = None,
    close_timeout: float = 1.0,
) -> None:
    """Relay bytes between ``a`` and ``b`` until either side ends.

    Args:
        a: First stream.
        b: Second stream.
        cleanup_path: File to remove once the relay is over, whichever
            side ended first and whether or not an error occurred.
        close_timeout: Bound on waiting for each stream to close, and on
            the surviving direction noticing the close before it is
            cancelled.
    """
    tasks = [
        asyncio.create_task(copy_stream(a, b), name=f"{a.name}->{b.name}"),
        asyncio.create_task(copy_stream(b, a), name=f"{b.name}->{a.name}"),
    ]
    try:
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        first = done.pop()
        logger.debug("Relay direction %s ended first", first.get_name())

        await asyncio.gather(close_stream(a, close_timeout), close_stream(b, close_timeout))

        if pending:
            _, still_pending = await asyncio.wait(pending, timeout=close_timeout)
            for task in still_pending:
                task.cancel()
    finally:
        a.writer.close()
        b.writer.close()
        for task in tasks:
            task.cancel()
        results = await asyncio.gather(*tasks, return_exceptions=True)
        for task, result in zip(tasks, results):
            if isinstance(result, RelayError):
                logger.debug("Relay %s stopped: %s", task.get_name(), result)
            elif isinstance(result, int):
                logger.debug("Relay %s copied %d bytes", task.get_name(), result)
            elif isinstance(result, Exception):
                logger.warning("Relay %s failed: %r", task.get_name(), result)
        if cleanup_path is not None:
            Path(cleanup_path).unlink(missing_ok=True)
