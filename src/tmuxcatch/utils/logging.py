"""Logging setup for the two tmuxcatch roles.

Both roles log to stderr only: in the bridge role stdout belongs to the
relayed shell, so nothing but agent output may appear there. Each record
is tagged with the role so a pane's stderr and the listener's log can be
told apart.
"""

from __future__ import annotations

import logging
import sys

from tmuxcatch.config.settings import LoggingConfig

LOGGER_NAME = "tmuxcatch"


class _RoleFilter(logging.Filter):
    def __init__(self, role: str) -> None:
        super().__init__()
        self.role = role

    def filter(self, record: logging.LogRecord) -> bool:
        record.role = self.role
        return True


def setup_logging(
    config: LoggingConfig | None = None,
    role: str = "listener",
    verbose: bool = False,
) -> logging.Logger:
    """Configure the ``tmuxcatch`` logger.

    Args:
        config: Logging configuration. If None, uses defaults
                (INFO level, stderr output).
        role: ``listener`` or ``bridge``; prefixed to every message.
        verbose: Force DEBUG regardless of ``config.level`` (``-v``).

    Calling it again replaces the handlers installed by the previous call.
    """
    if config is None:
        config = LoggingConfig()

    level_name = "DEBUG" if verbose else config.level.upper()
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, level_name, logging.INFO))

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(f"[%(role)s] {config.format}")
    role_filter = _RoleFilter(role)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if config.file:
        handlers.append(logging.FileHandler(config.file))
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(role_filter)
        logger.addHandler(handler)

    logger.debug("Logging initialized at %s level", level_name)
    return logger
