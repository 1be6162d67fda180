"""Operator terminal backends."""

from tmuxcatch.terminal.base import Terminal, TerminalError
from tmuxcatch.terminal.devtty import TtyTerminal

__all__ = ["Terminal", "TerminalError", "TtyTerminal"]
