"""Terminal multiplexer backends.

Provides the abstract Multiplexer interface and the tmux implementation.
"""

from tmuxcatch.multiplexer.base import Multiplexer, MultiplexerError
from tmuxcatch.multiplexer.tmux import TmuxMultiplexer

__all__ = ["Multiplexer", "MultiplexerError", "TmuxMultiplexer"]
