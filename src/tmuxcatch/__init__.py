"""tmuxcatch -- TLS callback catcher that hands each shell to a tmux pane.

The same program runs in two roles. The listener role accepts TLS
callbacks, opens a tmux window per callback and relaunches itself inside
that window in the bridge role, which joins a one-shot Unix socket to the
operator's terminal.
"""

__version__ = "0.1.0"
