"""Live multi-socket tmux session dashboard."""

__version__ = "0.1.0"
