"""Error types and socket-failure classification."""

from enum import Enum


class CommandError(Exception):
    """A tmux invocation failed. The message is tmux's own stderr text."""


class CommandTimeoutError(CommandError):
    """A tmux invocation exceeded its deadline."""


class CommandCancelledError(CommandError):
    """A tmux invocation was aborted by the cycle's cancel signal."""


class LisaError(Exception):
    """The lisa session query failed."""


class ErrorKind(Enum):
    """How a per-socket failure is reported."""
    SOCKET_UNAVAILABLE = "socket_unavailable"  # Nothing listening, not alarming
    FATAL = "fatal"                            # Socket exists but the command failed


UNAVAILABLE_MARKERS = (
    "no server running",
    "failed to connect to server",
    "error connecting to",
    "connection refused",
    "no such file or directory",
)


def is_socket_unavailable_message(message: str) -> bool:
    """Return True if an error message means the socket simply isn't there."""
    text = (message or "").strip().lower()
    if not text:
        return False
    if "permission denied" in text:
        return False
    return any(marker in text for marker in UNAVAILABLE_MARKERS)


def classify_error(message: str) -> ErrorKind:
    if is_socket_unavailable_message(message):
        return ErrorKind.SOCKET_UNAVAILABLE
    return ErrorKind.FATAL
