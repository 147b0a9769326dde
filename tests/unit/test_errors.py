"""Unit tests for socket failure classification."""

import pytest

from tmux_visualiser.errors import (
    CommandCancelledError,
    CommandError,
    CommandTimeoutError,
    ErrorKind,
    classify_error,
    is_socket_unavailable_message,
)


@pytest.mark.parametrize("message", [
    "no server running on /tmp/tmux-1000/default",
    "failed to connect to server",
    "error connecting to /tmp/a.sock (No such file or directory)",
    "Connection refused",
    "NO SUCH FILE OR DIRECTORY",
])
def test_unavailable_messages(message):
    assert is_socket_unavailable_message(message) is True
    assert classify_error(message) is ErrorKind.SOCKET_UNAVAILABLE


@pytest.mark.parametrize("message", [
    "error connecting to /tmp/private.sock (Permission denied)",
    "tmux executable not found",
    "tmux capture-pane -t %1 timed out",
    "",
    "   ",
])
def test_fatal_messages(message):
    assert is_socket_unavailable_message(message) is False
    assert classify_error(message) is ErrorKind.FATAL


def test_timeout_and_cancel_are_command_errors():
    assert issubclass(CommandTimeoutError, CommandError)
    assert issubclass(CommandCancelledError, CommandError)
