"""Shared pytest fixtures for tmux-visualiser tests."""

import inspect
from typing import Dict, List, Optional, Tuple

import pytest

from tmux_visualiser.errors import CommandError
from tmux_visualiser.models import SessionView
from tmux_visualiser.state import DashboardState
from tmux_visualiser.tmux_controller import TmuxController


class FakeTmuxRunner:
    """
    Stand-in for SubprocessTmuxRunner that never touches tmux.

    Responses are registered per (socket, command). A response may be a
    string (stdout), an exception instance (raised), or a callable taking
    (socket, *args) that returns either, optionally as a coroutine.
    Sockets with no registered response behave like a dead server.
    """

    def __init__(self):
        self.responses: Dict[Tuple[Optional[str], str], object] = {}
        self.calls: List[Tuple[str, Tuple[str, ...]]] = []
        self.timeouts: List[float] = []
        self.interactive_calls: List[Tuple[str, Tuple[str, ...]]] = []
        self.interactive_returncode = 0

    def set(self, socket: Optional[str], command: str, response) -> None:
        """Register a response. socket=None matches every socket."""
        self.responses[(socket, command)] = response

    def calls_for(self, command: str) -> List[Tuple[str, Tuple[str, ...]]]:
        return [call for call in self.calls if call[1][0] == command]

    async def run(self, socket, *args, timeout=0.9, cancel_event=None):
        self.calls.append((socket, args))
        self.timeouts.append(timeout)
        command = args[0]
        response = self.responses.get((socket, command), self.responses.get((None, command)))
        if response is None:
            raise CommandError(f"no server running on {socket or '/tmp/tmux-1000/default'}")
        if not isinstance(response, BaseException) and callable(response):
            response = response(socket, *args)
            if inspect.isawaitable(response):
                response = await response
        if isinstance(response, BaseException):
            raise response
        return response

    def run_interactive(self, socket, *args):
        self.interactive_calls.append((socket, args))
        return self.interactive_returncode


class FakeLisaSource:
    """Stand-in for LisaSocketSource returning fixed paths."""

    def __init__(self, paths=None, error: str = ""):
        self.paths = list(paths or [])
        self.error = error
        self.calls = 0

    async def get_socket_paths(self):
        self.calls += 1
        return list(self.paths), self.error


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_runner() -> FakeTmuxRunner:
    return FakeTmuxRunner()


@pytest.fixture
def controller(fake_runner: FakeTmuxRunner) -> TmuxController:
    """TmuxController wired to the fake runner."""
    return TmuxController(runner=fake_runner)


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


def make_view(name: str, socket_path: str = "", pane_id: str = "%1", lines=None) -> SessionView:
    key = f"{socket_path or 'default'}::{name}"
    hint = "default" if not socket_path else socket_path.rsplit("/", 1)[-1].rsplit(".", 1)[0]
    return SessionView(
        key=key,
        name=name,
        socket_path=socket_path,
        socket_hint=hint,
        pane_id=pane_id,
        lines=list(lines if lines is not None else ["line"]),
    )


def make_state(*views: SessionView) -> DashboardState:
    state = DashboardState(sessions={view.key: view for view in views})
    return state
