"""Unit tests for dashboard layout helpers."""

import curses

import pytest

from tests.conftest import make_state, make_view
from tmux_visualiser.cli.dashboard_tui import (
    _prompt_input,
    cell_rect,
    cell_title,
    content_height_for_index,
    grid_dims,
    status_line,
    strip_ansi,
    visible_window,
)
from tmux_visualiser.config import VisualiserConfig


@pytest.mark.parametrize("count,expected", [
    (0, (1, 1)),
    (1, (1, 1)),
    (2, (2, 1)),
    (3, (2, 2)),
    (4, (2, 2)),
    (5, (3, 2)),
    (9, (3, 3)),
    (10, (4, 3)),
])
def test_grid_dims(count, expected):
    assert grid_dims(count) == expected


def test_cells_tile_the_grid():
    rects = [cell_rect(i, 3, 80, 24) for i in range(3)]
    assert rects[0] == (0, 0, 40, 12)
    assert rects[1] == (40, 0, 80, 12)
    assert rects[2] == (0, 12, 40, 24)


def test_content_height_excludes_title_and_borders():
    # One cell over 24 rows: 23 grid rows, border + title on top, border below.
    assert content_height_for_index(1, 0, 80, 24) == 20
    assert content_height_for_index(0, 0, 80, 24) == 0


class TestVisibleWindow:
    """Tests for visible_window."""

    def test_follow_shows_tail(self):
        lines = [str(i) for i in range(10)]
        assert visible_window(lines, 3, 0, follow=True) == ["7", "8", "9"]

    def test_scrolled_window(self):
        lines = [str(i) for i in range(10)]
        assert visible_window(lines, 3, 2, follow=False) == ["2", "3", "4"]

    def test_scroll_clamped(self):
        lines = [str(i) for i in range(10)]
        assert visible_window(lines, 3, 50, follow=False) == ["7", "8", "9"]

    def test_short_output(self):
        assert visible_window(["a"], 5, 0, follow=True) == ["a"]

    def test_no_room(self):
        assert visible_window(["a", "b"], 0, 0, follow=True) == []


def test_strip_ansi():
    assert strip_ansi("\x1b[1;31mred\x1b[0m plain") == "red plain"


def test_cell_title():
    assert cell_title(make_view("alpha", "/tmp/lisa-tmux-proj-1a2b3c4d.sock", pane_id="%2")) == (
        "alpha [lisa-tmux-proj-1a2b3c4d] (%2)"
    )
    assert cell_title(make_view("alpha", pane_id="")) == "alpha [default]"


def test_status_line_summary():
    state = make_state(make_view("alpha"), make_view("beta"))
    state.socket_count = 3
    line = status_line(state, VisualiserConfig(lines=200, interval=1.5))
    assert line.startswith("sessions:2 sockets:3 lines:200 interval:1.5s")


def test_status_line_error():
    state = make_state(make_view("alpha"))
    state.last_error = "partial socket failures: private: permission denied"
    assert status_line(state, VisualiserConfig()) == "error: partial socket failures: private: permission denied"


class FakeScreen:
    """Minimal stand-in for a curses window used by the input prompt."""

    def __init__(self, typed=b"", error=None):
        self.typed = typed
        self.error = error
        self.nodelay_calls = []
        self.drawn = []
        self.read_at = None

    def getmaxyx(self):
        return 24, 80

    def nodelay(self, flag):
        self.nodelay_calls.append(flag)

    def addnstr(self, y, x, text, n, attr=0):
        self.drawn.append((y, x, text[:n]))

    def refresh(self):
        pass

    def getstr(self, y, x, n):
        self.read_at = (y, x, n)
        if self.error is not None:
            raise self.error
        return self.typed


class TestPromptInput:
    """Tests for the status-row text prompt."""

    @pytest.fixture(autouse=True)
    def terminal_modes(self, monkeypatch):
        modes = []
        monkeypatch.setattr(curses, "echo", lambda: modes.append("echo"))
        monkeypatch.setattr(curses, "noecho", lambda: modes.append("noecho"))
        monkeypatch.setattr(curses, "curs_set", lambda visibility: modes.append(f"cursor{visibility}"))
        return modes

    def test_reads_and_strips_text(self, terminal_modes):
        screen = FakeScreen(typed=b"  hello world \n")

        assert _prompt_input(screen, "send> ") == "hello world"
        assert screen.read_at == (23, 6, 73)
        assert screen.drawn[0][:2] == (23, 0)
        assert screen.drawn[0][2].startswith("send> ")
        assert screen.nodelay_calls == [False, True]
        assert terminal_modes == ["echo", "cursor1", "noecho", "cursor0"]

    def test_empty_input(self):
        assert _prompt_input(FakeScreen(typed=b""), "send> ") == ""

    def test_modes_restored_when_read_fails(self, terminal_modes):
        screen = FakeScreen(error=KeyboardInterrupt())

        with pytest.raises(KeyboardInterrupt):
            _prompt_input(screen, "send> ")

        assert screen.nodelay_calls == [False, True]
        assert terminal_modes[-2:] == ["noecho", "cursor0"]
