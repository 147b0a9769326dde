"""Curses grid dashboard for tmux-visualiser."""

from __future__ import annotations

import asyncio
import curses
import math
import re
import time
from typing import Optional

from ..actions import (
    attach_focused,
    kill_focused_session,
    resolve_connect_target,
    send_text_to_focused,
)
from ..config import MIN_INTERVAL, MIN_LINES, VisualiserConfig
from ..errors import CommandError
from ..models import SessionView
from ..state import DashboardState, jump_scroll, move_focus, ordered_session_keys, scroll_focused
from ..state_refresher import StateRefresher

ANSI_RE = re.compile(r"\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])")

LINES_STEP = 50
INTERVAL_STEP = 0.2

FOOTER = "tab/n/p: focus  j/k: scroll  s: send  K: kill  Enter: attach  +/-: lines  [/]: interval  r: refresh  q: quit"


def grid_dims(count: int) -> tuple[int, int]:
    """Columns and rows for a near-square grid of `count` cells."""
    if count <= 0:
        return 1, 1
    cols = max(1, math.ceil(math.sqrt(count)))
    rows = max(1, math.ceil(count / cols))
    return cols, rows


def cell_rect(index: int, count: int, width: int, grid_height: int) -> tuple[int, int, int, int]:
    cols, rows = grid_dims(count)
    col = index % cols
    row = index // cols
    x0 = (width * col) // cols
    x1 = (width * (col + 1)) // cols
    y0 = (grid_height * row) // rows
    y1 = (grid_height * (row + 1)) // rows
    return x0, y0, x1, y1


def _content_top(y0: int, y1: int) -> int:
    return y0 + 1 if (y1 - y0) <= 3 else y0 + 2


def content_height_for_index(count: int, index: int, width: int, height: int) -> int:
    """Body rows available inside a cell (title and border excluded)."""
    grid_height = height - (1 if height >= 2 else 0)
    if grid_height <= 0 or count <= 0:
        return 0
    _, y0, _, y1 = cell_rect(index, count, width, grid_height)
    if y1 - y0 <= 1:
        return 0
    return max(0, y1 - 1 - _content_top(y0, y1))


def visible_window(lines: list[str], content_height: int, scroll_top: int, follow: bool) -> list[str]:
    """Slice of lines shown in a cell: the tail when following, else from scroll_top."""
    if content_height <= 0:
        return []
    max_start = max(0, len(lines) - content_height)
    start = max_start if follow else max(0, min(scroll_top, max_start))
    return lines[start: start + content_height]


def strip_ansi(text: str) -> str:
    return ANSI_RE.sub("", text)


def cell_title(view: SessionView) -> str:
    title = f"{view.name} [{view.socket_hint}]"
    if view.pane_id:
        title += f" ({view.pane_id})"
    return title


def status_line(state: DashboardState, config: VisualiserConfig) -> str:
    if state.last_error:
        return f"error: {state.last_error}"
    return (
        f"sessions:{len(state.sessions)} sockets:{state.socket_count} "
        f"lines:{config.lines} interval:{config.interval:.1f}s | {FOOTER}"
    )


def _prompt_input(stdscr, prompt: str) -> str:
    """Read one line on the status row, then go back to non-blocking keys."""
    height, width = stdscr.getmaxyx()
    row = height - 1
    col = min(len(prompt), max(0, width - 1))
    stdscr.nodelay(False)
    curses.echo()
    curses.curs_set(1)
    try:
        _put(stdscr, row, 0, prompt.ljust(width), width - 1)
        stdscr.refresh()
        raw = stdscr.getstr(row, col, max(1, width - col - 1))
    finally:
        curses.noecho()
        curses.curs_set(0)
        stdscr.nodelay(True)
    if not raw:
        return ""
    return raw.decode("utf-8", errors="ignore").strip()


def _init_colors() -> dict[str, int]:
    palette = {"title": 0, "focus": 0, "status": 0, "error": 0}

    if not curses.has_colors():
        return palette

    try:
        curses.start_color()
        curses.use_default_colors()
        curses.init_pair(1, curses.COLOR_YELLOW, -1)
        curses.init_pair(2, curses.COLOR_BLACK, curses.COLOR_YELLOW)
        curses.init_pair(3, curses.COLOR_BLACK, curses.COLOR_WHITE)
        curses.init_pair(4, curses.COLOR_RED, -1)

        palette["title"] = curses.color_pair(1)
        palette["focus"] = curses.color_pair(2)
        palette["status"] = curses.color_pair(3)
        palette["error"] = curses.color_pair(4)
    except curses.error:
        return {k: 0 for k in palette}

    return palette


def _put(stdscr, y: int, x: int, text: str, width: int, attr: int = 0):
    if width <= 0:
        return
    try:
        stdscr.addnstr(y, x, text, width, attr)
    except curses.error:
        # Writing the bottom-right cell raises after the text is drawn.
        pass


def _draw_cell(stdscr, rect, view: SessionView, scroll_top: int, follow: bool, focused: bool, palette):
    x0, y0, x1, y1 = rect
    w = x1 - x0
    h = y1 - y0
    if w <= 1 or h <= 1:
        return

    border_attr = palette["title"] | curses.A_BOLD if focused else curses.A_DIM
    horizontal = "+" + "-" * max(0, w - 2) + "+"
    _put(stdscr, y0, x0, horizontal, w, border_attr)
    _put(stdscr, y1 - 1, x0, horizontal, w, border_attr)
    for y in range(y0 + 1, y1 - 1):
        _put(stdscr, y, x0, "|", 1, border_attr)
        _put(stdscr, y, x1 - 1, "|", 1, border_attr)

    if h > 2:
        title_attr = (palette["focus"] if focused else palette["title"]) | curses.A_BOLD
        _put(stdscr, y0 + 1, x0 + 1, cell_title(view).ljust(w - 2), w - 2, title_attr)

    top = _content_top(y0, y1)
    content_height = y1 - 1 - top
    for row, line in enumerate(visible_window(view.lines, content_height, scroll_top, follow)):
        _put(stdscr, top + row, x0 + 1, strip_ansi(line).expandtabs(), w - 2)


def _render(stdscr, state: DashboardState, config: VisualiserConfig, palette: dict[str, int], flash: Optional[str]):
    stdscr.erase()
    height, width = stdscr.getmaxyx()
    if width <= 0 or height <= 0:
        stdscr.refresh()
        return

    grid_height = height - (1 if height >= 2 else 0)
    keys = ordered_session_keys(state)

    if grid_height > 0:
        message = None
        if state.server_down:
            message = "tmux server not running"
        elif not keys:
            message = "no tmux sessions"
        if message:
            _put(stdscr, grid_height // 2, max(0, (width - len(message)) // 2), message, width)
        else:
            for idx, key in enumerate(keys):
                rect = cell_rect(idx, len(keys), width, grid_height)
                _draw_cell(
                    stdscr,
                    rect,
                    state.sessions[key],
                    state.scroll.get(key, 0),
                    state.follow.get(key, True),
                    idx == state.focus_index,
                    palette,
                )

    if height >= 2:
        label = flash or status_line(state, config)
        attr = palette["error"] | curses.A_BOLD if (state.last_error and not flash) else palette["status"]
        _put(stdscr, height - 1, 0, label.ljust(width), width - 1, attr)

    stdscr.refresh()


def _focused_content_height(stdscr, state: DashboardState) -> int:
    height, width = stdscr.getmaxyx()
    return content_height_for_index(len(state.sessions), state.focus_index, width, height)


def run_dashboard(config: VisualiserConfig, refresher: Optional[StateRefresher] = None) -> int:
    """Run the curses dashboard until the user quits."""
    refresher = refresher or StateRefresher(config)
    controller = refresher.controller
    state = DashboardState()

    def _loop(stdscr):
        curses.curs_set(0)
        stdscr.nodelay(True)
        stdscr.keypad(True)
        palette = _init_colors()

        flash_message: Optional[str] = None
        flash_until = 0.0
        next_refresh = 0.0

        def flash(message: str, seconds: float = 2.5):
            nonlocal flash_message, flash_until
            flash_message = message
            flash_until = time.monotonic() + seconds

        while True:
            now = time.monotonic()
            if now >= next_refresh:
                refresher.refresh_blocking(state)
                next_refresh = time.monotonic() + max(MIN_INTERVAL, config.interval)

            if flash_message and now >= flash_until:
                flash_message = None

            _render(stdscr, state, config, palette, flash_message)

            key = stdscr.getch()
            if key == -1:
                time.sleep(0.05)
                continue

            if key in (ord("q"), ord("Q"), 3):
                break

            if key in (ord("r"), ord("R")):
                next_refresh = 0.0
                continue

            if key in (9, ord("n"), ord("N")):
                move_focus(state, 1)
                continue

            if key in (curses.KEY_BTAB, ord("p"), ord("P")):
                move_focus(state, -1)
                continue

            if key in (ord("j"), curses.KEY_DOWN):
                scroll_focused(state, 1, _focused_content_height(stdscr, state))
                continue

            if key in (ord("k"), curses.KEY_UP):
                scroll_focused(state, -1, _focused_content_height(stdscr, state))
                continue

            if key == curses.KEY_NPAGE:
                scroll_focused(state, 5, _focused_content_height(stdscr, state))
                continue

            if key == curses.KEY_PPAGE:
                scroll_focused(state, -5, _focused_content_height(stdscr, state))
                continue

            if key in (curses.KEY_HOME, ord("g")):
                jump_scroll(state, _focused_content_height(stdscr, state), to_top=True)
                continue

            if key in (curses.KEY_END, ord("G")):
                jump_scroll(state, _focused_content_height(stdscr, state), to_top=False)
                continue

            if key == ord("+"):
                config.lines += LINES_STEP
                next_refresh = 0.0
                continue

            if key == ord("-"):
                config.lines = max(MIN_LINES, config.lines - LINES_STEP)
                next_refresh = 0.0
                continue

            if key == ord("["):
                config.interval = max(MIN_INTERVAL, config.interval - INTERVAL_STEP)
                next_refresh = 0.0
                continue

            if key == ord("]"):
                config.interval += INTERVAL_STEP
                next_refresh = 0.0
                continue

            if key == ord("s"):
                if state.focused_view() is None:
                    flash("No session selected", 2.0)
                    continue
                message = _prompt_input(stdscr, "send> ")
                if not message:
                    flash("Send canceled", 2.0)
                    continue
                try:
                    asyncio.run(send_text_to_focused(controller, state, message))
                    flash(f"Sent to {state.focused_view().name}")
                except CommandError as e:
                    flash(f"Send failed: {e}")
                next_refresh = 0.0
                continue

            if key == ord("K"):
                view = state.focused_view()
                if view is None:
                    flash("No session selected", 2.0)
                    continue
                confirm = _prompt_input(stdscr, f"Kill {view.name} [{view.socket_hint}]? type yes: ")
                if confirm.lower() != "yes":
                    flash("Kill canceled", 2.0)
                    continue
                try:
                    name = asyncio.run(kill_focused_session(controller, state))
                    flash(f"Killed {name}")
                except CommandError as e:
                    flash(f"Kill failed: {e}")
                next_refresh = 0.0
                continue

            if key in (10, 13, curses.KEY_ENTER):
                try:
                    view, pane_id, switched = asyncio.run(resolve_connect_target(controller, state))
                except CommandError as e:
                    flash(f"Attach failed: {e}")
                    continue
                if switched:
                    flash(f"Switched to {view.name}")
                    continue
                curses.def_prog_mode()
                try:
                    if not attach_focused(controller, view, pane_id, suspend=curses.endwin):
                        flash(f"Attach to {view.name} failed")
                finally:
                    curses.reset_prog_mode()
                    curses.curs_set(0)
                    stdscr.nodelay(True)
                    stdscr.clear()
                next_refresh = 0.0

    curses.wrapper(_loop)
    return 0
