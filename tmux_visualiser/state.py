"""Dashboard state shared by the refresh engine and the UI."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from .models import SessionView
from .sockets import socket_key


@dataclass
class DashboardState:
    """Everything the dashboard renders, replaced or merged once per cycle."""
    sessions: Dict[str, SessionView] = field(default_factory=dict)
    socket_count: int = 0
    last_error: str = ""
    server_down: bool = False
    last_refresh: Optional[datetime] = None
    scroll: Dict[str, int] = field(default_factory=dict)
    follow: Dict[str, bool] = field(default_factory=dict)
    focus_index: int = 0
    focus_key: str = ""

    def focused_view(self) -> Optional[SessionView]:
        keys = ordered_session_keys(self)
        if not keys:
            return None
        index = self.focus_index if 0 <= self.focus_index < len(keys) else 0
        return self.sessions.get(keys[index])


def ordered_session_keys(state: DashboardState) -> List[str]:
    """Session keys sorted by (name, socket key, key)."""
    def sort_key(key: str):
        view = state.sessions[key]
        return (view.name, socket_key(view.socket_path), key)

    return sorted(state.sessions.keys(), key=sort_key)


def focus_index_for_key(keys: List[str], key: str) -> int:
    if not key:
        return -1
    try:
        return keys.index(key)
    except ValueError:
        return -1


def move_focus(state: DashboardState, delta: int) -> None:
    keys = ordered_session_keys(state)
    if not keys:
        state.focus_index = 0
        state.focus_key = ""
        return
    index = state.focus_index if 0 <= state.focus_index < len(keys) else 0
    index = (index + delta) % len(keys)
    state.focus_index = index
    state.focus_key = keys[index]


def _ensure_focus(state: DashboardState, keys: List[str]) -> str:
    if state.focus_index < 0 or state.focus_index >= len(keys):
        state.focus_index = 0
        state.focus_key = keys[0]
    return keys[state.focus_index]


def max_scroll_start(line_count: int, content_height: int) -> int:
    return max(0, line_count - content_height)


def scroll_focused(state: DashboardState, delta: int, content_height: int) -> None:
    """Scroll the focused session; reaching the bottom turns follow mode back on."""
    keys = ordered_session_keys(state)
    if not keys or content_height <= 0:
        return
    key = _ensure_focus(state, keys)
    view = state.sessions[key]
    max_start = max_scroll_start(len(view.lines), content_height)
    current = max_start if state.follow.get(key, True) else state.scroll.get(key, 0)
    target = max(0, min(current + delta, max_start))
    state.scroll[key] = target
    state.follow[key] = target == max_start


def jump_scroll(state: DashboardState, content_height: int, to_top: bool) -> None:
    keys = ordered_session_keys(state)
    if not keys or content_height <= 0:
        return
    key = _ensure_focus(state, keys)
    view = state.sessions[key]
    if to_top:
        state.scroll[key] = 0
        state.follow[key] = False
    else:
        state.scroll[key] = max_scroll_start(len(view.lines), content_height)
        state.follow[key] = True
