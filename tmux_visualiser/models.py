"""Data models for tmux-visualiser."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


@dataclass(frozen=True)
class SocketTarget:
    """A resolved tmux socket to query. An empty path means the default server."""
    path: str
    key: str   # Dedup identity: cleaned absolute path, or "default"
    hint: str  # Display label, e.g. "lisa-tmux-proj-1a2b3c4d"

    @property
    def is_default(self) -> bool:
        return not self.path


@dataclass(frozen=True)
class SessionRef:
    """One capturable target (session, or session+pane) on one socket.

    Recomputed every refresh cycle. The name is only unique within its socket;
    the key is unique across all sockets.
    """
    key: str
    name: str
    socket: SocketTarget
    pane_id: str = ""


@dataclass
class SessionView:
    """Captured output for one SessionRef."""
    key: str
    name: str
    socket_path: str
    socket_hint: str
    pane_id: str = ""
    lines: List[str] = field(default_factory=list)
    updated: datetime = field(default_factory=datetime.now)

    @classmethod
    def from_ref(cls, ref: SessionRef, pane_id: str, lines: List[str]) -> "SessionView":
        return cls(
            key=ref.key,
            name=ref.name,
            socket_path=ref.socket.path,
            socket_hint=ref.socket.hint,
            pane_id=pane_id,
            lines=lines,
        )


@dataclass
class ListResult:
    """Merged outcome of listing sessions across every resolved socket."""
    refs: List[SessionRef] = field(default_factory=list)
    socket_count: int = 0
    error: Optional[str] = None
    server_down: bool = False
