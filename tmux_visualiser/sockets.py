"""Socket identity helpers and socket target resolution.

PUBLIC API:
  - socket_key / socket_hint / make_socket_target: socket identity
  - session_qualified_key / pane_qualified_key: globally unique ref keys
  - tmux_socket_from_env / is_default_socket_path: $TMUX handling
  - lisa_socket_globs: glob patterns for lisa-managed sockets
  - SocketResolver: builds the ordered, deduplicated target list
"""

import glob
import logging
import os
from typing import Iterable, List, Mapping, Optional, Tuple

from .models import SocketTarget

logger = logging.getLogger(__name__)

DEFAULT_SOCKET_KEY = "default"
DEFAULT_LISA_SOCKET_GLOB = "/tmp/lisa-tmux-*-*.sock"
_LISA_FALLBACK_GLOBS = [
    "/private/tmp/lisa-tmux-*-*.sock",
    "/tmp/lisa-codex-nosb.sock",
    "/private/tmp/lisa-codex-nosb.sock",
]


def clean_path(path: str) -> str:
    """Normalize a socket path to an absolute, cleaned form ("" stays "")."""
    raw = (path or "").strip()
    if not raw:
        return ""
    return os.path.normpath(os.path.abspath(raw))


def dedupe_paths(paths: Iterable[str]) -> List[str]:
    """Clean paths and drop blanks and repeats, keeping first-seen order."""
    seen = set()
    out = []
    for path in paths:
        clean = clean_path(path)
        if not clean or clean in seen:
            continue
        seen.add(clean)
        out.append(clean)
    return out


def socket_key(path: str) -> str:
    if not (path or "").strip():
        return DEFAULT_SOCKET_KEY
    return clean_path(path)


def socket_hint(path: str) -> str:
    """Short display label for a socket: basename without extension."""
    if not (path or "").strip():
        return DEFAULT_SOCKET_KEY
    clean = clean_path(path)
    base = os.path.basename(clean)
    if not base:
        return clean
    stem, _ = os.path.splitext(base)
    return stem or base


def make_socket_target(path: str) -> SocketTarget:
    clean = clean_path(path)
    return SocketTarget(path=clean, key=socket_key(clean), hint=socket_hint(clean))


def session_qualified_key(socket_path: str, session_name: str) -> str:
    return f"{socket_key(socket_path)}::{session_name}"


def pane_qualified_key(socket_path: str, session_name: str, pane_id: str) -> str:
    pane = (pane_id or "").strip()
    if not pane:
        return session_qualified_key(socket_path, session_name)
    return f"{session_qualified_key(socket_path, session_name)}::{pane}"


def socket_path_exists(path: str) -> bool:
    """True if something other than a directory exists at path."""
    return os.path.exists(path) and not os.path.isdir(path)


def tmux_socket_from_env(value: Optional[str]) -> str:
    """Extract the socket path from a $TMUX value ("path,pid,session")."""
    raw = (value or "").strip()
    if not raw:
        return ""
    raw = raw.split(",", 1)[0].strip()
    return clean_path(raw)


def is_default_socket_path(path: str) -> bool:
    """True for tmux's own default socket layout: <tmpdir>/tmux-<uid>/default."""
    clean = clean_path(path)
    if not clean or os.path.basename(clean) != DEFAULT_SOCKET_KEY:
        return False
    parent = os.path.basename(os.path.dirname(clean))
    if not parent.startswith("tmux-"):
        return False
    suffix = parent[len("tmux-"):]
    return suffix.isdigit()


def lisa_socket_globs(configured: Optional[str]) -> List[str]:
    """Glob patterns to scan from a comma separated setting.

    The built-in fallbacks are added only when the setting is empty or names
    just the default pattern; any custom pattern replaces them.
    """
    patterns: List[str] = []
    for part in (configured or "").split(","):
        part = part.strip()
        if part and part not in patterns:
            patterns.append(part)
    if not patterns:
        patterns = [DEFAULT_LISA_SOCKET_GLOB]
    if patterns == [DEFAULT_LISA_SOCKET_GLOB]:
        patterns.extend(p for p in _LISA_FALLBACK_GLOBS if p not in patterns)
    return patterns


def check_glob_pattern(pattern: str) -> None:
    """Raise ValueError for malformed patterns that glob would silently accept."""
    i = 0
    n = len(pattern)
    while i < n:
        ch = pattern[i]
        if ch == "\\":
            if i + 1 >= n:
                raise ValueError("syntax error in pattern: trailing escape")
            i += 2
            continue
        if ch == "[":
            j = i + 1
            if j < n and pattern[j] in "!^":
                j += 1
            if j < n and pattern[j] == "]":
                j += 1
            while j < n and pattern[j] != "]":
                j += 1
            if j >= n:
                raise ValueError("syntax error in pattern: unterminated character class")
            i = j + 1
            continue
        i += 1


class SocketResolver:
    """Builds the ordered, deduplicated list of sockets to query each cycle."""

    def __init__(self, config, lisa_source=None, environ: Optional[Mapping[str, str]] = None):
        """
        Args:
            config: VisualiserConfig with socket selection settings
            lisa_source: Object with an async get_socket_paths() -> (paths, error)
            environ: Environment mapping (defaults to os.environ)
        """
        self.config = config
        self.lisa_source = lisa_source
        self.environ = environ if environ is not None else os.environ

    async def resolve(self) -> Tuple[List[SocketTarget], List[str]]:
        """
        Resolve socket targets from config, environment, globs and lisa.

        Returns:
            (targets, discovery_errors)
        """
        targets: List[SocketTarget] = []
        seen = set()
        discovery_errors: List[str] = []

        def add(path: str, require_exists: bool = False):
            if require_exists and not socket_path_exists(clean_path(path)):
                return
            target = make_socket_target(path)
            if target.key in seen:
                return
            seen.add(target.key)
            targets.append(target)

        if self.config.include_default_socket:
            add("")
            env_socket = tmux_socket_from_env(self.environ.get("TMUX"))
            if env_socket and not is_default_socket_path(env_socket):
                add(env_socket)

        # Explicit sockets are never existence-filtered; a missing one must
        # surface as a listing error instead of disappearing.
        for path in self.config.explicit_sockets:
            if (path or "").strip():
                add(path)

        if self.config.include_lisa_sockets:
            for pattern in lisa_socket_globs(self.config.socket_glob):
                try:
                    check_glob_pattern(pattern)
                    matches = sorted(glob.glob(pattern))
                except ValueError as e:
                    message = f'socket-glob "{pattern}": {e}'
                    logger.warning(message)
                    discovery_errors.append(message)
                    continue
                for path in matches:
                    add(path, require_exists=True)

            if self.lisa_source is not None:
                paths, error = await self.lisa_source.get_socket_paths()
                if error:
                    logger.warning(f"lisa socket discovery failed: {error}")
                    discovery_errors.append(f"lisa-sockets: {error}")
                for path in paths:
                    add(path)

        logger.debug(f"Resolved {len(targets)} socket targets: {[t.hint for t in targets]}")
        return targets, discovery_errors
