"""Discovery of lisa-managed tmux sockets.

Two strategies are merged because neither alone is complete:
  - the process table, for tmux servers started with an explicit -S socket
  - `lisa session list`, whose project roots map to deterministic socket paths
"""

import hashlib
import logging
import os
import shlex
import tempfile
import threading
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional, Tuple

from pydantic import BaseModel, Field, ValidationError

from .errors import CommandError, CommandTimeoutError, LisaError
from .sockets import dedupe_paths
from .tmux_controller import DEFAULT_COMMAND_TIMEOUT, ProcessResult, run_process

logger = logging.getLogger(__name__)

LISA_SOCKET_CACHE_TTL = 5.0
LISA_MIN_TIMEOUT = 1.0
LISA_SOCKET_PREFIX = "lisa-tmux"
LISA_NOSB_SOCKET = "lisa-codex-nosb.sock"


class LisaSessionItem(BaseModel):
    """One entry of `lisa session list --json`."""
    project_root: Optional[str] = Field(default=None, alias="projectRoot")


class LisaSessionList(BaseModel):
    """Payload of `lisa session list --json`. Older lisa builds omit items."""
    items: List[LisaSessionItem] = Field(default_factory=list)


@dataclass
class CacheEntry:
    at: float
    paths: List[str] = field(default_factory=list)
    error_text: str = ""


class LisaSocketCache:
    """Short-lived, lock-guarded cache of the last lisa socket lookup."""

    def __init__(self, ttl: float = LISA_SOCKET_CACHE_TTL, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self.clock = clock
        self._lock = threading.Lock()
        self._entry: Optional[CacheEntry] = None

    def get(self) -> Optional[CacheEntry]:
        """Return a copy of the cached entry if it's still fresh."""
        with self._lock:
            entry = self._entry
            if entry is None or self.clock() - entry.at >= self.ttl:
                return None
            return CacheEntry(at=entry.at, paths=list(entry.paths), error_text=entry.error_text)

    def store(self, paths: List[str], error_text: str = "") -> None:
        with self._lock:
            self._entry = CacheEntry(at=self.clock(), paths=list(paths), error_text=error_text)

    def clear(self) -> None:
        with self._lock:
            self._entry = None


def canonical_project_root(project_root: Optional[str]) -> str:
    """Absolute, symlink-resolved form of a project root ("" for blank input)."""
    root = (project_root or "").strip()
    if not root:
        return ""
    root = os.path.abspath(root)
    if os.path.exists(root):
        root = os.path.realpath(root)
    return os.path.normpath(root)


def sanitize_id(value: str, max_len: int) -> str:
    out = "".join(ch for ch in value.strip().lower() if ("a" <= ch <= "z") or ("0" <= ch <= "9"))
    if not out:
        out = "project"
    return out[:max_len]


def project_slug(project_root: str) -> str:
    return sanitize_id(os.path.basename(project_root), 10)


def project_hash(project_root: str) -> str:
    return hashlib.md5(project_root.encode("utf-8")).hexdigest()[:8]


def preferred_socket_dir() -> str:
    if os.path.isdir("/tmp"):
        return "/tmp"
    return os.path.normpath(tempfile.gettempdir() or "/tmp")


def _socket_name(root: str) -> str:
    return f"{LISA_SOCKET_PREFIX}-{project_slug(root)}-{project_hash(root)}.sock"


def socket_path_for_project_root(project_root: str) -> str:
    root = canonical_project_root(project_root)
    if not root:
        return ""
    return os.path.join(preferred_socket_dir(), _socket_name(root))


def legacy_socket_path_for_project_root(project_root: str) -> str:
    root = canonical_project_root(project_root)
    if not root:
        return ""
    return os.path.join(os.path.normpath(tempfile.gettempdir()), _socket_name(root))


def is_likely_lisa_socket_path(path: str) -> bool:
    base = os.path.basename((path or "").strip()).lower()
    if base == LISA_NOSB_SOCKET:
        return True
    return base.startswith("lisa-") and base.endswith(".sock")


def extract_tmux_socket_paths(commands: List[str]) -> List[str]:
    """Pull `-S <path>` arguments out of tmux process command lines."""
    paths = []
    for line in commands:
        fields = line.strip().split()
        if len(fields) < 3:
            continue
        if os.path.basename(fields[0]).lower() != "tmux":
            continue
        for idx in range(1, len(fields) - 1):
            if fields[idx] != "-S":
                continue
            candidate = fields[idx + 1].strip()
            if candidate:
                paths.append(candidate)
            break
    return dedupe_paths(paths)


def _is_unknown_flag_response(output: str) -> bool:
    text = output.lower()
    return "unknown flag" in text or '"unknown_flag"' in text


async def list_process_commands(timeout: float = DEFAULT_COMMAND_TIMEOUT) -> List[str]:
    """Command lines of every running process (POSIX `ps`)."""
    try:
        result = await run_process(["ps", "axo", "command="], timeout=timeout)
    except FileNotFoundError as e:
        raise CommandError("ps executable not found") from e
    if result.returncode != 0:
        raise CommandError(result.stderr.strip() or f"ps exited with status {result.returncode}")
    return [line.strip() for line in result.stdout.splitlines() if line.strip()]


async def run_lisa_session_list(with_next_action: bool, timeout: float) -> ProcessResult:
    """Invoke `lisa session list`. Raises FileNotFoundError when lisa isn't installed."""
    argv = ["lisa", "session", "list", "--all-sockets"]
    if with_next_action:
        argv.append("--with-next-action")
    argv.append("--json")
    logger.debug(f"Running lisa command: {shlex.join(argv)}")
    return await run_process(argv, timeout=timeout)


class LisaSocketSource:
    """Finds lisa-managed sockets, caching the combined answer for a few seconds."""

    def __init__(
        self,
        cache: Optional[LisaSocketCache] = None,
        cmd_timeout: float = DEFAULT_COMMAND_TIMEOUT,
        list_processes: Optional[Callable[[], Awaitable[List[str]]]] = None,
        session_list: Optional[Callable[[bool, float], Awaitable[ProcessResult]]] = None,
        posix: Optional[bool] = None,
    ):
        """
        Args:
            cache: Shared cache (a fresh one by default)
            cmd_timeout: Command deadline; lisa gets at least one second
            list_processes: Returns process command lines
            session_list: Runs `lisa session list` (with_next_action, timeout)
            posix: Whether the process-table scan is available (auto-detected)
        """
        self.cache = cache or LisaSocketCache()
        self.cmd_timeout = cmd_timeout
        self.list_processes = list_processes or (lambda: list_process_commands(self.cmd_timeout))
        self.session_list = session_list or run_lisa_session_list
        self.posix = os.name == "posix" if posix is None else posix

    async def get_socket_paths(self) -> Tuple[List[str], str]:
        """
        Return (paths, error_text). Paths from a working strategy are returned
        even when the other strategy failed.
        """
        cached = self.cache.get()
        if cached is not None:
            return cached.paths, cached.error_text

        paths: List[str] = []
        errors: List[str] = []

        try:
            paths.extend(await self.paths_from_process_table())
        except (CommandError, OSError) as e:
            errors.append(str(e))

        try:
            paths.extend(await self.paths_from_lisa())
        except LisaError as e:
            errors.append(str(e))

        paths = dedupe_paths(paths)
        error_text = " | ".join(errors)
        self.cache.store(paths, error_text)
        if error_text:
            logger.warning(f"lisa socket lookup partially failed: {error_text}")
        return list(paths), error_text

    async def paths_from_process_table(self) -> List[str]:
        if not self.posix:
            return []
        commands = await self.list_processes()
        return [p for p in extract_tmux_socket_paths(commands) if is_likely_lisa_socket_path(p)]

    async def paths_from_lisa(self) -> List[str]:
        """
        Derive socket paths from lisa's project roots.

        Raises:
            LisaError: lisa timed out, failed, or printed invalid JSON
        """
        timeout = max(LISA_MIN_TIMEOUT, self.cmd_timeout or DEFAULT_COMMAND_TIMEOUT)
        try:
            result = await self.session_list(True, timeout)
            output = result.stdout + result.stderr
            if result.returncode != 0 and _is_unknown_flag_response(output):
                logger.debug("lisa does not support --with-next-action, retrying without it")
                result = await self.session_list(False, timeout)
        except FileNotFoundError:
            return []
        except OSError as e:
            raise LisaError(f"lisa list failed: {e}") from e
        except CommandTimeoutError as e:
            raise LisaError("lisa list timed out") from e

        if result.returncode != 0:
            output = (result.stdout + result.stderr).strip()
            raise LisaError(f"lisa list failed: {output}")

        try:
            payload = LisaSessionList.model_validate_json(result.stdout)
        except ValidationError as e:
            raise LisaError("lisa list invalid json") from e

        paths = []
        for item in payload.items:
            root = canonical_project_root(item.project_root)
            if not root:
                continue
            preferred = socket_path_for_project_root(root)
            paths.append(preferred)
            legacy = legacy_socket_path_for_project_root(root)
            if legacy and legacy != preferred:
                paths.append(legacy)
        return dedupe_paths(paths)
