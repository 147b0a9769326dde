"""Socket-addressed tmux operations for listing, capturing and controlling sessions."""

import asyncio
import logging
import os
import subprocess
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional

from .errors import CommandCancelledError, CommandError, CommandTimeoutError
from .sockets import DEFAULT_SOCKET_KEY, is_default_socket_path, socket_key, tmux_socket_from_env

logger = logging.getLogger(__name__)

DEFAULT_COMMAND_TIMEOUT = 0.9
MIN_COMMAND_TIMEOUT = 0.3


@dataclass
class ProcessResult:
    """Output of a finished child process."""
    returncode: int
    stdout: str
    stderr: str


def tmux_args(socket: str, *args: str) -> List[str]:
    """Prefix tmux arguments with the socket selector (-S path or -L default)."""
    if not (socket or "").strip():
        return ["-L", DEFAULT_SOCKET_KEY, *args]
    return ["-S", socket, *args]


def env_without_tmux(environ: Mapping[str, str]) -> Dict[str, str]:
    """Copy of the environment with TMUX removed so nested attach is allowed."""
    return {k: v for k, v in environ.items() if k != "TMUX"}


def can_switch_client(socket: str, environ: Optional[Mapping[str, str]] = None) -> bool:
    """True if we're inside tmux on the same server that owns `socket`."""
    env = environ if environ is not None else os.environ
    current = tmux_socket_from_env(env.get("TMUX"))
    if not current:
        return False
    if not (socket or "").strip():
        return is_default_socket_path(current)
    return socket_key(socket) == socket_key(current)


def _kill(proc) -> None:
    try:
        proc.kill()
    except ProcessLookupError:
        pass


async def run_process(
    argv: List[str],
    timeout: float,
    cancel_event: Optional[asyncio.Event] = None,
) -> ProcessResult:
    """
    Run a child process with a hard deadline.

    Args:
        argv: Command and arguments
        timeout: Seconds before the child is killed
        cancel_event: Optional signal that kills the child when set

    Returns:
        ProcessResult (non-zero exit codes are returned, not raised)

    Raises:
        FileNotFoundError: Executable is not installed
        CommandTimeoutError: Deadline exceeded
        CommandCancelledError: cancel_event fired first
    """
    label = " ".join(argv)
    proc = await asyncio.create_subprocess_exec(
        *argv,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    communicate = asyncio.ensure_future(proc.communicate())
    waiters = {communicate}
    cancel_wait = None
    if cancel_event is not None:
        cancel_wait = asyncio.ensure_future(cancel_event.wait())
        waiters.add(cancel_wait)

    try:
        done, _ = await asyncio.wait(waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        _kill(proc)
        communicate.cancel()
        raise
    finally:
        if cancel_wait is not None:
            cancel_wait.cancel()

    if communicate not in done:
        _kill(proc)
        communicate.cancel()
        await proc.wait()
        if cancel_wait is not None and cancel_wait in done:
            raise CommandCancelledError(f"{label} cancelled")
        raise CommandTimeoutError(f"{label} timed out")

    stdout, stderr = communicate.result()
    return ProcessResult(
        returncode=proc.returncode,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
    )


class SubprocessTmuxRunner:
    """Runs tmux as a child process. Tests substitute an object with the same methods."""

    def __init__(self, binary: str = "tmux"):
        self.binary = binary

    async def run(
        self,
        socket: str,
        *args: str,
        timeout: float = DEFAULT_COMMAND_TIMEOUT,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> str:
        """
        Run a tmux command against a socket.

        Returns:
            stdout with trailing newlines removed

        Raises:
            CommandError: tmux failed (message is tmux's stderr)
        """
        cmd = [self.binary] + tmux_args(socket, *args)
        logger.debug(f"Running tmux command: {' '.join(cmd)}")
        try:
            result = await run_process(cmd, timeout=timeout, cancel_event=cancel_event)
        except FileNotFoundError as e:
            raise CommandError(f"{self.binary} executable not found") from e
        except CommandTimeoutError as e:
            raise CommandTimeoutError(f"tmux {' '.join(args)} timed out") from e
        except CommandCancelledError as e:
            raise CommandCancelledError(f"tmux {' '.join(args)} cancelled") from e

        if result.returncode != 0:
            message = result.stderr.strip() or f"exit status {result.returncode}"
            raise CommandError(message)
        return result.stdout.rstrip("\n")

    def run_interactive(self, socket: str, *args: str) -> int:
        """Run tmux attached to the current terminal (used for attach-session)."""
        cmd = [self.binary] + tmux_args(socket, *args)
        logger.debug(f"Running interactive tmux command: {' '.join(cmd)}")
        return subprocess.run(cmd, env=env_without_tmux(os.environ), check=False).returncode


class TmuxController:
    """Controls tmux servers addressed by socket."""

    def __init__(self, runner=None, cmd_timeout: float = DEFAULT_COMMAND_TIMEOUT):
        """
        Args:
            runner: Command runner (defaults to SubprocessTmuxRunner)
            cmd_timeout: Per-command deadline in seconds (floored at 0.3)
        """
        self.runner = runner or SubprocessTmuxRunner()
        self.cmd_timeout = max(MIN_COMMAND_TIMEOUT, cmd_timeout or DEFAULT_COMMAND_TIMEOUT)

    async def _run_tmux(self, socket: str, *args: str, cancel_event: Optional[asyncio.Event] = None) -> str:
        return await self.runner.run(socket, *args, timeout=self.cmd_timeout, cancel_event=cancel_event)

    async def list_sessions(self, socket: str, cancel_event: Optional[asyncio.Event] = None) -> List[str]:
        """List session names on a socket."""
        out = await self._run_tmux(socket, "list-sessions", "-F", "#S", cancel_event=cancel_event)
        return [line.strip() for line in out.strip().splitlines() if line.strip()]

    async def list_pane_ids(
        self, socket: str, session_name: str, cancel_event: Optional[asyncio.Event] = None
    ) -> List[str]:
        """List every pane id in a session."""
        out = await self._run_tmux(
            socket, "list-panes", "-t", session_name, "-F", "#{pane_id}", cancel_event=cancel_event
        )
        return [line.strip() for line in out.strip().splitlines() if line.strip()]

    async def active_pane_id(
        self, socket: str, session_name: str, cancel_event: Optional[asyncio.Event] = None
    ) -> str:
        """
        Resolve the pane to capture for a session.

        Returns:
            The active pane id, or the first listed pane if none is flagged active

        Raises:
            CommandError: Query failed or the session has no panes
        """
        out = await self._run_tmux(
            socket,
            "list-panes",
            "-t", session_name,
            "-F", "#{pane_active} #{pane_id}",
            cancel_event=cancel_event,
        )
        fallback = ""
        for line in out.strip().splitlines():
            fields = line.split()
            if len(fields) < 2:
                continue
            if not fallback:
                fallback = fields[1]
            if fields[0] == "1":
                return fields[1]
        if not fallback:
            raise CommandError("no pane found")
        return fallback

    async def capture_pane(
        self, socket: str, pane_id: str, lines: int, cancel_event: Optional[asyncio.Event] = None
    ) -> List[str]:
        """
        Capture recent output from a pane, including styling escape codes.

        Args:
            socket: Socket path ("" for the default server)
            pane_id: Pane to capture from
            lines: Number of scrollback lines

        Returns:
            Captured lines, or ["(empty)"] for a blank pane
        """
        out = await self._run_tmux(
            socket,
            "capture-pane",
            "-t", pane_id,
            "-p",   # Print to stdout
            "-e",   # Keep escape sequences
            "-S", f"-{max(1, lines)}",
            cancel_event=cancel_event,
        )
        if out == "":
            return ["(empty)"]
        result = out.split("\n")
        if result and result[-1] == "":
            result = result[:-1]
        return result

    async def send_keys(
        self, socket: str, pane_id: str, key: str, literal: bool = False
    ) -> None:
        """Send one key name (or literal text with literal=True) to a pane."""
        if literal:
            await self._run_tmux(socket, "send-keys", "-t", pane_id, "-l", key)
        else:
            await self._run_tmux(socket, "send-keys", "-t", pane_id, key)
        logger.info(f"Sent key to {pane_id} on {socket_key(socket)}: {key[:50]}")

    async def send_text(self, socket: str, pane_id: str, text: str) -> None:
        """Type text into a pane; each newline becomes an Enter key press."""
        lines = text.split("\n")
        for idx, line in enumerate(lines):
            if line:
                await self._run_tmux(socket, "send-keys", "-t", pane_id, "-l", line)
            if idx < len(lines) - 1:
                await self._run_tmux(socket, "send-keys", "-t", pane_id, "Enter")
        logger.info(f"Sent input to {pane_id} on {socket_key(socket)}: {text[:50]}...")

    async def kill_session(self, socket: str, session_name: str) -> None:
        await self._run_tmux(socket, "kill-session", "-t", session_name)
        logger.info(f"Killed session {session_name} on {socket_key(socket)}")

    async def switch_client(self, socket: str, session_name: str, pane_id: str) -> None:
        """Switch the current tmux client to a session and select its pane."""
        await self._run_tmux(
            socket, "switch-client", "-t", session_name, ";", "select-pane", "-t", pane_id
        )

    def attach_session(self, socket: str, session_name: str, pane_id: str) -> bool:
        """
        Attach the terminal to a session (blocks until the user detaches).

        Returns:
            True if tmux exited cleanly
        """
        returncode = self.runner.run_interactive(
            socket, "attach-session", "-t", session_name, ";", "select-pane", "-t", pane_id
        )
        if returncode != 0:
            logger.error(f"tmux attach to {session_name} exited with status {returncode}")
            return False
        return True
