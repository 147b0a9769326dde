"""One discovery + listing + capture cycle, merged into DashboardState."""

import asyncio
import logging
from datetime import datetime
from typing import Dict, Mapping, Optional

from .capture import CaptureOrchestrator
from .lisa_sockets import LisaSocketSource
from .models import ListResult, SessionView
from .session_lister import SessionLister
from .sockets import SocketResolver
from .state import DashboardState, focus_index_for_key, ordered_session_keys
from .tmux_controller import TmuxController

logger = logging.getLogger(__name__)


def apply_cycle_result(
    state: DashboardState,
    result: ListResult,
    views: Dict[str, SessionView],
) -> None:
    """
    Publish a finished cycle into the state.

    A server-down result clears every session. Anything else publishes the
    captured views, carrying scroll/follow over only for keys that survived
    and relocating focus by key.
    """
    state.last_refresh = datetime.now()
    state.socket_count = result.socket_count
    state.last_error = result.error or ""
    state.server_down = result.server_down

    if result.server_down:
        state.sessions = {}
        state.scroll = {}
        state.follow = {}
        state.focus_index = 0
        state.focus_key = ""
        return

    state.sessions = dict(views)
    keys = ordered_session_keys(state)
    state.scroll = {key: state.scroll.get(key, 0) for key in keys}
    state.follow = {key: state.follow.get(key, True) for key in keys}

    if not keys:
        state.focus_index = 0
        state.focus_key = ""
        return

    index = focus_index_for_key(keys, state.focus_key)
    if index < 0:
        index = 0
    state.focus_index = index
    state.focus_key = keys[index]


class StateRefresher:
    """Wires resolver, lister and capture orchestrator into a refresh cycle."""

    def __init__(
        self,
        config,
        controller: Optional[TmuxController] = None,
        lisa_source: Optional[LisaSocketSource] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        self.config = config
        self.controller = controller or TmuxController(cmd_timeout=config.cmd_timeout)
        self.lisa_source = lisa_source or LisaSocketSource(cmd_timeout=config.cmd_timeout)
        self.resolver = SocketResolver(config, lisa_source=self.lisa_source, environ=environ)
        self.lister = SessionLister(self.controller, self.resolver, all_panes=config.all_panes)
        self.orchestrator = CaptureOrchestrator(self.controller)

    async def refresh(
        self, state: DashboardState, cancel_event: Optional[asyncio.Event] = None
    ) -> DashboardState:
        """Run one full cycle and merge it into `state`."""
        self.lister.all_panes = self.config.all_panes
        result = await self.lister.list_all(cancel_event=cancel_event)

        views: Dict[str, SessionView] = {}
        if not result.server_down and result.refs:
            views = await self.orchestrator.capture_all(
                result.refs,
                lines=self.config.lines,
                max_workers=self.config.max_workers,
                cancel_event=cancel_event,
            )

        previous_error = state.last_error
        apply_cycle_result(state, result, views)
        if state.last_error and state.last_error != previous_error:
            logger.warning(f"Refresh finished with error: {state.last_error}")
        return state

    def refresh_blocking(self, state: DashboardState) -> DashboardState:
        """Run a cycle from synchronous code (the curses loop)."""
        return asyncio.run(self.refresh(state))
