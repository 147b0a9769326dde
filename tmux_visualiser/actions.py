"""Write commands issued against the focused session, routed to its own socket."""

import logging
from typing import Callable, Mapping, Optional, Tuple

from .errors import CommandError
from .models import SessionView
from .state import DashboardState
from .tmux_controller import TmuxController, can_switch_client

logger = logging.getLogger(__name__)


def _focused(state: DashboardState) -> SessionView:
    view = state.focused_view()
    if view is None:
        raise CommandError("no tmux sessions")
    return view


async def _target_pane(controller: TmuxController, view: SessionView) -> str:
    if view.pane_id:
        return view.pane_id
    return await controller.active_pane_id(view.socket_path, view.name)


async def send_key_to_focused(
    controller: TmuxController, state: DashboardState, key: str, literal: bool = False
) -> None:
    view = _focused(state)
    pane_id = await _target_pane(controller, view)
    await controller.send_keys(view.socket_path, pane_id, key, literal=literal)


async def send_text_to_focused(controller: TmuxController, state: DashboardState, text: str) -> None:
    """Type text into the focused pane and submit it with Enter."""
    if not text:
        return
    view = _focused(state)
    pane_id = await _target_pane(controller, view)
    await controller.send_text(view.socket_path, pane_id, text + "\n")


async def kill_focused_session(controller: TmuxController, state: DashboardState) -> str:
    """Kill the focused session and reset focus. Returns the killed session's name."""
    view = _focused(state)
    await controller.kill_session(view.socket_path, view.name)
    state.focus_key = ""
    state.focus_index = 0
    return view.name


async def resolve_connect_target(
    controller: TmuxController,
    state: DashboardState,
    environ: Optional[Mapping[str, str]] = None,
) -> Tuple[SessionView, str, bool]:
    """
    Work out how to bring the focused session to the user.

    Returns:
        (view, pane_id, switched) where switched is True if switch-client was
        used because we're already inside that session's tmux server
    """
    view = _focused(state)
    pane_id = await _target_pane(controller, view)
    if can_switch_client(view.socket_path, environ):
        await controller.switch_client(view.socket_path, view.name, pane_id)
        return view, pane_id, True
    return view, pane_id, False


def attach_focused(
    controller: TmuxController,
    view: SessionView,
    pane_id: str,
    suspend: Optional[Callable[[], None]] = None,
) -> bool:
    """Hand the terminal to `tmux attach-session` for the given session."""
    if suspend is not None:
        suspend()
    logger.info(f"Attaching to {view.name} on {view.socket_hint}")
    return controller.attach_session(view.socket_path, view.name, pane_id)
