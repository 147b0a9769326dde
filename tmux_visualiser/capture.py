"""Bounded-concurrency pane capture."""

import asyncio
import logging
from typing import Dict, List, Optional

from .errors import CommandError
from .models import SessionRef, SessionView

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 4


class CaptureOrchestrator:
    """Captures every ref's pane with at most `max_workers` in flight."""

    def __init__(self, controller):
        self.controller = controller

    async def capture_one(
        self, ref: SessionRef, lines: int, cancel_event: Optional[asyncio.Event] = None
    ) -> SessionView:
        """
        Resolve the ref's pane if needed and capture it.

        A failure never raises: it becomes a one-line view with an empty pane
        id so the pane is resolved again next cycle.
        """
        socket = ref.socket.path
        try:
            pane_id = ref.pane_id
            if not pane_id:
                pane_id = await self.controller.active_pane_id(socket, ref.name, cancel_event=cancel_event)
            captured = await self.controller.capture_pane(socket, pane_id, lines, cancel_event=cancel_event)
        except CommandError as e:
            logger.debug(f"Capture failed for {ref.key}: {e}")
            return SessionView.from_ref(ref, pane_id="", lines=[str(e)])
        return SessionView.from_ref(ref, pane_id=pane_id, lines=captured)

    async def capture_all(
        self,
        refs: List[SessionRef],
        lines: int,
        max_workers: int = DEFAULT_MAX_WORKERS,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Dict[str, SessionView]:
        """
        Capture all refs and return views keyed by ref key.

        Returns only after every ref has been processed.
        """
        if not refs:
            return {}

        workers = max(1, min(max_workers or 1, len(refs)))
        semaphore = asyncio.Semaphore(workers)

        async def worker(ref: SessionRef) -> SessionView:
            async with semaphore:
                return await self.capture_one(ref, lines, cancel_event=cancel_event)

        views = await asyncio.gather(*(worker(ref) for ref in refs))
        return {view.key: view for view in views}
