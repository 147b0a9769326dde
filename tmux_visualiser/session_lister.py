"""Per-socket session listing and the partial-failure merge policy."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from .errors import CommandError, ErrorKind, classify_error
from .models import ListResult, SessionRef, SocketTarget
from .sockets import pane_qualified_key, session_qualified_key

logger = logging.getLogger(__name__)


@dataclass
class SocketListing:
    """Outcome of listing one socket: refs on success, error text on failure."""
    target: SocketTarget
    refs: List[SessionRef] = field(default_factory=list)
    error: Optional[str] = None


def ref_sort_key(ref: SessionRef):
    return (ref.name, ref.socket.key, ref.key)


def merge_socket_listings(
    listings: List[SocketListing],
    discovery_errors: Optional[List[str]] = None,
) -> ListResult:
    """
    Combine per-socket listings into one result.

    Any successful socket means its sessions are shown; fatal failures
    elsewhere are attached as a "partial socket failures" message. With no
    success at all the result is either a fatal error or, when every failure
    just means nothing is listening, a server-down signal.
    """
    success_count = 0
    refs: List[SessionRef] = []
    fatal: List[str] = list(discovery_errors or [])
    unavailable: List[str] = []

    for listing in listings:
        if listing.error is None:
            success_count += 1
            refs.extend(listing.refs)
            continue
        if classify_error(listing.error) is ErrorKind.SOCKET_UNAVAILABLE:
            unavailable.append(listing.target.hint)
        else:
            fatal.append(f"{listing.target.hint}: {listing.error}")

    result = ListResult(socket_count=len(listings))

    if success_count > 0:
        unique = {}
        for ref in refs:
            unique.setdefault(ref.key, ref)
        result.refs = sorted(unique.values(), key=ref_sort_key)
        if fatal:
            result.error = "partial socket failures: " + " | ".join(fatal)
        return result

    if fatal:
        result.error = " | ".join(fatal)
        return result

    if unavailable:
        result.server_down = True
        result.error = f"no tmux server running ({', '.join(unavailable)})"

    return result


class SessionLister:
    """Lists capture targets across every resolved socket."""

    def __init__(self, controller, resolver, all_panes: bool = False):
        """
        Args:
            controller: TmuxController used for queries
            resolver: SocketResolver producing the socket targets
            all_panes: One ref per pane instead of one per session
        """
        self.controller = controller
        self.resolver = resolver
        self.all_panes = all_panes

    async def list_sessions_on_socket(
        self, target: SocketTarget, cancel_event: Optional[asyncio.Event] = None
    ) -> List[SessionRef]:
        """
        List refs on one socket.

        Raises:
            CommandError: The socket could not be queried
        """
        names = await self.controller.list_sessions(target.path, cancel_event=cancel_event)
        refs = []
        for name in names:
            if not self.all_panes:
                refs.append(SessionRef(
                    key=session_qualified_key(target.path, name),
                    name=name,
                    socket=target,
                ))
                continue
            pane_ids = await self.controller.list_pane_ids(target.path, name, cancel_event=cancel_event)
            for pane_id in pane_ids:
                refs.append(SessionRef(
                    key=pane_qualified_key(target.path, name, pane_id),
                    name=name,
                    socket=target,
                    pane_id=pane_id,
                ))
        return refs

    async def _list_one(self, target: SocketTarget, cancel_event: Optional[asyncio.Event]) -> SocketListing:
        try:
            refs = await self.list_sessions_on_socket(target, cancel_event=cancel_event)
        except CommandError as e:
            message = str(e)
            logger.debug(f"Listing failed on socket {target.hint}: {message}")
            return SocketListing(target=target, error=message)
        return SocketListing(target=target, refs=refs)

    async def list_all(self, cancel_event: Optional[asyncio.Event] = None) -> ListResult:
        """Resolve sockets, list each one and merge the outcomes."""
        targets, discovery_errors = await self.resolver.resolve()
        listings = await asyncio.gather(*(self._list_one(t, cancel_event) for t in targets))
        result = merge_socket_listings(list(listings), discovery_errors)
        logger.debug(
            f"Listed {len(result.refs)} refs across {result.socket_count} sockets "
            f"(server_down={result.server_down}, error={result.error!r})"
        )
        return result
