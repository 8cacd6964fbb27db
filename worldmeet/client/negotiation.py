"""Interfaces to the media stack the state machine drives.

The browser (or aiortc, or a test double) supplies the implementations; the
state machine only decides when each primitive runs and where its output goes.
"""
from typing import Any, Awaitable, Callable, Protocol


class MediaSource(Protocol):
    """Camera and microphone capture, acquired once per client"""

    async def acquire(self) -> Any:
        """Return a media handle; raise if access is refused"""
        ...

    async def release(self) -> None:
        ...


class LinkEvents(Protocol):
    """Callbacks a peer link fires as the transport makes progress"""

    def local_candidate(self, candidate: Any) -> None:
        ...

    def media_flowing(self) -> None:
        ...

    def failed(self) -> None:
        ...


class PeerLink(Protocol):
    """One direct media connection to a partner"""

    async def create_offer(self) -> Any:
        """Set and return the local offer"""
        ...

    async def accept_offer(self, offer: Any) -> Any:
        """Apply a remote offer, then set and return the local answer"""
        ...

    async def accept_answer(self, answer: Any) -> None:
        ...

    async def add_candidate(self, candidate: Any) -> None:
        ...

    async def close(self) -> None:
        ...


# (ice_servers, media_handle, events) -> PeerLink
PeerLinkFactory = Callable[[list[str], Any, LinkEvents], PeerLink]
SendFunc = Callable[[dict], Awaitable[None]]
StatusCallback = Callable[[str], None]
