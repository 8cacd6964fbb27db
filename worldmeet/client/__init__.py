from .machine import ConnectionState, ConnectionStateMachine, DisplayAttributes
from .negotiation import LinkEvents, MediaSource, PeerLink, PeerLinkFactory
from .transport import WebSocketChannel, pump, run_client

__all__ = [
    "ConnectionState",
    "ConnectionStateMachine",
    "DisplayAttributes",
    "LinkEvents",
    "MediaSource",
    "PeerLink",
    "PeerLinkFactory",
    "WebSocketChannel",
    "pump",
    "run_client",
]
