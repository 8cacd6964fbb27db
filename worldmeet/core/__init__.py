from .coordinator import MatchCoordinator
from .queue import WaitingEntry, WaitingQueue
from .relay import SignalRelay
from .sessions import Session, SessionRegistry
from .websocket import ConnectionManager

__all__ = [
    "ConnectionManager",
    "MatchCoordinator",
    "Session",
    "SessionRegistry",
    "SignalRelay",
    "WaitingEntry",
    "WaitingQueue",
]
