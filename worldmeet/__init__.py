"""Anonymous worldwide video chat: matchmaking and signaling relay."""

__version__ = "0.1.0"
