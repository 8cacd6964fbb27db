from .messages import (
    ClientMessage,
    ErrorMessage,
    JoinMessage,
    LeaveMessage,
    MatchedMessage,
    PartnerLeftMessage,
    ServerMessage,
    SignalDelivery,
    SignalKind,
    SignalMessage,
    WaitingMessage,
    WelcomeMessage,
    parse_client_message,
    parse_server_message,
)

__all__ = [
    "ClientMessage",
    "ErrorMessage",
    "JoinMessage",
    "LeaveMessage",
    "MatchedMessage",
    "PartnerLeftMessage",
    "ServerMessage",
    "SignalDelivery",
    "SignalKind",
    "SignalMessage",
    "WaitingMessage",
    "WelcomeMessage",
    "parse_client_message",
    "parse_server_message",
]
