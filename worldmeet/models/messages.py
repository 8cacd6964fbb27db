"""Wire messages exchanged over the /ws endpoint.

Every frame is a JSON object whose ``type`` field selects the model. Inbound
frames are validated through ``parse_client_message`` on the server and
``parse_server_message`` on the client; anything else (unknown ``type``,
unknown signal ``kind``, missing fields) raises ``pydantic.ValidationError``.
"""
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter

SignalKind = Literal["offer", "answer", "candidate"]


# Client -> server


class JoinMessage(BaseModel):
    type: Literal["join"] = "join"
    display_name: str
    region_tag: str


class SignalMessage(BaseModel):
    type: Literal["signal"] = "signal"
    target_connection_id: str
    kind: SignalKind
    payload: Any = None


class LeaveMessage(BaseModel):
    type: Literal["leave"] = "leave"
    partner_connection_id: str | None = None


# Server -> client


class WelcomeMessage(BaseModel):
    type: Literal["welcome"] = "welcome"
    connection_id: str
    ice_servers: list[str] = []


class WaitingMessage(BaseModel):
    type: Literal["waiting"] = "waiting"


class MatchedMessage(BaseModel):
    type: Literal["matched"] = "matched"
    partner_connection_id: str
    partner_display_name: str
    partner_region_tag: str


class SignalDelivery(BaseModel):
    type: Literal["signal"] = "signal"
    sender_connection_id: str
    kind: SignalKind
    payload: Any = None


class PartnerLeftMessage(BaseModel):
    type: Literal["partner-left"] = "partner-left"


class ErrorMessage(BaseModel):
    type: Literal["error"] = "error"
    detail: str


ClientMessage = Annotated[
    Union[JoinMessage, SignalMessage, LeaveMessage], Field(discriminator="type")
]
ServerMessage = Annotated[
    Union[
        WelcomeMessage,
        WaitingMessage,
        MatchedMessage,
        SignalDelivery,
        PartnerLeftMessage,
        ErrorMessage,
    ],
    Field(discriminator="type"),
]

_client_adapter = TypeAdapter(ClientMessage)
_server_adapter = TypeAdapter(ServerMessage)


def parse_client_message(raw: str | bytes | dict):
    if isinstance(raw, dict):
        return _client_adapter.validate_python(raw)
    return _client_adapter.validate_json(raw)


def parse_server_message(raw: str | bytes | dict):
    if isinstance(raw, dict):
        return _server_adapter.validate_python(raw)
    return _server_adapter.validate_json(raw)
