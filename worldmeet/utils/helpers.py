import uuid
from typing import Literal

NegotiationRole = Literal["initiator", "responder"]


def generate_connection_id() -> str:
    """Generate a random connection id (32 hex characters)"""
    return uuid.uuid4().hex


def negotiation_role(local_id: str, partner_id: str) -> NegotiationRole:
    """The lexicographically smaller connection id makes the offer"""
    return "initiator" if local_id < partner_id else "responder"
