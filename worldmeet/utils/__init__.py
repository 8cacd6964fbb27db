from .helpers import NegotiationRole, generate_connection_id, negotiation_role

__all__ = ["NegotiationRole", "generate_connection_id", "negotiation_role"]
