from ..logging_config import get_logger
from ..models import SignalDelivery, SignalMessage
from .websocket import ConnectionManager

logger = get_logger(__name__)


class SignalRelay:
    """Forwards negotiation messages to a connection by id.

    The payload is passed through untouched. Nothing is buffered or retried:
    a message for a connection that is gone is dropped, and the sender's
    negotiation times out on its own.
    """

    def __init__(self, connections: ConnectionManager):
        self.connections = connections

    def relay(self, sender_id: str, target_id: str, message: SignalMessage) -> bool:
        if not self.connections.is_live(target_id):
            logger.debug(f"Dropping {message.kind} from {sender_id}: {target_id} is gone")
            return False

        delivery = SignalDelivery(
            sender_connection_id=sender_id,
            kind=message.kind,
            payload=message.payload,
        )
        return self.connections.post(target_id, delivery)
