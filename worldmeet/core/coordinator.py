import asyncio

from fastapi import WebSocket

from ..logging_config import get_logger
from ..models import (
    JoinMessage,
    LeaveMessage,
    MatchedMessage,
    PartnerLeftMessage,
    SignalMessage,
    WaitingMessage,
)
from .queue import WaitingEntry, WaitingQueue
from .relay import SignalRelay
from .sessions import SessionRegistry
from .websocket import ConnectionManager

logger = get_logger(__name__)


class MatchCoordinator:
    """Server side of the matchmaking protocol.

    Every inbound event is handled under one lock, so queue and session
    mutations are linearized. Outbound frames are only queued while the lock
    is held; the per-connection writers put them on the wire afterwards, in
    queue order, so a ``matched`` always reaches a client before a ``signal``
    its partner sends in reply.
    """

    def __init__(
        self,
        connections: ConnectionManager | None = None,
        notify_partner_on_disconnect: bool = False,
    ):
        self.connections = connections or ConnectionManager()
        self.queue = WaitingQueue()
        self.sessions = SessionRegistry()
        self.relay = SignalRelay(self.connections)
        self.notify_partner_on_disconnect = notify_partner_on_disconnect
        self._lock = asyncio.Lock()

    def stats(self) -> dict:
        return {
            "connected": len(self.connections),
            "waiting": len(self.queue),
            "sessions": len(self.sessions),
        }

    async def connect(self, connection_id: str, websocket: WebSocket):
        async with self._lock:
            self.connections.register(connection_id, websocket)
        logger.info(f"User connected: {connection_id}")

    async def join(self, connection_id: str, message: JoinMessage):
        """Pair the user with a waiting partner, or queue them"""
        async with self._lock:
            logger.info(
                f"{connection_id} ({message.display_name}, {message.region_tag}) requested matching"
            )
            self.queue.remove(connection_id)
            self._end_session(connection_id, notify_partner=True)

            entry = WaitingEntry(
                connection_id=connection_id,
                display_name=message.display_name,
                region_tag=message.region_tag,
            )
            partner = self.queue.find_and_remove_partner(
                message.region_tag, exclude=connection_id
            )

            if partner is None:
                self.queue.enqueue(entry)
                logger.info(
                    f"{connection_id} ({message.region_tag}) added to queue. Total waiting: {len(self.queue)}"
                )
                self.connections.post(connection_id, WaitingMessage())
                return

            if not self.connections.is_live(partner.connection_id):
                self.queue.enqueue(entry)
                logger.info(
                    f"Potential partner {partner.connection_id} was stale. {connection_id} remains in queue"
                )
                self.connections.post(connection_id, WaitingMessage())
                return

            self.sessions.create(connection_id, partner.connection_id)
            tier = "worldwide" if partner.region_tag != message.region_tag else "local fallback"
            logger.info(
                f"Match found ({tier}): {connection_id} ({message.region_tag}) "
                f"paired with {partner.connection_id} ({partner.region_tag})"
            )

            self.connections.post(
                connection_id,
                MatchedMessage(
                    partner_connection_id=partner.connection_id,
                    partner_display_name=partner.display_name,
                    partner_region_tag=partner.region_tag,
                ),
            )
            self.connections.post(
                partner.connection_id,
                MatchedMessage(
                    partner_connection_id=connection_id,
                    partner_display_name=message.display_name,
                    partner_region_tag=message.region_tag,
                ),
            )

    async def signal(self, connection_id: str, message: SignalMessage) -> bool:
        """Relay a negotiation message to the sender's session partner"""
        async with self._lock:
            session = self.sessions.lookup(connection_id)
            target_id = message.target_connection_id
            if session is None or target_id == connection_id or target_id not in session:
                logger.warning(
                    f"Dropping {message.kind} from {connection_id} to {target_id}: no such session"
                )
                return False
            return self.relay.relay(connection_id, target_id, message)

    async def leave(self, connection_id: str, message: LeaveMessage | None = None):
        """Hang up: end the session and tell the partner"""
        async with self._lock:
            self.queue.remove(connection_id)
            session = self.sessions.lookup(connection_id)
            named = message.partner_connection_id if message else None
            if session is not None and named and session.partner_of(connection_id) != named:
                logger.warning(
                    f"{connection_id} hung up on {named} but is paired with {session.partner_of(connection_id)}"
                )
            self._end_session(connection_id, notify_partner=True)

    async def disconnect(self, connection_id: str, websocket: WebSocket | None = None):
        """Clean up after a closed transport.

        The queue entry is removed right away. The partner of an active
        session is not told unless ``notify_partner_on_disconnect`` is set;
        otherwise it finds out through its own link failure detection.
        """
        async with self._lock:
            self.connections.unregister(connection_id, websocket)
            if self.connections.is_live(connection_id):
                # A newer connection took over this id
                return
            self.queue.remove(connection_id)
            self._end_session(
                connection_id, notify_partner=self.notify_partner_on_disconnect
            )
        logger.info(f"User disconnected: {connection_id}")

    def _end_session(self, connection_id: str, notify_partner: bool):
        session = self.sessions.terminate(connection_id)
        if session is None:
            return
        partner_id = session.partner_of(connection_id)
        logger.info(f"{connection_id} left session with {partner_id}")
        if notify_partner:
            self.connections.post(partner_id, PartnerLeftMessage())
