"""Client-side connection state machine.

Inbound server messages, user actions and peer link callbacks are all turned
into events on one queue and handled by a single consumer task, so handlers
never overlap. Negotiation primitives (offer, answer, candidates) run as
separate tasks and report back through the same queue, tagged with the epoch
of the session that started them; anything arriving for an older epoch is
dropped.
"""
import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import ValidationError

from .. import config
from ..exceptions import MissingAttributesError
from ..logging_config import get_logger
from ..models import (
    ErrorMessage,
    JoinMessage,
    LeaveMessage,
    MatchedMessage,
    PartnerLeftMessage,
    SignalDelivery,
    SignalMessage,
    WaitingMessage,
    WelcomeMessage,
    parse_server_message,
)
from ..utils import NegotiationRole, negotiation_role
from .negotiation import MediaSource, PeerLink, PeerLinkFactory, SendFunc, StatusCallback

logger = get_logger(__name__)

STATUS_SEARCHING = "Searching for a partner... Worldwide priority first!"
STATUS_MATCHED = "Match found! Setting up video..."
STATUS_OFFERING = "Offering connection to partner..."
STATUS_ANSWERING = "Sending connection response..."
STATUS_ESTABLISHED = "Secure connection established, waiting for video..."
STATUS_ACTIVE = "Connected! Your Live Stream is Active."
STATUS_REQUEUE = "Partner dropped. Automatically searching for a new International match..."
STATUS_DISCONNECTED = "Disconnected. Join the lobby to find a new chat."
STATUS_MEDIA_ERROR = "Error: Could not access camera/microphone. Please check permissions."


class ConnectionState(str, Enum):
    IDLE = "idle"
    SEARCHING = "searching"
    NEGOTIATING = "negotiating"
    ACTIVE = "active"
    TERMINATING = "terminating"


@dataclass(frozen=True)
class DisplayAttributes:
    display_name: str
    region_tag: str


@dataclass
class ChatSession:
    epoch: int
    partner_id: str
    partner_display_name: str
    partner_region_tag: str
    role: NegotiationRole
    link: PeerLink | None = None
    remote_ready: bool = False
    pending_candidates: list = field(default_factory=list)
    tasks: set = field(default_factory=set)
    timer: asyncio.Task | None = None


class _EpochEvents:
    """Link callbacks bound to the session epoch that created the link"""

    def __init__(self, machine: "ConnectionStateMachine", epoch: int):
        self._machine = machine
        self._epoch = epoch

    def local_candidate(self, candidate: Any) -> None:
        self._machine._post(self._machine._on_local_candidate, self._epoch, candidate)

    def media_flowing(self) -> None:
        self._machine._post(self._machine._on_media_flowing, self._epoch)

    def failed(self) -> None:
        self._machine._post(self._machine._on_link_failed, self._epoch)


class ConnectionStateMachine:
    def __init__(
        self,
        send: SendFunc,
        link_factory: PeerLinkFactory,
        media: MediaSource | None = None,
        ice_servers: list[str] | None = None,
        on_status: StatusCallback | None = None,
        connection_id: str | None = None,
        negotiation_timeout: float | None = config.NEGOTIATION_TIMEOUT,
    ):
        self.send = send
        self.link_factory = link_factory
        self.media = media
        self.ice_servers = list(ice_servers or [])
        self.on_status = on_status
        self.connection_id = connection_id
        self.negotiation_timeout = negotiation_timeout

        self.state = ConnectionState.IDLE
        self.attributes: DisplayAttributes | None = None
        self.session: ChatSession | None = None
        self.epoch = 0
        self.media_handle: Any = None

        self._events: asyncio.Queue = asyncio.Queue()
        self._primitives: set[asyncio.Task] = set()
        self._consumer: asyncio.Task | None = None

    # Lifecycle

    def start(self):
        if self._consumer is None:
            self._consumer = asyncio.create_task(self._consume())

    async def close(self):
        """Stop processing events and drop local resources without telling the server"""
        if self._consumer is not None:
            self._consumer.cancel()
            try:
                await self._consumer
            except asyncio.CancelledError:
                pass
            self._consumer = None
        await self._teardown()
        await self._release_media()
        self.state = ConnectionState.IDLE

    async def wait_idle(self):
        """Wait until every queued event and running primitive has been handled"""
        while True:
            await self._events.join()
            if not self._primitives:
                return
            await asyncio.gather(*self._primitives, return_exceptions=True)

    # User actions

    def join(self, display_name: str, region_tag: str):
        display_name = (display_name or "").strip()
        region_tag = (region_tag or "").strip()
        if not display_name or not region_tag:
            raise MissingAttributesError(
                "Please enter your Name and select your Country to start."
            )
        self._post(self._on_join, DisplayAttributes(display_name, region_tag))

    def hangup(self):
        self._post(self._on_hangup)

    def stop(self):
        self._post(self._on_stop)

    # Server messages

    def handle_message(self, raw: str | bytes | dict):
        """Queue one server frame; returns the parsed message, or None if rejected"""
        try:
            message = parse_server_message(raw)
        except ValidationError:
            logger.warning(f"Discarding unrecognized server message: {raw!r}")
            return None

        if isinstance(message, WelcomeMessage):
            self._post(self._on_welcome, message)
        elif isinstance(message, WaitingMessage):
            self._post(self._on_waiting)
        elif isinstance(message, MatchedMessage):
            self._post(self._on_matched, message)
        elif isinstance(message, SignalDelivery):
            self._post(self._on_signal, message)
        elif isinstance(message, PartnerLeftMessage):
            self._post(self._on_partner_left)
        elif isinstance(message, ErrorMessage):
            logger.warning(f"Server rejected a message: {message.detail}")
        return message

    # Event loop

    def _post(self, handler, *args):
        self._events.put_nowait((handler, args))

    async def _consume(self):
        while True:
            handler, args = await self._events.get()
            try:
                await handler(*args)
            except Exception:
                logger.exception(f"Error handling {handler.__name__} in state {self.state.value}")
            finally:
                self._events.task_done()

    def _status(self, text: str):
        logger.info(text)
        if self.on_status is not None:
            self.on_status(text)

    def _is_current(self, epoch: int) -> bool:
        return self.session is not None and self.session.epoch == epoch

    # Handlers

    async def _on_welcome(self, message: WelcomeMessage):
        self.connection_id = message.connection_id
        if message.ice_servers:
            self.ice_servers = list(message.ice_servers)

    async def _on_join(self, attributes: DisplayAttributes):
        if self.state != ConnectionState.IDLE:
            logger.debug(f"Ignoring join while {self.state.value}")
            return

        self.attributes = attributes
        await self._acquire_media()
        self.state = ConnectionState.SEARCHING
        self._status(STATUS_SEARCHING)
        await self._send_join()

    async def _on_waiting(self):
        if self.state == ConnectionState.SEARCHING:
            self._status(STATUS_SEARCHING)

    async def _on_matched(self, message: MatchedMessage):
        if self.state == ConnectionState.IDLE:
            logger.warning(
                f"Matched with {message.partner_connection_id} while idle, releasing partner"
            )
            await self.send(
                LeaveMessage(partner_connection_id=message.partner_connection_id).model_dump()
            )
            return

        if self.session is not None:
            # The server already replaced the old session
            await self._teardown()

        if self.connection_id is None:
            logger.warning("Own connection id unknown, acting as responder")
            role: NegotiationRole = "responder"
        else:
            role = negotiation_role(self.connection_id, message.partner_connection_id)

        self.epoch += 1
        self.session = ChatSession(
            epoch=self.epoch,
            partner_id=message.partner_connection_id,
            partner_display_name=message.partner_display_name,
            partner_region_tag=message.partner_region_tag,
            role=role,
        )
        self.state = ConnectionState.NEGOTIATING
        logger.info(
            f"Match found with {message.partner_display_name} ({message.partner_region_tag}) as {role}"
        )
        self._status(STATUS_MATCHED)

        # Both roles hold a link from the match on
        link = self._ensure_link()
        self._start_timer()
        if role == "initiator":
            self._spawn(link.create_offer, (), self._offer_ready)

    async def _on_signal(self, message: SignalDelivery):
        session = self.session
        if session is None or message.sender_connection_id != session.partner_id:
            logger.warning(
                f"Discarding {message.kind} from {message.sender_connection_id}: no matching session"
            )
            return

        link = self._ensure_link()

        if message.kind == "offer":
            self._spawn(link.accept_offer, (message.payload,), self._answer_ready)
        elif message.kind == "answer":
            self._spawn(link.accept_answer, (message.payload,), self._answer_applied)
        elif message.kind == "candidate":
            if message.payload is None:
                return
            if session.remote_ready:
                self._spawn(link.add_candidate, (message.payload,), None, fatal=False)
            else:
                session.pending_candidates.append(message.payload)

    async def _on_partner_left(self):
        if self.session is None:
            logger.debug(f"Ignoring partner-left while {self.state.value}")
            return
        logger.info("Partner left, starting auto-requeue")
        await self._requeue(notify_partner=False)

    async def _on_hangup(self):
        if self.session is None:
            logger.debug(f"Ignoring hangup while {self.state.value}")
            return
        await self._requeue(notify_partner=True)

    async def _on_stop(self):
        if self.state == ConnectionState.IDLE:
            return
        partner_id = self.session.partner_id if self.session else None
        self.state = ConnectionState.TERMINATING
        await self.send(LeaveMessage(partner_connection_id=partner_id).model_dump())
        await self._teardown()
        await self._release_media()
        self.state = ConnectionState.IDLE
        self._status(STATUS_DISCONNECTED)

    async def _on_local_candidate(self, epoch: int, candidate: Any):
        if not self._is_current(epoch):
            return
        await self._send_signal("candidate", candidate)

    async def _on_media_flowing(self, epoch: int):
        if not self._is_current(epoch):
            return
        if self.state in (ConnectionState.NEGOTIATING, ConnectionState.ACTIVE):
            self.state = ConnectionState.ACTIVE
            self._cancel_timer()
            self._status(STATUS_ACTIVE)

    async def _on_link_failed(self, epoch: int):
        if not self._is_current(epoch):
            return
        logger.info("Peer link failed, starting auto-requeue")
        await self._requeue(notify_partner=True)

    # Negotiation primitive results

    async def _offer_ready(self, offer: Any):
        await self._send_signal("offer", offer)
        self._status(STATUS_OFFERING)

    async def _answer_ready(self, answer: Any):
        await self._remote_applied()
        await self._send_signal("answer", answer)
        self._status(STATUS_ANSWERING)

    async def _answer_applied(self, _result: Any):
        await self._remote_applied()
        self._status(STATUS_ESTABLISHED)

    async def _remote_applied(self):
        session = self.session
        session.remote_ready = True
        pending, session.pending_candidates = session.pending_candidates, []
        for candidate in pending:
            self._spawn(session.link.add_candidate, (candidate,), None, fatal=False)

    def _spawn(self, primitive, args: tuple, on_result, fatal: bool = True):
        epoch = self.session.epoch
        task = asyncio.create_task(
            self._run_primitive(epoch, primitive, args, on_result, fatal)
        )
        self._primitives.add(task)
        self.session.tasks.add(task)
        task.add_done_callback(self._primitives.discard)

    async def _run_primitive(self, epoch: int, primitive, args: tuple, on_result, fatal: bool):
        try:
            result = await primitive(*args)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._post(self._on_primitive_failed, epoch, e, fatal)
            return
        self._post(self._on_primitive_resolved, epoch, on_result, result)

    async def _on_primitive_resolved(self, epoch: int, on_result, result: Any):
        if not self._is_current(epoch):
            logger.debug(f"Discarding negotiation result from stale epoch {epoch}")
            return
        if on_result is not None:
            await on_result(result)

    async def _on_primitive_failed(self, epoch: int, error: Exception, fatal: bool):
        if not self._is_current(epoch):
            return
        if not fatal:
            logger.warning(f"Error applying candidate: {type(error).__name__} - {error}")
            return
        logger.error(f"Negotiation failed: {type(error).__name__} - {error}")
        await self._requeue(notify_partner=True)

    # Negotiation deadline

    def _start_timer(self):
        if self.negotiation_timeout is None:
            return
        session = self.session
        session.timer = asyncio.create_task(self._negotiation_deadline(session.epoch))
        session.tasks.add(session.timer)

    def _cancel_timer(self):
        if self.session is not None and self.session.timer is not None:
            self.session.timer.cancel()
            self.session.timer = None

    async def _negotiation_deadline(self, epoch: int):
        await asyncio.sleep(self.negotiation_timeout)
        self._post(self._on_negotiation_timeout, epoch)

    async def _on_negotiation_timeout(self, epoch: int):
        if not self._is_current(epoch) or self.state != ConnectionState.NEGOTIATING:
            return
        logger.info(f"No connection after {self.negotiation_timeout}s, starting auto-requeue")
        await self._requeue(notify_partner=True)

    # Helpers

    def _ensure_link(self) -> PeerLink:
        session = self.session
        if session.link is None:
            session.link = self.link_factory(
                self.ice_servers, self.media_handle, _EpochEvents(self, session.epoch)
            )
        return session.link

    async def _requeue(self, notify_partner: bool):
        """Tear down the current session and go straight back to searching"""
        partner_id = self.session.partner_id if self.session else None
        self.state = ConnectionState.TERMINATING
        if notify_partner and partner_id:
            await self.send(LeaveMessage(partner_connection_id=partner_id).model_dump())
        await self._teardown()

        if self.attributes is None:
            logger.warning("No display attributes to requeue with, returning to lobby")
            await self._release_media()
            self.state = ConnectionState.IDLE
            self._status(STATUS_DISCONNECTED)
            return

        self.state = ConnectionState.SEARCHING
        self._status(STATUS_REQUEUE)
        await self._send_join()

    async def _teardown(self):
        session, self.session = self.session, None
        if session is None:
            return
        for task in session.tasks:
            task.cancel()
        if session.link is not None:
            try:
                await session.link.close()
            except Exception as e:
                logger.warning(f"Error closing peer link: {type(e).__name__} - {e}")

    async def _acquire_media(self):
        if self.media is None or self.media_handle is not None:
            return
        try:
            self.media_handle = await self.media.acquire()
        except Exception as e:
            logger.error(f"Error accessing media devices: {type(e).__name__} - {e}")
            self._status(STATUS_MEDIA_ERROR)

    async def _release_media(self):
        if self.media is None or self.media_handle is None:
            return
        self.media_handle = None
        try:
            await self.media.release()
        except Exception as e:
            logger.warning(f"Error releasing media devices: {type(e).__name__} - {e}")

    async def _send_join(self):
        await self.send(
            JoinMessage(
                display_name=self.attributes.display_name,
                region_tag=self.attributes.region_tag,
            ).model_dump()
        )

    async def _send_signal(self, kind: str, payload: Any):
        await self.send(
            SignalMessage(
                target_connection_id=self.session.partner_id, kind=kind, payload=payload
            ).model_dump()
        )
