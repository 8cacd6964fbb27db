import json

import websockets
from websockets.exceptions import ConnectionClosed

from ..logging_config import get_logger
from ..models import WelcomeMessage
from .machine import ConnectionStateMachine
from .negotiation import MediaSource, PeerLinkFactory, StatusCallback

logger = get_logger(__name__)


class WebSocketChannel:
    """Outbound half of the signaling connection"""

    def __init__(self, websocket):
        self.websocket = websocket

    async def send(self, message: dict):
        await self.websocket.send(json.dumps(message))


async def pump(websocket, machine: ConnectionStateMachine, display_name: str, region_tag: str):
    """Feed server frames into the machine, joining once the server has said hello"""
    joined = False
    try:
        async for raw in websocket:
            message = machine.handle_message(raw)
            if isinstance(message, WelcomeMessage) and not joined:
                machine.join(display_name, region_tag)
                joined = True
    except ConnectionClosed as e:
        logger.info(f"Signaling connection closed: {e}")


async def run_client(
    url: str,
    display_name: str,
    region_tag: str,
    link_factory: PeerLinkFactory,
    media: MediaSource | None = None,
    on_status: StatusCallback | None = None,
):
    """Connect to a worldmeet server and keep chatting until the connection drops"""
    async with websockets.connect(url) as websocket:
        logger.info(f"Connected to {url}")
        machine = ConnectionStateMachine(
            WebSocketChannel(websocket).send,
            link_factory,
            media=media,
            on_status=on_status,
        )
        machine.start()
        try:
            await pump(websocket, machine, display_name, region_tag)
        finally:
            await machine.close()
