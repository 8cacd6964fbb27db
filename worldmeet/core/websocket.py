"""Live websockets per connection id.

Outbound frames are queued per connection and written by a dedicated writer
task, so ``post`` never waits on the network: a slow client delays only its
own frames, and frames to one connection leave in the order they were posted.
"""
import asyncio
import json

from fastapi import WebSocket
from fastapi.websockets import WebSocketState
from pydantic import BaseModel

from ..logging_config import get_logger

logger = get_logger(__name__)


class _Outbox:
    def __init__(self, connection_id: str, websocket: WebSocket):
        self.websocket = websocket
        self.queue: asyncio.Queue = asyncio.Queue()
        self.writer = asyncio.create_task(self._write(connection_id))

    async def _write(self, connection_id: str):
        while True:
            message_json = await self.queue.get()
            try:
                await self.websocket.send_text(message_json)
            except Exception as e:
                logger.warning(f"Send to {connection_id} failed: {type(e).__name__} - {e}")
            finally:
                self.queue.task_done()


class ConnectionManager:
    def __init__(self):
        self._connections: dict[str, _Outbox] = {}

    def __len__(self) -> int:
        return len(self._connections)

    def register(self, connection_id: str, websocket: WebSocket):
        """Start serving a connection; must be called from the event loop"""
        self.unregister(connection_id)
        self._connections[connection_id] = _Outbox(connection_id, websocket)

    def unregister(self, connection_id: str, websocket: WebSocket | None = None):
        """Forget a connection; with ``websocket`` given, only if it is still the registered one"""
        outbox = self._connections.get(connection_id)
        if outbox is None:
            return
        if websocket is not None and outbox.websocket is not websocket:
            return
        del self._connections[connection_id]
        outbox.writer.cancel()

    def is_live(self, connection_id: str) -> bool:
        outbox = self._connections.get(connection_id)
        if outbox is None:
            return False
        return outbox.websocket.client_state == WebSocketState.CONNECTED

    def post(self, connection_id: str, message: BaseModel | dict) -> bool:
        """Queue a message for one connection, returning whether it was accepted"""
        outbox = self._connections.get(connection_id)
        if outbox is None:
            return False

        if isinstance(message, BaseModel):
            message_json = message.model_dump_json()
        else:
            message_json = json.dumps(message)
        outbox.queue.put_nowait(message_json)
        return True

    async def drain(self):
        """Wait until every queued frame has been written or has failed"""
        await asyncio.gather(
            *(outbox.queue.join() for outbox in list(self._connections.values()))
        )

    def close(self):
        for connection_id in list(self._connections):
            self.unregister(connection_id)
