import json
import unittest

from websockets.exceptions import ConnectionClosed

from fakes import LinkFactory, Outbox
from worldmeet.client import ConnectionState, ConnectionStateMachine, WebSocketChannel, pump


class FakeClientWebSocket:
    """Client websocket that replays frames and then drops"""

    def __init__(self, frames):
        self.frames = [json.dumps(frame) for frame in frames]
        self.sent = []

    async def send(self, data):
        self.sent.append(data)

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for frame in self.frames:
            yield frame
        raise ConnectionClosed(None, None)


class TestPump(unittest.IsolatedAsyncioTestCase):
    async def test_joins_after_welcome_and_survives_close(self):
        outbox = Outbox()
        machine = ConnectionStateMachine(outbox.send, LinkFactory())
        machine.start()
        websocket = FakeClientWebSocket([
            {"type": "welcome", "connection_id": "a", "ice_servers": []},
            {"type": "waiting"},
        ])

        await pump(websocket, machine, "Alice", "US")
        await machine.wait_idle()

        self.assertEqual(machine.connection_id, "a")
        self.assertEqual(machine.state, ConnectionState.SEARCHING)
        self.assertEqual(outbox.sent, [{"type": "join", "display_name": "Alice", "region_tag": "US"}])
        await machine.close()

    async def test_channel_sends_json_frames(self):
        websocket = FakeClientWebSocket([])
        await WebSocketChannel(websocket).send({"type": "leave", "partner_connection_id": None})

        self.assertEqual(json.loads(websocket.sent[0]), {"type": "leave", "partner_connection_id": None})


if __name__ == "__main__":
    unittest.main()
