import asyncio
import unittest

from fakes import FakeWebSocket
from worldmeet.core import ConnectionManager, SignalRelay
from worldmeet.models import SignalMessage


class TestSignalRelay(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.connections = ConnectionManager()
        self.relay = SignalRelay(self.connections)
        self.ws_b = FakeWebSocket()
        self.connections.register("b", self.ws_b)

    async def asyncTearDown(self):
        self.connections.close()

    async def test_relay_tags_sender_and_passes_payload_through(self):
        payload = {"sdp": "v=0\r\n", "nested": [1, 2, {"x": None}]}
        message = SignalMessage(target_connection_id="b", kind="offer", payload=payload)

        delivered = self.relay.relay("a", "b", message)
        await self.connections.drain()

        self.assertTrue(delivered)
        self.assertEqual(
            self.ws_b.sent,
            [{"type": "signal", "sender_connection_id": "a", "kind": "offer", "payload": payload}],
        )

    async def test_relay_to_unknown_target_is_dropped(self):
        message = SignalMessage(target_connection_id="ghost", kind="candidate", payload={})

        self.assertFalse(self.relay.relay("a", "ghost", message))
        await self.connections.drain()
        self.assertEqual(self.ws_b.sent, [])

    async def test_relay_to_closed_target_is_dropped(self):
        self.ws_b.close()
        message = SignalMessage(target_connection_id="b", kind="answer", payload={})

        self.assertFalse(self.relay.relay("a", "b", message))


class TestConnectionManager(unittest.IsolatedAsyncioTestCase):
    async def test_send_failure_is_logged_not_raised(self):
        class BrokenWebSocket(FakeWebSocket):
            async def send_text(self, data):
                raise ConnectionResetError("peer gone")

        connections = ConnectionManager()
        connections.register("a", BrokenWebSocket())

        with self.assertLogs("worldmeet.core.websocket", level="WARNING"):
            self.assertTrue(connections.post("a", {"type": "waiting"}))
            await connections.drain()
        connections.close()

    async def test_frames_keep_posting_order(self):
        connections = ConnectionManager()
        websocket = FakeWebSocket()
        connections.register("a", websocket)

        for index in range(5):
            connections.post("a", {"type": "n", "index": index})
        await connections.drain()

        self.assertEqual([frame["index"] for frame in websocket.sent], [0, 1, 2, 3, 4])
        connections.close()

    async def test_slow_client_only_delays_itself(self):
        class SlowWebSocket(FakeWebSocket):
            async def send_text(self, data):
                await asyncio.sleep(5)

        connections = ConnectionManager()
        fast = FakeWebSocket()
        connections.register("slow", SlowWebSocket())
        connections.register("fast", fast)

        connections.post("slow", {"type": "waiting"})
        connections.post("fast", {"type": "waiting"})
        await asyncio.sleep(0.05)

        self.assertEqual(fast.sent, [{"type": "waiting"}])
        connections.close()

    async def test_unregister_ignores_replaced_websocket(self):
        connections = ConnectionManager()
        old, new = FakeWebSocket(), FakeWebSocket()
        connections.register("a", old)
        connections.register("a", new)

        connections.unregister("a", old)

        self.assertTrue(connections.is_live("a"))
        connections.unregister("a", new)
        connections.unregister("a", new)
        self.assertFalse(connections.is_live("a"))
        self.assertFalse(connections.post("a", {"type": "waiting"}))
        self.assertEqual(len(connections), 0)


if __name__ == "__main__":
    unittest.main()
