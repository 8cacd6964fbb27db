import json

from fastapi.websockets import WebSocketState


class FakeWebSocket:
    """Server-side websocket that records what it was sent"""

    def __init__(self):
        self.sent = []
        self.client_state = WebSocketState.CONNECTED

    async def send_text(self, data):
        if self.client_state != WebSocketState.CONNECTED:
            raise RuntimeError("websocket is closed")
        self.sent.append(json.loads(data))

    def close(self):
        self.client_state = WebSocketState.DISCONNECTED

    def types(self):
        return [message["type"] for message in self.sent]


class FakeLink:
    """Peer link whose primitives resolve immediately"""

    fail_offer = False

    def __init__(self, ice_servers, media_handle, events):
        self.ice_servers = ice_servers
        self.media_handle = media_handle
        self.events = events
        self.remote_offer = None
        self.remote_answer = None
        self.candidates = []
        self.closed = False

    async def create_offer(self):
        if self.fail_offer:
            raise RuntimeError("offer failed")
        return {"type": "offer", "sdp": "local-offer"}

    async def accept_offer(self, offer):
        self.remote_offer = offer
        return {"type": "answer", "sdp": "local-answer"}

    async def accept_answer(self, answer):
        self.remote_answer = answer

    async def add_candidate(self, candidate):
        self.candidates.append(candidate)

    async def close(self):
        self.closed = True


class LinkFactory:
    def __init__(self, link_class=FakeLink):
        self.link_class = link_class
        self.links = []

    def __call__(self, ice_servers, media_handle, events):
        link = self.link_class(ice_servers, media_handle, events)
        self.links.append(link)
        return link


class FakeMedia:
    def __init__(self, fail=False):
        self.fail = fail
        self.acquired = 0
        self.released = 0

    async def acquire(self):
        self.acquired += 1
        if self.fail:
            raise PermissionError("camera blocked")
        return "media-handle"

    async def release(self):
        self.released += 1


class Outbox:
    """Collects the frames a client state machine sends"""

    def __init__(self):
        self.sent = []

    async def send(self, message):
        self.sent.append(message)

    def types(self):
        return [message["type"] for message in self.sent]

    def of_type(self, message_type):
        return [message for message in self.sent if message["type"] == message_type]
