from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError

from . import config
from .core import MatchCoordinator
from .logging_config import get_logger
from .models import (
    ErrorMessage,
    JoinMessage,
    LeaveMessage,
    SignalMessage,
    WelcomeMessage,
    parse_client_message,
)
from .utils import generate_connection_id

logger = get_logger(__name__)


def create_app(
    coordinator: MatchCoordinator | None = None,
    ice_servers: list[str] | None = None,
) -> FastAPI:
    app = FastAPI(title="worldmeet")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.coordinator = coordinator or MatchCoordinator(
        notify_partner_on_disconnect=config.NOTIFY_PARTNER_ON_DISCONNECT
    )
    app.state.ice_servers = list(config.ICE_SERVERS if ice_servers is None else ice_servers)

    @app.get("/")
    async def root():
        return {"status": "ok"}

    @app.get("/config")
    async def client_config():
        """ICE servers the browser should hand to its peer connection"""
        return {"ice_servers": app.state.ice_servers}

    @app.get("/stats")
    async def stats():
        return app.state.coordinator.stats()

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        """Matchmaking and signaling for one browser tab"""
        await websocket.accept()
        coordinator: MatchCoordinator = app.state.coordinator
        connection_id = generate_connection_id()

        await coordinator.connect(connection_id, websocket)
        coordinator.connections.post(
            connection_id,
            WelcomeMessage(connection_id=connection_id, ice_servers=app.state.ice_servers),
        )

        try:
            while True:
                frame = await websocket.receive()
                if frame["type"] == "websocket.disconnect":
                    break

                data = frame.get("text")
                if data is None:
                    data = frame.get("bytes") or b""

                try:
                    message = parse_client_message(data)
                except ValidationError as e:
                    logger.warning(f"Rejected message from {connection_id}: {data!r}")
                    detail = "; ".join(err["msg"] for err in e.errors())
                    coordinator.connections.post(connection_id, ErrorMessage(detail=detail))
                    continue

                if isinstance(message, JoinMessage):
                    await coordinator.join(connection_id, message)
                elif isinstance(message, SignalMessage):
                    await coordinator.signal(connection_id, message)
                elif isinstance(message, LeaveMessage):
                    await coordinator.leave(connection_id, message)

        except WebSocketDisconnect:
            pass
        finally:
            await coordinator.disconnect(connection_id, websocket)

    return app


app = create_app()
