from __future__ import annotations

from typing import Any, Dict, Iterable

import socketio
from fastapi import FastAPI, Query, WebSocket, WebSocketDisconnect, status
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from pymongo.errors import PyMongoError

from .database import db, ensure_indexes, settings
from .routers import auth, donor, hospital, notification
from .utils.logging import configure_logging
from .utils.security import InvalidTokenError, decode_access_token


class LiveUpdateHub:
    """Pushes request and notification changes to the accounts they concern.

    Plain WebSocket clients are tracked per account id; Socket.IO clients join
    a room named after their account id.
    """

    def __init__(self, sio_server: socketio.AsyncServer) -> None:
        self.sio = sio_server
        self.websockets: Dict[str, set[WebSocket]] = {}

    async def connect(self, user_id: str, websocket: WebSocket) -> None:
        await websocket.accept()
        self.websockets.setdefault(user_id, set()).add(websocket)

    def disconnect(self, user_id: str, websocket: WebSocket) -> None:
        connections = self.websockets.get(user_id)
        if not connections:
            return
        connections.discard(websocket)
        if not connections:
            self.websockets.pop(user_id, None)

    async def notify_users(self, user_ids: Iterable[str], event: str, payload: Dict[str, Any]) -> None:
        message = {"event": event, "payload": payload}
        for user_id in dict.fromkeys(user_ids):
            stale = []
            for connection in list(self.websockets.get(user_id, ())):
                try:
                    await connection.send_json(message)
                except Exception:
                    stale.append(connection)
            for connection in stale:
                self.disconnect(user_id, connection)
            await self.sio.emit(event, payload, room=user_id)


configure_logging(settings.log_level)

sio = socketio.AsyncServer(async_mode="asgi", cors_allowed_origins=settings.cors_origins)
app = FastAPI(title="BloodConnect API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

hub = LiveUpdateHub(sio)

donor.init_router(hub)
hospital.init_router(hub)

app.include_router(auth.router)
app.include_router(donor.router)
app.include_router(hospital.router)
app.include_router(notification.router)


@app.get("/health")
async def healthcheck() -> Dict[str, str]:
    return {"status": "ok"}


def _user_from_token(token: str | None) -> str | None:
    if not token:
        return None
    try:
        return decode_access_token(token).sub
    except InvalidTokenError:
        return None


@app.websocket("/ws/updates")
async def updates_websocket(websocket: WebSocket, token: str | None = Query(default=None)) -> None:
    user_id = _user_from_token(token)
    if not user_id:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    await hub.connect(user_id, websocket)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        hub.disconnect(user_id, websocket)


@sio.event
async def connect(sid, environ, auth=None):  # pragma: no cover - socket handshake
    user_id = _user_from_token((auth or {}).get("token"))
    if not user_id:
        return False
    await sio.enter_room(sid, user_id)
    logger.info("Socket {} joined updates for {}", sid, user_id)


@sio.event
async def disconnect(sid, *args):  # pragma: no cover - socket handshake
    logger.info("Socket {} disconnected", sid)


socket_app = socketio.ASGIApp(sio, other_asgi_app=app)


@app.on_event("startup")
async def prepare_indexes() -> None:
    try:
        await ensure_indexes(db)
    except PyMongoError as exc:  # pragma: no cover - external service
        logger.warning("MongoDB unavailable; skipping index creation: {}", exc)
