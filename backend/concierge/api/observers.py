"""
Observer WebSocket - Live feed of gateway events for the operations dashboard.

Clients connect to ``/gateway/ws?token=<admin token>`` and receive every
``incoming``/``outgoing`` event. They may send:

- ``{"type": "dashboard:ping"}`` -> ``{"type": "pong", "timestamp": ...}``
- ``{"type": "dashboard:getSessions"}`` -> ``{"type": "sessions", "sessions": [...]}``
- ``{"type": "dashboard:sendMessage", "payload": {"sessionId": ..., "message": ...}}``
  runs an admin turn on that session
"""

import hmac
import json
import logging
import time
from typing import Any, Dict

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from ..container import Container
from ..core.errors import UnknownSession
from ..gateway import log_turn_failure

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/gateway", tags=["gateway"])


def _authorized(websocket: WebSocket, container: Container) -> bool:
    expected = container.settings.admin_token
    token = websocket.query_params.get("token", "")
    return bool(expected) and hmac.compare_digest(token, expected)


async def _handle_client_message(websocket: WebSocket, container: Container, message: Dict[str, Any]) -> None:
    message_type = message.get("type")
    payload = message.get("payload") or {}

    if message_type == "dashboard:ping":
        await websocket.send_json({"type": "pong", "timestamp": int(time.time() * 1000)})

    elif message_type == "dashboard:getSessions":
        await websocket.send_json(container.gateway.sessions_snapshot().to_wire())

    elif message_type == "dashboard:sendMessage":
        session_id = payload.get("sessionId")
        text = payload.get("message")
        if not session_id or not text:
            await websocket.send_json({"type": "error", "message": "sessionId and message are required"})
            return
        try:
            # Runs in the background; the reply arrives as an outgoing event
            turn = container.gateway.inject_admin_message(session_id, text)
            turn.add_done_callback(log_turn_failure(session_id))
        except UnknownSession:
            await websocket.send_json({"type": "error", "message": f"Unknown session: {session_id}"})

    else:
        logger.debug(f"Ignoring observer message type: {message_type}")


@router.websocket("/ws")
async def observer_socket(websocket: WebSocket):
    container: Container = websocket.app.state.container
    if not _authorized(websocket, container):
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    observer = websocket.send_json
    container.gateway.add_observer(observer)
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = json.loads(raw)
            except json.JSONDecodeError:
                logger.warning("Observer sent invalid JSON")
                await websocket.send_json({"type": "error", "message": "Invalid message format"})
                continue
            if isinstance(message, dict):
                await _handle_client_message(websocket, container, message)
    except WebSocketDisconnect:
        pass
    finally:
        container.gateway.remove_observer(observer)
