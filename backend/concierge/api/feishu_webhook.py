"""
Feishu Webhook API - Accepts events from the Feishu bot and routes messages
into the gateway. The reply goes back through the Feishu channel adapter once
the turn completes, so the webhook acknowledges immediately.
"""

import json
import logging
from fastapi import APIRouter, Depends, Request, HTTPException

from ..channels.feishu import CHANNEL_NAME, session_id_for_chat
from ..container import Container
from ..gateway import log_turn_failure
from .deps import get_container

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/feishu", tags=["feishu"])

ACK = {"code": 0, "msg": "ok"}


@router.post("/webhook")
async def feishu_webhook(request: Request, container: Container = Depends(get_container)):
    """Handle incoming Feishu webhook events."""
    bot = container.feishu
    if bot is None:
        raise HTTPException(status_code=503, detail="Feishu bot not configured")

    raw_body = (await request.body()).decode("utf-8")
    if not bot.verify_signature(
        request.headers.get("X-Lark-Request-Timestamp", ""),
        request.headers.get("X-Lark-Request-Nonce", ""),
        raw_body,
        request.headers.get("X-Lark-Signature", ""),
    ):
        logger.warning("Rejected Feishu event with bad signature")
        raise HTTPException(status_code=401, detail="Invalid signature")

    try:
        body = json.loads(raw_body)
    except json.JSONDecodeError:
        raise HTTPException(status_code=400, detail="Invalid JSON body")

    if not bot.verify_token(body):
        logger.warning("Rejected Feishu event with bad verification token")
        raise HTTPException(status_code=401, detail="Invalid verification token")

    event = bot.parse_event(body)

    if event["type"] == "url_verification":
        return {"challenge": event["challenge"]}

    if event["type"] != "message":
        return ACK

    # Feishu redelivers events it considers unacknowledged
    if event["event_id"] and container.feishu_events.seen(event["event_id"]):
        logger.debug(f"Duplicate Feishu event {event['event_id']} ignored")
        return ACK

    if event["sender_type"] == "app" or not event["text"] or not event["chat_id"]:
        return ACK

    session_id = session_id_for_chat(event["chat_id"])
    turn = container.gateway.route_message(
        CHANNEL_NAME,
        session_id,
        event["text"],
        {
            "sender_id": event["sender_id"],
            "platform": CHANNEL_NAME,
        },
    )
    turn.add_done_callback(log_turn_failure(session_id))
    return ACK
