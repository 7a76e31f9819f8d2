"""
Feishu (Lark) channel adapter.
Parses webhook events into gateway messages and sends replies through the bot API.
"""

import hashlib
import hmac
import json
import logging
import time
from collections import OrderedDict
from typing import Dict, Any, Optional

import httpx

logger = logging.getLogger(__name__)

CHANNEL_NAME = "feishu"
SESSION_PREFIX = "feishu_"


def session_id_for_chat(chat_id: str) -> str:
    return f"{SESSION_PREFIX}{chat_id}"


def chat_id_for_session(session_id: str) -> str:
    if session_id.startswith(SESSION_PREFIX):
        return session_id[len(SESSION_PREFIX):]
    return session_id


class RecentEvents:
    """Bounded memory of webhook event ids, used to drop Feishu redeliveries."""

    def __init__(self, capacity: int = 1000):
        self.capacity = capacity
        self._seen: "OrderedDict[str, None]" = OrderedDict()

    def seen(self, event_id: str) -> bool:
        """Record ``event_id``; True if it was already recorded."""
        if event_id in self._seen:
            return True
        self._seen[event_id] = None
        while len(self._seen) > self.capacity:
            self._seen.popitem(last=False)
        return False


class FeishuChannel:
    """
    Feishu bot client. One Feishu chat maps to one session,
    ``feishu_<chat_id>``.
    """

    name = CHANNEL_NAME

    TENANT_TOKEN_URL = "https://open.feishu.cn/open-apis/auth/v3/tenant_access_token/internal"
    SEND_MESSAGE_URL = "https://open.feishu.cn/open-apis/im/v1/messages"

    def __init__(self, app_id: str, app_secret: str,
                 verification_token: Optional[str] = None,
                 encrypt_key: Optional[str] = None,
                 timeout: float = 30.0):
        self.app_id = app_id
        self.app_secret = app_secret
        self.verification_token = verification_token
        self.encrypt_key = encrypt_key
        self.timeout = timeout
        self._tenant_access_token: Optional[str] = None
        self._token_expires_at = 0.0

    async def get_tenant_access_token(self) -> str:
        """Return a cached tenant access token, refreshing it shortly before expiry."""
        if self._tenant_access_token and time.time() < self._token_expires_at:
            return self._tenant_access_token

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.post(
                self.TENANT_TOKEN_URL,
                json={"app_id": self.app_id, "app_secret": self.app_secret},
            )
            resp.raise_for_status()
            data = resp.json()

        self._tenant_access_token = data["tenant_access_token"]
        # Refresh a minute early
        self._token_expires_at = time.time() + max(int(data.get("expire", 7200)) - 60, 0)
        return self._tenant_access_token

    async def send_text_message(self, receive_id: str, text: str,
                                receive_id_type: str = "chat_id") -> Dict[str, Any]:
        """
        Send a text message.

        Args:
            receive_id: Target chat_id or open_id
            text: Message text
            receive_id_type: "chat_id", "open_id" or "user_id"
        """
        token = await self.get_tenant_access_token()
        payload = {
            "receive_id": receive_id,
            "msg_type": "text",
            "content": json.dumps({"text": text}, ensure_ascii=False),
        }

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.post(
                self.SEND_MESSAGE_URL,
                params={"receive_id_type": receive_id_type},
                json=payload,
                headers={
                    "Authorization": f"Bearer {token}",
                    "Content-Type": "application/json",
                },
            )
            resp.raise_for_status()
            data = resp.json()

        if data.get("code", 0) != 0:
            raise RuntimeError(f"Feishu API error {data.get('code')}: {data.get('msg')}")
        logger.debug(f"Feishu message sent to {receive_id_type}={receive_id}")
        return data

    async def send(self, session_id: str, text: str) -> None:
        await self.send_text_message(chat_id_for_session(session_id), text)

    async def send_to(self, address: str, text: str) -> None:
        # open_ids start with "ou_", anything else is treated as a chat id
        receive_id_type = "open_id" if address.startswith("ou_") else "chat_id"
        await self.send_text_message(address, text, receive_id_type=receive_id_type)

    def verify_signature(self, timestamp: str, nonce: str,
                         body: str, signature: str) -> bool:
        """Check the X-Lark-Signature header. Always valid when no encrypt key is set."""
        if not self.encrypt_key:
            return True
        content = timestamp + nonce + self.encrypt_key + body
        computed = hashlib.sha256(content.encode("utf-8")).hexdigest()
        return hmac.compare_digest(computed, signature or "")

    def verify_token(self, body: Dict[str, Any]) -> bool:
        """Check the verification token carried in the event body, if one is configured."""
        if not self.verification_token:
            return True
        token = body.get("token") or body.get("header", {}).get("token", "")
        return hmac.compare_digest(str(token), self.verification_token)

    @staticmethod
    def parse_event(body: Dict[str, Any]) -> Dict[str, Any]:
        """
        Reduce a webhook body to ``url_verification``, ``message`` or ``unknown``.
        Only text messages carry text; other message types get a placeholder.
        """
        if "challenge" in body:
            return {"type": "url_verification", "challenge": body["challenge"]}

        header = body.get("header", {})
        event = body.get("event", {})
        event_type = header.get("event_type", body.get("type", ""))

        if event_type != "im.message.receive_v1":
            return {"type": "unknown", "event_type": event_type}

        message = event.get("message", {})
        sender = event.get("sender", {})
        msg_type = message.get("message_type", "text")

        try:
            content = json.loads(message.get("content") or "{}")
        except json.JSONDecodeError:
            content = {}

        if msg_type == "text":
            text = content.get("text", "")
        else:
            text = f"(Unsupported {msg_type} message)"

        return {
            "type": "message",
            "event_id": header.get("event_id", ""),
            "message_type": msg_type,
            "chat_id": message.get("chat_id", ""),
            "message_id": message.get("message_id", ""),
            "sender_id": sender.get("sender_id", {}).get("open_id", ""),
            "sender_type": sender.get("sender_type", ""),
            "text": text.strip(),
        }
