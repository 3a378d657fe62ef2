"""WhatsApp channel handler: WhatsApp Cloud API over HTTPS.

Supports:
    - Inbound webhook payloads (text, interactive replies, media, location, contacts)
    - Webhook verification (hub.challenge) and X-Hub-Signature-256 checks
    - Outbound text, with quick replies rendered as a numbered list
"""

from __future__ import annotations

import base64
import hashlib
import hmac
from collections.abc import Mapping
from typing import Any

import httpx
from loguru import logger

from orderbot.constants import WHATSAPP_GRAPH_URL, WHATSAPP_TIMEOUT
from orderbot.handler.messages import InboundMessage, MessageKind, OutboundMessage

from .base import BaseChannelHandler, ChannelError, InboundCallback

_MEDIA_KINDS = {
    "image": MessageKind.IMAGE,
    "video": MessageKind.VIDEO,
    "audio": MessageKind.AUDIO,
    "voice": MessageKind.AUDIO,
    "document": MessageKind.DOCUMENT,
    "sticker": MessageKind.IMAGE,
}


def format_body(message: OutboundMessage) -> str:
    """Message text with quick replies appended as a numbered list."""
    if not message.quick_replies:
        return message.content
    options = "\n".join(f"{i}. {reply}" for i, reply in enumerate(message.quick_replies, 1))
    return f"{message.content}\n\n{options}"


class WhatsAppChannelHandler(BaseChannelHandler):
    """WhatsApp Cloud API channel.

    Responsibilities:
        - Open / close the Graph API HTTP client
        - Send an OutboundMessage as a text message
        - Turn webhook payloads into InboundMessages and publish them
    """

    name = "whatsapp"

    def __init__(
        self,
        token: str,
        phone_number_id: str,
        verify_token: str | None = None,
        app_secret: str | None = None,
        on_inbound: InboundCallback | None = None,
        config: dict | None = None,
        graph_url: str = WHATSAPP_GRAPH_URL,
        timeout: float = WHATSAPP_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Args:
            token:           Cloud API access token.
            phone_number_id: Sending phone number id.
            verify_token:    Shared secret for the GET /webhook handshake.
            app_secret:      App secret for payload signatures; None skips the check.
            config:          Channel config extras (``ignore_groups``).
        """
        super().__init__(on_inbound, config)
        self._token = token
        self._phone_number_id = phone_number_id
        self._verify_token = verify_token
        self._app_secret = app_secret
        self._graph_url = graph_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._ignore_groups = self._config.get("ignore_groups", True)

    # ------------------------------------------------------------------
    # BaseChannelHandler interface
    # ------------------------------------------------------------------

    async def connect(self):
        if self._running:
            logger.warning("WhatsAppChannelHandler.connect() called while already connected")
            return

        self._client = httpx.AsyncClient(
            base_url=f"{self._graph_url}/{self._phone_number_id}",
            headers={"Authorization": f"Bearer {self._token}"},
            timeout=self._timeout,
            transport=self._transport,
        )
        self._running = True
        logger.info("WhatsApp channel ready (phone number id {})", self._phone_number_id)

    async def disconnect(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        self._running = False

    async def send_message(self, message: OutboundMessage):
        if self._client is None:
            raise ChannelError("WhatsApp channel is not connected")

        payload = {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": message.recipient_id,
            "type": "text",
            "text": {"preview_url": False, "body": format_body(message)},
        }
        try:
            response = await self._client.post("/messages", json=payload)
        except httpx.HTTPError as exc:
            raise ChannelError(f"WhatsApp send to {message.recipient_id} failed: {exc}") from exc

        if response.status_code >= 400:
            raise ChannelError(
                f"WhatsApp API {response.status_code} for {message.recipient_id}: {response.text[:300]}"
            )
        logger.debug("Sent WhatsApp message to {}", message.recipient_id)

    async def fetch_media(self, media_id: str) -> str:
        """Download a media object and return it as a ``data:`` URI."""
        if self._client is None:
            raise ChannelError("WhatsApp channel is not connected")

        try:
            meta = await self._client.get(f"{self._graph_url}/{media_id}")
            meta.raise_for_status()
            info = meta.json()
            media = await self._client.get(info["url"])
            media.raise_for_status()
        except (httpx.HTTPError, KeyError, ValueError) as exc:
            raise ChannelError(f"Could not download WhatsApp media {media_id}: {exc}") from exc

        mime_type = info.get("mime_type") or media.headers.get("content-type", "application/octet-stream")
        encoded = base64.b64encode(media.content).decode("ascii")
        logger.debug("Downloaded media {} ({} bytes)", media_id, len(media.content))
        return f"data:{mime_type};base64,{encoded}"

    # ------------------------------------------------------------------
    # Webhook
    # ------------------------------------------------------------------

    def verify_challenge(self, mode: str | None, token: str | None, challenge: str | None) -> str | None:
        """Return the challenge to echo back, or None if the handshake is invalid."""
        if mode == "subscribe" and self._verify_token and token == self._verify_token:
            return challenge or ""
        logger.warning("WhatsApp webhook verification rejected (mode={})", mode)
        return None

    def verify_signature(self, body: bytes, headers: Mapping[str, str]) -> bool:
        if not self._app_secret:
            return True
        received = headers.get("X-Hub-Signature-256") or headers.get("x-hub-signature-256")
        if not received:
            return False
        digest = hmac.new(self._app_secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
        return hmac.compare_digest(received, f"sha256={digest}")

    def handle_webhook(self, payload: Mapping[str, Any]) -> int:
        """Publish every message in a webhook payload; returns how many were published."""
        published = 0
        for message in self.parse_webhook(payload):
            if message.is_group and self._ignore_groups:
                logger.debug("Ignoring group message {}", message.message_id)
                continue
            self._publish_inbound(message)
            published += 1
        return published

    def parse_webhook(self, payload: Mapping[str, Any]) -> list[InboundMessage]:
        messages: list[InboundMessage] = []
        for entry in payload.get("entry", []):
            for change in entry.get("changes", []):
                value = change.get("value", {})
                contacts = {c.get("wa_id"): c for c in value.get("contacts", [])}
                for raw in value.get("messages", []):
                    message = self._parse_message(raw, contacts)
                    if message is not None:
                        messages.append(message)
        return messages

    def _parse_message(self, raw: Mapping[str, Any], contacts: Mapping[str, Any]) -> InboundMessage | None:
        sender_id = str(raw.get("from") or "")
        message_id = str(raw.get("id") or "")
        if not sender_id or not message_id:
            return None

        message_type = raw.get("type", "text")
        kind = MessageKind.TEXT
        content = ""
        media_ref = None
        caption = None

        if message_type == "text":
            content = (raw.get("text") or {}).get("body", "")
        elif message_type == "button":
            content = (raw.get("button") or {}).get("text", "")
        elif message_type == "interactive":
            interactive = raw.get("interactive") or {}
            reply = interactive.get("button_reply") or interactive.get("list_reply") or {}
            content = reply.get("title", "")
        elif message_type in _MEDIA_KINDS:
            media = raw.get(message_type) or {}
            kind = _MEDIA_KINDS[message_type]
            media_ref = media.get("link") or media.get("id")
            caption = media.get("caption")
            content = caption or ""
        elif message_type == "location":
            location = raw.get("location") or {}
            kind = MessageKind.LOCATION
            parts = [location.get("name"), location.get("address")]
            coords = f"{location.get('latitude')},{location.get('longitude')}"
            content = ", ".join(p for p in parts if p) or coords
        elif message_type == "contacts":
            kind = MessageKind.CONTACT
            names = [
                (c.get("name") or {}).get("formatted_name", "")
                for c in raw.get("contacts", [])
            ]
            content = ", ".join(n for n in names if n)
        else:
            logger.debug("Unsupported WhatsApp message type {}", message_type)
            return None

        try:
            timestamp = float(raw.get("timestamp"))
        except (TypeError, ValueError):
            timestamp = None

        contact = contacts.get(sender_id, {})
        extra: dict[str, Any] = {}
        if timestamp is not None:
            extra["timestamp"] = timestamp

        return InboundMessage(
            message_id=message_id,
            sender_id=sender_id,
            content=content,
            channel=self.name,
            kind=kind,
            media_ref=media_ref,
            caption=caption,
            is_group=bool(raw.get("group_id")) or sender_id.endswith("@g.us"),
            metadata={
                "sender_name": (contact.get("profile") or {}).get("name"),
                "channel_payload": dict(raw),
            },
            **extra,
        )
