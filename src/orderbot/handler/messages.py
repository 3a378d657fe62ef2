# inbound and outbound messages

import time
from dataclasses import dataclass, field
from enum import Enum


class MessageKind(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    DOCUMENT = "document"
    LOCATION = "location"
    CONTACT = "contact"


@dataclass(frozen=True)
class InboundMessage:
    message_id: str
    sender_id: str
    content: str
    channel: str = "whatsapp"
    kind: MessageKind = MessageKind.TEXT
    media_ref: str | None = None  # Local file path, URL or provider media ID
    caption: str | None = None
    timestamp: float = field(default_factory=time.time)
    is_group: bool = False
    metadata: dict = field(
        default_factory=dict, compare=False
    )  # Raw channel payload, commands, etc.


@dataclass
class OutboundMessage:
    recipient_id: str
    content: str
    channel: str = "whatsapp"
    quick_replies: list[str] = field(default_factory=list)
    metadata: dict = field(default_factory=dict)
