from typing import Literal, Optional

from pydantic import BaseModel

EventKind = Literal["text", "image", "video", "interactive"]


class InboundEvent(BaseModel):
    """One normalized WhatsApp message."""

    phone: str
    kind: EventKind
    body: Optional[str] = None
    caption: Optional[str] = None
    media_id: Optional[str] = None
    mime_type: Optional[str] = None
    button_id: Optional[str] = None
    message_id: Optional[str] = None

    @property
    def is_media(self) -> bool:
        return self.kind in ("image", "video")

    @property
    def has_caption(self) -> bool:
        return bool(self.caption and self.caption.strip())


class WebhookAck(BaseModel):
    status: str = "ok"
    queued: bool = False
