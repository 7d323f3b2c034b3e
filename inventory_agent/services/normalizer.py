"""WhatsApp Cloud webhook payload -> InboundEvent."""

from typing import Any, Optional

from inventory_agent.logging_config import get_logger
from inventory_agent.schemas.webhook import InboundEvent

logger = get_logger("normalizer")


def _first(items: Any) -> Optional[dict]:
    if isinstance(items, list) and items and isinstance(items[0], dict):
        return items[0]
    return None


def _dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def extract_value(payload: Any) -> Optional[dict]:
    """Return entry[0].changes[0].value or None when the shape is off."""
    if not isinstance(payload, dict):
        return None
    entry = _first(payload.get("entry"))
    if entry is None:
        return None
    change = _first(entry.get("changes"))
    if change is None:
        return None
    value = change.get("value")
    return value if isinstance(value, dict) else None


def normalize_webhook(payload: Any) -> Optional[InboundEvent]:
    """Parse a raw webhook body. Status callbacks and unknown shapes give None."""
    value = extract_value(payload)
    if value is None:
        return None

    if value.get("statuses") and not value.get("messages"):
        return None

    message = _first(value.get("messages"))
    if message is None:
        return None

    phone = message.get("from")
    message_type = message.get("type")
    if not phone or not message_type:
        return None
    phone = str(phone)
    message_id = message.get("id")

    if message_type == "text":
        body = _dict(message.get("text")).get("body")
        if not isinstance(body, str):
            return None
        return InboundEvent(phone=phone, kind="text", body=body, message_id=message_id)

    if message_type in ("image", "video"):
        media = _dict(message.get(message_type))
        media_id = media.get("id")
        if not media_id:
            return None
        caption = media.get("caption")
        caption = caption if isinstance(caption, str) and caption.strip() else None
        return InboundEvent(
            phone=phone,
            kind=message_type,
            body=caption,
            caption=caption,
            media_id=str(media_id),
            mime_type=media.get("mime_type"),
            message_id=message_id,
        )

    if message_type == "interactive":
        interactive = _dict(message.get("interactive"))
        reply = _dict(interactive.get("button_reply")) or _dict(interactive.get("list_reply"))
        button_id = reply.get("id")
        if not button_id:
            return None
        return InboundEvent(
            phone=phone,
            kind="interactive",
            body=reply.get("title"),
            button_id=str(button_id),
            message_id=message_id,
        )

    # Legacy quick-reply buttons on template messages.
    if message_type == "button":
        button = _dict(message.get("button"))
        button_id = button.get("payload")
        if not button_id:
            return None
        return InboundEvent(
            phone=phone, kind="interactive", body=button.get("text"), button_id=str(button_id), message_id=message_id
        )

    logger.info(
        "Ignoring unsupported message type",
        extra={"context": {"phone": phone, "type": message_type}},
    )
    return None
