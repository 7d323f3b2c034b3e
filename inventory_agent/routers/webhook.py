import hashlib
import hmac
import json
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request, status
from fastapi.responses import PlainTextResponse
from starlette.requests import ClientDisconnect

from inventory_agent.config import settings
from inventory_agent.dependencies import get_conversation_router
from inventory_agent.logging_config import get_logger
from inventory_agent.schemas.webhook import WebhookAck
from inventory_agent.services.conversation_router import ConversationRouter
from inventory_agent.services.normalizer import normalize_webhook

logger = get_logger("webhook")

router = APIRouter(tags=["webhook"])


def _verify_signature(raw: bytes, provided: Optional[str], secret: str) -> bool:
    if not provided or not provided.startswith("sha256="):
        return False
    expected = hmac.new(secret.encode("utf-8"), raw, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, provided.split("=", 1)[1].strip())


def _parse_payload(raw: bytes) -> Optional[dict]:
    if not raw or not raw.strip():
        logger.info("Empty webhook body")
        return None
    try:
        payload = json.loads(raw)
    except ValueError as exc:
        logger.warning(
            "Webhook payload is not valid JSON",
            extra={
                "context": {
                    "error": str(exc),
                    "body_preview": raw[:200].decode("utf-8", "ignore"),
                }
            },
        )
        return None
    if not isinstance(payload, dict):
        logger.warning("Webhook payload is not an object")
        return None
    return payload


@router.get("/webhook")
async def verify_webhook(
    hub_mode: Optional[str] = Query(default=None, alias="hub.mode"),
    hub_verify_token: Optional[str] = Query(default=None, alias="hub.verify_token"),
    hub_challenge: Optional[str] = Query(default=None, alias="hub.challenge"),
):
    """WhatsApp subscription handshake: echo the challenge when the token matches."""
    if not hub_mode or not hub_verify_token:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing hub.mode or hub.verify_token")

    expected = settings.whatsapp_verify_token
    if hub_mode == "subscribe" and expected and hmac.compare_digest(hub_verify_token, expected):
        logger.info("Webhook verified")
        return PlainTextResponse(hub_challenge or "")

    logger.warning("Webhook verification failed", extra={"context": {"mode": hub_mode}})
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Verification failed")


@router.post("/webhook", response_model=WebhookAck)
async def receive_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    conversation_router: ConversationRouter = Depends(get_conversation_router),
):
    """Acknowledge immediately; the conversation work runs after the response."""
    try:
        raw = await request.body()
    except ClientDisconnect:
        logger.info("Webhook client disconnected during read")
        return WebhookAck()

    secret = settings.whatsapp_app_secret
    if secret and not _verify_signature(raw, request.headers.get("X-Hub-Signature-256"), secret):
        logger.warning("Webhook signature mismatch")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature")

    payload = _parse_payload(raw)
    if payload is None:
        return WebhookAck()

    try:
        event = normalize_webhook(payload)
    except Exception as exc:
        logger.error("Webhook normalization failed", extra={"context": {"error": str(exc)}}, exc_info=True)
        return WebhookAck()

    if event is None:
        return WebhookAck()

    logger.info(
        "Inbound message",
        extra={"context": {"phone": event.phone, "kind": event.kind, "message_id": event.message_id}},
    )
    background_tasks.add_task(conversation_router.process_event, event)
    return WebhookAck(queued=True)
