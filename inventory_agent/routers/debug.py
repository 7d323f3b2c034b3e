"""Operational endpoints for inspecting and resetting per-phone session state."""

from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException

from inventory_agent.config import settings
from inventory_agent.dependencies import get_conversation_router
from inventory_agent.logging_config import get_logger
from inventory_agent.schemas.debug import DebugStateResponse, PendingMediaRequest
from inventory_agent.services.conversation_router import ConversationRouter

logger = get_logger("debug")

router = APIRouter(prefix="/debug", tags=["debug"])


def _require_debug_token(provided: Optional[str]) -> None:
    expected = settings.debug_token
    if not expected:
        return
    if not provided or provided != expected:
        raise HTTPException(status_code=401, detail="Invalid debug token")


@router.get("/state/{phone}", response_model=DebugStateResponse)
async def get_state(
    phone: str,
    conversation_router: ConversationRouter = Depends(get_conversation_router),
    x_debug_token: Optional[str] = Header(default=None, alias="X-Debug-Token"),
):
    _require_debug_token(x_debug_token)
    state = await conversation_router.sessions.get_state(phone)
    target = await conversation_router.sessions.get_media_target(phone)
    return DebugStateResponse(
        phone=phone,
        step=state.step.value,
        intent=state.intent,
        data=state.data,
        media_target=target.to_dict() if target else None,
        buffering=conversation_router.aggregator.has_buffer(phone),
    )


@router.post("/clear-context/{phone}")
async def clear_context(
    phone: str,
    conversation_router: ConversationRouter = Depends(get_conversation_router),
    x_debug_token: Optional[str] = Header(default=None, alias="X-Debug-Token"),
):
    _require_debug_token(x_debug_token)
    await conversation_router.clear_context(phone)
    logger.info("Context cleared", extra={"context": {"phone": phone}})
    return {"status": "cleared", "phone": phone}


@router.post("/pending-media")
async def set_pending_media(
    payload: PendingMediaRequest,
    conversation_router: ConversationRouter = Depends(get_conversation_router),
    x_debug_token: Optional[str] = Header(default=None, alias="X-Debug-Token"),
):
    _require_debug_token(x_debug_token)
    target = await conversation_router.sessions.set_media_target(payload.phone, payload.media_type, payload.product_id)
    return {"status": "ok", "phone": payload.phone, "media_target": target.to_dict()}


@router.delete("/pending-media/{phone}")
async def clear_pending_media(
    phone: str,
    conversation_router: ConversationRouter = Depends(get_conversation_router),
    x_debug_token: Optional[str] = Header(default=None, alias="X-Debug-Token"),
):
    _require_debug_token(x_debug_token)
    await conversation_router.sessions.clear_media_target(phone)
    return {"status": "cleared", "phone": phone}
