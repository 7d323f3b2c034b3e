import asyncio
import os

from fastapi import Depends, FastAPI

from inventory_agent.config import settings
from inventory_agent.database import Base, engine
from inventory_agent.dependencies import get_conversation_router
from inventory_agent.logging_config import get_logger, setup_logging
from inventory_agent.routers import admin, debug, webhook
from inventory_agent.services.conversation_router import ConversationRouter

setup_logging(settings.log_level)

app = FastAPI(
    title="Inventory Agent",
    description="WhatsApp assistant for marketplace sellers to manage their catalog",
    version="0.1.0",
)

app.include_router(webhook.router)
app.include_router(debug.router)
app.include_router(admin.router)

sweep_logger = get_logger("session_sweeper")
_sweep_task: asyncio.Task | None = None


def _is_env_enabled(value: str | None, default: bool = True) -> bool:
    if value is None:
        return default
    return value.strip().lower() not in {"0", "false", "no", "off"}


def _is_sweeper_enabled() -> bool:
    if os.environ.get("PYTEST_CURRENT_TEST"):
        return False
    return _is_env_enabled(os.environ.get("SESSION_SWEEP_ENABLED"), default=True)


async def _sweep_loop(conversation_router: ConversationRouter) -> None:
    interval_seconds = max(float(os.environ.get("SESSION_SWEEP_INTERVAL_SECONDS", "60")), 1.0)
    while True:
        try:
            await asyncio.sleep(interval_seconds)
            removed = await conversation_router.sessions.sweep_expired()
            if removed:
                sweep_logger.info("Expired sessions swept", extra={"context": {"removed": removed}})
        except asyncio.CancelledError:
            break
        except Exception as exc:
            sweep_logger.error("Session sweep failed", extra={"context": {"error": str(exc)}})


@app.on_event("startup")
async def startup() -> None:
    global _sweep_task
    Base.metadata.create_all(bind=engine)
    if not _is_sweeper_enabled():
        return
    if _sweep_task is None or _sweep_task.done():
        _sweep_task = asyncio.create_task(_sweep_loop(get_conversation_router()))
        sweep_logger.info("Session sweeper started")


@app.on_event("shutdown")
async def shutdown() -> None:
    global _sweep_task
    if _sweep_task is None:
        return
    _sweep_task.cancel()
    try:
        await _sweep_task
    except asyncio.CancelledError:
        pass
    _sweep_task = None


@app.get("/health")
async def health(conversation_router: ConversationRouter = Depends(get_conversation_router)):
    counts = await conversation_router.sessions.counts()
    return {
        "status": "ok",
        "architecture": "button-driven-deterministic",
        "active_states": counts["states"],
        "pending_media_targets": counts["media_targets"],
        "buffered_phones": conversation_router.aggregator.buffered_count,
    }
