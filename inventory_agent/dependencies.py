from functools import lru_cache

from inventory_agent.config import settings
from inventory_agent.logging_config import get_logger
from inventory_agent.services.catalog_store import CatalogStore
from inventory_agent.services.conversation_router import ConversationRouter
from inventory_agent.services.dispatcher import WhatsAppDispatcher
from inventory_agent.services.media_gateway import MediaGateway
from inventory_agent.services.media_service import MediaService
from inventory_agent.services.session_store import InMemorySessionStore, RedisSessionStore, SessionStore

logger = get_logger("dependencies")


def build_session_store() -> SessionStore:
    backend = (settings.session_backend or "memory").strip().lower()
    if backend == "redis":
        logger.info("Using Redis session store", extra={"context": {"redis_url": settings.redis_url}})
        return RedisSessionStore.from_url(
            settings.redis_url,
            state_timeout_seconds=settings.state_timeout_seconds,
            media_ttl_seconds=settings.pending_media_ttl_seconds,
        )
    if backend != "memory":
        logger.warning("Unknown session backend, using memory", extra={"context": {"backend": backend}})
    return InMemorySessionStore(
        state_timeout_seconds=settings.state_timeout_seconds,
        media_ttl_seconds=settings.pending_media_ttl_seconds,
    )


def build_router() -> ConversationRouter:
    store = CatalogStore()
    media = MediaService(MediaGateway(), store)
    return ConversationRouter(
        store=store,
        sessions=build_session_store(),
        dispatcher=WhatsAppDispatcher(),
        media=media,
    )


@lru_cache
def get_conversation_router() -> ConversationRouter:
    return build_router()
