from inventory_agent.services.aggregator import Aggregator, FlushedMessage, InputType, MediaRef
from inventory_agent.services.catalog_store import CatalogError, CatalogStore
from inventory_agent.services.conversation_router import ConversationRouter
from inventory_agent.services.dispatcher import WhatsAppDispatcher
from inventory_agent.services.media_gateway import MediaGateway, MediaGatewayError, MediaTooLargeError
from inventory_agent.services.media_service import MediaService
from inventory_agent.services.normalizer import normalize_webhook
from inventory_agent.services.session_store import (
    ConversationState,
    InMemorySessionStore,
    MediaTarget,
    RedisSessionStore,
    SessionStore,
)
from inventory_agent.services.state_machine import (
    InvalidTransitionError,
    Step,
    can_transition,
    reset,
    transition,
)

__all__ = [
    "Aggregator",
    "FlushedMessage",
    "InputType",
    "MediaRef",
    "CatalogError",
    "CatalogStore",
    "ConversationRouter",
    "WhatsAppDispatcher",
    "MediaGateway",
    "MediaGatewayError",
    "MediaTooLargeError",
    "MediaService",
    "normalize_webhook",
    "ConversationState",
    "InMemorySessionStore",
    "MediaTarget",
    "RedisSessionStore",
    "SessionStore",
    "InvalidTransitionError",
    "Step",
    "can_transition",
    "reset",
    "transition",
]
