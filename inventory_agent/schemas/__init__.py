from inventory_agent.schemas.admin import SellerDeleteResponse, SellerResponse, SellerStatusUpdate
from inventory_agent.schemas.debug import DebugStateResponse, PendingMediaRequest
from inventory_agent.schemas.webhook import InboundEvent, WebhookAck

__all__ = [
    "InboundEvent",
    "WebhookAck",
    "PendingMediaRequest",
    "DebugStateResponse",
    "SellerStatusUpdate",
    "SellerResponse",
    "SellerDeleteResponse",
]
