from typing import Any, Literal, Optional

from pydantic import BaseModel, Field


class PendingMediaRequest(BaseModel):
    phone: str = Field(min_length=1)
    media_type: Literal["image", "video"]
    product_id: str = Field(min_length=1)


class DebugStateResponse(BaseModel):
    phone: str
    step: str
    intent: Optional[str] = None
    data: dict[str, Any] = Field(default_factory=dict)
    media_target: Optional[dict[str, Any]] = None
    buffering: bool = False
