from typing import Literal, Optional

from pydantic import BaseModel

SellerStatus = Literal["pending", "active", "deactivated"]


class SellerStatusUpdate(BaseModel):
    status: SellerStatus


class SellerResponse(BaseModel):
    id: str
    name: str
    store_name: str
    phone: str
    status: str
    is_active: bool
    onboarding_step: str


class SellerDeleteResponse(BaseModel):
    id: str
    products_action: str
    products_affected: int
    media_release_failures: int = 0
    note: Optional[str] = None
