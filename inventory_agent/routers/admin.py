"""Admin endpoints for seller approval and removal."""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query

from inventory_agent.config import settings
from inventory_agent.dependencies import get_conversation_router
from inventory_agent.logging_config import get_logger
from inventory_agent.schemas.admin import SellerDeleteResponse, SellerResponse, SellerStatusUpdate
from inventory_agent.services.catalog_store import CatalogError
from inventory_agent.services.conversation_router import ConversationRouter

logger = get_logger("admin")

router = APIRouter(prefix="/admin", tags=["admin"])


def _require_admin_token(provided: Optional[str]) -> None:
    expected = settings.admin_token
    if not expected:
        raise HTTPException(status_code=500, detail="ADMIN_TOKEN not configured")
    if not provided or provided != expected:
        raise HTTPException(status_code=401, detail="Invalid admin token")


def _seller_response(seller) -> SellerResponse:
    return SellerResponse(
        id=str(seller.id),
        name=seller.name,
        store_name=seller.store_name,
        phone=seller.phone,
        status=seller.status,
        is_active=seller.is_active,
        onboarding_step=seller.onboarding_step,
    )


@router.patch("/sellers/{seller_id}/status", response_model=SellerResponse)
async def update_seller_status(
    seller_id: str,
    payload: SellerStatusUpdate,
    conversation_router: ConversationRouter = Depends(get_conversation_router),
    x_admin_token: Optional[str] = Header(default=None, alias="X-Admin-Token"),
):
    _require_admin_token(x_admin_token)
    try:
        seller = conversation_router.store.set_seller_status(seller_id, payload.status)
    except CatalogError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if seller is None:
        raise HTTPException(status_code=404, detail="Seller not found")
    return _seller_response(seller)


@router.delete("/sellers/{seller_id}", response_model=SellerDeleteResponse)
async def delete_seller(
    seller_id: str,
    products: Literal["delete", "orphan"] = Query(default="orphan"),
    conversation_router: ConversationRouter = Depends(get_conversation_router),
    x_admin_token: Optional[str] = Header(default=None, alias="X-Admin-Token"),
):
    """Delete a seller and either delete or orphan their products."""
    _require_admin_token(x_admin_token)
    try:
        deleted = conversation_router.store.delete_seller(seller_id, products=products)
    except CatalogError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if deleted is None:
        raise HTTPException(status_code=404, detail="Seller not found")

    seller, affected = deleted
    failures = 0
    if products == "delete":
        for product in affected:
            failures += await conversation_router.media.release_product_media(product)

    await conversation_router.clear_context(seller.phone)
    logger.info(
        "Seller removed by admin",
        extra={"context": {"seller_id": seller_id, "products": products, "affected": len(affected)}},
    )
    return SellerDeleteResponse(
        id=str(seller.id),
        products_action=products,
        products_affected=len(affected),
        media_release_failures=failures,
    )
