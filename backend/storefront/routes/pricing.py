"""
Storefront Backend: Pricing & Channel Routes
==============================================

What:  Per-store price tables, single-row price edits (update, reset, sale
       scheduling), bulk actions, and the product-side channel endpoints
       (attach/detach a product to a store, set its visibility and price).
How:   Thin handlers over pricing_service and store_service. Every id in a
       path or body is checked against the caller before anything changes.
Who:   The dashboard's "Prices" tab and the product editor's channel panel.
"""

import logging
import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.auth import SessionUser, require_session
from storefront.database import get_db_session
from storefront.schemas.common import error_responses
from storefront.schemas.store import (
    BulkAdjustRequest,
    BulkVisibilityRequest,
    ScheduleSaleRequest,
    SetPriceRequest,
    SetVisibilityRequest,
    StorePriceResponse,
    StorePriceUpdate,
    StoreProductResponse,
    StoreRef,
)
from storefront.services.pricing_service import pricing_service
from storefront.services.store_service import store_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Pricing"])


def _price(row) -> dict:
    return StorePriceResponse.model_validate(row).model_dump(mode="json")


# ══════════════════════════════════════════════════════════════════════════
# Store price tables
# ══════════════════════════════════════════════════════════════════════════

@router.get(
    "/stores/{store_id}/prices",
    responses=error_responses(401, 404, 500),
    summary="Price table for one store",
    description="Products without a base price row get one before the table is returned.",
)
async def list_store_prices(
    store_id: uuid.UUID,
    user: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    rows = await pricing_service.list_store_prices(db, user, store_id)
    return {"success": True, "prices": [r.model_dump(mode="json") for r in rows]}


@router.post(
    "/stores/{store_id}/prices/bulk-visibility",
    responses=error_responses(400, 401, 404, 500),
)
async def bulk_update_visibility(
    store_id: uuid.UUID,
    body: BulkVisibilityRequest,
    user: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    updated = await pricing_service.bulk_update_visibility(
        db, user, store_id, body.store_price_ids, body.visibility
    )
    return {"success": True, "updated": updated}


@router.post(
    "/stores/{store_id}/prices/bulk-adjust",
    responses=error_responses(400, 401, 404, 500),
    summary="Raise or lower many prices by a percentage",
)
async def bulk_adjust_prices(
    store_id: uuid.UUID,
    body: BulkAdjustRequest,
    user: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    updated = await pricing_service.bulk_adjust_prices(
        db, user, store_id, body.store_price_ids, body.adjustment_type, body.percentage
    )
    return {"success": True, "updated": updated}


@router.patch("/store-prices/{store_price_id}", responses=error_responses(400, 401, 404, 500))
async def update_store_price(
    store_price_id: uuid.UUID,
    body: StorePriceUpdate,
    user: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    row = await pricing_service.update_store_price(
        db, user, store_price_id, body.price_cents,
        compare_at_cents=body.compare_at_cents, visibility=body.visibility,
    )
    return {"success": True, "price": _price(row)}


@router.post("/store-prices/{store_price_id}/reset", responses=error_responses(400, 401, 404, 500))
async def reset_store_price(
    store_price_id: uuid.UUID,
    user: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    row = await pricing_service.reset_store_price(db, user, store_price_id)
    return {"success": True, "price": _price(row)}


@router.post(
    "/store-prices/{store_price_id}/schedule",
    responses=error_responses(400, 401, 404, 500),
    summary="Schedule a sale window",
)
async def schedule_sale(
    store_price_id: uuid.UUID,
    body: ScheduleSaleRequest,
    user: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    row = await pricing_service.schedule_sale(
        db, user, store_price_id,
        body.price_cents, body.compare_at_cents, body.start_at, body.end_at,
    )
    return {"success": True, "price": _price(row)}


# ══════════════════════════════════════════════════════════════════════════
# Product ↔ store channel
# ══════════════════════════════════════════════════════════════════════════

@router.post(
    "/products/{product_id}/attach-store",
    status_code=201,
    responses=error_responses(400, 401, 404, 500),
    summary="Attach a product to a store (hidden until priced)",
)
async def attach_store(
    product_id: uuid.UUID,
    body: StoreRef,
    user: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    link = await store_service.attach_product(db, user, product_id, body.store_id)
    return {
        "success": True,
        "store_product": StoreProductResponse.model_validate(link).model_dump(mode="json"),
    }


@router.post("/products/{product_id}/detach-store", responses=error_responses(401, 404, 500))
async def detach_store(
    product_id: uuid.UUID,
    body: StoreRef,
    user: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    await store_service.detach_product(db, user, product_id, body.store_id)
    return {"success": True}


@router.post(
    "/products/{product_id}/set-visibility",
    responses=error_responses(400, 401, 404, 500),
    description="VISIBLE is refused while the product's effective price in that store is 0.",
)
async def set_visibility(
    product_id: uuid.UUID,
    body: SetVisibilityRequest,
    user: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    link = await store_service.set_visibility(
        db, user, product_id, body.store_id, body.visibility.value
    )
    return {"success": True, "visibility": link.visibility}


@router.post(
    "/products/{product_id}/set-price",
    responses=error_responses(400, 401, 404, 500),
    summary="Set the product's price in one store",
)
async def set_price(
    product_id: uuid.UUID,
    body: SetPriceRequest,
    user: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    row = await pricing_service.set_store_price(
        db, user, body.store_id, product_id, body.price_cents,
        variant_id=body.variant_id, currency=body.currency,
    )
    return {"success": True, "price": _price(row)}


@router.get("/products/{product_id}/store-prices", responses=error_responses(401, 404, 500))
async def list_product_store_prices(
    product_id: uuid.UUID,
    user: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    rows = await pricing_service.list_product_store_prices(db, user, product_id)
    return {"success": True, "prices": [r.model_dump(mode="json") for r in rows]}


@router.get("/products/{product_id}/store-products", responses=error_responses(401, 404, 500))
async def list_store_products(
    product_id: uuid.UUID,
    user: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    links = await store_service.list_store_products_for_product(db, user, product_id)
    return {"success": True, "stores": links}
