"""
Storefront Backend: Integration Routes
========================================

What:  Printify connection, shop browsing and product import, plus ImageKit
       upload signatures and server-side image uploads.
How:   Printify failures arrive as UpstreamError; the kind decides the status
       (a rejected API key → 400, 404 → 404, rate limit → 429, anything
       else → 502) and the body carries a message fit for the dashboard.
"""

import logging

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.auth import SessionUser, require_session
from storefront.database import get_db_session
from storefront.schemas.commerce import (
    ImageKitAuthResponse,
    PrintifyConnectRequest,
    PrintifyImportRequest,
    PrintifySetShopRequest,
)
from storefront.schemas.common import error_responses
from storefront.services.imagekit_service import imagekit_service
from storefront.services.printify_service import printify_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Integrations"])


# ── Printify ──────────────────────────────────────────────────────────────

@router.post(
    "/integrations/printify/connect",
    responses=error_responses(400, 401, 429, 502),
    summary="Save a Printify API key after checking it against the shops endpoint",
)
async def connect_printify(
    body: PrintifyConnectRequest,
    user: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    result = await printify_service.connect(db, user, body.api_key)
    return {"success": True, **result}


@router.get("/integrations/printify/shops", responses=error_responses(401, 404, 429, 502))
async def list_printify_shops(
    user: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    result = await printify_service.list_shops(db, user)
    return {"success": True, **result}


@router.post("/integrations/printify/set-shop", responses=error_responses(400, 401, 404))
async def set_printify_shop(
    body: PrintifySetShopRequest,
    user: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    shop_id = await printify_service.set_default_shop(db, user, body.shop_id)
    return {"success": True, "default_shop_id": shop_id}


@router.get(
    "/integrations/printify/shops/{shop_id}/products",
    responses=error_responses(401, 404, 429, 502),
)
async def list_printify_products(
    shop_id: str,
    user: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    products = await printify_service.list_shop_products(db, user, shop_id)
    return {"success": True, "products": products}


@router.get(
    "/integrations/printify/shops/{shop_id}/products/{product_id}",
    responses=error_responses(401, 404, 429, 502),
)
async def get_printify_product(
    shop_id: str,
    product_id: str,
    user: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    product = await printify_service.get_shop_product(db, user, shop_id, product_id)
    return {"success": True, "product": product}


@router.post(
    "/integrations/printify/import",
    status_code=201,
    responses=error_responses(400, 401, 404, 429, 502),
    summary="Import a Printify product as a POD draft",
)
async def import_printify_product(
    body: PrintifyImportRequest,
    user: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    result = await printify_service.import_product(db, user, body.shop_id, body.product_id)
    return {
        "success": True,
        "product_id": str(result["product_id"]),
        "variant_count": result["variant_count"],
    }


# ── ImageKit ──────────────────────────────────────────────────────────────

@router.get(
    "/imagekit/auth",
    response_model=ImageKitAuthResponse,
    responses=error_responses(401, 500),
    summary="Signed parameters for a direct browser upload",
)
async def imagekit_auth(user: SessionUser = Depends(require_session)) -> ImageKitAuthResponse:
    return ImageKitAuthResponse(**imagekit_service.get_upload_auth())


@router.post(
    "/upload/imagekit",
    responses=error_responses(400, 401, 500, 502),
    summary="Upload a product image through the server",
    description="Multipart form with `file` and an optional `folder` (default /products).",
)
async def upload_image(
    file: UploadFile = File(..., description="Image file (JPG, PNG, GIF, WEBP, AVIF or SVG)"),
    folder: str = Form("/products"),
    user: SessionUser = Depends(require_session),
) -> dict:
    content = await file.read()
    try:
        result = await imagekit_service.upload(file.filename or "upload.jpg", content, folder)
    finally:
        await file.close()
    return {"success": True, **result}
