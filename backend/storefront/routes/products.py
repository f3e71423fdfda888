"""
Storefront Backend: Product Route Handlers
============================================

What:  /api/products and its nested variants, option groups and media.
How:   Each handler validates the body with Pydantic, resolves the caller
       through require_session and delegates to a service. Services perform
       the ownership check before any write; a foreign or unknown id is 404.
Who:   The merchant dashboard's product editor.
"""

import logging
import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.auth import SessionUser, require_session
from storefront.database import get_db_session
from storefront.models.common import ProductStatus, ProductType
from storefront.schemas.common import error_responses
from storefront.schemas.product import (
    MediaCreate,
    MediaResponse,
    OptionCreate,
    OptionResponse,
    OptionUpdate,
    OptionValueCreate,
    OptionValueResponse,
    ProductCreate,
    ProductUpdate,
    VariantBulkUpdate,
    VariantCreate,
    VariantGenerateRequest,
    VariantUpdate,
)
from storefront.services.media_service import media_service
from storefront.services.option_service import option_service
from storefront.services.product_service import product_service
from storefront.services.variant_service import to_response as variant_to_response, variant_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/products", tags=["Products"])


def _variant(variant) -> dict:
    return variant_to_response(variant).model_dump(mode="json")


# ══════════════════════════════════════════════════════════════════════════
# Products
# ══════════════════════════════════════════════════════════════════════════

@router.get(
    "",
    responses=error_responses(401, 500),
    summary="List the caller's products",
)
async def list_products(
    status: Optional[ProductStatus] = Query(default=None),
    type: Optional[ProductType] = Query(default=None),
    category_id: Optional[List[uuid.UUID]] = Query(default=None),
    tag_id: Optional[List[uuid.UUID]] = Query(default=None),
    search: Optional[str] = Query(default=None, max_length=200),
    user: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    products = await product_service.list_products(
        db, user,
        status=status, type=type,
        category_ids=category_id, tag_ids=tag_id, search=search,
    )
    return {"success": True, "products": [product_service.to_response(p) for p in products]}


@router.post(
    "",
    status_code=201,
    responses=error_responses(400, 401, 404, 500),
    summary="Create a product",
    description="The new product is owned by the caller regardless of the body.",
)
async def create_product(
    body: ProductCreate,
    user: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    product = await product_service.upsert_product(db, user, body.model_dump())
    return {"success": True, "product": product_service.to_response(product)}


@router.get(
    "/{product_id}",
    responses=error_responses(401, 404, 500),
    summary="Get a product with variants, media, categories and tags",
)
async def get_product(
    product_id: uuid.UUID,
    user: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    detail = await product_service.get_product(db, user, product_id)
    return {"success": True, "product": detail.model_dump(mode="json")}


@router.patch(
    "/{product_id}",
    responses=error_responses(400, 401, 404, 500),
    summary="Update a product and its category/tag links",
    description=(
        "Field changes and re-linking happen in one transaction: if any "
        "category or tag id is not the caller's, nothing is saved."
    ),
)
async def update_product(
    product_id: uuid.UUID,
    body: ProductUpdate,
    user: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    patch = body.model_dump(exclude_unset=True)
    category_ids = patch.pop("category_ids", None)
    tag_ids = patch.pop("tag_ids", None)
    product = await product_service.update_product_with_taxonomy(
        db, user, product_id, patch, category_ids=category_ids, tag_ids=tag_ids
    )
    return {"success": True, "product": product_service.to_response(product)}


@router.delete(
    "/{product_id}",
    responses=error_responses(401, 404, 500),
    summary="Soft-delete a product",
)
async def delete_product(
    product_id: uuid.UUID,
    user: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    await product_service.delete_product(db, user, product_id)
    return {"success": True}


@router.post(
    "/{product_id}/duplicate",
    status_code=201,
    responses=error_responses(401, 404, 500),
    summary="Copy a product and its variants as a new draft",
)
async def duplicate_product(
    product_id: uuid.UUID,
    user: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    product = await product_service.duplicate_product(db, user, product_id)
    return {"success": True, "product": product_service.to_response(product)}


# ══════════════════════════════════════════════════════════════════════════
# Variants
# ══════════════════════════════════════════════════════════════════════════

@router.get("/{product_id}/variants", responses=error_responses(401, 404))
async def list_variants(
    product_id: uuid.UUID,
    user: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    variants = await variant_service.list_variants(db, user, product_id)
    return {"success": True, "variants": [_variant(v) for v in variants]}


@router.post("/{product_id}/variants", status_code=201, responses=error_responses(400, 401, 404, 409))
async def create_variant(
    product_id: uuid.UUID,
    body: VariantCreate,
    user: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    variant = await variant_service.upsert_variant(
        db, user, product_id, body.model_dump(exclude_unset=True)
    )
    return {"success": True, "variant": _variant(variant)}


@router.post(
    "/{product_id}/variants/bulk-update",
    responses=error_responses(400, 401, 404, 409),
    summary="Edit price, cost and SKU of many variants",
)
async def bulk_update_variants(
    product_id: uuid.UUID,
    body: VariantBulkUpdate,
    user: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    items = [item.model_dump(exclude_unset=True) for item in body.variants]
    variants = await variant_service.bulk_update(db, user, product_id, items)
    return {"success": True, "variants": [_variant(v) for v in variants]}


@router.post(
    "/{product_id}/variants/generate",
    responses=error_responses(401, 404),
    summary="Create variants for every missing option combination",
)
async def generate_variants(
    product_id: uuid.UUID,
    body: Optional[VariantGenerateRequest] = None,
    user: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    body = body or VariantGenerateRequest()
    created = await variant_service.generate_variants(
        db, user, product_id, base_sku=body.base_sku, price_cents=body.price_cents
    )
    return {"success": True, "created": len(created), "variants": [_variant(v) for v in created]}


@router.patch("/{product_id}/variants/{variant_id}", responses=error_responses(400, 401, 404, 409))
async def update_variant(
    product_id: uuid.UUID,
    variant_id: uuid.UUID,
    body: VariantUpdate,
    user: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    patch = {**body.model_dump(exclude_unset=True), "id": variant_id}
    variant = await variant_service.upsert_variant(db, user, product_id, patch)
    return {"success": True, "variant": _variant(variant)}


@router.delete("/{product_id}/variants/{variant_id}", responses=error_responses(401, 404))
async def delete_variant(
    product_id: uuid.UUID,
    variant_id: uuid.UUID,
    user: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    await variant_service.delete_variant(db, user, variant_id, product_id=product_id)
    return {"success": True}


# ══════════════════════════════════════════════════════════════════════════
# Option groups
# ══════════════════════════════════════════════════════════════════════════

@router.get("/{product_id}/options", responses=error_responses(401, 404))
async def list_options(
    product_id: uuid.UUID,
    user: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    options = await option_service.list_options(db, user, product_id)
    return {"success": True, "options": [o.model_dump(mode="json") for o in options]}


@router.post("/{product_id}/options", status_code=201, responses=error_responses(400, 401, 404, 409))
async def create_option(
    product_id: uuid.UUID,
    body: OptionCreate,
    user: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    option = await option_service.create_option(
        db, user, product_id, body.name, position=body.position
    )
    payload = OptionResponse(
        id=option.id, product_id=option.product_id, name=option.name, position=option.position
    )
    return {"success": True, "option": payload.model_dump(mode="json")}


@router.patch("/{product_id}/options/{option_id}", responses=error_responses(400, 401, 404, 409))
async def update_option(
    product_id: uuid.UUID,
    option_id: uuid.UUID,
    body: OptionUpdate,
    user: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    option = await option_service.update_option(
        db, user, product_id, option_id, name=body.name, position=body.position
    )
    return {"success": True, "option": {"id": str(option.id), "name": option.name,
                                        "position": option.position}}


@router.delete("/{product_id}/options/{option_id}", responses=error_responses(401, 404))
async def delete_option(
    product_id: uuid.UUID,
    option_id: uuid.UUID,
    user: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    await option_service.delete_option(db, user, product_id, option_id)
    return {"success": True}


@router.post(
    "/{product_id}/options/{option_id}/values",
    status_code=201,
    responses=error_responses(400, 401, 404, 409),
)
async def add_option_value(
    product_id: uuid.UUID,
    option_id: uuid.UUID,
    body: OptionValueCreate,
    user: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    value = await option_service.add_value(
        db, user, product_id, option_id, body.value, position=body.position
    )
    return {"success": True, "value": OptionValueResponse.model_validate(value).model_dump(mode="json")}


@router.delete(
    "/{product_id}/options/{option_id}/values/{value_id}",
    responses=error_responses(401, 404),
)
async def delete_option_value(
    product_id: uuid.UUID,
    option_id: uuid.UUID,
    value_id: uuid.UUID,
    user: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    await option_service.delete_value(db, user, product_id, option_id, value_id)
    return {"success": True}


# ══════════════════════════════════════════════════════════════════════════
# Media
# ══════════════════════════════════════════════════════════════════════════

@router.get("/{product_id}/media", responses=error_responses(401, 404))
async def list_media(
    product_id: uuid.UUID,
    user: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    media = await media_service.list_media(db, user, product_id)
    return {
        "success": True,
        "media": [MediaResponse.model_validate(m).model_dump(mode="json") for m in media],
    }


@router.post("/{product_id}/media", status_code=201, responses=error_responses(400, 401, 404))
async def add_media(
    product_id: uuid.UUID,
    body: MediaCreate,
    user: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    media = await media_service.add_media(db, user, product_id, body.url, alt=body.alt)
    return {"success": True, "media": MediaResponse.model_validate(media).model_dump(mode="json")}


@router.delete("/{product_id}/media/{media_id}", responses=error_responses(401, 404))
async def delete_media(
    product_id: uuid.UUID,
    media_id: uuid.UUID,
    user: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    await media_service.delete_media(db, user, product_id, media_id)
    return {"success": True}
