"""
Storefront Backend: Store Route Handlers
==========================================

What:  /api/stores CRUD and the DRAFT/LIVE toggle.
How:   The create and update bodies are the same StoreForm; form rules
       (name, product count, HOTSITE single product, READY products) are
       enforced by store_service and surface as 400s.
Who:   The dashboard's store builder.
"""

import logging
import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.auth import SessionUser, require_session
from storefront.database import get_db_session
from storefront.schemas.common import error_responses
from storefront.schemas.store import StoreForm, StoreResponse
from storefront.services.store_service import store_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/stores", tags=["Stores"])


def _form_kwargs(body: StoreForm) -> dict:
    return {
        "name": body.name,
        "product_ids": body.product_ids,
        "store_type": body.type,
        "status": body.status,
        "slug": body.slug,
        "headline": body.headline,
        "subheadline": body.subheadline,
        "hero_image_url": body.hero_image_url,
    }


@router.get("", responses=error_responses(401, 500), summary="List the caller's stores")
async def list_stores(
    user: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return {"success": True, "stores": await store_service.list_stores(db, user)}


@router.post(
    "",
    status_code=201,
    responses=error_responses(400, 401, 404, 500),
    summary="Create a store",
    description=(
        "Every listed product must be the caller's and READY. A HOTSITE "
        "store takes exactly one product. Each product gets a base price row."
    ),
)
async def create_store(
    body: StoreForm,
    user: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    store = await store_service.create_store(db, user, **_form_kwargs(body))
    return {"success": True, "store": StoreResponse.model_validate(store).model_dump(mode="json")}


@router.get("/{store_id}", responses=error_responses(401, 404, 500))
async def get_store(
    store_id: uuid.UUID,
    user: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    detail = await store_service.get_store(db, user, store_id)
    return {"success": True, "store": detail.model_dump(mode="json")}


@router.put(
    "/{store_id}",
    responses=error_responses(400, 401, 404, 500),
    summary="Replace a store's settings and product list",
)
async def update_store(
    store_id: uuid.UUID,
    body: StoreForm,
    user: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    store = await store_service.update_store(db, user, store_id, **_form_kwargs(body))
    return {"success": True, "store": StoreResponse.model_validate(store).model_dump(mode="json")}


@router.delete("/{store_id}", responses=error_responses(401, 404, 500))
async def delete_store(
    store_id: uuid.UUID,
    user: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    await store_service.delete_store(db, user, store_id)
    return {"success": True}


@router.post("/{store_id}/toggle-status", responses=error_responses(401, 404, 500))
async def toggle_store_status(
    store_id: uuid.UUID,
    user: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    store = await store_service.toggle_store_status(db, user, store_id)
    return {"success": True, "status": store.status}
