"""Merchant order list, detail and private notes."""

import logging
import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.auth import SessionUser, require_session
from storefront.database import get_db_session
from storefront.schemas.commerce import OrderNotesUpdate, OrderResponse
from storefront.schemas.common import error_responses
from storefront.services.order_service import order_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/orders", tags=["Orders"])


@router.get("", responses=error_responses(401, 500), summary="List the caller's orders")
async def list_orders(
    user: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    orders = await order_service.list_orders(db, user)
    return {
        "success": True,
        "orders": [OrderResponse.model_validate(o).model_dump(mode="json") for o in orders],
    }


@router.get("/{order_id}", responses=error_responses(401, 404, 500))
async def get_order(
    order_id: uuid.UUID,
    user: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    order = await order_service.get_order(db, user, order_id)
    return {"success": True, "order": OrderResponse.model_validate(order).model_dump(mode="json")}


@router.patch("/{order_id}/notes", responses=error_responses(400, 401, 404, 500))
async def update_order_notes(
    order_id: uuid.UUID,
    body: OrderNotesUpdate,
    user: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    order = await order_service.update_order_notes(db, user, order_id, body.notes)
    return {"success": True, "order": OrderResponse.model_validate(order).model_dump(mode="json")}
