"""
Storefront Backend: Order Service
===================================

What:  Merchant order reads/notes and webhook-driven fulfilment.

Fulfilment flow:
    checkout_service records a PendingOrder keyed by the Stripe session id.
    checkout.session.completed turns it into a paid Order owned by the store
    owner and deletes the pending row. The order's stripe_session_id is
    unique, so a redelivered event finds the existing order and does nothing.
"""

import logging
import uuid
from typing import Any, List, Mapping, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.auth import SessionUser
from storefront.models import Order, PendingOrder, Store
from storefront.models.common import OrderStatus, utcnow
from storefront.services import ownership

logger = logging.getLogger(__name__)


def _customer_email(session: Mapping[str, Any]) -> Optional[str]:
    details = session.get("customer_details") or {}
    return details.get("email") or session.get("customer_email")


def _parse_uuid(value: Optional[str]) -> Optional[uuid.UUID]:
    try:
        return uuid.UUID(str(value)) if value else None
    except ValueError:
        return None


class OrderService:

    async def list_orders(self, db: AsyncSession, user: SessionUser) -> List[Order]:
        result = await db.execute(
            select(Order).where(Order.user_id == user.id).order_by(Order.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_order(self, db: AsyncSession, user: SessionUser, order_id: uuid.UUID) -> Order:
        return await ownership.assert_order_owner(db, order_id, user.id)

    async def update_order_notes(
        self, db: AsyncSession, user: SessionUser, order_id: uuid.UUID, notes: str
    ) -> Order:
        order = await ownership.assert_order_owner(db, order_id, user.id)
        order.notes = notes.strip() or None
        order.updated_at = utcnow()
        await db.flush()
        return order

    # ── Webhook fulfilment ────────────────────────────────────────────────

    async def handle_checkout_completed(
        self, db: AsyncSession, session: Mapping[str, Any]
    ) -> Optional[Order]:
        """
        Create the paid order for a completed Checkout Session.

        Returns None (after logging) when metadata, store or pending order is
        missing, or when the order already exists.
        """
        session_id = session.get("id")
        metadata = session.get("metadata") or {}
        store_id = _parse_uuid(metadata.get("storeId"))
        product_id = _parse_uuid(metadata.get("productId"))
        if store_id is None or product_id is None:
            logger.error("Missing metadata in checkout session %s", session_id)
            return None

        store = await db.get(Store, store_id)
        if store is None:
            logger.error("Store %s not found for checkout session %s", store_id, session_id)
            return None

        existing = (
            await db.execute(select(Order).where(Order.stripe_session_id == session_id))
        ).scalar_one_or_none()
        if existing is not None:
            logger.info("Order %s already exists for session %s", existing.id, session_id)
            return None

        pending = (
            await db.execute(
                select(PendingOrder).where(PendingOrder.stripe_session_id == session_id)
            )
        ).scalar_one_or_none()
        if pending is None:
            logger.error("Pending order not found for session %s", session_id)
            return None

        order = Order(
            user_id=store.user_id,
            store_id=store.id,
            product_id=product_id,
            stripe_account_id=pending.stripe_account_id,
            stripe_session_id=session_id,
            stripe_payment_intent_id=session.get("payment_intent"),
            amount_cents=session.get("amount_total") or 0,
            currency=(session.get("currency") or pending.currency or "usd").upper(),
            customer_email=_customer_email(session),
            status=OrderStatus.PAID.value,
        )
        db.add(order)
        await db.execute(delete(PendingOrder).where(PendingOrder.stripe_session_id == session_id))
        await db.flush()
        logger.info(
            "Order %s created: session=%s store=%s amount=%s",
            order.id, session_id, store.id, order.amount_cents,
        )
        return order

    async def handle_payment_failed(self, db: AsyncSession, session: Mapping[str, Any]) -> int:
        """Mark the order for this session failed; returns rows updated."""
        result = await db.execute(
            update(Order)
            .where(Order.stripe_session_id == session.get("id"))
            .values(status=OrderStatus.FAILED.value, updated_at=utcnow())
        )
        return result.rowcount or 0


order_service = OrderService()
