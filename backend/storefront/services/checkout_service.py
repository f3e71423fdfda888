"""
Storefront Backend: Checkout Service
======================================

What:  Public "Buy" button: resolve the price, find the seller's connected
       Stripe account and open a Checkout Session on it.
Who:   POST /api/checkout (no session; customers are anonymous).

Every failure is a CheckoutError whose CheckoutErrorKind alone decides the
HTTP status (see exceptions.CHECKOUT_STATUS).
"""

import logging
import time
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.exceptions import CheckoutError, CheckoutErrorKind, UpstreamError
from storefront.models import PayoutAccount, PendingOrder, Product, Store
from storefront.services.pricing_service import pricing_service
from storefront.services.stripe_client import stripe_client

logger = logging.getLogger(__name__)


class CheckoutService:

    async def connected_account_for_store(self, db: AsyncSession, store: Store) -> str:
        result = await db.execute(
            select(PayoutAccount).where(PayoutAccount.user_id == store.user_id)
        )
        account = result.scalar_one_or_none()
        if account is None:
            raise CheckoutError(CheckoutErrorKind.PAYOUTS_NOT_CONFIGURED)
        if not account.charges_enabled:
            raise CheckoutError(CheckoutErrorKind.CHARGES_DISABLED)
        return account.stripe_account_id

    async def create_checkout_session(
        self,
        db: AsyncSession,
        store_id: uuid.UUID,
        product_id: uuid.UUID,
        quantity: int = 1,
        base_url: str = "",
    ) -> str:
        """Returns the Stripe-hosted checkout URL."""
        if quantity < 1:
            raise CheckoutError(CheckoutErrorKind.INVALID_QUANTITY)

        store = await db.get(Store, store_id)
        if store is None:
            raise CheckoutError(CheckoutErrorKind.STORE_NOT_FOUND)
        product = await db.get(Product, product_id)
        if product is None or product.deleted_at is not None:
            raise CheckoutError(CheckoutErrorKind.PRODUCT_NOT_FOUND)

        price = await pricing_service.get_storefront_price(db, store.id, product.id)
        if price is None or price[0] <= 0:
            raise CheckoutError(CheckoutErrorKind.PRICE_NOT_CONFIGURED)
        price_cents, currency = price

        stripe_account_id = await self.connected_account_for_store(db, store)
        base = base_url.rstrip("/")
        logger.info(
            "Creating checkout session: store=%s product=%s price=%d %s qty=%d",
            store.id, product.id, price_cents, currency, quantity,
        )

        product_data = {"name": product.title}
        if product.description:
            product_data["description"] = product.description
        if product.default_image_url:
            product_data["images"] = [product.default_image_url]

        try:
            session = await stripe_client.create_checkout_session(
                {
                    "mode": "payment",
                    "line_items": [{
                        "quantity": quantity,
                        "price_data": {
                            "currency": currency.lower(),
                            "unit_amount": price_cents,
                            "product_data": product_data,
                        },
                    }],
                    "success_url": (
                        f"{base}/s/{store.slug}/success?session_id={{CHECKOUT_SESSION_ID}}"
                    ),
                    "cancel_url": f"{base}/s/{store.slug}?canceled=1",
                    "metadata": {"storeId": str(store.id), "productId": str(product.id)},
                },
                stripe_account=stripe_account_id,
                idempotency_key=f"checkout-{store.id}-{product.id}-{time.time_ns()}",
            )
        except UpstreamError as e:
            raise CheckoutError(
                CheckoutErrorKind.PROVIDER_ERROR,
                context={"upstream_kind": e.kind.value},
            )

        db.add(PendingOrder(
            store_id=store.id,
            product_id=product.id,
            stripe_account_id=stripe_account_id,
            stripe_session_id=session.id,
            price_cents=price_cents,
            currency=currency,
        ))
        await db.flush()
        return session.url


checkout_service = CheckoutService()
