"""
Storefront Backend: Pricing Service
=====================================

What:  Per-store prices. The store_prices table is the source of truth for
       what a customer pays; a variant's own price_cents is the fallback.
Who:   Store management (new attachments get a base price row), the price
       table routes, the product channel routes and checkout.

Resolution order for a storefront price:
    1. the product must be VISIBLE in the store and not deleted
    2. the matching store price row, when its price is positive
    3. the variant's own price (or the first live variant's), when positive
    4. otherwise no price: the product is not purchasable

Base price rows:
    ensure_price_row() creates the (store_product, variant=NULL) row lazily.
    The partial unique index uq_store_prices_base_row guarantees at most one;
    the insert runs in a SAVEPOINT so a concurrent writer's IntegrityError
    rolls back only the insert, after which the winner's row is returned.
"""

import logging
import re
import uuid
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.auth import SessionUser
from storefront.exceptions import NotFoundError, ValidationError
from storefront.models import Product, Store, StorePrice, StoreProduct, Variant
from storefront.models.common import PriceVisibility, Visibility, utcnow
from storefront.schemas.store import StorePriceResponse, StorePriceRow
from storefront.services import ownership

logger = logging.getLogger(__name__)

DEFAULT_CURRENCY = "USD"

_PRICE_CHARS = re.compile(r"[^\d,.\-]")
_LEADING_NUMBER = re.compile(r"^-?(\d+\.?\d*|\.\d+)")
_CENT = Decimal("0.01")


# ══════════════════════════════════════════════════════════════════════════
# Money helpers
# ══════════════════════════════════════════════════════════════════════════

def parse_price(text: str) -> int:
    """
    Locale-tolerant price input → cents.

        "12,34" → 1234     "12.34" → 1234     "R$ 12" → 1200

    Currency symbols and spaces are dropped, the first comma is read as the
    decimal separator and the leading number is used.
    """
    cleaned = _PRICE_CHARS.sub("", text or "").replace(",", ".", 1)
    match = _LEADING_NUMBER.match(cleaned)
    if not match:
        raise ValidationError(message="Invalid price format", field="price")
    value = Decimal(match.group(0)).quantize(_CENT, rounding=ROUND_HALF_UP)
    return int(value * 100)


def format_price(cents: int, use_comma: bool = False) -> str:
    """1234 → "12.34" (or "12,34")."""
    formatted = f"{Decimal(cents) / 100:.2f}"
    return formatted.replace(".", ",") if use_comma else formatted


def adjust_cents(price_cents: int, adjustment_type: str, percentage: int) -> int:
    """Percentage increase/decrease, rounded half-up and never below zero."""
    sign = 1 if adjustment_type == "increase" else -1
    factor = Decimal(100 + sign * percentage) / 100
    adjusted = (Decimal(price_cents) * factor).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return max(0, int(adjusted))


# ══════════════════════════════════════════════════════════════════════════
# Service
# ══════════════════════════════════════════════════════════════════════════

class PricingService:

    # ── Lookups ───────────────────────────────────────────────────────────

    async def _price_row(
        self,
        db: AsyncSession,
        store_product_id: uuid.UUID,
        variant_id: Optional[uuid.UUID] = None,
    ) -> Optional[StorePrice]:
        query = select(StorePrice).where(StorePrice.store_product_id == store_product_id)
        if variant_id is None:
            query = query.where(StorePrice.variant_id.is_(None))
        else:
            query = query.where(StorePrice.variant_id == variant_id)
        return (await db.execute(query)).scalar_one_or_none()

    async def _first_variant(self, db: AsyncSession, product_id: uuid.UUID) -> Optional[Variant]:
        result = await db.execute(
            select(Variant)
            .where(Variant.product_id == product_id, Variant.deleted_at.is_(None))
            .order_by(Variant.created_at, Variant.id)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def _default_price(self, db: AsyncSession, product_id: uuid.UUID) -> int:
        variant = await self._first_variant(db, product_id)
        return (variant.price_cents or 0) if variant is not None else 0

    async def _effective_price(
        self,
        db: AsyncSession,
        store_product: StoreProduct,
        variant_id: Optional[uuid.UUID] = None,
    ) -> Optional[Tuple[int, str]]:
        row = await self._price_row(db, store_product.id, variant_id)
        if row is not None and row.price_cents > 0:
            return row.price_cents, row.currency

        if variant_id is not None:
            variant = (
                await db.execute(
                    select(Variant).where(
                        Variant.id == variant_id,
                        Variant.product_id == store_product.product_id,
                        Variant.deleted_at.is_(None),
                    )
                )
            ).scalar_one_or_none()
        else:
            variant = await self._first_variant(db, store_product.product_id)

        if variant is not None and (variant.price_cents or 0) > 0:
            return variant.price_cents, DEFAULT_CURRENCY
        return None

    async def get_storefront_price(
        self,
        db: AsyncSession,
        store_id: uuid.UUID,
        product_id: uuid.UUID,
        variant_id: Optional[uuid.UUID] = None,
    ) -> Optional[Tuple[int, str]]:
        """(price_cents, currency) a customer would pay, or None if not for sale."""
        result = await db.execute(
            select(StoreProduct)
            .join(Product, Product.id == StoreProduct.product_id)
            .where(
                StoreProduct.store_id == store_id,
                StoreProduct.product_id == product_id,
                StoreProduct.visibility == Visibility.VISIBLE.value,
                Product.deleted_at.is_(None),
            )
        )
        store_product = result.scalar_one_or_none()
        if store_product is None:
            return None
        return await self._effective_price(db, store_product, variant_id)

    async def can_set_visible(self, db: AsyncSession, store_product: StoreProduct) -> bool:
        """True when the product would have a positive price once visible."""
        return await self._effective_price(db, store_product) is not None

    # ── Writes ────────────────────────────────────────────────────────────

    async def ensure_price_row(self, db: AsyncSession, store_product_id: uuid.UUID) -> StorePrice:
        """
        Return the base price row for a store product, creating it if missing.

        New rows take the first live variant's price (0 when there is none),
        currency USD and visibility VISIBLE.

        Raises:
            NotFoundError: the store product does not exist
        """
        existing = await self._price_row(db, store_product_id)
        if existing is not None:
            return existing

        store_product = await db.get(StoreProduct, store_product_id)
        if store_product is None:
            raise NotFoundError(resource="store product", resource_id=str(store_product_id))

        row = StorePrice(
            store_product_id=store_product.id,
            variant_id=None,
            price_cents=await self._default_price(db, store_product.product_id),
            compare_at_cents=None,
            currency=DEFAULT_CURRENCY,
            visibility=PriceVisibility.VISIBLE.value,
        )
        return await self._insert_price_row(db, row)

    async def _insert_price_row(self, db: AsyncSession, row: StorePrice) -> StorePrice:
        """
        Insert under a savepoint. When a concurrent writer already created the
        (store product, variant) row, the savepoint is rolled back and that
        row is returned instead.
        """
        try:
            async with db.begin_nested():
                db.add(row)
                await db.flush()
            return row
        except IntegrityError:
            logger.info(
                "Price row for store product %s variant %s created concurrently; using existing",
                row.store_product_id, row.variant_id,
            )
            winner = await self._price_row(db, row.store_product_id, row.variant_id)
            if winner is None:
                raise
            return winner

    async def set_store_price(
        self,
        db: AsyncSession,
        user: SessionUser,
        store_id: uuid.UUID,
        product_id: uuid.UUID,
        price_cents: int,
        variant_id: Optional[uuid.UUID] = None,
        currency: str = DEFAULT_CURRENCY,
    ) -> StorePrice:
        """Insert or update the (store product, variant) price row."""
        if price_cents < 0:
            raise ValidationError(message="Price must be >= 0", field="price_cents")
        store = await ownership.assert_store_owner(db, store_id, user.id)
        product = await ownership.assert_product_owner(db, product_id, user.id)
        if variant_id is not None:
            await ownership.assert_variant_owner(db, variant_id, user.id, product_id=product.id)

        store_product = (
            await db.execute(
                select(StoreProduct).where(
                    StoreProduct.store_id == store.id,
                    StoreProduct.product_id == product.id,
                )
            )
        ).scalar_one_or_none()
        if store_product is None:
            raise NotFoundError(resource="store product")

        if variant_id is None:
            row = await self.ensure_price_row(db, store_product.id)
        else:
            row = await self._price_row(db, store_product.id, variant_id)
            if row is None:
                row = await self._insert_price_row(db, StorePrice(
                    store_product_id=store_product.id,
                    variant_id=variant_id,
                    price_cents=price_cents,
                    currency=currency.upper(),
                    visibility=PriceVisibility.VISIBLE.value,
                ))

        row.price_cents = price_cents
        row.currency = currency.upper()
        row.updated_at = utcnow()
        await db.flush()
        logger.info(
            "Store price set: store=%s product=%s variant=%s price=%d",
            store.id, product.id, variant_id, price_cents,
        )
        return row

    async def update_store_price(
        self,
        db: AsyncSession,
        user: SessionUser,
        store_price_id: uuid.UUID,
        price_cents: int,
        compare_at_cents: Optional[int] = None,
        visibility: Optional[str] = None,
    ) -> StorePrice:
        row, _, _ = await ownership.assert_store_price_owner(db, store_price_id, user.id)
        if price_cents < 0:
            raise ValidationError(message="Price must be >= 0", field="price_cents")
        row.price_cents = price_cents
        row.compare_at_cents = compare_at_cents or None
        if visibility:
            row.visibility = getattr(visibility, "value", visibility)
        row.updated_at = utcnow()
        await db.flush()
        return row

    async def reset_store_price(
        self, db: AsyncSession, user: SessionUser, store_price_id: uuid.UUID
    ) -> StorePrice:
        """Back to the first variant's price; clears compare-at and any sale window."""
        row, store_product, _ = await ownership.assert_store_price_owner(
            db, store_price_id, user.id
        )
        variant = await self._first_variant(db, store_product.product_id)
        if variant is None:
            raise ValidationError(message="No variant found for product")

        row.price_cents = variant.price_cents or 0
        row.compare_at_cents = None
        row.start_at = None
        row.end_at = None
        if row.visibility == PriceVisibility.SCHEDULED.value:
            row.visibility = PriceVisibility.VISIBLE.value
        row.updated_at = utcnow()
        await db.flush()
        return row

    async def schedule_sale(
        self,
        db: AsyncSession,
        user: SessionUser,
        store_price_id: uuid.UUID,
        price_cents: int,
        compare_at_cents: int,
        start_at: datetime,
        end_at: datetime,
    ) -> StorePrice:
        row, _, _ = await ownership.assert_store_price_owner(db, store_price_id, user.id)
        if price_cents < 0:
            raise ValidationError(message="Sale price must be >= 0", field="price_cents")
        if compare_at_cents <= price_cents:
            raise ValidationError(
                message="Compare at price must be higher than sale price",
                field="compare_at_cents",
            )
        if start_at >= end_at:
            raise ValidationError(message="End date must be after start date", field="end_at")

        row.price_cents = price_cents
        row.compare_at_cents = compare_at_cents
        row.visibility = PriceVisibility.SCHEDULED.value
        row.start_at = start_at
        row.end_at = end_at
        row.updated_at = utcnow()
        await db.flush()
        return row

    # ── Bulk actions ──────────────────────────────────────────────────────

    async def _rows_in_store(
        self, db: AsyncSession, store: Store, store_price_ids: Sequence[uuid.UUID]
    ) -> List[StorePrice]:
        """All requested rows, which must belong to this store (else 404)."""
        ids = list(dict.fromkeys(store_price_ids))
        result = await db.execute(
            select(StorePrice)
            .join(StoreProduct, StoreProduct.id == StorePrice.store_product_id)
            .where(StorePrice.id.in_(ids), StoreProduct.store_id == store.id)
        )
        rows = list(result.scalars().all())
        if len(rows) != len(ids):
            raise NotFoundError(resource="price record")
        return rows

    async def bulk_update_visibility(
        self,
        db: AsyncSession,
        user: SessionUser,
        store_id: uuid.UUID,
        store_price_ids: Sequence[uuid.UUID],
        visibility: str,
    ) -> int:
        store = await ownership.assert_store_owner(db, store_id, user.id)
        rows = await self._rows_in_store(db, store, store_price_ids)
        now = utcnow()
        for row in rows:
            row.visibility = getattr(visibility, "value", visibility)
            row.updated_at = now
        await db.flush()
        return len(rows)

    async def bulk_adjust_prices(
        self,
        db: AsyncSession,
        user: SessionUser,
        store_id: uuid.UUID,
        store_price_ids: Sequence[uuid.UUID],
        adjustment_type: str,
        percentage: int,
    ) -> int:
        if adjustment_type not in ("increase", "decrease"):
            raise ValidationError(message="Invalid adjustment type", field="adjustment_type")
        if percentage <= 0 or percentage > 100:
            raise ValidationError(
                message="Percentage must be between 1 and 100", field="percentage"
            )
        store = await ownership.assert_store_owner(db, store_id, user.id)
        rows = await self._rows_in_store(db, store, store_price_ids)
        now = utcnow()
        for row in rows:
            row.price_cents = adjust_cents(row.price_cents, adjustment_type, percentage)
            row.updated_at = now
        await db.flush()
        logger.info(
            "Bulk %s of %d%% applied to %d prices in store %s",
            adjustment_type, percentage, len(rows), store.id,
        )
        return len(rows)

    # ── Price tables ──────────────────────────────────────────────────────

    async def _table(self, db: AsyncSession, *conditions) -> List[StorePriceRow]:
        result = await db.execute(
            select(StorePrice, StoreProduct, Product)
            .join(StoreProduct, StoreProduct.id == StorePrice.store_product_id)
            .join(Product, Product.id == StoreProduct.product_id)
            .where(Product.deleted_at.is_(None), *conditions)
            .order_by(StoreProduct.position, Product.title, StorePrice.created_at)
        )
        return [
            StorePriceRow(
                **StorePriceResponse.model_validate(price).model_dump(),
                store_id=store_product.store_id,
                product_id=product.id,
                product_title=store_product.title_override or product.title,
                product_visibility=store_product.visibility,
            )
            for price, store_product, product in result.all()
        ]

    async def list_store_prices(
        self, db: AsyncSession, user: SessionUser, store_id: uuid.UUID
    ) -> List[StorePriceRow]:
        """Price table for one store; missing base rows are created first."""
        store = await ownership.assert_store_owner(db, store_id, user.id)
        store_product_ids = (
            await db.execute(select(StoreProduct.id).where(StoreProduct.store_id == store.id))
        ).scalars().all()
        for store_product_id in store_product_ids:
            await self.ensure_price_row(db, store_product_id)
        return await self._table(db, StoreProduct.store_id == store.id)

    async def list_product_store_prices(
        self, db: AsyncSession, user: SessionUser, product_id: uuid.UUID
    ) -> List[StorePriceRow]:
        """Every price the caller has set for one product, across their stores."""
        product = await ownership.assert_product_owner(db, product_id, user.id)
        return await self._table(
            db,
            StoreProduct.product_id == product.id,
            StoreProduct.store_id.in_(select(Store.id).where(Store.user_id == user.id)),
        )


pricing_service = PricingService()
