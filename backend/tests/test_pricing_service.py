"""
Storefront Backend: Pricing Service Tests
===========================================

What:  Money parsing/formatting, base price rows, per-store price writes,
       bulk actions and storefront price resolution.
How:   Pure helpers are called directly; service methods run against the
       per-test SQLite schema from conftest.

What we test:
    ✅ parse_price / format_price / adjust_cents
    ✅ ensure_price_row defaults, idempotency and the concurrent-insert path
    ✅ set_store_price upserts one row per (store product, variant)
    ✅ A concurrently created variant price row is reused, not a 500
    ✅ Bulk adjust/visibility stay inside one store
    ✅ VISIBLE is refused while the effective price is zero
"""

import uuid
from unittest.mock import patch

import pytest
from sqlalchemy import func, select

from storefront.exceptions import NotFoundError, ValidationError
from storefront.models import StorePrice, Variant
from storefront.models.common import Visibility
from storefront.services.pricing_service import (
    adjust_cents,
    format_price,
    parse_price,
    pricing_service,
)
from storefront.services.store_service import store_service


class TestMoneyHelpers:

    @pytest.mark.parametrize("text, cents", [
        ("12,34", 1234),
        ("12.34", 1234),
        ("R$ 12", 1200),
        ("$0.5", 50),
        ("1.005", 101),
        ("  7 ", 700),
    ])
    def test_parse_price(self, text, cents):
        assert parse_price(text) == cents

    @pytest.mark.parametrize("text", ["", "abc", "R$", "-"])
    def test_parse_price_rejects_non_numbers(self, text):
        with pytest.raises(ValidationError) as exc_info:
            parse_price(text)
        assert exc_info.value.message == "Invalid price format"

    def test_format_price(self):
        assert format_price(1234) == "12.34"
        assert format_price(1234, use_comma=True) == "12,34"
        assert format_price(5) == "0.05"

    def test_adjust_cents_rounds_half_up(self):
        assert adjust_cents(999, "increase", 10) == 1099
        assert adjust_cents(1999, "decrease", 15) == 1699
        assert adjust_cents(250, "increase", 1) == 253

    def test_adjust_cents_never_negative(self):
        assert adjust_cents(100, "decrease", 100) == 0


class TestEnsurePriceRow:

    def setup_method(self):
        self.service = pricing_service

    @pytest.mark.asyncio
    async def test_creates_row_from_first_variant(self, db, make):
        user = await make.user()
        product = await make.product(user, price_cents=1500)
        store = await make.store(user, [product])
        link = await make.store_product(store, product)

        row = await self.service.ensure_price_row(db, link.id)

        assert row.price_cents == 1500
        assert row.currency == "USD"
        assert row.visibility == "VISIBLE"
        assert row.variant_id is None
        assert row.compare_at_cents is None

    @pytest.mark.asyncio
    async def test_product_without_variants_gets_zero(self, db, make):
        user = await make.user()
        product = await make.product(user, price_cents=None)
        store = await make.store(user, [product])
        link = await make.store_product(store, product)

        row = await self.service.ensure_price_row(db, link.id)

        assert row.price_cents == 0

    @pytest.mark.asyncio
    async def test_is_idempotent(self, db, make):
        user = await make.user()
        product = await make.product(user)
        store = await make.store(user, [product])
        link = await make.store_product(store, product)

        first = await self.service.ensure_price_row(db, link.id)
        second = await self.service.ensure_price_row(db, link.id)

        assert first.id == second.id
        count = (
            await db.execute(select(func.count()).select_from(StorePrice))
        ).scalar_one()
        assert count == 1

    @pytest.mark.asyncio
    async def test_unknown_store_product_is_404(self, db):
        with pytest.raises(NotFoundError):
            await self.service.ensure_price_row(db, uuid.uuid4())

    @pytest.mark.asyncio
    async def test_concurrent_insert_returns_existing_row(self, db, make):
        """
        Another writer inserts the base row between our lookup and our insert.
        The unique index rejects ours and the winner's row comes back.
        """
        user = await make.user()
        product = await make.product(user, price_cents=1500)
        store = await make.store(user, [product])
        link = await make.store_product(store, product)
        winner = await make.price(link, 999)

        original_lookup = self.service._price_row
        calls = []

        async def lookup_missing_once(session, store_product_id, variant_id=None):
            calls.append(store_product_id)
            if len(calls) == 1:
                return None
            return await original_lookup(session, store_product_id, variant_id)

        with patch.object(self.service, "_price_row", new=lookup_missing_once):
            row = await self.service.ensure_price_row(db, link.id)

        assert len(calls) == 2
        assert row.id == winner.id
        assert row.price_cents == 999
        count = (
            await db.execute(select(func.count()).select_from(StorePrice))
        ).scalar_one()
        assert count == 1


class TestSetStorePrice:

    def setup_method(self):
        self.service = pricing_service

    @pytest.mark.asyncio
    async def test_updates_base_row(self, db, make):
        user = await make.user()
        product = await make.product(user)
        store = await make.store(user, [product])

        row = await self.service.set_store_price(db, user, store.id, product.id, 2500)
        again = await self.service.set_store_price(db, user, store.id, product.id, 2600)

        assert row.id == again.id
        assert again.price_cents == 2600
        count = (
            await db.execute(select(func.count()).select_from(StorePrice))
        ).scalar_one()
        assert count == 1

    @pytest.mark.asyncio
    async def test_currency_is_upper_cased(self, db, make):
        user = await make.user()
        product = await make.product(user)
        store = await make.store(user, [product])

        row = await self.service.set_store_price(db, user, store.id, product.id, 2500, currency="eur")

        assert row.currency == "EUR"

    @pytest.mark.asyncio
    async def test_negative_price_is_rejected(self, db, make):
        user = await make.user()
        product = await make.product(user)
        store = await make.store(user, [product])

        with pytest.raises(ValidationError):
            await self.service.set_store_price(db, user, store.id, product.id, -1)

    @pytest.mark.asyncio
    async def test_product_not_in_store_is_404(self, db, make):
        user = await make.user()
        product = await make.product(user)
        store = await make.store(user)

        with pytest.raises(NotFoundError):
            await self.service.set_store_price(db, user, store.id, product.id, 1000)

    @pytest.mark.asyncio
    async def test_foreign_store_is_404(self, db, make):
        owner = await make.user()
        intruder = await make.user()
        product = await make.product(owner)
        store = await make.store(owner, [product])

        with pytest.raises(NotFoundError):
            await self.service.set_store_price(db, intruder, store.id, product.id, 1)

    @pytest.mark.asyncio
    async def test_variant_row_created_then_updated(self, db, make):
        user = await make.user()
        product = await make.product(user)
        store = await make.store(user, [product])
        variant_id = (
            await db.execute(select(Variant.id).where(Variant.product_id == product.id))
        ).scalar_one()

        row = await self.service.set_store_price(
            db, user, store.id, product.id, 1800, variant_id=variant_id
        )
        again = await self.service.set_store_price(
            db, user, store.id, product.id, 1900, variant_id=variant_id
        )

        assert row.id == again.id
        assert again.variant_id == variant_id
        assert again.price_cents == 1900

    @pytest.mark.asyncio
    async def test_concurrent_variant_row_is_reused(self, db, make):
        """
        Another writer inserts the (store product, variant) row between our
        lookup and our insert. The unique constraint rejects ours and the
        existing row is updated instead.
        """
        user = await make.user()
        product = await make.product(user)
        store = await make.store(user, [product])
        link = await make.store_product(store, product)
        async with make.session() as s:
            variant_id = (
                await s.execute(select(Variant.id).where(Variant.product_id == product.id))
            ).scalar_one()
        winner = await make.price(link, 700, variant_id=variant_id)

        original_lookup = self.service._price_row
        calls = []

        async def lookup_missing_once(session, store_product_id, variant_id=None):
            calls.append(variant_id)
            if len(calls) == 1:
                return None
            return await original_lookup(session, store_product_id, variant_id)

        with patch.object(self.service, "_price_row", new=lookup_missing_once):
            row = await self.service.set_store_price(
                db, user, store.id, product.id, 2100, variant_id=variant_id
            )

        assert row.id == winner.id
        assert row.price_cents == 2100
        count = (
            await db.execute(
                select(func.count()).select_from(StorePrice)
                .where(StorePrice.variant_id == variant_id)
            )
        ).scalar_one()
        assert count == 1


class TestStorefrontPrice:

    def setup_method(self):
        self.service = pricing_service

    @pytest.mark.asyncio
    async def test_store_row_wins_over_variant(self, db, make):
        user = await make.user()
        product = await make.product(user, price_cents=1500)
        store = await make.store(user, [product])
        await make.price(await make.store_product(store, product), 1200, currency="EUR")

        assert await self.service.get_storefront_price(db, store.id, product.id) == (1200, "EUR")

    @pytest.mark.asyncio
    async def test_zero_row_falls_back_to_variant(self, db, make):
        user = await make.user()
        product = await make.product(user, price_cents=1500)
        store = await make.store(user, [product])
        await make.price(await make.store_product(store, product), 0)

        assert await self.service.get_storefront_price(db, store.id, product.id) == (1500, "USD")

    @pytest.mark.asyncio
    async def test_hidden_product_has_no_price(self, db, make):
        user = await make.user()
        product = await make.product(user)
        store = await make.store(user, [product], visibility=Visibility.HIDDEN.value)

        assert await self.service.get_storefront_price(db, store.id, product.id) is None


class TestBulkActions:

    def setup_method(self):
        self.service = pricing_service

    async def _store_with_prices(self, make, user, *amounts):
        products = [
            await make.product(user, title=f"P{i}", price_cents=amount)
            for i, amount in enumerate(amounts)
        ]
        store = await make.store(user, products)
        rows = [
            await make.price(await make.store_product(store, product), amount)
            for product, amount in zip(products, amounts)
        ]
        return store, rows

    @pytest.mark.asyncio
    async def test_bulk_increase(self, db, make):
        user = await make.user()
        store, rows = await self._store_with_prices(make, user, 1000, 2000)

        updated = await self.service.bulk_adjust_prices(
            db, user, store.id, [r.id for r in rows], "increase", 10
        )

        assert updated == 2
        prices = sorted(
            (await db.execute(select(StorePrice.price_cents))).scalars().all()
        )
        assert prices == [1100, 2200]

    @pytest.mark.asyncio
    async def test_row_from_another_store_is_404_and_nothing_changes(self, db, make):
        user = await make.user()
        other = await make.user()
        store, rows = await self._store_with_prices(make, user, 1000)
        _, foreign_rows = await self._store_with_prices(make, other, 5000)

        with pytest.raises(NotFoundError):
            await self.service.bulk_adjust_prices(
                db, user, store.id, [rows[0].id, foreign_rows[0].id], "decrease", 50
            )

        await db.rollback()
        prices = sorted(
            (await db.execute(select(StorePrice.price_cents))).scalars().all()
        )
        assert prices == [1000, 5000]

    @pytest.mark.asyncio
    async def test_invalid_percentage(self, db, make):
        user = await make.user()
        store, rows = await self._store_with_prices(make, user, 1000)

        with pytest.raises(ValidationError):
            await self.service.bulk_adjust_prices(db, user, store.id, [rows[0].id], "increase", 0)

    @pytest.mark.asyncio
    async def test_bulk_visibility(self, db, make):
        user = await make.user()
        store, rows = await self._store_with_prices(make, user, 1000, 2000)

        updated = await self.service.bulk_update_visibility(
            db, user, store.id, [r.id for r in rows], "HIDDEN"
        )

        assert updated == 2
        visibilities = set(
            (await db.execute(select(StorePrice.visibility))).scalars().all()
        )
        assert visibilities == {"HIDDEN"}


class TestVisibilityGate:

    @pytest.mark.asyncio
    async def test_visible_requires_positive_price(self, db, make):
        user = await make.user()
        product = await make.product(user, price_cents=None)
        store = await make.store(user)
        await store_service.attach_product(db, user, product.id, store.id)

        with pytest.raises(ValidationError) as exc_info:
            await store_service.set_visibility(db, user, product.id, store.id, "VISIBLE")
        assert exc_info.value.message == "Cannot set to VISIBLE: price must be > 0"

        await pricing_service.set_store_price(db, user, store.id, product.id, 1800)
        link = await store_service.set_visibility(db, user, product.id, store.id, "VISIBLE")

        assert link.visibility == "VISIBLE"

    @pytest.mark.asyncio
    async def test_hidden_is_always_allowed(self, db, make):
        user = await make.user()
        product = await make.product(user, price_cents=None)
        store = await make.store(user)
        await store_service.attach_product(db, user, product.id, store.id)

        link = await store_service.set_visibility(db, user, product.id, store.id, "HIDDEN")

        assert link.visibility == "HIDDEN"
