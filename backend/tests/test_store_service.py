"""
Storefront Backend: Store Service Tests
=========================================

What:  Store create/update/delete rules and the per-product channel
       operations (attach, detach).

What we test:
    ✅ HOTSITE takes exactly one product; every store needs one
    ✅ Only the caller's READY products can be attached by the form
    ✅ Creation links products VISIBLE in order and creates base price rows
    ✅ Update keeps price rows of products that stay, drops the rest
    ✅ Slugs are unique across merchants
    ✅ Delete and detach remove child rows explicitly
"""

import pytest
from sqlalchemy import func, select

from storefront.exceptions import NotFoundError, ValidationError
from storefront.models import StorePrice, StoreProduct
from storefront.services.pricing_service import pricing_service
from storefront.services.store_service import store_service


async def _count(db, model) -> int:
    return (await db.execute(select(func.count()).select_from(model))).scalar_one()


class TestCreateStore:

    def setup_method(self):
        self.service = store_service

    @pytest.mark.asyncio
    async def test_hotsite_needs_exactly_one_product(self, db, make):
        user = await make.user()
        first = await make.product(user)
        second = await make.product(user)

        with pytest.raises(ValidationError) as exc_info:
            await self.service.create_store(
                db, user, "Launch", [first.id, second.id], store_type="HOTSITE"
            )

        assert exc_info.value.message == "Hotsite must have exactly one product"

    @pytest.mark.asyncio
    async def test_requires_a_product(self, db, make):
        user = await make.user()

        with pytest.raises(ValidationError) as exc_info:
            await self.service.create_store(db, user, "Empty", [], store_type="MINISTORE")

        assert exc_info.value.field == "product_ids"

    @pytest.mark.asyncio
    async def test_requires_a_name(self, db, make):
        user = await make.user()
        product = await make.product(user)

        with pytest.raises(ValidationError) as exc_info:
            await self.service.create_store(db, user, "   ", [product.id])

        assert exc_info.value.field == "name"

    @pytest.mark.asyncio
    async def test_draft_product_is_rejected(self, db, make):
        user = await make.user()
        draft = await make.product(user, status="DRAFT")

        with pytest.raises(ValidationError) as exc_info:
            await self.service.create_store(db, user, "Shop", [draft.id])

        assert exc_info.value.message == "Some products are invalid or not ready"

    @pytest.mark.asyncio
    async def test_foreign_product_is_rejected(self, db, make):
        user = await make.user()
        other = await make.user()
        theirs = await make.product(other)

        with pytest.raises(ValidationError):
            await self.service.create_store(db, user, "Shop", [theirs.id])

    @pytest.mark.asyncio
    async def test_links_products_and_creates_price_rows(self, db, make):
        user = await make.user()
        mug = await make.product(user, title="Mug", price_cents=900)
        tee = await make.product(user, title="Tee", price_cents=1500)

        store = await self.service.create_store(
            db, user, "Summer Shop", [tee.id, mug.id], store_type="MINISTORE", status="LIVE"
        )

        assert store.slug == "summer-shop"
        assert store.status == "LIVE"
        links = (
            await db.execute(
                select(StoreProduct).where(StoreProduct.store_id == store.id)
                .order_by(StoreProduct.position)
            )
        ).scalars().all()
        assert [(l.product_id, l.position, l.visibility) for l in links] == [
            (tee.id, 0, "VISIBLE"),
            (mug.id, 1, "VISIBLE"),
        ]
        prices = {
            l.product_id: (await pricing_service.ensure_price_row(db, l.id)).price_cents
            for l in links
        }
        assert prices == {tee.id: 1500, mug.id: 900}
        assert await _count(db, StorePrice) == 2

    @pytest.mark.asyncio
    async def test_slug_taken_by_another_merchant(self, db, make):
        other = await make.user()
        await make.store(other, slug="summer-shop")
        user = await make.user()
        product = await make.product(user)

        with pytest.raises(ValidationError) as exc_info:
            await self.service.create_store(db, user, "Summer Shop", [product.id])

        assert exc_info.value.field == "slug"


class TestUpdateStore:

    def setup_method(self):
        self.service = store_service

    @pytest.mark.asyncio
    async def test_kept_products_keep_their_prices(self, db, make):
        user = await make.user()
        kept = await make.product(user, title="Kept")
        dropped = await make.product(user, title="Dropped")
        added = await make.product(user, title="Added")
        store = await self.service.create_store(
            db, user, "Shop", [kept.id, dropped.id], store_type="MINISTORE"
        )
        custom = await pricing_service.set_store_price(db, user, store.id, kept.id, 4200)

        await self.service.update_store(
            db, user, store.id, "Shop", [added.id, kept.id], store_type="MINISTORE"
        )

        links = {
            l.product_id: l for l in (
                await db.execute(select(StoreProduct).where(StoreProduct.store_id == store.id))
            ).scalars().all()
        }
        assert set(links) == {kept.id, added.id}
        assert links[added.id].position == 0
        assert links[kept.id].position == 1
        kept_row = await db.get(StorePrice, custom.id)
        assert kept_row is not None
        assert kept_row.price_cents == 4200
        assert await _count(db, StorePrice) == 2

    @pytest.mark.asyncio
    async def test_update_foreign_store_is_404(self, db, make):
        owner = await make.user()
        intruder = await make.user()
        product = await make.product(owner)
        store = await make.store(owner, [product])
        own_product = await make.product(intruder)

        with pytest.raises(NotFoundError):
            await self.service.update_store(db, intruder, store.id, "Mine", [own_product.id])

    @pytest.mark.asyncio
    async def test_toggle_status(self, db, make):
        user = await make.user()
        store = await make.store(user)

        toggled = await self.service.toggle_store_status(db, user, store.id)
        assert toggled.status == "DRAFT"
        toggled = await self.service.toggle_store_status(db, user, store.id)
        assert toggled.status == "LIVE"


class TestChannelOperations:

    def setup_method(self):
        self.service = store_service

    @pytest.mark.asyncio
    async def test_attach_is_hidden_and_not_repeatable(self, db, make):
        user = await make.user()
        product = await make.product(user)
        store = await make.store(user)

        link = await self.service.attach_product(db, user, product.id, store.id)

        assert link.visibility == "HIDDEN"
        with pytest.raises(ValidationError):
            await self.service.attach_product(db, user, product.id, store.id)

    @pytest.mark.asyncio
    async def test_detach_removes_prices(self, db, make):
        user = await make.user()
        product = await make.product(user)
        store = await make.store(user, [product])
        await pricing_service.set_store_price(db, user, store.id, product.id, 1000)

        await self.service.detach_product(db, user, product.id, store.id)

        assert await _count(db, StoreProduct) == 0
        assert await _count(db, StorePrice) == 0

    @pytest.mark.asyncio
    async def test_delete_store_removes_children(self, db, make):
        user = await make.user()
        product = await make.product(user)
        store = await self.service.create_store(db, user, "Gone Soon", [product.id])

        await self.service.delete_store(db, user, store.id)

        assert await _count(db, StoreProduct) == 0
        assert await _count(db, StorePrice) == 0
        assert await self.service.list_stores(db, user) == []

    @pytest.mark.asyncio
    async def test_list_stores_counts_products(self, db, make):
        user = await make.user()
        first = await make.product(user)
        second = await make.product(user)
        await make.store(user, [first, second])

        stores = await self.service.list_stores(db, user)

        assert len(stores) == 1
        assert stores[0]["product_count"] == 2
