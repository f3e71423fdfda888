"""
Storefront Backend: Store Service
===================================

What:  Sales channels (stores) and which products they carry.
Who:   /api/stores routes and the per-product channel routes
       (/api/products/{id}/attach-store etc).

Store rules (create and update):
    - name is required after trimming
    - at least one product; a HOTSITE carries exactly one
    - slug defaults to slugify(name) and is unique across all merchants
    - every product must be the caller's, READY and not deleted
Products listed on the form become VISIBLE at their list position and get a
base price row through pricing_service.ensure_price_row.

Child rows (store_products, store_prices) are removed explicitly on detach,
update and delete so the behaviour does not depend on database FK cascades.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.auth import SessionUser
from storefront.exceptions import (
    DatabaseError,
    NotFoundError,
    StorefrontError,
    ValidationError,
)
from storefront.models import Product, Store, StorePrice, StoreProduct
from storefront.models.common import ProductStatus, StoreStatus, StoreType, Visibility, utcnow
from storefront.schemas.store import StoreDetailResponse, StoreProductResponse, StoreResponse
from storefront.services import ownership
from storefront.services.pricing_service import pricing_service
from storefront.services.taxonomy_service import slugify

logger = logging.getLogger(__name__)


def _plain(value: Any) -> Any:
    return getattr(value, "value", value)


class StoreService:

    # ── Reads ─────────────────────────────────────────────────────────────

    async def list_stores(self, db: AsyncSession, user: SessionUser) -> List[Dict[str, Any]]:
        """Caller's stores, newest first, each with its product count."""
        counts = (
            select(StoreProduct.store_id, func.count().label("product_count"))
            .group_by(StoreProduct.store_id)
            .subquery()
        )
        result = await db.execute(
            select(Store, func.coalesce(counts.c.product_count, 0))
            .outerjoin(counts, counts.c.store_id == Store.id)
            .where(Store.user_id == user.id)
            .order_by(Store.created_at.desc())
        )
        return [
            {**StoreResponse.model_validate(store).model_dump(mode="json"), "product_count": count}
            for store, count in result.all()
        ]

    async def _store_products(self, db: AsyncSession, store_id: uuid.UUID) -> List[StoreProduct]:
        result = await db.execute(
            select(StoreProduct)
            .where(StoreProduct.store_id == store_id)
            .order_by(StoreProduct.position, StoreProduct.created_at)
        )
        return list(result.scalars().all())

    async def get_store(
        self, db: AsyncSession, user: SessionUser, store_id: uuid.UUID
    ) -> StoreDetailResponse:
        store = await ownership.assert_store_owner(db, store_id, user.id)
        links = await self._store_products(db, store.id)
        return StoreDetailResponse(
            **StoreResponse.model_validate(store).model_dump(),
            products=[StoreProductResponse.model_validate(sp) for sp in links],
        )

    # ── Validation ────────────────────────────────────────────────────────

    async def _validate_form(
        self,
        db: AsyncSession,
        user: SessionUser,
        name: Optional[str],
        store_type: str,
        product_ids: Sequence[uuid.UUID],
    ) -> List[uuid.UUID]:
        if not (name or "").strip():
            raise ValidationError(message="Store name is required", field="name")
        ids = list(dict.fromkeys(product_ids))
        if not ids:
            raise ValidationError(message="At least one product is required", field="product_ids")
        if store_type == StoreType.HOTSITE.value and len(ids) != 1:
            raise ValidationError(
                message="Hotsite must have exactly one product", field="product_ids"
            )

        ready = (
            await db.execute(
                select(func.count())
                .select_from(Product)
                .where(
                    Product.id.in_(ids),
                    Product.user_id == user.id,
                    Product.status == ProductStatus.READY.value,
                    Product.deleted_at.is_(None),
                )
            )
        ).scalar_one()
        if ready != len(ids):
            raise ValidationError(
                message="Some products are invalid or not ready", field="product_ids"
            )
        return ids

    async def _slug_taken(
        self, db: AsyncSession, slug: str, exclude_id: Optional[uuid.UUID] = None
    ) -> bool:
        query = select(Store.id).where(Store.slug == slug)
        if exclude_id is not None:
            query = query.where(Store.id != exclude_id)
        return (await db.execute(query)).first() is not None

    # ── Writes ────────────────────────────────────────────────────────────

    async def _link_products(
        self, db: AsyncSession, store: Store, product_ids: Sequence[uuid.UUID]
    ) -> None:
        """Make the store carry exactly these products, in this order."""
        existing = {sp.product_id: sp for sp in await self._store_products(db, store.id)}

        dropped = [sp.id for pid, sp in existing.items() if pid not in product_ids]
        if dropped:
            await db.execute(delete(StorePrice).where(StorePrice.store_product_id.in_(dropped)))
            await db.execute(delete(StoreProduct).where(StoreProduct.id.in_(dropped)))

        for position, product_id in enumerate(product_ids):
            link = existing.get(product_id)
            if link is None:
                link = StoreProduct(store_id=store.id, product_id=product_id)
                db.add(link)
            link.position = position
            link.visibility = Visibility.VISIBLE.value
            await db.flush()
            await pricing_service.ensure_price_row(db, link.id)

    async def create_store(
        self,
        db: AsyncSession,
        user: SessionUser,
        name: Optional[str],
        product_ids: Sequence[uuid.UUID],
        store_type: str = StoreType.HOTSITE.value,
        status: str = StoreStatus.DRAFT.value,
        slug: Optional[str] = None,
        headline: Optional[str] = None,
        subheadline: Optional[str] = None,
        hero_image_url: Optional[str] = None,
    ) -> Store:
        store_type, status = _plain(store_type), _plain(status)
        ids = await self._validate_form(db, user, name, store_type, product_ids)
        slug = slugify(slug or name)
        if not slug:
            raise ValidationError(message="Store slug is required", field="slug")
        if await self._slug_taken(db, slug):
            raise ValidationError(
                message="Slug already taken. Please choose a different name.", field="slug"
            )

        try:
            store = Store(
                user_id=user.id,
                name=name.strip(),
                slug=slug,
                type=store_type,
                status=status,
                headline=headline or None,
                subheadline=subheadline or None,
                hero_image_url=hero_image_url or None,
            )
            db.add(store)
            await db.flush()
            await self._link_products(db, store, ids)
            logger.info("Store %s (%s) created by user %s", store.id, slug, user.id)
            return store
        except StorefrontError:
            raise
        except SQLAlchemyError as e:
            logger.error("Database error creating store: %s", str(e), exc_info=True)
            raise DatabaseError(message="Failed to create store")

    async def update_store(
        self,
        db: AsyncSession,
        user: SessionUser,
        store_id: uuid.UUID,
        name: Optional[str],
        product_ids: Sequence[uuid.UUID],
        store_type: str = StoreType.HOTSITE.value,
        status: str = StoreStatus.DRAFT.value,
        slug: Optional[str] = None,
        headline: Optional[str] = None,
        subheadline: Optional[str] = None,
        hero_image_url: Optional[str] = None,
    ) -> Store:
        """Full update. Products kept on the form keep their price rows."""
        store = await ownership.assert_store_owner(db, store_id, user.id)
        store_type, status = _plain(store_type), _plain(status)
        ids = await self._validate_form(db, user, name, store_type, product_ids)
        new_slug = slugify(slug) if slug else store.slug
        if not new_slug:
            raise ValidationError(message="Store slug is required", field="slug")
        if new_slug != store.slug and await self._slug_taken(db, new_slug, exclude_id=store.id):
            raise ValidationError(message="Slug already taken", field="slug")

        try:
            store.name = name.strip()
            store.slug = new_slug
            store.type = store_type
            store.status = status
            store.headline = headline or None
            store.subheadline = subheadline or None
            store.hero_image_url = hero_image_url or None
            store.updated_at = utcnow()
            await self._link_products(db, store, ids)
            await db.flush()
            return store
        except StorefrontError:
            raise
        except SQLAlchemyError as e:
            logger.error("Database error updating store %s: %s", store_id, str(e), exc_info=True)
            raise DatabaseError(message="Failed to update store")

    async def delete_store(
        self, db: AsyncSession, user: SessionUser, store_id: uuid.UUID
    ) -> None:
        store = await ownership.assert_store_owner(db, store_id, user.id)
        link_ids = select(StoreProduct.id).where(StoreProduct.store_id == store.id)
        await db.execute(delete(StorePrice).where(StorePrice.store_product_id.in_(link_ids)))
        await db.execute(delete(StoreProduct).where(StoreProduct.store_id == store.id))
        await db.delete(store)
        await db.flush()
        logger.info("Store %s deleted by user %s", store_id, user.id)

    async def toggle_store_status(
        self, db: AsyncSession, user: SessionUser, store_id: uuid.UUID
    ) -> Store:
        """DRAFT ↔ LIVE."""
        store = await ownership.assert_store_owner(db, store_id, user.id)
        store.status = (
            StoreStatus.DRAFT.value
            if store.status == StoreStatus.LIVE.value
            else StoreStatus.LIVE.value
        )
        store.updated_at = utcnow()
        await db.flush()
        return store

    # ── Per-product channel operations ────────────────────────────────────

    async def _link(
        self, db: AsyncSession, store_id: uuid.UUID, product_id: uuid.UUID
    ) -> Optional[StoreProduct]:
        result = await db.execute(
            select(StoreProduct).where(
                StoreProduct.store_id == store_id, StoreProduct.product_id == product_id
            )
        )
        return result.scalar_one_or_none()

    async def attach_product(
        self,
        db: AsyncSession,
        user: SessionUser,
        product_id: uuid.UUID,
        store_id: uuid.UUID,
    ) -> StoreProduct:
        """Attach hidden at position 0; the merchant prices it before showing it."""
        product = await ownership.assert_product_owner(db, product_id, user.id)
        store = await ownership.assert_store_owner(db, store_id, user.id)
        if await self._link(db, store.id, product.id) is not None:
            raise ValidationError(message="Already attached", field="store_id")

        link = StoreProduct(
            store_id=store.id,
            product_id=product.id,
            visibility=Visibility.HIDDEN.value,
            position=0,
        )
        db.add(link)
        await db.flush()
        return link

    async def detach_product(
        self,
        db: AsyncSession,
        user: SessionUser,
        product_id: uuid.UUID,
        store_id: uuid.UUID,
    ) -> None:
        product = await ownership.assert_product_owner(db, product_id, user.id)
        store = await ownership.assert_store_owner(db, store_id, user.id)
        link = await self._link(db, store.id, product.id)
        if link is None:
            return
        await db.execute(delete(StorePrice).where(StorePrice.store_product_id == link.id))
        await db.delete(link)
        await db.flush()

    async def set_visibility(
        self,
        db: AsyncSession,
        user: SessionUser,
        product_id: uuid.UUID,
        store_id: uuid.UUID,
        visibility: str,
    ) -> StoreProduct:
        """
        Raises:
            NotFoundError: product, store or the attachment is not the caller's
            ValidationError: VISIBLE requested while the effective price is 0
        """
        visibility = _plain(visibility)
        product = await ownership.assert_product_owner(db, product_id, user.id)
        store = await ownership.assert_store_owner(db, store_id, user.id)
        link = await self._link(db, store.id, product.id)
        if link is None:
            raise NotFoundError(resource="store product")

        if visibility == Visibility.VISIBLE.value and not await pricing_service.can_set_visible(
            db, link
        ):
            raise ValidationError(
                message="Cannot set to VISIBLE: price must be > 0", field="visibility"
            )
        link.visibility = visibility
        await db.flush()
        return link

    async def list_store_products_for_product(
        self, db: AsyncSession, user: SessionUser, product_id: uuid.UUID
    ) -> List[Dict[str, Any]]:
        """Stores this product is attached to, with visibility and store name."""
        product = await ownership.assert_product_owner(db, product_id, user.id)
        result = await db.execute(
            select(StoreProduct, Store)
            .join(Store, Store.id == StoreProduct.store_id)
            .where(StoreProduct.product_id == product.id, Store.user_id == user.id)
            .order_by(Store.name)
        )
        return [
            {
                **StoreProductResponse.model_validate(link).model_dump(mode="json"),
                "store_name": store.name,
                "store_slug": store.slug,
                "store_status": store.status,
            }
            for link, store in result.all()
        ]


store_service = StoreService()
