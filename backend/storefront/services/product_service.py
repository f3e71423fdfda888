"""
Storefront Backend: Product Service
=====================================

What:  Product CRUD scoped to the calling merchant.
Who:   /api/products routes; the Printify importer creates products through
       upsert_product as well.

Upsert contract:
    patch["id"] present → assert_product_owner first, then apply the patch.
    patch["id"] absent  → insert a new row with user_id = caller.
    In both cases owner/identity/timestamp keys in the patch are discarded
    (strip_owner_fields) and only whitelisted columns are written, so the
    persisted owner is always the caller. updated_at is bumped on every
    mutation.

Publishing:
    status READY requires validate_for_publish() to pass: a title, a
    description and at least one live variant with a positive price.
"""

import enum
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.auth import SessionUser
from storefront.exceptions import DatabaseError, StorefrontError, ValidationError
from storefront.models import Product, ProductCategory, ProductMedia, ProductTag, Variant
from storefront.models.common import ProductStatus, ProductType, utcnow
from storefront.schemas.product import (
    MediaResponse,
    ProductDetailResponse,
    ProductResponse,
)
from storefront.schemas.taxonomy import CategoryResponse, TagResponse
from storefront.services import ownership
from storefront.services.taxonomy_service import taxonomy_service
from storefront.services.variant_service import to_response as variant_to_response

logger = logging.getLogger(__name__)

PRODUCT_FIELDS = frozenset({
    "title",
    "description",
    "type",
    "status",
    "default_image_url",
    "weight_grams",
    "compare_at_price_cents",
    "brand_id",
    "external_provider",
    "external_id",
})


TITLE_MAX_LENGTH = 200
COPY_SUFFIX = " (Copy)"


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, enum.Enum) else value


def validate_for_publish(product: Product, variants: Sequence[Variant]) -> List[str]:
    """Return the list of problems blocking status READY (empty = publishable)."""
    problems: List[str] = []
    if not (product.title or "").strip():
        problems.append("Title is required")
    if not (product.description or "").strip():
        problems.append("Description is required")
    live = [v for v in variants if v.deleted_at is None]
    if not any((v.price_cents or 0) > 0 for v in live):
        problems.append("At least one variant with a price is required")
    return problems


class ProductService:
    """Stateless service; one module-level instance."""

    async def list_products(
        self,
        db: AsyncSession,
        user: SessionUser,
        status: Optional[str] = None,
        type: Optional[str] = None,
        category_ids: Optional[Sequence[uuid.UUID]] = None,
        tag_ids: Optional[Sequence[uuid.UUID]] = None,
        search: Optional[str] = None,
    ) -> List[Product]:
        """Caller's live products, most recently updated first."""
        query = select(Product).where(
            Product.user_id == user.id,
            Product.deleted_at.is_(None),
        )
        if status:
            query = query.where(Product.status == _plain(status))
        if type:
            query = query.where(Product.type == _plain(type))
        if category_ids:
            query = query.where(
                Product.id.in_(
                    select(ProductCategory.product_id).where(
                        ProductCategory.category_id.in_(list(category_ids))
                    )
                )
            )
        if tag_ids:
            query = query.where(
                Product.id.in_(
                    select(ProductTag.product_id).where(ProductTag.tag_id.in_(list(tag_ids)))
                )
            )
        if search and search.strip():
            pattern = f"%{search.strip()}%"
            query = query.where(
                or_(Product.title.ilike(pattern), Product.description.ilike(pattern))
            )

        try:
            result = await db.execute(query.order_by(Product.updated_at.desc()))
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error("Database error listing products: %s", str(e), exc_info=True)
            raise DatabaseError(message="Could not retrieve products. Please try again.")

    async def get_product(
        self, db: AsyncSession, user: SessionUser, product_id: uuid.UUID
    ) -> ProductDetailResponse:
        product = await ownership.assert_product_owner(db, product_id, user.id)
        variants = await self.live_variants(db, product.id)
        media = (
            await db.execute(
                select(ProductMedia)
                .where(ProductMedia.product_id == product.id)
                .order_by(ProductMedia.position)
            )
        ).scalars().all()
        categories = await taxonomy_service.product_categories(db, product.id)
        tags = await taxonomy_service.product_tags(db, product.id)

        base = ProductResponse.model_validate(product).model_dump()
        return ProductDetailResponse(
            **base,
            variants=[variant_to_response(v) for v in variants],
            media=[MediaResponse.model_validate(m) for m in media],
            categories=[CategoryResponse.model_validate(c) for c in categories],
            tags=[TagResponse.model_validate(t) for t in tags],
        )

    async def live_variants(self, db: AsyncSession, product_id: uuid.UUID) -> List[Variant]:
        result = await db.execute(
            select(Variant)
            .where(Variant.product_id == product_id, Variant.deleted_at.is_(None))
            .order_by(Variant.created_at, Variant.id)
        )
        return list(result.scalars().all())

    async def upsert_product(
        self, db: AsyncSession, user: SessionUser, patch: Mapping[str, Any]
    ) -> Product:
        """
        Create or update a product owned by the caller.

        Raises:
            NotFoundError: patch["id"] is not one of the caller's products,
                or brand_id is not one of the caller's brands
            ValidationError: missing title on create, or READY without
                passing publish validation
        """
        product_id = patch.get("id")
        values = {
            k: _plain(v)
            for k, v in ownership.strip_owner_fields(patch).items()
            if k in PRODUCT_FIELDS
        }

        try:
            if values.get("brand_id") is not None:
                await ownership.assert_brand_owner(db, values["brand_id"], user.id)

            if product_id is not None:
                product = await ownership.assert_product_owner(db, product_id, user.id)
                if "title" in values and not (values["title"] or "").strip():
                    raise ValidationError(message="Title is required", field="title")
            else:
                title = (values.get("title") or "").strip()
                if not title:
                    raise ValidationError(message="Title is required", field="title")
                product = Product(
                    user_id=user.id,
                    title=title,
                    type=values.get("type") or ProductType.OWN.value,
                    status=ProductStatus.DRAFT.value,
                )
                db.add(product)

            for key, value in values.items():
                if key == "status":
                    continue
                setattr(product, key, value.strip() if key == "title" else value)
            product.updated_at = utcnow()
            await db.flush()

            if values.get("status") is not None:
                await self._apply_status(db, product, values["status"])

            logger.info(
                "Product %s %s by user %s",
                product.id,
                "updated" if product_id is not None else "created",
                user.id,
            )
            return product
        except StorefrontError:
            raise
        except SQLAlchemyError as e:
            logger.error("Database error upserting product: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not save the product. Please try again.",
                context={"product_id": str(product_id) if product_id else None},
            )

    async def _apply_status(self, db: AsyncSession, product: Product, status: str) -> None:
        if status == ProductStatus.READY.value and product.status != ProductStatus.READY.value:
            problems = validate_for_publish(product, await self.live_variants(db, product.id))
            if problems:
                raise ValidationError(
                    message="Product is not ready: " + "; ".join(problems),
                    field="status",
                    context={"problems": problems},
                )
        product.status = status
        await db.flush()

    async def update_product_with_taxonomy(
        self,
        db: AsyncSession,
        user: SessionUser,
        product_id: uuid.UUID,
        patch: Mapping[str, Any],
        category_ids: Optional[Sequence[uuid.UUID]] = None,
        tag_ids: Optional[Sequence[uuid.UUID]] = None,
    ) -> Product:
        """
        Field update plus category/tag re-linking.

        All writes happen in the caller's transaction (one request session);
        any failure propagates and get_db_session rolls everything back.
        """
        product = await self.upsert_product(db, user, {**patch, "id": product_id})
        if category_ids is not None:
            await taxonomy_service.attach_categories(db, user, product.id, category_ids)
        if tag_ids is not None:
            await taxonomy_service.attach_tags(db, user, product.id, tag_ids)
        return product

    async def delete_product(
        self, db: AsyncSession, user: SessionUser, product_id: uuid.UUID
    ) -> None:
        """Soft delete: the row stays for historical orders but disappears everywhere else."""
        product = await ownership.assert_product_owner(db, product_id, user.id)
        now: datetime = utcnow()
        product.deleted_at = now
        product.updated_at = now
        await db.flush()
        logger.info("Product %s soft-deleted by user %s", product.id, user.id)

    async def duplicate_product(
        self, db: AsyncSession, user: SessionUser, product_id: uuid.UUID
    ) -> Product:
        """
        Copy a product as "<title> (Copy)" with its live variants.

        The copy is always a DRAFT and is not linked to any store or external
        provider, so it never counts as a second Printify import.
        """
        source = await ownership.assert_product_owner(db, product_id, user.id)
        title = source.title[: TITLE_MAX_LENGTH - len(COPY_SUFFIX)] + COPY_SUFFIX

        try:
            copy = Product(
                user_id=user.id,
                title=title,
                description=source.description,
                type=source.type,
                status=ProductStatus.DRAFT.value,
                default_image_url=source.default_image_url,
                weight_grams=source.weight_grams,
                compare_at_price_cents=source.compare_at_price_cents,
                brand_id=source.brand_id,
            )
            db.add(copy)
            await db.flush()

            variants = await self.live_variants(db, source.id)
            for variant in variants:
                db.add(Variant(
                    product_id=copy.id,
                    sku=variant.sku,
                    options_json=dict(variant.options_json) if variant.options_json else None,
                    cost_cents=variant.cost_cents,
                    price_cents=variant.price_cents,
                ))
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error duplicating product: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not duplicate the product. Please try again.",
                context={"product_id": str(product_id)},
            )

        logger.info(
            "Product %s duplicated as %s (%d variants) by user %s",
            source.id, copy.id, len(variants), user.id,
        )
        return copy

    def to_response(self, product: Product) -> Dict[str, Any]:
        return ProductResponse.model_validate(product).model_dump(mode="json")


product_service = ProductService()
