"""
Storefront Backend: Taxonomy Service
======================================

What:  Categories, tags and brands: per-merchant labels with URL slugs.
How:   Categories and tags share one implementation parameterized by model
       (both are (user_id, name, slug) rows linked to products through a join
       table). Brands have the same shape but link via products.brand_id.

Rules:
    - Names are trimmed; an empty result is a ValidationError and nothing is
      written.
    - (user_id, slug) is unique. Inline-create returns the existing row for a
      duplicate slug instead of failing, so the editor's "type a new tag"
      flow is idempotent.
    - Updating by id checks ownership first; renaming onto another row's
      slug is a ConflictError.
"""

import logging
import re
import uuid
from typing import Any, List, Optional, Sequence, Type, Union

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.auth import SessionUser
from storefront.exceptions import ConflictError, DatabaseError, StorefrontError, ValidationError
from storefront.models import Brand, Category, Product, ProductCategory, ProductTag, Tag
from storefront.services import ownership

logger = logging.getLogger(__name__)

TaxonomyModel = Union[Type[Category], Type[Tag], Type[Brand]]

_NON_WORD = re.compile(r"[^\w\s-]")
_SEPARATORS = re.compile(r"[\s_-]+")


def slugify(name: str) -> str:
    """
    "Summer Sale 2024!" → "summer-sale-2024"

    Lower-cases, drops punctuation, collapses whitespace/underscores/dashes
    into single dashes and trims dashes from both ends.
    """
    slug = name.lower().strip()
    slug = _NON_WORD.sub("", slug)
    slug = _SEPARATORS.sub("-", slug)
    return slug.strip("-")


def _clean_name(name: Optional[str], label: str) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError(message=f"{label} name is required", field="name")
    slug = slugify(cleaned)
    if not slug:
        raise ValidationError(
            message=f"{label} name must contain letters or numbers", field="name"
        )
    return cleaned


_ASSERTS = {
    Category: ownership.assert_category_owner,
    Tag: ownership.assert_tag_owner,
    Brand: ownership.assert_brand_owner,
}

_LABELS = {Category: "Category", Tag: "Tag", Brand: "Brand"}


class TaxonomyService:
    """Stateless; every method takes the session and caller explicitly."""

    async def list_items(
        self, db: AsyncSession, model: TaxonomyModel, user: SessionUser
    ) -> List[Any]:
        result = await db.execute(
            select(model).where(model.user_id == user.id).order_by(model.name)
        )
        return list(result.scalars().all())

    async def upsert(
        self,
        db: AsyncSession,
        model: TaxonomyModel,
        user: SessionUser,
        name: Optional[str],
        item_id: Optional[uuid.UUID] = None,
    ) -> Any:
        """
        Create (item_id absent) or rename (item_id present) a label.

        Creation with a slug that already exists for this user returns the
        existing row unchanged.
        """
        label = _LABELS[model]
        cleaned = _clean_name(name, label)
        slug = slugify(cleaned)

        try:
            if item_id is not None:
                item = await _ASSERTS[model](db, item_id, user.id)
                clash = await self._find_by_slug(db, model, user.id, slug)
                if clash is not None and clash.id != item.id:
                    raise ConflictError(message=f"{label} '{cleaned}' already exists")
                item.name = cleaned
                item.slug = slug
                await db.flush()
                return item

            existing = await self._find_by_slug(db, model, user.id, slug)
            if existing is not None:
                return existing

            item = model(user_id=user.id, name=cleaned, slug=slug)
            db.add(item)
            await db.flush()
            logger.info("%s created: %s (%s)", label, item.id, slug)
            return item
        except StorefrontError:
            raise
        except SQLAlchemyError as e:
            logger.error("Database error upserting %s: %s", label, str(e))
            raise DatabaseError(context={"model": label, "error_type": type(e).__name__})

    async def delete(
        self, db: AsyncSession, model: TaxonomyModel, user: SessionUser, item_id: uuid.UUID
    ) -> None:
        item = await _ASSERTS[model](db, item_id, user.id)
        if model is Category:
            await db.execute(delete(ProductCategory).where(ProductCategory.category_id == item.id))
        elif model is Tag:
            await db.execute(delete(ProductTag).where(ProductTag.tag_id == item.id))
        else:
            await db.execute(
                update(Product)
                .where(Product.brand_id == item.id, Product.user_id == user.id)
                .values(brand_id=None)
            )
        await db.delete(item)
        await db.flush()
        logger.info("%s deleted: %s", _LABELS[model], item_id)

    async def _find_by_slug(
        self, db: AsyncSession, model: TaxonomyModel, user_id: uuid.UUID, slug: str
    ) -> Optional[Any]:
        result = await db.execute(
            select(model).where(model.user_id == user_id, model.slug == slug)
        )
        return result.scalar_one_or_none()

    # ── Product links ─────────────────────────────────────────────────────

    async def attach_categories(
        self,
        db: AsyncSession,
        user: SessionUser,
        product_id: uuid.UUID,
        category_ids: Sequence[uuid.UUID],
    ) -> None:
        """Replace the product's category links. Every id must be the caller's."""
        await ownership.assert_product_owner(db, product_id, user.id)
        ids = await ownership.assert_all_owned(db, Category, category_ids, user.id, "category")
        await db.execute(delete(ProductCategory).where(ProductCategory.product_id == product_id))
        db.add_all([ProductCategory(product_id=product_id, category_id=cid) for cid in ids])
        await db.flush()

    async def attach_tags(
        self,
        db: AsyncSession,
        user: SessionUser,
        product_id: uuid.UUID,
        tag_ids: Sequence[uuid.UUID],
    ) -> None:
        await ownership.assert_product_owner(db, product_id, user.id)
        ids = await ownership.assert_all_owned(db, Tag, tag_ids, user.id, "tag")
        await db.execute(delete(ProductTag).where(ProductTag.product_id == product_id))
        db.add_all([ProductTag(product_id=product_id, tag_id=tid) for tid in ids])
        await db.flush()

    async def product_categories(
        self, db: AsyncSession, product_id: uuid.UUID
    ) -> List[Category]:
        result = await db.execute(
            select(Category)
            .join(ProductCategory, ProductCategory.category_id == Category.id)
            .where(ProductCategory.product_id == product_id)
            .order_by(Category.name)
        )
        return list(result.scalars().all())

    async def product_tags(self, db: AsyncSession, product_id: uuid.UUID) -> List[Tag]:
        result = await db.execute(
            select(Tag)
            .join(ProductTag, ProductTag.tag_id == Tag.id)
            .where(ProductTag.product_id == product_id)
            .order_by(Tag.name)
        )
        return list(result.scalars().all())


taxonomy_service = TaxonomyService()
