"""
Storefront Backend: Ownership Checks
======================================

What:  Verify-then-mutate guards for every owned resource.
Why:   Every read or write of merchant data goes through one of these before
       touching the row, so tenant isolation lives in one place.
How:   Each check selects the row by id AND owner in a single query (joining
       up to the root owner for child resources). A miss raises NotFoundError
       whether the row is absent or belongs to someone else, so a foreign
       caller cannot learn that an id exists.

Ownership graph:
    users ─┬─ products ─┬─ variants
           │            ├─ product_options ── product_option_values
           │            └─ product_media
           ├─ stores ─── store_products ── store_prices
           ├─ categories, tags, brands
           ├─ orders
           └─ payout_accounts, printify_connections (one per user)
"""

import uuid
from typing import Any, Dict, Iterable, Mapping, Sequence, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.exceptions import NotFoundError
from storefront.models import (
    Brand,
    Category,
    Order,
    Product,
    ProductMedia,
    ProductOption,
    Store,
    StorePrice,
    StoreProduct,
    Tag,
    Variant,
)

# Keys a client may send that must never be applied to a row
PROTECTED_FIELDS = frozenset({
    "id",
    "user_id",
    "userId",
    "owner_id",
    "ownerId",
    "created_at",
    "createdAt",
    "updated_at",
    "updatedAt",
    "deleted_at",
    "deletedAt",
})


def strip_owner_fields(patch: Mapping[str, Any]) -> Dict[str, Any]:
    """Return a copy of a patch without identity, owner or timestamp keys."""
    return {k: v for k, v in patch.items() if k not in PROTECTED_FIELDS}


# ══════════════════════════════════════════════════════════════════════════
# Root-owned resources
# ══════════════════════════════════════════════════════════════════════════

async def assert_product_owner(
    db: AsyncSession, product_id: uuid.UUID, user_id: uuid.UUID
) -> Product:
    result = await db.execute(
        select(Product).where(
            Product.id == product_id,
            Product.user_id == user_id,
            Product.deleted_at.is_(None),
        )
    )
    product = result.scalar_one_or_none()
    if product is None:
        raise NotFoundError(resource="product", resource_id=str(product_id))
    return product


async def assert_store_owner(
    db: AsyncSession, store_id: uuid.UUID, user_id: uuid.UUID
) -> Store:
    result = await db.execute(
        select(Store).where(Store.id == store_id, Store.user_id == user_id)
    )
    store = result.scalar_one_or_none()
    if store is None:
        raise NotFoundError(resource="store", resource_id=str(store_id))
    return store


async def assert_category_owner(
    db: AsyncSession, category_id: uuid.UUID, user_id: uuid.UUID
) -> Category:
    result = await db.execute(
        select(Category).where(Category.id == category_id, Category.user_id == user_id)
    )
    category = result.scalar_one_or_none()
    if category is None:
        raise NotFoundError(resource="category", resource_id=str(category_id))
    return category


async def assert_tag_owner(
    db: AsyncSession, tag_id: uuid.UUID, user_id: uuid.UUID
) -> Tag:
    result = await db.execute(select(Tag).where(Tag.id == tag_id, Tag.user_id == user_id))
    tag = result.scalar_one_or_none()
    if tag is None:
        raise NotFoundError(resource="tag", resource_id=str(tag_id))
    return tag


async def assert_brand_owner(
    db: AsyncSession, brand_id: uuid.UUID, user_id: uuid.UUID
) -> Brand:
    result = await db.execute(
        select(Brand).where(Brand.id == brand_id, Brand.user_id == user_id)
    )
    brand = result.scalar_one_or_none()
    if brand is None:
        raise NotFoundError(resource="brand", resource_id=str(brand_id))
    return brand


async def assert_order_owner(
    db: AsyncSession, order_id: uuid.UUID, user_id: uuid.UUID
) -> Order:
    result = await db.execute(
        select(Order).where(Order.id == order_id, Order.user_id == user_id)
    )
    order = result.scalar_one_or_none()
    if order is None:
        raise NotFoundError(resource="order", resource_id=str(order_id))
    return order


# ══════════════════════════════════════════════════════════════════════════
# Transitively-owned resources
# ══════════════════════════════════════════════════════════════════════════

async def assert_variant_owner(
    db: AsyncSession,
    variant_id: uuid.UUID,
    user_id: uuid.UUID,
    product_id: uuid.UUID | None = None,
) -> Variant:
    """
    Variant → product → owner. When product_id is given the variant must also
    belong to that product (nested routes /products/{id}/variants/{vid}).
    """
    query = (
        select(Variant)
        .join(Product, Product.id == Variant.product_id)
        .where(
            Variant.id == variant_id,
            Variant.deleted_at.is_(None),
            Product.user_id == user_id,
            Product.deleted_at.is_(None),
        )
    )
    if product_id is not None:
        query = query.where(Variant.product_id == product_id)
    variant = (await db.execute(query)).scalar_one_or_none()
    if variant is None:
        raise NotFoundError(resource="variant", resource_id=str(variant_id))
    return variant


async def assert_option_owner(
    db: AsyncSession,
    option_id: uuid.UUID,
    product_id: uuid.UUID,
    user_id: uuid.UUID,
) -> ProductOption:
    result = await db.execute(
        select(ProductOption)
        .join(Product, Product.id == ProductOption.product_id)
        .where(
            ProductOption.id == option_id,
            ProductOption.product_id == product_id,
            Product.user_id == user_id,
            Product.deleted_at.is_(None),
        )
    )
    option = result.scalar_one_or_none()
    if option is None:
        raise NotFoundError(resource="option", resource_id=str(option_id))
    return option


async def assert_media_owner(
    db: AsyncSession,
    media_id: uuid.UUID,
    product_id: uuid.UUID,
    user_id: uuid.UUID,
) -> ProductMedia:
    result = await db.execute(
        select(ProductMedia)
        .join(Product, Product.id == ProductMedia.product_id)
        .where(
            ProductMedia.id == media_id,
            ProductMedia.product_id == product_id,
            Product.user_id == user_id,
            Product.deleted_at.is_(None),
        )
    )
    media = result.scalar_one_or_none()
    if media is None:
        raise NotFoundError(resource="media", resource_id=str(media_id))
    return media


async def assert_store_product_owner(
    db: AsyncSession, store_product_id: uuid.UUID, user_id: uuid.UUID
) -> Tuple[StoreProduct, Store]:
    result = await db.execute(
        select(StoreProduct, Store)
        .join(Store, Store.id == StoreProduct.store_id)
        .where(StoreProduct.id == store_product_id, Store.user_id == user_id)
    )
    row = result.one_or_none()
    if row is None:
        raise NotFoundError(resource="store product", resource_id=str(store_product_id))
    return row[0], row[1]


async def assert_store_price_owner(
    db: AsyncSession, store_price_id: uuid.UUID, user_id: uuid.UUID
) -> Tuple[StorePrice, StoreProduct, Store]:
    """Price → store product → store → owner."""
    result = await db.execute(
        select(StorePrice, StoreProduct, Store)
        .join(StoreProduct, StoreProduct.id == StorePrice.store_product_id)
        .join(Store, Store.id == StoreProduct.store_id)
        .where(StorePrice.id == store_price_id, Store.user_id == user_id)
    )
    row = result.one_or_none()
    if row is None:
        raise NotFoundError(resource="price record", resource_id=str(store_price_id))
    return row[0], row[1], row[2]


# ══════════════════════════════════════════════════════════════════════════
# Bulk checks
# ══════════════════════════════════════════════════════════════════════════

async def assert_all_owned(
    db: AsyncSession,
    model: Any,
    ids: Iterable[uuid.UUID],
    user_id: uuid.UUID,
    resource: str,
) -> Sequence[uuid.UUID]:
    """
    Every id must be a row of `model` owned by user_id (model must carry
    user_id). Duplicates are collapsed; an empty input passes.
    """
    unique_ids = list(dict.fromkeys(ids))
    if not unique_ids:
        return unique_ids
    count = (
        await db.execute(
            select(func.count())
            .select_from(model)
            .where(model.id.in_(unique_ids), model.user_id == user_id)
        )
    ).scalar_one()
    if count != len(unique_ids):
        raise NotFoundError(resource=resource)
    return unique_ids
