"""
Storefront Backend: Variant Service
=====================================

What:  Variant CRUD, bulk edits and generation from option groups.
Who:   /api/products/{id}/variants routes; store pricing reads the first live
       variant's price as the default store price.

Ownership is always checked through the parent product (variant → product →
user). Deletes are soft; the SKU is released on delete so it can be reused
by a replacement variant.

Generation:
    Option groups {"Size": [S, M], "Color": [Red]} expand to the cartesian
    product [{"Size": S, "Color": Red}, {"Size": M, "Color": Red}]. Groups
    with no values are skipped, and combinations that already exist as live
    variants are not recreated.
"""

import itertools
import logging
import uuid
from typing import Any, Dict, List, Mapping, Optional, Sequence, Set

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.auth import SessionUser
from storefront.exceptions import (
    ConflictError,
    DatabaseError,
    NotFoundError,
    StorefrontError,
)
from storefront.models import Product, Variant
from storefront.models.common import utcnow
from storefront.schemas.product import VariantResponse
from storefront.services import ownership
from storefront.services.option_service import option_service

logger = logging.getLogger(__name__)

VARIANT_FIELDS = frozenset({"sku", "options_json", "cost_cents", "price_cents", "external_id"})


# ══════════════════════════════════════════════════════════════════════════
# Pure helpers
# ══════════════════════════════════════════════════════════════════════════

def generate_combinations(options: Mapping[str, Sequence[str]]) -> List[Dict[str, str]]:
    """Cartesian product of option values, preserving group order."""
    groups = [(name, list(values)) for name, values in options.items() if values]
    if not groups:
        return []
    names = [name for name, _ in groups]
    return [
        dict(zip(names, combo))
        for combo in itertools.product(*(values for _, values in groups))
    ]


def generate_sku(base: Optional[str], option_values: Mapping[str, str]) -> str:
    """
    "TEE", {"Size": "Medium", "Color": "Red"} → "TEE-MED-RED"

    Falls back to "VAR" when no base is given.
    """
    parts = [str(value)[:3].upper() for value in option_values.values()]
    return "-".join([base or "VAR", *parts])


def format_option_values(option_values: Optional[Mapping[str, str]]) -> str:
    """{"Size": "M", "Color": "Red"} → 'Size: M / Color: Red'"""
    return " / ".join(f"{name}: {value}" for name, value in (option_values or {}).items())


def option_values_equal(a: Optional[Mapping[str, str]], b: Optional[Mapping[str, str]]) -> bool:
    a = dict(a or {})
    b = dict(b or {})
    return a.keys() == b.keys() and all(a[k] == b[k] for k in a)


def to_response(variant: Variant) -> VariantResponse:
    payload = VariantResponse.model_validate(variant)
    if variant.options_json:
        payload.label = format_option_values(variant.options_json)
    return payload


# ══════════════════════════════════════════════════════════════════════════
# Service
# ══════════════════════════════════════════════════════════════════════════

class VariantService:

    async def list_variants(
        self, db: AsyncSession, user: SessionUser, product_id: uuid.UUID
    ) -> List[Variant]:
        await ownership.assert_product_owner(db, product_id, user.id)
        return await self._live(db, product_id)

    async def _live(self, db: AsyncSession, product_id: uuid.UUID) -> List[Variant]:
        result = await db.execute(
            select(Variant)
            .where(Variant.product_id == product_id, Variant.deleted_at.is_(None))
            .order_by(Variant.created_at, Variant.id)
        )
        return list(result.scalars().all())

    async def _check_sku(
        self,
        db: AsyncSession,
        product_id: uuid.UUID,
        sku: Optional[str],
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        if not sku:
            return
        query = select(Variant.id).where(Variant.product_id == product_id, Variant.sku == sku)
        if exclude_id is not None:
            query = query.where(Variant.id != exclude_id)
        if (await db.execute(query)).first() is not None:
            raise ConflictError(message=f"SKU '{sku}' is already used by another variant")

    async def upsert_variant(
        self,
        db: AsyncSession,
        user: SessionUser,
        product_id: uuid.UUID,
        patch: Mapping[str, Any],
    ) -> Variant:
        """
        Create (no id) or update (id) a variant of one of the caller's products.

        Product ownership is verified before anything else; an id that is not
        a live variant of that product is a 404.
        """
        variant_id = patch.get("id")
        values = {
            k: v for k, v in ownership.strip_owner_fields(patch).items() if k in VARIANT_FIELDS
        }

        try:
            product = await ownership.assert_product_owner(db, product_id, user.id)
            if variant_id is not None:
                variant = await ownership.assert_variant_owner(
                    db, variant_id, user.id, product_id=product.id
                )
            else:
                variant = Variant(product_id=product.id)
                db.add(variant)

            if "sku" in values:
                await self._check_sku(db, product.id, values["sku"], exclude_id=variant_id)
            for key, value in values.items():
                setattr(variant, key, value)
            variant.updated_at = utcnow()
            product.updated_at = utcnow()
            await db.flush()
            return variant
        except StorefrontError:
            raise
        except SQLAlchemyError as e:
            logger.error("Database error saving variant: %s", str(e), exc_info=True)
            raise DatabaseError(message="Could not save the variant. Please try again.")

    async def delete_variant(
        self,
        db: AsyncSession,
        user: SessionUser,
        variant_id: uuid.UUID,
        product_id: Optional[uuid.UUID] = None,
    ) -> None:
        variant = await ownership.assert_variant_owner(db, variant_id, user.id, product_id=product_id)
        now = utcnow()
        variant.deleted_at = now
        variant.updated_at = now
        variant.sku = None
        await db.flush()
        logger.info("Variant %s soft-deleted by user %s", variant.id, user.id)

    async def bulk_update(
        self,
        db: AsyncSession,
        user: SessionUser,
        product_id: uuid.UUID,
        items: Sequence[Mapping[str, Any]],
    ) -> List[Variant]:
        """
        Apply sku/cost/price edits to many variants at once.

        Every id must be a live variant of this product; otherwise nothing is
        changed and the call is a 404.
        """
        await ownership.assert_product_owner(db, product_id, user.id)
        ids = [item["id"] for item in items]
        result = await db.execute(
            select(Variant).where(
                Variant.id.in_(ids),
                Variant.product_id == product_id,
                Variant.deleted_at.is_(None),
            )
        )
        by_id = {v.id: v for v in result.scalars().all()}
        if len(by_id) != len(set(ids)):
            raise NotFoundError(resource="variant")

        now = utcnow()
        for item in items:
            variant = by_id[item["id"]]
            for key in ("sku", "cost_cents", "price_cents"):
                if key in item:
                    if key == "sku":
                        await self._check_sku(db, product_id, item[key], exclude_id=variant.id)
                    setattr(variant, key, item[key])
            variant.updated_at = now
        await db.flush()
        return [by_id[i] for i in dict.fromkeys(ids)]

    async def generate_variants(
        self,
        db: AsyncSession,
        user: SessionUser,
        product_id: uuid.UUID,
        base_sku: Optional[str] = None,
        price_cents: Optional[int] = None,
    ) -> List[Variant]:
        """Create one variant per missing option combination; returns the new ones."""
        product: Product = await ownership.assert_product_owner(db, product_id, user.id)
        options = await option_service.option_map(db, product.id)
        combos = generate_combinations(options)
        existing = await self._live(db, product.id)

        taken_skus: Set[str] = {
            sku for (sku,) in (
                await db.execute(select(Variant.sku).where(Variant.product_id == product.id))
            ).all() if sku
        }

        created: List[Variant] = []
        for combo in combos:
            if any(option_values_equal(v.options_json, combo) for v in existing):
                continue
            sku = generate_sku(base_sku, combo)
            candidate, n = sku, 2
            while candidate in taken_skus:
                candidate = f"{sku}-{n}"
                n += 1
            taken_skus.add(candidate)

            variant = Variant(
                product_id=product.id,
                sku=candidate,
                options_json=combo,
                price_cents=price_cents,
            )
            db.add(variant)
            created.append(variant)

        if created:
            product.updated_at = utcnow()
            await db.flush()
        logger.info(
            "Generated %d variants for product %s (%d combinations)",
            len(created), product.id, len(combos),
        )
        return created


variant_service = VariantService()
