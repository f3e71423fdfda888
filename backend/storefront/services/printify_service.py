"""
Storefront Backend: Printify Integration Service
==================================================

What:  Per-merchant Printify connection (API key + default shop), shop and
       product browsing, and importing a Printify product as a POD draft.
Who:   /api/integrations/printify/* routes.

Import mapping:
    product   → Product(type=POD, status=DRAFT, external_provider="printify")
    images    → ProductMedia in Printify order; the is_default image (or the
                first) becomes default_image_url
    options   → ProductOption + ProductOptionValue, positions preserved
    variants  → one Variant per enabled Printify variant whose option ids all
                resolve; cost_cents from Printify cost, no selling price yet
"""

import logging
from typing import Any, Dict, List, Set, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.auth import SessionUser
from storefront.exceptions import NotFoundError, ValidationError
from storefront.models import (
    PrintifyConnection,
    Product,
    ProductOption,
    ProductOptionValue,
    Variant,
)
from storefront.models.common import ProductType, utcnow
from storefront.services.media_service import media_service
from storefront.services.printify_client import PrintifyClient
from storefront.services.product_service import product_service
from storefront.services.variant_service import generate_sku

logger = logging.getLogger(__name__)

PROVIDER_NAME = "printify"


class PrintifyService:

    async def _connection(self, db: AsyncSession, user: SessionUser) -> PrintifyConnection:
        result = await db.execute(
            select(PrintifyConnection).where(PrintifyConnection.user_id == user.id)
        )
        connection = result.scalar_one_or_none()
        if connection is None:
            raise NotFoundError(resource="printify connection")
        return connection

    async def connect(self, db: AsyncSession, user: SessionUser, api_key: str) -> Dict[str, Any]:
        """Validate the key by listing shops, then upsert the connection."""
        api_key = (api_key or "").strip()
        if not api_key:
            raise ValidationError(message="API key is required", field="api_key")

        shops = await PrintifyClient(api_key).get_shops()
        default_shop_id = str(shops[0]["id"]) if shops else None

        result = await db.execute(
            select(PrintifyConnection).where(PrintifyConnection.user_id == user.id)
        )
        connection = result.scalar_one_or_none()
        if connection is None:
            connection = PrintifyConnection(user_id=user.id, api_key=api_key)
            db.add(connection)
        connection.api_key = api_key
        connection.default_shop_id = default_shop_id
        connection.updated_at = utcnow()
        await db.flush()
        logger.info("Printify connected for user %s (%d shops)", user.id, len(shops))
        return {"shops": shops, "default_shop_id": default_shop_id}

    async def set_default_shop(self, db: AsyncSession, user: SessionUser, shop_id: str) -> str:
        connection = await self._connection(db, user)
        connection.default_shop_id = str(shop_id)
        connection.updated_at = utcnow()
        await db.flush()
        return connection.default_shop_id

    async def list_shops(self, db: AsyncSession, user: SessionUser) -> Dict[str, Any]:
        connection = await self._connection(db, user)
        shops = await PrintifyClient(connection.api_key).get_shops()
        return {"shops": shops, "default_shop_id": connection.default_shop_id}

    async def list_shop_products(
        self, db: AsyncSession, user: SessionUser, shop_id: str
    ) -> List[Dict[str, Any]]:
        connection = await self._connection(db, user)
        return await PrintifyClient(connection.api_key).get_shop_products(shop_id)

    async def get_shop_product(
        self, db: AsyncSession, user: SessionUser, shop_id: str, product_id: str
    ) -> Dict[str, Any]:
        connection = await self._connection(db, user)
        return await PrintifyClient(connection.api_key).get_product(shop_id, product_id)

    # ── Import ────────────────────────────────────────────────────────────

    async def import_product(
        self, db: AsyncSession, user: SessionUser, shop_id: str, product_id: str
    ) -> Dict[str, Any]:
        connection = await self._connection(db, user)
        remote = await PrintifyClient(connection.api_key).get_product(str(shop_id), str(product_id))
        external_id = str(remote.get("id") or product_id)

        already = (
            await db.execute(
                select(Product.id).where(
                    Product.user_id == user.id,
                    Product.external_provider == PROVIDER_NAME,
                    Product.external_id == external_id,
                    Product.deleted_at.is_(None),
                )
            )
        ).first()
        if already is not None:
            raise ValidationError(message="This product has already been imported")
        if not remote.get("title"):
            raise ValidationError(message="Printify product has no title")
        if not remote.get("variants"):
            raise ValidationError(message="Printify product has no variants")

        product = await product_service.upsert_product(db, user, {
            "title": remote["title"][:200],
            "description": remote.get("description") or "",
            "type": ProductType.POD.value,
            "external_provider": PROVIDER_NAME,
            "external_id": external_id,
        })

        images = remote.get("images") or []
        default_image = next((img for img in images if img.get("is_default")), None)
        if default_image is None and images:
            default_image = images[0]
        if default_image is not None:
            product.default_image_url = default_image.get("src")
        for image in images:
            if image.get("src"):
                await media_service.add_to_product(db, product, image["src"], alt=product.title)

        options = remote.get("options") or []
        option_names = [o.get("name") or f"Option {i + 1}" for i, o in enumerate(options)]
        value_names = await self._import_options(db, product, options, option_names)
        variant_count, skipped = await self._import_variants(
            db, product, external_id, remote["variants"], option_names, value_names
        )

        logger.info(
            "Imported Printify product %s as %s: %d variants (%d skipped)",
            external_id, product.id, variant_count, skipped,
        )
        return {"product_id": product.id, "variant_count": variant_count}

    async def _import_options(
        self,
        db: AsyncSession,
        product: Product,
        options: List[Dict[str, Any]],
        option_names: List[str],
    ) -> Dict[int, str]:
        """Create option groups; returns Printify value id → value title."""
        value_names: Dict[int, str] = {}
        for opt_index, remote_option in enumerate(options):
            option = ProductOption(
                product_id=product.id, name=option_names[opt_index], position=opt_index
            )
            db.add(option)
            await db.flush()

            seen: Set[str] = set()
            for val_index, remote_value in enumerate(remote_option.get("values") or []):
                title = str(remote_value.get("title") or "").strip()
                value_names[remote_value.get("id")] = title
                if not title or title.lower() in seen:
                    continue
                seen.add(title.lower())
                db.add(ProductOptionValue(option_id=option.id, value=title, position=val_index))
        await db.flush()
        return value_names

    async def _import_variants(
        self,
        db: AsyncSession,
        product: Product,
        external_id: str,
        variants: List[Dict[str, Any]],
        option_names: List[str],
        value_names: Dict[int, str],
    ) -> Tuple[int, int]:
        created, skipped = 0, 0
        used_skus: Set[str] = set()
        for remote_variant in variants:
            if not remote_variant.get("is_enabled"):
                skipped += 1
                continue

            value_ids = remote_variant.get("options") or []
            option_values: Dict[str, str] = {}
            for name, value_id in zip(option_names, value_ids):
                if value_id in value_names:
                    option_values[name] = value_names[value_id]
            if len(option_values) != len(option_names):
                skipped += 1
                continue

            sku = remote_variant.get("sku") or generate_sku(f"PRINT-{external_id}", option_values)
            candidate, n = sku, 2
            while candidate in used_skus:
                candidate = f"{sku}-{n}"
                n += 1
            used_skus.add(candidate)

            db.add(Variant(
                product_id=product.id,
                sku=candidate,
                options_json=option_values,
                cost_cents=round(remote_variant.get("cost") or 0),
                price_cents=None,
                external_id=str(remote_variant.get("id")),
            ))
            created += 1
        await db.flush()
        return created, skipped


printify_service = PrintifyService()
