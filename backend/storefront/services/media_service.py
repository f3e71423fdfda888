"""
Storefront Backend: Product Media Service
===========================================

What:  Ordered product images. The first image added becomes the product's
       default_image_url; deleting the default re-points it at the next image
       (or clears it when none remain).
Who:   /api/products/{id}/media routes and the Printify importer.
"""

import logging
import uuid
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.auth import SessionUser
from storefront.exceptions import ValidationError
from storefront.models import Product, ProductMedia
from storefront.models.common import utcnow
from storefront.services import ownership

logger = logging.getLogger(__name__)


class MediaService:

    async def list_media(
        self, db: AsyncSession, user: SessionUser, product_id: uuid.UUID
    ) -> List[ProductMedia]:
        await ownership.assert_product_owner(db, product_id, user.id)
        return await self._ordered(db, product_id)

    async def _ordered(self, db: AsyncSession, product_id: uuid.UUID) -> List[ProductMedia]:
        result = await db.execute(
            select(ProductMedia)
            .where(ProductMedia.product_id == product_id)
            .order_by(ProductMedia.position, ProductMedia.created_at)
        )
        return list(result.scalars().all())

    async def add_to_product(
        self, db: AsyncSession, product: Product, url: str, alt: Optional[str] = None
    ) -> ProductMedia:
        """Append an image to an already-verified product."""
        url = (url or "").strip()
        if not url:
            raise ValidationError(message="Image URL is required", field="url")

        next_position = (
            await db.execute(
                select(func.coalesce(func.max(ProductMedia.position) + 1, 0)).where(
                    ProductMedia.product_id == product.id
                )
            )
        ).scalar_one()
        media = ProductMedia(product_id=product.id, url=url, alt=alt, position=next_position)
        db.add(media)
        if not product.default_image_url:
            product.default_image_url = url
        product.updated_at = utcnow()
        await db.flush()
        return media

    async def add_media(
        self,
        db: AsyncSession,
        user: SessionUser,
        product_id: uuid.UUID,
        url: str,
        alt: Optional[str] = None,
    ) -> ProductMedia:
        product = await ownership.assert_product_owner(db, product_id, user.id)
        return await self.add_to_product(db, product, url, alt)

    async def delete_media(
        self,
        db: AsyncSession,
        user: SessionUser,
        product_id: uuid.UUID,
        media_id: uuid.UUID,
    ) -> None:
        media = await ownership.assert_media_owner(db, media_id, product_id, user.id)
        product = await ownership.assert_product_owner(db, product_id, user.id)
        removed_url = media.url
        await db.delete(media)
        await db.flush()

        if product.default_image_url == removed_url:
            remaining = await self._ordered(db, product.id)
            product.default_image_url = remaining[0].url if remaining else None
        product.updated_at = utcnow()
        await db.flush()
        logger.info("Media %s removed from product %s", media_id, product_id)


media_service = MediaService()
