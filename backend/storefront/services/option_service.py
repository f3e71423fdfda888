"""
Storefront Backend: Option Group Service
==========================================

What:  Named option groups (Size, Color, ...) and their ordered values for a
       product. Variant generation reads them through option_map().

Names are unique per product and values unique per option; a duplicate is a
ConflictError rather than a silent no-op so the editor can tell the merchant.
"""

import logging
import uuid
from typing import Dict, List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.auth import SessionUser
from storefront.exceptions import ConflictError, NotFoundError, ValidationError
from storefront.models import Product, ProductOption, ProductOptionValue
from storefront.models.common import utcnow
from storefront.schemas.product import OptionResponse, OptionValueResponse
from storefront.services import ownership

logger = logging.getLogger(__name__)


def _clean(text: Optional[str], field: str) -> str:
    cleaned = (text or "").strip()
    if not cleaned:
        raise ValidationError(message=f"{field.capitalize()} is required", field=field)
    return cleaned


class OptionService:

    async def _options(self, db: AsyncSession, product_id: uuid.UUID) -> List[ProductOption]:
        result = await db.execute(
            select(ProductOption)
            .where(ProductOption.product_id == product_id)
            .order_by(ProductOption.position, ProductOption.created_at)
        )
        return list(result.scalars().all())

    async def _values(
        self, db: AsyncSession, option_ids: List[uuid.UUID]
    ) -> Dict[uuid.UUID, List[ProductOptionValue]]:
        grouped: Dict[uuid.UUID, List[ProductOptionValue]] = {oid: [] for oid in option_ids}
        if not option_ids:
            return grouped
        result = await db.execute(
            select(ProductOptionValue)
            .where(ProductOptionValue.option_id.in_(option_ids))
            .order_by(ProductOptionValue.position, ProductOptionValue.created_at)
        )
        for value in result.scalars().all():
            grouped[value.option_id].append(value)
        return grouped

    async def option_map(self, db: AsyncSession, product_id: uuid.UUID) -> Dict[str, List[str]]:
        """{"Size": ["S", "M"], "Color": ["Red"]} in display order."""
        options = await self._options(db, product_id)
        values = await self._values(db, [o.id for o in options])
        return {o.name: [v.value for v in values[o.id]] for o in options}

    async def list_options(
        self, db: AsyncSession, user: SessionUser, product_id: uuid.UUID
    ) -> List[OptionResponse]:
        await ownership.assert_product_owner(db, product_id, user.id)
        options = await self._options(db, product_id)
        values = await self._values(db, [o.id for o in options])
        return [
            OptionResponse(
                id=o.id,
                product_id=o.product_id,
                name=o.name,
                position=o.position,
                values=[OptionValueResponse.model_validate(v) for v in values[o.id]],
            )
            for o in options
        ]

    async def _name_taken(
        self,
        db: AsyncSession,
        product_id: uuid.UUID,
        name: str,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> bool:
        query = select(ProductOption.id).where(
            ProductOption.product_id == product_id,
            func.lower(ProductOption.name) == name.lower(),
        )
        if exclude_id is not None:
            query = query.where(ProductOption.id != exclude_id)
        return (await db.execute(query)).first() is not None

    async def create_option(
        self,
        db: AsyncSession,
        user: SessionUser,
        product_id: uuid.UUID,
        name: str,
        position: Optional[int] = None,
    ) -> ProductOption:
        product: Product = await ownership.assert_product_owner(db, product_id, user.id)
        cleaned = _clean(name, "name")
        if await self._name_taken(db, product.id, cleaned):
            raise ConflictError(message=f"Option '{cleaned}' already exists")

        if position is None:
            position = len(await self._options(db, product.id))
        option = ProductOption(product_id=product.id, name=cleaned, position=position)
        db.add(option)
        product.updated_at = utcnow()
        await db.flush()
        return option

    async def update_option(
        self,
        db: AsyncSession,
        user: SessionUser,
        product_id: uuid.UUID,
        option_id: uuid.UUID,
        name: Optional[str] = None,
        position: Optional[int] = None,
    ) -> ProductOption:
        option = await ownership.assert_option_owner(db, option_id, product_id, user.id)
        if name is not None:
            cleaned = _clean(name, "name")
            if await self._name_taken(db, product_id, cleaned, exclude_id=option.id):
                raise ConflictError(message=f"Option '{cleaned}' already exists")
            option.name = cleaned
        if position is not None:
            option.position = position
        await db.flush()
        return option

    async def delete_option(
        self,
        db: AsyncSession,
        user: SessionUser,
        product_id: uuid.UUID,
        option_id: uuid.UUID,
    ) -> None:
        option = await ownership.assert_option_owner(db, option_id, product_id, user.id)
        await db.execute(delete(ProductOptionValue).where(ProductOptionValue.option_id == option.id))
        await db.delete(option)
        await db.flush()
        logger.info("Option %s deleted from product %s", option_id, product_id)

    async def add_value(
        self,
        db: AsyncSession,
        user: SessionUser,
        product_id: uuid.UUID,
        option_id: uuid.UUID,
        value: str,
        position: Optional[int] = None,
    ) -> ProductOptionValue:
        option = await ownership.assert_option_owner(db, option_id, product_id, user.id)
        cleaned = _clean(value, "value")
        existing = (await self._values(db, [option.id]))[option.id]
        if any(v.value.lower() == cleaned.lower() for v in existing):
            raise ConflictError(message=f"Value '{cleaned}' already exists for {option.name}")

        row = ProductOptionValue(
            option_id=option.id,
            value=cleaned,
            position=len(existing) if position is None else position,
        )
        db.add(row)
        await db.flush()
        return row

    async def delete_value(
        self,
        db: AsyncSession,
        user: SessionUser,
        product_id: uuid.UUID,
        option_id: uuid.UUID,
        value_id: uuid.UUID,
    ) -> None:
        option = await ownership.assert_option_owner(db, option_id, product_id, user.id)
        row = (
            await db.execute(
                select(ProductOptionValue).where(
                    ProductOptionValue.id == value_id,
                    ProductOptionValue.option_id == option.id,
                )
            )
        ).scalar_one_or_none()
        if row is None:
            raise NotFoundError(resource="option value", resource_id=str(value_id))
        await db.delete(row)
        await db.flush()


option_service = OptionService()
