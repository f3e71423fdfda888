"""
Storefront Backend: Category, Tag and Brand Routes
====================================================

What:  /api/categories, /api/tags and /api/brands. Each collection supports
       list, inline-create (POST with just a name), rename and delete.
How:   The three routers are identical apart from the model and schema, so
       they are produced by _build_router.
Who:   The product editor's taxonomy pickers.
"""

import logging
import uuid
from typing import Any, Type

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.auth import SessionUser, require_session
from storefront.database import get_db_session
from storefront.models import Brand, Category, Tag
from storefront.schemas.common import error_responses
from storefront.schemas.taxonomy import BrandResponse, CategoryResponse, TagResponse, TaxonomyName
from storefront.services.taxonomy_service import taxonomy_service

logger = logging.getLogger(__name__)


def _build_router(path: str, model: Any, schema: Type[BaseModel], singular: str) -> APIRouter:
    router = APIRouter(prefix=f"/api/{path}", tags=["Taxonomy"])

    @router.get("", responses=error_responses(401, 500), summary=f"List the caller's {path}")
    async def list_items(
        user: SessionUser = Depends(require_session),
        db: AsyncSession = Depends(get_db_session),
    ) -> dict:
        items = await taxonomy_service.list_items(db, model, user)
        return {
            "success": True,
            path: [schema.model_validate(i).model_dump(mode="json") for i in items],
        }

    create_description = (
        f"Trims the name and derives the slug. Creating a {singular} whose "
        "slug already exists returns the existing one."
    )

    async def create_item(
        body: TaxonomyName,
        user: SessionUser = Depends(require_session),
        db: AsyncSession = Depends(get_db_session),
    ) -> dict:
        item = await taxonomy_service.upsert(db, model, user, body.name)
        return {"success": True, singular: schema.model_validate(item).model_dump(mode="json")}

    router.add_api_route(
        "",
        create_item,
        methods=["POST"],
        status_code=201,
        responses=error_responses(400, 401, 500),
        summary=f"Create a {singular}",
        description=create_description,
    )
    # The product editor's picker posts here and expects 200
    router.add_api_route(
        "/inline-create",
        create_item,
        methods=["POST"],
        responses=error_responses(400, 401, 500),
        summary=f"Create a {singular} inline",
        description=create_description,
        operation_id=f"inline_create_{singular}",
    )

    @router.patch("/{item_id}", responses=error_responses(400, 401, 404, 409, 500))
    async def rename_item(
        item_id: uuid.UUID,
        body: TaxonomyName,
        user: SessionUser = Depends(require_session),
        db: AsyncSession = Depends(get_db_session),
    ) -> dict:
        item = await taxonomy_service.upsert(db, model, user, body.name, item_id=item_id)
        return {"success": True, singular: schema.model_validate(item).model_dump(mode="json")}

    @router.delete("/{item_id}", responses=error_responses(401, 404, 500))
    async def delete_item(
        item_id: uuid.UUID,
        user: SessionUser = Depends(require_session),
        db: AsyncSession = Depends(get_db_session),
    ) -> dict:
        await taxonomy_service.delete(db, model, user, item_id)
        return {"success": True}

    return router


categories_router = _build_router("categories", Category, CategoryResponse, "category")
tags_router = _build_router("tags", Tag, TagResponse, "tag")
brands_router = _build_router("brands", Brand, BrandResponse, "brand")
