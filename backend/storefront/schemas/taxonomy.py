"""Schemas for categories, tags and brands."""

import uuid
from datetime import datetime

from pydantic import BaseModel, Field


class TaxonomyName(BaseModel):
    """
    Body of inline-create and rename calls.

    Blank-after-trim names are rejected by the service (400), not here, so
    the same rule applies to every caller of taxonomy_service.upsert.
    """

    name: str = Field(default="", max_length=100)


class CategoryResponse(BaseModel):
    id: uuid.UUID
    name: str
    slug: str
    created_at: datetime

    model_config = {"from_attributes": True}


class TagResponse(CategoryResponse):
    pass


class BrandResponse(CategoryResponse):
    pass
