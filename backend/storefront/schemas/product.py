"""
Storefront Backend: Catalog Request/Response Schemas
======================================================

What:  Pydantic contracts for products, variants, option groups and media.
Why:   Input rules (lengths, non-negative money, enum values) are checked at
       the boundary and can be unit-tested without a database. Owner and
       timestamp fields are simply not part of any request model, and unknown
       keys are ignored, so a client can never smuggle an owner id through.
"""

import uuid
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from storefront.models.common import ProductStatus, ProductType
from storefront.schemas.taxonomy import CategoryResponse, TagResponse


# ══════════════════════════════════════════════════════════════════════════
# Products
# ══════════════════════════════════════════════════════════════════════════

class ProductCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    type: ProductType = ProductType.OWN
    status: ProductStatus = ProductStatus.DRAFT
    default_image_url: Optional[str] = None
    weight_grams: Optional[int] = Field(default=None, ge=0)
    compare_at_price_cents: Optional[int] = Field(default=None, ge=0)
    brand_id: Optional[uuid.UUID] = None

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("Title is required")
        return stripped


class ProductUpdate(BaseModel):
    """Partial update; only keys present in the request are applied."""

    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    type: Optional[ProductType] = None
    status: Optional[ProductStatus] = None
    default_image_url: Optional[str] = None
    weight_grams: Optional[int] = Field(default=None, ge=0)
    compare_at_price_cents: Optional[int] = Field(default=None, ge=0)
    brand_id: Optional[uuid.UUID] = None
    category_ids: Optional[List[uuid.UUID]] = None
    tag_ids: Optional[List[uuid.UUID]] = None


class ProductResponse(BaseModel):
    id: uuid.UUID
    title: str
    description: Optional[str] = None
    type: str
    status: str
    default_image_url: Optional[str] = None
    weight_grams: Optional[int] = None
    compare_at_price_cents: Optional[int] = None
    brand_id: Optional[uuid.UUID] = None
    external_provider: Optional[str] = None
    external_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class VariantResponse(BaseModel):
    id: uuid.UUID
    product_id: uuid.UUID
    sku: Optional[str] = None
    options_json: Optional[Dict[str, str]] = None
    cost_cents: Optional[int] = None
    price_cents: Optional[int] = None
    external_id: Optional[str] = None
    label: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class MediaResponse(BaseModel):
    id: uuid.UUID
    product_id: uuid.UUID
    url: str
    alt: Optional[str] = None
    position: int

    model_config = {"from_attributes": True}


class ProductDetailResponse(ProductResponse):
    variants: List[VariantResponse] = Field(default_factory=list)
    media: List[MediaResponse] = Field(default_factory=list)
    categories: List[CategoryResponse] = Field(default_factory=list)
    tags: List[TagResponse] = Field(default_factory=list)


# ══════════════════════════════════════════════════════════════════════════
# Variants
# ══════════════════════════════════════════════════════════════════════════

class VariantCreate(BaseModel):
    sku: Optional[str] = Field(default=None, max_length=100)
    options_json: Optional[Dict[str, str]] = None
    cost_cents: Optional[int] = Field(default=None, ge=0)
    price_cents: Optional[int] = Field(default=None, ge=0)


class VariantUpdate(VariantCreate):
    pass


class VariantBulkItem(BaseModel):
    id: uuid.UUID
    sku: Optional[str] = Field(default=None, max_length=100)
    cost_cents: Optional[int] = Field(default=None, ge=0)
    price_cents: Optional[int] = Field(default=None, ge=0)


class VariantBulkUpdate(BaseModel):
    variants: List[VariantBulkItem] = Field(min_length=1)


class VariantGenerateRequest(BaseModel):
    """Empty body means "generate from the product's stored option groups"."""

    base_sku: Optional[str] = Field(default=None, max_length=60)
    price_cents: Optional[int] = Field(default=None, ge=0)


# ══════════════════════════════════════════════════════════════════════════
# Option groups
# ══════════════════════════════════════════════════════════════════════════

class OptionCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    position: Optional[int] = Field(default=None, ge=0)


class OptionUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    position: Optional[int] = Field(default=None, ge=0)


class OptionValueCreate(BaseModel):
    value: str = Field(min_length=1, max_length=100)
    position: Optional[int] = Field(default=None, ge=0)


class OptionValueResponse(BaseModel):
    id: uuid.UUID
    option_id: uuid.UUID
    value: str
    position: int

    model_config = {"from_attributes": True}


class OptionResponse(BaseModel):
    id: uuid.UUID
    product_id: uuid.UUID
    name: str
    position: int
    values: List[OptionValueResponse] = Field(default_factory=list)


# ══════════════════════════════════════════════════════════════════════════
# Media
# ══════════════════════════════════════════════════════════════════════════

class MediaCreate(BaseModel):
    url: str = Field(min_length=1)
    alt: Optional[str] = None
