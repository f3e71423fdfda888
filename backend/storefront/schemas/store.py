"""
Storefront Backend: Store & Pricing Schemas
=============================================

What:  Contracts for store management, product-to-store attachment and the
       per-store price table.

Money is always integer cents. Percentages for bulk adjustment are whole
numbers 1-100.
"""

import uuid
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

from storefront.models.common import PriceVisibility, StoreStatus, StoreType, Visibility


# ══════════════════════════════════════════════════════════════════════════
# Stores
# ══════════════════════════════════════════════════════════════════════════

class StoreForm(BaseModel):
    """Create and full-update body. Product order = storefront order."""

    name: str = Field(default="", max_length=200)
    slug: Optional[str] = Field(default=None, max_length=200)
    type: StoreType = StoreType.HOTSITE
    status: StoreStatus = StoreStatus.DRAFT
    headline: Optional[str] = None
    subheadline: Optional[str] = None
    hero_image_url: Optional[str] = None
    product_ids: List[uuid.UUID] = Field(default_factory=list)


class StoreResponse(BaseModel):
    id: uuid.UUID
    name: str
    slug: str
    type: str
    status: str
    headline: Optional[str] = None
    subheadline: Optional[str] = None
    hero_image_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class StoreProductResponse(BaseModel):
    id: uuid.UUID
    store_id: uuid.UUID
    product_id: uuid.UUID
    visibility: str
    position: int
    title_override: Optional[str] = None
    description_override: Optional[str] = None

    model_config = {"from_attributes": True}


class StoreDetailResponse(StoreResponse):
    products: List[StoreProductResponse] = Field(default_factory=list)


# ══════════════════════════════════════════════════════════════════════════
# Product ↔ store channel
# ══════════════════════════════════════════════════════════════════════════

class StoreRef(BaseModel):
    store_id: uuid.UUID


class SetVisibilityRequest(BaseModel):
    store_id: uuid.UUID
    visibility: Visibility


class SetPriceRequest(BaseModel):
    store_id: uuid.UUID
    variant_id: Optional[uuid.UUID] = None
    price_cents: int = Field(ge=0)
    currency: str = Field(default="USD", min_length=3, max_length=3)


# ══════════════════════════════════════════════════════════════════════════
# Price table
# ══════════════════════════════════════════════════════════════════════════

class StorePriceResponse(BaseModel):
    id: uuid.UUID
    store_product_id: uuid.UUID
    variant_id: Optional[uuid.UUID] = None
    price_cents: int
    compare_at_cents: Optional[int] = None
    currency: str
    visibility: str
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None
    updated_at: datetime

    model_config = {"from_attributes": True}


class StorePriceRow(StorePriceResponse):
    """Price table line: the price plus the product it prices."""

    store_id: uuid.UUID
    product_id: uuid.UUID
    product_title: str
    product_visibility: str


class StorePriceUpdate(BaseModel):
    price_cents: int = Field(ge=0)
    compare_at_cents: Optional[int] = Field(default=None, ge=0)
    visibility: Optional[PriceVisibility] = None


class ScheduleSaleRequest(BaseModel):
    price_cents: int = Field(ge=0)
    compare_at_cents: int = Field(ge=0)
    start_at: datetime
    end_at: datetime

    @model_validator(mode="after")
    def check_sale(self) -> "ScheduleSaleRequest":
        if self.compare_at_cents <= self.price_cents:
            raise ValueError("Compare at price must be higher than sale price")
        if self.start_at >= self.end_at:
            raise ValueError("End date must be after start date")
        return self


class BulkVisibilityRequest(BaseModel):
    store_price_ids: List[uuid.UUID] = Field(min_length=1)
    visibility: Visibility


class BulkAdjustRequest(BaseModel):
    store_price_ids: List[uuid.UUID] = Field(min_length=1)
    adjustment_type: Literal["increase", "decrease"]
    percentage: int = Field(ge=1, le=100)
