"""
Storefront Backend: Catalog Models
====================================

What:  Products and everything hanging off them (variants, option groups,
       media, categories, tags, brands).
Who:   Product, variant, option, media and taxonomy services; the Printify
       importer.

Ownership:
    Product, Category, Tag and Brand carry user_id directly. Variants,
    options, option values and media are owned transitively through
    product_id; their ownership checks always join back to products.user_id.

Soft delete:
    products.deleted_at and variants.deleted_at hide rows from every read
    path while keeping historical orders pointing at a real row.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import (
    JSON,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from storefront.database import Base
from storefront.models.common import (
    ProductStatus,
    ProductType,
    created_at_column,
    updated_at_column,
    uuid_pk,
)


class Brand(Base):
    __tablename__ = "brands"

    id: Mapped[uuid.UUID] = uuid_pk()
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = created_at_column()

    __table_args__ = (
        UniqueConstraint("user_id", "slug", name="uq_brands_user_slug"),
        Index("idx_brands_user_id", "user_id"),
    )


class Product(Base):
    """
    A sellable item owned by one merchant.

    Lifecycle:
        DRAFT on creation (and on Printify import) → READY once it passes
        publish validation. Only READY products can be attached to stores
        through store creation.
    """

    __tablename__ = "products"

    id: Mapped[uuid.UUID] = uuid_pk()
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        comment="Owner; set from the session, never from request bodies",
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ProductType.OWN.value,
        server_default=text("'OWN'"),
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ProductStatus.DRAFT.value,
        server_default=text("'DRAFT'"),
    )
    default_image_url: Mapped[Optional[str]] = mapped_column(Text)
    weight_grams: Mapped[Optional[int]] = mapped_column(Integer)
    compare_at_price_cents: Mapped[Optional[int]] = mapped_column(Integer)
    brand_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("brands.id", ondelete="SET NULL")
    )

    # Set by integrations (e.g. "printify" + the upstream product id)
    external_provider: Mapped[Optional[str]] = mapped_column(String(50))
    external_id: Mapped[Optional[str]] = mapped_column(String(100))

    created_at: Mapped[datetime] = created_at_column()
    updated_at: Mapped[datetime] = updated_at_column()
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        Index("idx_products_user_status", "user_id", "status"),
        Index("idx_products_brand_id", "brand_id"),
        Index("idx_products_external", "user_id", "external_provider", "external_id"),
    )

    def __repr__(self) -> str:
        return f"<Product(id={self.id}, title='{self.title}', status='{self.status}')>"


class Variant(Base):
    """
    One purchasable combination of option values.

    price_cents is the merchant's base price; per-store prices live in
    store_prices and take precedence on the storefront.
    """

    __tablename__ = "variants"

    id: Mapped[uuid.UUID] = uuid_pk()
    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False
    )
    sku: Mapped[Optional[str]] = mapped_column(String(100))
    # e.g. {"Size": "M", "Color": "Red"}
    options_json: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON)
    cost_cents: Mapped[Optional[int]] = mapped_column(Integer)
    price_cents: Mapped[Optional[int]] = mapped_column(Integer)
    external_id: Mapped[Optional[str]] = mapped_column(String(100))
    created_at: Mapped[datetime] = created_at_column()
    updated_at: Mapped[datetime] = updated_at_column()
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        UniqueConstraint("product_id", "sku", name="uq_variants_product_sku"),
        Index("idx_variants_product_id", "product_id"),
    )


class ProductOption(Base):
    __tablename__ = "product_options"

    id: Mapped[uuid.UUID] = uuid_pk()
    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = created_at_column()

    __table_args__ = (
        UniqueConstraint("product_id", "name", name="uq_product_options_name"),
    )


class ProductOptionValue(Base):
    __tablename__ = "product_option_values"

    id: Mapped[uuid.UUID] = uuid_pk()
    option_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("product_options.id", ondelete="CASCADE"), nullable=False
    )
    value: Mapped[str] = mapped_column(String(100), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = created_at_column()

    __table_args__ = (
        UniqueConstraint("option_id", "value", name="uq_product_option_values_value"),
    )


class ProductMedia(Base):
    __tablename__ = "product_media"

    id: Mapped[uuid.UUID] = uuid_pk()
    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False
    )
    url: Mapped[str] = mapped_column(Text, nullable=False)
    alt: Mapped[Optional[str]] = mapped_column(Text)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = created_at_column()

    __table_args__ = (Index("idx_product_media_product", "product_id", "position"),)


class Category(Base):
    __tablename__ = "categories"

    id: Mapped[uuid.UUID] = uuid_pk()
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = created_at_column()

    __table_args__ = (
        UniqueConstraint("user_id", "slug", name="uq_categories_user_slug"),
    )


class Tag(Base):
    __tablename__ = "tags"

    id: Mapped[uuid.UUID] = uuid_pk()
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = created_at_column()

    __table_args__ = (
        UniqueConstraint("user_id", "slug", name="uq_tags_user_slug"),
    )


class ProductCategory(Base):
    __tablename__ = "product_categories"

    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("products.id", ondelete="CASCADE"), primary_key=True
    )
    category_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("categories.id", ondelete="CASCADE"), primary_key=True
    )


class ProductTag(Base):
    __tablename__ = "product_tags"

    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("products.id", ondelete="CASCADE"), primary_key=True
    )
    tag_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True
    )
