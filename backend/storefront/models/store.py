"""
Storefront Backend: Sales Channel Models
==========================================

What:  Stores (sales channels), the products attached to them, and the
       per-store price rows.

Ownership:
    stores.user_id is the root. store_products and store_prices are owned
    transitively: price → store_product → store → user.

Price row uniqueness:
    At most one price row exists per (store_product, variant). The base row
    (variant_id IS NULL) needs its own partial unique index because NULLs
    never collide in a plain unique constraint. ensure_price_row relies on
    this index to make concurrent creation safe: the losing insert raises
    IntegrityError and re-reads the winner.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
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
    PriceVisibility,
    StoreStatus,
    StoreType,
    Visibility,
    created_at_column,
    updated_at_column,
    uuid_pk,
)


class Store(Base):
    __tablename__ = "stores"

    id: Mapped[uuid.UUID] = uuid_pk()
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    # Public URL segment (/s/{slug}); unique across all merchants
    slug: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)
    type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=StoreType.HOTSITE.value,
        server_default=text("'HOTSITE'"),
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=StoreStatus.DRAFT.value,
        server_default=text("'DRAFT'"),
    )
    headline: Mapped[Optional[str]] = mapped_column(Text)
    subheadline: Mapped[Optional[str]] = mapped_column(Text)
    hero_image_url: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = created_at_column()
    updated_at: Mapped[datetime] = updated_at_column()

    __table_args__ = (Index("idx_stores_user_id", "user_id"),)

    def __repr__(self) -> str:
        return f"<Store(id={self.id}, slug='{self.slug}', status='{self.status}')>"


class StoreProduct(Base):
    __tablename__ = "store_products"

    id: Mapped[uuid.UUID] = uuid_pk()
    store_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("stores.id", ondelete="CASCADE"), nullable=False
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False
    )
    title_override: Mapped[Optional[str]] = mapped_column(Text)
    description_override: Mapped[Optional[str]] = mapped_column(Text)
    visibility: Mapped[str] = mapped_column(
        String(20), nullable=False, default=Visibility.HIDDEN.value,
        server_default=text("'HIDDEN'"),
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = created_at_column()

    __table_args__ = (
        UniqueConstraint("store_id", "product_id", name="uq_store_products_store_product"),
        Index("idx_store_products_store_id", "store_id"),
    )


class StorePrice(Base):
    __tablename__ = "store_prices"

    id: Mapped[uuid.UUID] = uuid_pk()
    store_product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("store_products.id", ondelete="CASCADE"), nullable=False
    )
    # NULL = base price for the whole product in this store
    variant_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("variants.id", ondelete="CASCADE")
    )
    price_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    compare_at_cents: Mapped[Optional[int]] = mapped_column(Integer)
    currency: Mapped[str] = mapped_column(
        String(3), nullable=False, default="USD", server_default=text("'USD'")
    )
    visibility: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PriceVisibility.VISIBLE.value,
        server_default=text("'VISIBLE'"),
    )
    start_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    end_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = created_at_column()
    updated_at: Mapped[datetime] = updated_at_column()

    __table_args__ = (
        UniqueConstraint(
            "store_product_id", "variant_id", name="uq_store_prices_store_product_variant"
        ),
        Index(
            "uq_store_prices_base_row",
            "store_product_id",
            unique=True,
            postgresql_where=text("variant_id IS NULL"),
            sqlite_where=text("variant_id IS NULL"),
        ),
    )
