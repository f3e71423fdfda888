"""Create storefront schema

Revision ID: 001
Revises: None
Create Date: 2026-10-19 00:00:00.000000+00:00

What:  Users and profiles, the catalog (products, variants, options, media,
       categories, tags, brands), stores with per-store prices, orders,
       payout accounts and Printify connections.
How:   PostgreSQL UUID keys with gen_random_uuid(), TIMESTAMPTZ timestamps,
       enum-like columns as VARCHAR(20).

Price rows:
    uq_store_prices_base_row is a partial unique index (variant_id IS NULL),
    so at most one base price row exists per store product even under
    concurrent inserts.

Rollback: downgrade() drops every table (destructive).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id() -> sa.Column:
    return sa.Column(
        "id",
        postgresql.UUID(as_uuid=True),
        server_default=sa.text("gen_random_uuid()"),
        nullable=False,
        primary_key=True,
    )


def _timestamp(name: str, nullable: bool = False) -> sa.Column:
    if nullable:
        return sa.Column(name, sa.TIMESTAMP(timezone=True), nullable=True)
    return sa.Column(
        name,
        sa.TIMESTAMP(timezone=True),
        server_default=sa.text("CURRENT_TIMESTAMP"),
        nullable=False,
    )


def _fk(name: str, target: str, nullable: bool = False, ondelete: str = "CASCADE") -> sa.Column:
    return sa.Column(
        name,
        postgresql.UUID(as_uuid=True),
        sa.ForeignKey(target, ondelete=ondelete),
        nullable=nullable,
    )


def upgrade() -> None:
    # ── Accounts ──────────────────────────────────────────────────────────
    op.create_table(
        "users",
        _id(),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("password_hash", sa.Text(), nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )
    op.create_table(
        "profiles",
        sa.Column(
            "user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("name", sa.Text()),
        sa.Column("country", sa.String(2)),
        sa.Column("currency", sa.String(3)),
        sa.Column("contact_email", sa.Text()),
        sa.Column("whatsapp", sa.Text()),
        sa.Column("phone", sa.Text()),
        sa.Column("onboarding_completed", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )

    # ── Taxonomy ──────────────────────────────────────────────────────────
    for table in ("brands", "categories", "tags"):
        op.create_table(
            table,
            _id(),
            _fk("user_id", "users.id"),
            sa.Column("name", sa.String(100), nullable=False),
            sa.Column("slug", sa.String(100), nullable=False),
            _timestamp("created_at"),
            sa.UniqueConstraint("user_id", "slug", name=f"uq_{table}_user_slug"),
        )
    op.create_index("idx_brands_user_id", "brands", ["user_id"])

    # ── Catalog ───────────────────────────────────────────────────────────
    op.create_table(
        "products",
        _id(),
        _fk("user_id", "users.id"),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("type", sa.String(20), nullable=False, server_default=sa.text("'OWN'")),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'DRAFT'")),
        sa.Column("default_image_url", sa.Text()),
        sa.Column("weight_grams", sa.Integer()),
        sa.Column("compare_at_price_cents", sa.Integer()),
        _fk("brand_id", "brands.id", nullable=True, ondelete="SET NULL"),
        sa.Column("external_provider", sa.String(50)),
        sa.Column("external_id", sa.String(100)),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        _timestamp("deleted_at", nullable=True),
    )
    op.create_index("idx_products_user_status", "products", ["user_id", "status"])
    op.create_index("idx_products_brand_id", "products", ["brand_id"])
    op.create_index(
        "idx_products_external", "products", ["user_id", "external_provider", "external_id"]
    )

    op.create_table(
        "variants",
        _id(),
        _fk("product_id", "products.id"),
        sa.Column("sku", sa.String(100)),
        sa.Column("options_json", sa.JSON()),
        sa.Column("cost_cents", sa.Integer()),
        sa.Column("price_cents", sa.Integer()),
        sa.Column("external_id", sa.String(100)),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        _timestamp("deleted_at", nullable=True),
        sa.UniqueConstraint("product_id", "sku", name="uq_variants_product_sku"),
    )
    op.create_index("idx_variants_product_id", "variants", ["product_id"])

    op.create_table(
        "product_options",
        _id(),
        _fk("product_id", "products.id"),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default=sa.text("0")),
        _timestamp("created_at"),
        sa.UniqueConstraint("product_id", "name", name="uq_product_options_name"),
    )
    op.create_table(
        "product_option_values",
        _id(),
        _fk("option_id", "product_options.id"),
        sa.Column("value", sa.String(100), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default=sa.text("0")),
        _timestamp("created_at"),
        sa.UniqueConstraint("option_id", "value", name="uq_product_option_values_value"),
    )
    op.create_table(
        "product_media",
        _id(),
        _fk("product_id", "products.id"),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("alt", sa.Text()),
        sa.Column("position", sa.Integer(), nullable=False, server_default=sa.text("0")),
        _timestamp("created_at"),
    )
    op.create_index("idx_product_media_product", "product_media", ["product_id", "position"])

    op.create_table(
        "product_categories",
        sa.Column(
            "product_id", postgresql.UUID(as_uuid=True),
            sa.ForeignKey("products.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column(
            "category_id", postgresql.UUID(as_uuid=True),
            sa.ForeignKey("categories.id", ondelete="CASCADE"), primary_key=True,
        ),
    )
    op.create_table(
        "product_tags",
        sa.Column(
            "product_id", postgresql.UUID(as_uuid=True),
            sa.ForeignKey("products.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column(
            "tag_id", postgresql.UUID(as_uuid=True),
            sa.ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True,
        ),
    )

    # ── Stores & prices ───────────────────────────────────────────────────
    op.create_table(
        "stores",
        _id(),
        _fk("user_id", "users.id"),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("slug", sa.String(200), nullable=False, unique=True),
        sa.Column("type", sa.String(20), nullable=False, server_default=sa.text("'HOTSITE'")),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'DRAFT'")),
        sa.Column("headline", sa.Text()),
        sa.Column("subheadline", sa.Text()),
        sa.Column("hero_image_url", sa.Text()),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )
    op.create_index("idx_stores_user_id", "stores", ["user_id"])

    op.create_table(
        "store_products",
        _id(),
        _fk("store_id", "stores.id"),
        _fk("product_id", "products.id"),
        sa.Column("title_override", sa.Text()),
        sa.Column("description_override", sa.Text()),
        sa.Column("visibility", sa.String(20), nullable=False, server_default=sa.text("'HIDDEN'")),
        sa.Column("position", sa.Integer(), nullable=False, server_default=sa.text("0")),
        _timestamp("created_at"),
        sa.UniqueConstraint("store_id", "product_id", name="uq_store_products_store_product"),
    )
    op.create_index("idx_store_products_store_id", "store_products", ["store_id"])

    op.create_table(
        "store_prices",
        _id(),
        _fk("store_product_id", "store_products.id"),
        _fk("variant_id", "variants.id", nullable=True),
        sa.Column("price_cents", sa.Integer(), nullable=False),
        sa.Column("compare_at_cents", sa.Integer()),
        sa.Column("currency", sa.String(3), nullable=False, server_default=sa.text("'USD'")),
        sa.Column("visibility", sa.String(20), nullable=False, server_default=sa.text("'VISIBLE'")),
        _timestamp("start_at", nullable=True),
        _timestamp("end_at", nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.UniqueConstraint(
            "store_product_id", "variant_id", name="uq_store_prices_store_product_variant"
        ),
    )
    op.create_index(
        "uq_store_prices_base_row",
        "store_prices",
        ["store_product_id"],
        unique=True,
        postgresql_where=sa.text("variant_id IS NULL"),
    )

    # ── Payments & integrations ───────────────────────────────────────────
    op.create_table(
        "payout_accounts",
        _id(),
        sa.Column(
            "user_id", postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True,
        ),
        sa.Column("stripe_account_id", sa.String(255), nullable=False, unique=True),
        sa.Column("country", sa.String(2), nullable=False, server_default=sa.text("'US'")),
        sa.Column("charges_enabled", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("payouts_enabled", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("details_submitted", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        _timestamp("last_event_at", nullable=True),
        sa.Column("last_event_type", sa.String(100)),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )
    op.create_table(
        "orders",
        _id(),
        _fk("user_id", "users.id"),
        _fk("store_id", "stores.id"),
        _fk("product_id", "products.id"),
        sa.Column("stripe_account_id", sa.String(255), nullable=False),
        sa.Column("stripe_session_id", sa.String(255), nullable=False, unique=True),
        sa.Column("stripe_payment_intent_id", sa.String(255)),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("customer_email", sa.Text()),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("notes", sa.Text()),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )
    op.create_index("idx_orders_user_created", "orders", ["user_id", "created_at"])

    op.create_table(
        "pending_orders",
        _id(),
        _fk("store_id", "stores.id"),
        _fk("product_id", "products.id"),
        sa.Column("stripe_account_id", sa.String(255), nullable=False),
        sa.Column("stripe_session_id", sa.String(255), nullable=False, unique=True),
        sa.Column("price_cents", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        _timestamp("created_at"),
    )
    op.create_table(
        "printify_connections",
        _id(),
        sa.Column(
            "user_id", postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True,
        ),
        sa.Column("api_key", sa.Text(), nullable=False),
        sa.Column("default_shop_id", sa.String(50)),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )


def downgrade() -> None:
    for table in (
        "printify_connections",
        "pending_orders",
        "orders",
        "payout_accounts",
        "store_prices",
        "store_products",
        "stores",
        "product_tags",
        "product_categories",
        "product_media",
        "product_option_values",
        "product_options",
        "variants",
        "products",
        "tags",
        "categories",
        "brands",
        "profiles",
        "users",
    ):
        op.drop_table(table)
