"""
Storefront Backend: Test Configuration (conftest.py)
======================================================

What:  Shared pytest fixtures for the whole suite.
How:   Each test gets a fresh in-memory SQLite database (aiosqlite) with the
       full schema, a session on it, a small model factory and an HTTP
       client whose get_db_session dependency points at the same database.

Fixture Hierarchy (all function-scoped):
    engine
    ├── session_factory
    │   ├── db            AsyncSession for service-level tests
    │   ├── make          Factory: users, products, stores, prices
    │   └── test_client   httpx AsyncClient over the ASGI app

HTTP tests set up data through `make` (which commits and closes its own
session) and read results back through `make.session()`, so no session is
left open while a request runs on the shared connection.
"""

import os

# Settings are read at import time; these must be set before any storefront import
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SESSION_SECRET"] = "test-session-secret-not-real"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_not_real"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_not_real"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["RETRY_MIN_WAIT"] = "0"
os.environ["RETRY_JITTER"] = "0"

import uuid
from typing import Dict, Optional, Sequence

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from storefront.auth import SessionUser, issue_token
from storefront.database import Base, get_db_session
from storefront.models import (
    PayoutAccount,
    Product,
    Store,
    StorePrice,
    StoreProduct,
    User,
    Variant,
)
from storefront.models.common import ProductStatus, StoreStatus, StoreType, Visibility


# ══════════════════════════════════════════════════════════════════════════
# Database
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def engine():
    """
    One in-memory database per test.

    StaticPool keeps the single connection alive (each new connection to
    :memory: would be an empty database). The connect/begin listeners make
    pysqlite emit BEGIN itself so SAVEPOINTs behave as they do on Postgres.
    """
    test_engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(test_engine.sync_engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(test_engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


# ══════════════════════════════════════════════════════════════════════════
# Factory
# ══════════════════════════════════════════════════════════════════════════

class Factory:
    """Creates committed rows; every method opens and closes its own session."""

    def __init__(self, session_factory):
        self._session_factory = session_factory

    def session(self) -> AsyncSession:
        return self._session_factory()

    async def save(self, *rows):
        async with self._session_factory() as session:
            session.add_all(rows)
            await session.commit()
        return rows[0] if len(rows) == 1 else rows

    async def user(self, email: Optional[str] = None) -> SessionUser:
        row = User(
            email=email or f"{uuid.uuid4().hex[:10]}@example.com",
            password_hash="not-a-bcrypt-hash",
        )
        await self.save(row)
        return SessionUser(id=row.id, email=row.email)

    async def product(
        self,
        user: SessionUser,
        title: str = "Classic Tee",
        price_cents: Optional[int] = 1500,
        status: str = ProductStatus.READY.value,
        sku: str = "TEE-1",
    ) -> Product:
        product = Product(
            user_id=user.id,
            title=title,
            description=f"{title} description",
            status=status,
        )
        await self.save(product)
        if price_cents is not None:
            await self.save(Variant(product_id=product.id, sku=sku, price_cents=price_cents))
        return product

    async def store(
        self,
        user: SessionUser,
        products: Sequence[Product] = (),
        slug: Optional[str] = None,
        store_type: str = StoreType.MINISTORE.value,
        visibility: str = Visibility.VISIBLE.value,
    ) -> Store:
        store = Store(
            user_id=user.id,
            name="Test Store",
            slug=slug or f"store-{uuid.uuid4().hex[:8]}",
            type=store_type,
            status=StoreStatus.LIVE.value,
        )
        await self.save(store)
        for position, product in enumerate(products):
            await self.save(StoreProduct(
                store_id=store.id, product_id=product.id,
                position=position, visibility=visibility,
            ))
        return store

    async def store_product(self, store: Store, product: Product) -> StoreProduct:
        async with self._session_factory() as session:
            result = await session.execute(
                select(StoreProduct).where(
                    StoreProduct.store_id == store.id, StoreProduct.product_id == product.id
                )
            )
            return result.scalar_one()

    async def price(
        self,
        store_product: StoreProduct,
        price_cents: int,
        currency: str = "USD",
        variant_id: Optional[uuid.UUID] = None,
    ) -> StorePrice:
        return await self.save(StorePrice(
            store_product_id=store_product.id,
            variant_id=variant_id,
            price_cents=price_cents,
            currency=currency,
        ))

    async def payout_account(
        self, user: SessionUser, charges_enabled: bool = True, stripe_account_id: str = "acct_test"
    ) -> PayoutAccount:
        return await self.save(PayoutAccount(
            user_id=user.id,
            stripe_account_id=stripe_account_id,
            charges_enabled=charges_enabled,
            payouts_enabled=charges_enabled,
            details_submitted=charges_enabled,
        ))


@pytest.fixture
def make(session_factory) -> Factory:
    return Factory(session_factory)


def auth_headers(user: SessionUser) -> Dict[str, str]:
    return {"Authorization": f"Bearer {issue_token(user.id, user.email)}"}


@pytest.fixture
def headers_for():
    """headers_for(user) → Authorization header dict for that user."""
    return auth_headers


# ══════════════════════════════════════════════════════════════════════════
# HTTP client
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def test_client(session_factory):
    """
    HTTPX AsyncClient talking to the app in-process.

    get_db_session is overridden with the same commit/rollback contract,
    bound to this test's database.
    """
    from storefront.main import app

    async def _override_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = _override_session
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
