"""
Storefront Backend: API Ownership & Error Contract Tests
==========================================================

What:  End-to-end requests through the FastAPI app (HTTPX ASGI transport)
       against a real SQLite schema.
Why:   Tenant isolation and the 401/404/400 contract are only meaningful
       when the whole stack (dependencies, services, handlers, transaction
       rollback) runs together.

What we test:
    ✅ No session → 401 and nothing written
    ✅ Another merchant's product → 404 on read and on write, row untouched
    ✅ Owner fields in request bodies are ignored
    ✅ Blank names and bad bodies → 400 with {"error": ...}
    ✅ Sign-up / sign-in issue usable bearer tokens
    ✅ Taxonomy inline-create answers 200 and de-duplicates
    ✅ Unknown routes and wrong methods still answer {"error": ...}
"""

import uuid

import pytest
from sqlalchemy import func, select

from storefront.models import Brand, Category, Product, Store, Tag


async def _count(make, model) -> int:
    async with make.session() as s:
        return (await s.execute(select(func.count()).select_from(model))).scalar_one()


class TestUnauthenticated:

    @pytest.mark.asyncio
    async def test_create_category_without_session_is_401(self, test_client, make):
        response = await test_client.post("/api/categories", json={"name": "Shirts"})

        assert response.status_code == 401
        assert response.json()["error"] == "Unauthorized"
        assert await _count(make, Category) == 0

    @pytest.mark.asyncio
    async def test_invalid_token_is_401(self, test_client, make):
        response = await test_client.post(
            "/api/products",
            json={"title": "Mug"},
            headers={"Authorization": "Bearer not-a-real-token"},
        )

        assert response.status_code == 401
        assert await _count(make, Product) == 0

    @pytest.mark.asyncio
    async def test_store_list_requires_session(self, test_client):
        response = await test_client.get("/api/stores")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_error_body_carries_request_id(self, test_client):
        response = await test_client.get("/api/products", headers={"X-Request-ID": "req-123"})

        assert response.status_code == 401
        assert response.json()["request_id"] == "req-123"
        assert response.headers["X-Request-ID"] == "req-123"


class TestCrossTenant:

    @pytest.mark.asyncio
    async def test_foreign_product_read_is_404(self, test_client, make, headers_for):
        owner = await make.user()
        intruder = await make.user()
        product = await make.product(owner)

        response = await test_client.get(
            f"/api/products/{product.id}", headers=headers_for(intruder)
        )

        assert response.status_code == 404
        assert response.json()["error"] == "Product not found"

    @pytest.mark.asyncio
    async def test_foreign_product_update_is_404_and_leaves_row(self, test_client, make, headers_for):
        owner = await make.user()
        intruder = await make.user()
        product = await make.product(owner, title="Original")

        response = await test_client.patch(
            f"/api/products/{product.id}",
            json={"title": "Hijacked"},
            headers=headers_for(intruder),
        )

        assert response.status_code == 404
        async with make.session() as s:
            row = await s.get(Product, product.id)
            assert row.title == "Original"
            assert row.user_id == owner.id

    @pytest.mark.asyncio
    async def test_unknown_and_foreign_ids_look_the_same(self, test_client, make, headers_for):
        owner = await make.user()
        intruder = await make.user()
        product = await make.product(owner)

        foreign = await test_client.delete(
            f"/api/products/{product.id}", headers=headers_for(intruder)
        )
        missing = await test_client.delete(
            f"/api/products/{uuid.uuid4()}", headers=headers_for(intruder)
        )

        assert foreign.status_code == missing.status_code == 404
        assert foreign.json()["error"] == missing.json()["error"]

    @pytest.mark.asyncio
    async def test_foreign_category_link_rolls_back_product_update(
        self, test_client, make, headers_for
    ):
        owner = await make.user()
        other = await make.user()
        product = await make.product(owner, title="Before")
        async with make.session() as s:
            foreign_category = Category(user_id=other.id, name="Theirs", slug="theirs")
            s.add(foreign_category)
            await s.commit()

        response = await test_client.patch(
            f"/api/products/{product.id}",
            json={"title": "After", "category_ids": [str(foreign_category.id)]},
            headers=headers_for(owner),
        )

        assert response.status_code == 404
        async with make.session() as s:
            assert (await s.get(Product, product.id)).title == "Before"

    @pytest.mark.asyncio
    async def test_foreign_store_prices_are_404(self, test_client, make, headers_for):
        owner = await make.user()
        intruder = await make.user()
        product = await make.product(owner)
        store = await make.store(owner, [product])

        response = await test_client.get(
            f"/api/stores/{store.id}/prices", headers=headers_for(intruder)
        )

        assert response.status_code == 404


class TestOwnerFieldsIgnored:

    @pytest.mark.asyncio
    async def test_create_product_ignores_user_id_in_body(self, test_client, make, headers_for):
        caller = await make.user()
        victim = await make.user()

        response = await test_client.post(
            "/api/products",
            json={"title": "Mug", "user_id": str(victim.id), "owner_id": str(victim.id)},
            headers=headers_for(caller),
        )

        assert response.status_code == 201
        product_id = uuid.UUID(response.json()["product"]["id"])
        async with make.session() as s:
            assert (await s.get(Product, product_id)).user_id == caller.id

    @pytest.mark.asyncio
    async def test_create_store_is_owned_by_caller(self, test_client, make, headers_for):
        caller = await make.user()
        product = await make.product(caller)

        response = await test_client.post(
            "/api/stores",
            json={
                "name": "My Shop",
                "type": "HOTSITE",
                "product_ids": [str(product.id)],
                "user_id": str(uuid.uuid4()),
            },
            headers=headers_for(caller),
        )

        assert response.status_code == 201
        async with make.session() as s:
            store = (await s.execute(select(Store))).scalar_one()
            assert store.user_id == caller.id
            assert store.slug == "my-shop"


class TestValidationErrors:

    @pytest.mark.asyncio
    async def test_blank_category_name_is_400(self, test_client, make, headers_for):
        user = await make.user()

        response = await test_client.post(
            "/api/categories", json={"name": "   "}, headers=headers_for(user)
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Category name is required"
        assert await _count(make, Category) == 0

    @pytest.mark.asyncio
    async def test_schema_violation_is_400_not_422(self, test_client, make, headers_for):
        user = await make.user()

        response = await test_client.post(
            "/api/products", json={"title": ""}, headers=headers_for(user)
        )

        assert response.status_code == 400
        assert response.json()["error"].startswith("title")

    @pytest.mark.asyncio
    async def test_hotsite_with_two_products_is_400(self, test_client, make, headers_for):
        user = await make.user()
        first = await make.product(user, sku="A")
        second = await make.product(user, sku="B")

        response = await test_client.post(
            "/api/stores",
            json={
                "name": "One Pager",
                "type": "HOTSITE",
                "product_ids": [str(first.id), str(second.id)],
            },
            headers=headers_for(user),
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Hotsite must have exactly one product"
        assert await _count(make, Store) == 0

    @pytest.mark.asyncio
    async def test_duplicate_category_returns_existing(self, test_client, make, headers_for):
        user = await make.user()

        first = await test_client.post(
            "/api/categories", json={"name": "Summer Sale"}, headers=headers_for(user)
        )
        second = await test_client.post(
            "/api/categories", json={"name": "  summer sale "}, headers=headers_for(user)
        )

        assert first.status_code == second.status_code == 201
        assert first.json()["category"]["id"] == second.json()["category"]["id"]
        assert await _count(make, Category) == 1


    @pytest.mark.asyncio
    @pytest.mark.parametrize("path, key, model", [
        ("/api/categories/inline-create", "category", Category),
        ("/api/tags/inline-create", "tag", Tag),
        ("/api/brands/inline-create", "brand", Brand),
    ])
    async def test_inline_create(self, test_client, make, headers_for, path, key, model):
        user = await make.user()

        first = await test_client.post(path, json={"name": " Summer Sale "}, headers=headers_for(user))
        second = await test_client.post(path, json={"name": "summer sale"}, headers=headers_for(user))

        assert first.status_code == second.status_code == 200
        body = first.json()
        assert body["success"] is True
        assert body[key]["name"] == "Summer Sale"
        assert body[key]["slug"] == "summer-sale"
        assert second.json()[key]["id"] == body[key]["id"]
        assert await _count(make, model) == 1

    @pytest.mark.asyncio
    async def test_inline_create_requires_session(self, test_client, make):
        response = await test_client.post("/api/tags/inline-create", json={"name": "Red"})

        assert response.status_code == 401
        assert await _count(make, Tag) == 0


class TestRoutingErrors:

    @pytest.mark.asyncio
    async def test_unknown_route_uses_error_body(self, test_client):
        response = await test_client.get("/api/does-not-exist", headers={"X-Request-ID": "req-404"})

        assert response.status_code == 404
        assert response.json() == {"error": "Not Found", "request_id": "req-404"}

    @pytest.mark.asyncio
    async def test_wrong_method_uses_error_body(self, test_client):
        response = await test_client.put("/api/categories")

        assert response.status_code == 405
        assert response.json()["error"] == "Method Not Allowed"


class TestAccounts:

    @pytest.mark.asyncio
    async def test_signup_then_signin(self, test_client):
        signup = await test_client.post(
            "/api/auth/signup",
            json={"email": "Merchant@Example.com", "password": "correct-horse"},
        )
        assert signup.status_code == 201
        token = signup.json()["token"]

        me = await test_client.get(
            "/api/onboarding", headers={"Authorization": f"Bearer {token}"}
        )
        assert me.status_code == 200
        assert me.json()["profile"]["contact_email"] == "merchant@example.com"

        signin = await test_client.post(
            "/api/auth/signin",
            json={"email": "merchant@example.com", "password": "correct-horse"},
        )
        assert signin.status_code == 200
        assert signin.json()["user_id"] == signup.json()["user_id"]

    @pytest.mark.asyncio
    async def test_wrong_password_is_401(self, test_client):
        await test_client.post(
            "/api/auth/signup",
            json={"email": "a@example.com", "password": "correct-horse"},
        )

        response = await test_client.post(
            "/api/auth/signin",
            json={"email": "a@example.com", "password": "wrong-horse"},
        )

        assert response.status_code == 401
        assert response.json()["error"] == "Invalid email or password"

    @pytest.mark.asyncio
    async def test_duplicate_signup_is_409(self, test_client):
        body = {"email": "dup@example.com", "password": "correct-horse"}
        assert (await test_client.post("/api/auth/signup", json=body)).status_code == 201

        response = await test_client.post("/api/auth/signup", json=body)

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_onboarding_country_fills_currency(self, test_client, make, headers_for):
        user = await make.user()

        response = await test_client.patch(
            "/api/onboarding",
            json={"name": "Ana", "country": "br", "complete": True},
            headers=headers_for(user),
        )

        profile = response.json()["profile"]
        assert response.status_code == 200
        assert profile["country"] == "BR"
        assert profile["currency"] == "BRL"
        assert profile["onboarding_completed"] is True


class TestHealth:

    @pytest.mark.asyncio
    async def test_health_reports_database(self, test_client):
        response = await test_client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["database"] == "connected"
